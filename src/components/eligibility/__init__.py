"""
Eligibility component.

Decides which content owners are due for a scheduled digest.
"""

from src.components.eligibility.component import (
    evaluate_owner,
    hours_since,
    is_due,
    run,
)
from src.components.eligibility.models import (
    FREQUENCY_HOURS,
    NOT_DUE_REASON,
    EligibilityConfig,
    OwnerDecision,
    OwnerScanError,
    ScanInput,
    ScanOutput,
)
from src.components.eligibility.ports import DigestOwnerSourcePort

__all__ = [
    # Component
    "run",
    # Pure functions
    "is_due",
    "hours_since",
    "evaluate_owner",
    # Constants
    "FREQUENCY_HOURS",
    "NOT_DUE_REASON",
    # Models
    "EligibilityConfig",
    "ScanInput",
    "ScanOutput",
    "OwnerDecision",
    "OwnerScanError",
    # Ports
    "DigestOwnerSourcePort",
]
