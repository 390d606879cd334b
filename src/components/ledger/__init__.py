"""
Ledger component.

Records send attempts and advances the sent markers.
"""

from src.components.ledger.component import (
    decode_errors,
    encode_errors,
    final_status,
    reconcile_stale,
    run,
)
from src.components.ledger.models import (
    ABANDONED_ERROR,
    LedgerInput,
    LedgerOutput,
    LedgerPolicy,
    ReconcileInput,
    ReconcileOutput,
)
from src.components.ledger.ports import (
    DeliveryLedgerPort,
    OwnerStamperPort,
    SentItemStamperPort,
)

__all__ = [
    "run",
    "reconcile_stale",
    "encode_errors",
    "decode_errors",
    "final_status",
    "ABANDONED_ERROR",
    "LedgerInput",
    "LedgerOutput",
    "LedgerPolicy",
    "ReconcileInput",
    "ReconcileOutput",
    "DeliveryLedgerPort",
    "OwnerStamperPort",
    "SentItemStamperPort",
]
