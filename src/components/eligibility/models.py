"""
Eligibility component models.

Inputs and outputs for the digest eligibility scan.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from src.core.entities import ContentOwner

# Hours that must elapse since the last digest before the next one is due.
FREQUENCY_HOURS: dict[str, int] = {
    "daily": 24,
    "weekly": 168,
    "monthly": 720,
}

NOT_DUE_REASON = "Not time to send yet"


@dataclass(frozen=True)
class EligibilityConfig:
    """Frequency thresholds, from rules.yaml `digest.frequency_hours`."""

    frequency_hours: dict[str, int] = field(default_factory=lambda: dict(FREQUENCY_HOURS))


# --- Input Models ---


@dataclass(frozen=True)
class ScanInput:
    """Input for one eligibility scan. `now` defaults to the clock port."""

    now: datetime | None = None


# --- Output Models ---


@dataclass(frozen=True)
class OwnerDecision:
    """Whether one owner is due, and why not when it is not."""

    owner: ContentOwner
    due: bool
    reason: str | None = None


@dataclass(frozen=True)
class OwnerScanError:
    """An owner that could not be evaluated. The scan continued past it."""

    owner_id: UUID
    owner_name: str
    message: str


@dataclass(frozen=True)
class ScanOutput:
    """Result of an eligibility scan."""

    scanned_at: datetime
    decisions: list[OwnerDecision] = field(default_factory=list)
    errors: list[OwnerScanError] = field(default_factory=list)

    @property
    def due_owners(self) -> list[ContentOwner]:
        return [d.owner for d in self.decisions if d.due]

    @property
    def skipped(self) -> list[OwnerDecision]:
        return [d for d in self.decisions if not d.due]
