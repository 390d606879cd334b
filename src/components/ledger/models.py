"""
Ledger component models.

Inputs and outputs for recording one send attempt, and for reconciling
abandoned attempts.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from src.components.delivery.models import DeliveryOutput
from src.core.entities import ContentOwner, DeliveryRecord

ABANDONED_ERROR = "Delivery abandoned before completion"


@dataclass(frozen=True)
class LedgerPolicy:
    """
    Ledger policy, from rules.yaml `delivery`.

    mark_failed_when_all_fail: a run with zero successes and at least one
    failure ends `failed` and stamps nothing, so the content is retried.
    """

    mark_failed_when_all_fail: bool = False
    stale_after_minutes: int = 60


# --- Input Models ---


@dataclass(frozen=True)
class LedgerInput:
    """One send attempt to record."""

    owner: ContentOwner
    subject: str
    item_ids: tuple[UUID, ...]
    subscriber_count: int


@dataclass(frozen=True)
class ReconcileInput:
    """Reconcile `sending` records older than the policy allows."""

    now: datetime | None = None


# --- Output Models ---


@dataclass(frozen=True)
class LedgerOutput:
    """The finished delivery record and the executor result behind it."""

    record: DeliveryRecord
    execution: DeliveryOutput
    items_stamped: bool = True


@dataclass(frozen=True)
class ReconcileOutput:
    reconciled: list[UUID] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.reconciled)
