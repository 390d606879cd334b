"""
Ledger component ports.

Narrow views of the repositories; each call is one independent statement.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol
from uuid import UUID

from src.core.entities import DeliveryRecord, DeliveryStatus


class DeliveryLedgerPort(Protocol):
    def create(self, record: DeliveryRecord) -> DeliveryRecord:
        ...

    def save(self, record: DeliveryRecord) -> DeliveryRecord:
        ...

    def list_by_status(
        self,
        status: DeliveryStatus,
        sent_before: datetime | None = None,
    ) -> list[DeliveryRecord]:
        ...


class SentItemStamperPort(Protocol):
    def mark_newsletter_sent(self, item_ids: Sequence[UUID], sent_at: datetime) -> None:
        ...


class OwnerStamperPort(Protocol):
    def stamp_last_sent(self, owner_id: UUID, sent_at: datetime) -> None:
        """Advance last_digest_sent_at; never moves it backwards."""
        ...
