"""
Repository ports.

Protocol-based interfaces for the relational store.
Implementations: SQLite (src.adapters.sqlite_db).

Each method is a single independent statement; no operation requires a
transaction spanning multiple tables.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol
from uuid import UUID

from src.core.entities import (
    ContentItem,
    ContentOwner,
    DeliveryRecord,
    DeliveryStatus,
    Subscriber,
    SubscriberStatus,
)

# -----------------------------------------------------------------------------
# ContentOwner Repository
# -----------------------------------------------------------------------------


class OwnerRepoPort(Protocol):
    """Repository for content owners (profiles)."""

    def get_by_id(self, owner_id: UUID) -> ContentOwner | None:
        """Get owner by ID (soft-deleted owners included)."""
        ...

    def get_by_username(self, username: str) -> ContentOwner | None:
        """Get a non-deleted owner by username."""
        ...

    def save(self, owner: ContentOwner) -> ContentOwner:
        """Insert or update owner."""
        ...

    def list_digest_owners(self) -> list[ContentOwner]:
        """Owners with newsletter enabled, digest send mode and no tombstone."""
        ...

    def stamp_last_sent(self, owner_id: UUID, sent_at: datetime) -> None:
        """
        Advance last_digest_sent_at to sent_at.

        Never moves the stored value backwards.
        """
        ...


# -----------------------------------------------------------------------------
# ContentItem Repository
# -----------------------------------------------------------------------------


class ContentRepoPort(Protocol):
    """Repository for content items."""

    def get_by_id(self, item_id: UUID) -> ContentItem | None:
        ...

    def save(self, item: ContentItem) -> ContentItem:
        ...

    def list_by_ids(self, item_ids: Sequence[UUID]) -> list[ContentItem]:
        """Fetch items by ID set (`in` filter). Order is not guaranteed."""
        ...

    def list_unsent_published(self, owner_id: UUID, limit: int) -> list[ContentItem]:
        """
        Published, never newsletter-sent, non-deleted items of one owner,
        newest publication first.
        """
        ...

    def mark_newsletter_sent(self, item_ids: Sequence[UUID], sent_at: datetime) -> None:
        """Stamp newsletter_sent_at on every listed item."""
        ...


# -----------------------------------------------------------------------------
# Subscriber Repository
# -----------------------------------------------------------------------------


class SubscriberRepoPort(Protocol):
    """Repository for newsletter subscribers."""

    def get_by_id(self, subscriber_id: UUID) -> Subscriber | None:
        ...

    def get_by_owner_and_email(self, owner_id: UUID, email: str) -> Subscriber | None:
        ...

    def get_by_token(self, token: str) -> Subscriber | None:
        """Match a pending verification token or the last redeemed one."""
        ...

    def save(self, subscriber: Subscriber) -> Subscriber:
        ...

    def list_by_owner(
        self,
        owner_id: UUID,
        status: SubscriberStatus | None = None,
    ) -> list[Subscriber]:
        """Subscribers of one owner, newest first, optional status filter."""
        ...

    def count_by_status(self, owner_id: UUID) -> dict[SubscriberStatus, int]:
        ...


# -----------------------------------------------------------------------------
# DeliveryRecord Repository
# -----------------------------------------------------------------------------


class DeliveryRepoPort(Protocol):
    """Append-mostly store of delivery attempts."""

    def create(self, record: DeliveryRecord) -> DeliveryRecord:
        """Insert a new record. Raises on failure."""
        ...

    def save(self, record: DeliveryRecord) -> DeliveryRecord:
        """Update an existing record."""
        ...

    def get_by_id(self, delivery_id: UUID) -> DeliveryRecord | None:
        ...

    def list_by_owner(self, owner_id: UUID) -> list[DeliveryRecord]:
        """Records of one owner, newest first."""
        ...

    def list_by_status(
        self,
        status: DeliveryStatus,
        sent_before: datetime | None = None,
    ) -> list[DeliveryRecord]:
        ...
