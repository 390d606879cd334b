"""
Domain entities for the newsletter platform.

- ContentOwner: account that publishes content and may run a newsletter
- ContentItem: one publishable unit (article)
- Subscriber: email address opted in to one owner's newsletter
- DeliveryRecord: audit row for one send attempt

All timestamps are timezone-aware UTC.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

__all__ = [
    "Actor",
    "ActorRole",
    "ContentItem",
    "ContentOwner",
    "ContentStatus",
    "DeliveryRecord",
    "DeliveryStatus",
    "Frequency",
    "OwnerRole",
    "SendMode",
    "Subscriber",
    "SubscriberStatus",
    "utc_now",
]

# --- Literals ---

Frequency = Literal["daily", "weekly", "monthly"]
SendMode = Literal["immediate", "digest"]
ContentStatus = Literal["draft", "published", "scheduled"]
OwnerRole = Literal["admin", "creator", "viewer"]
ActorRole = Literal["admin", "creator", "viewer", "system"]


def utc_now() -> datetime:
    return datetime.now(UTC)


# --- Status Enums ---


class SubscriberStatus(str, Enum):
    """
    Subscriber lifecycle.

    pending -> active -> unsubscribed
    pending -> unsubscribed
    unsubscribed -> pending (resubscribe)
    active -> bounced (terminal, set by transport feedback)
    """

    PENDING = "pending"
    ACTIVE = "active"
    UNSUBSCRIBED = "unsubscribed"
    BOUNCED = "bounced"


class DeliveryStatus(str, Enum):
    """DeliveryRecord status: created as sending, finishes in one terminal state."""

    SENDING = "sending"
    COMPLETED = "completed"
    FAILED = "failed"


# --- Entities ---


class ContentOwner(BaseModel):
    """
    Publishing account with newsletter settings.

    Invariants:
    - last_digest_sent_at never moves backwards
    - deleted_at set means excluded from all processing
    """

    id: UUID = Field(default_factory=uuid4)
    username: str
    email: str
    display_name: str | None = None
    role: OwnerRole = "creator"

    newsletter_enabled: bool = False
    send_mode: SendMode = "digest"
    frequency: str = "weekly"  # unknown values are stored but never due
    newsletter_title: str | None = None
    newsletter_description: str | None = None
    from_name: str | None = None
    from_email: str | None = None
    last_digest_sent_at: datetime | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: datetime | None = None

    @property
    def name(self) -> str:
        """Display name, falling back to username."""
        return self.display_name or self.username

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class ContentItem(BaseModel):
    """
    Publishable article.

    Eligible for automatic newsletter inclusion only when published,
    never newsletter-sent and not soft-deleted.
    """

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    title: str
    slug: str
    status: ContentStatus = "draft"
    published_at: datetime | None = None
    newsletter_sent_at: datetime | None = None
    thumbnail_url: str | None = None
    genre: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    deleted_at: datetime | None = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class Subscriber(BaseModel):
    """
    Email address subscribed to one owner's newsletter.

    (owner_id, email) is unique. Only ACTIVE subscribers receive mail.
    """

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    email: str
    status: SubscriberStatus = SubscriberStatus.PENDING
    verification_token: str | None = None  # single-use, cleared on redemption
    redeemed_token: str | None = None  # last redeemed token, for idempotent re-redemption
    subscribed_at: datetime = Field(default_factory=utc_now)
    verified_at: datetime | None = None
    unsubscribed_at: datetime | None = None
    updated_at: datetime = Field(default_factory=utc_now)


class DeliveryRecord(BaseModel):
    """
    Audit row for one send attempt. Never deleted.

    error_detail is a JSON-serialized list of {"email", "error"} objects,
    or None when every recipient succeeded.
    """

    id: UUID = Field(default_factory=uuid4)
    owner_id: UUID
    subject: str
    item_ids: list[UUID] = Field(default_factory=list)
    subscriber_count: int = 0
    success_count: int = 0
    failure_count: int = 0
    status: DeliveryStatus = DeliveryStatus.SENDING
    error_detail: str | None = None
    sent_at: datetime = Field(default_factory=utc_now)
    completed_at: datetime | None = None


class Actor(BaseModel):
    """Identity of the caller, passed explicitly into every operation."""

    user_id: UUID | None = None
    role: ActorRole = "viewer"

    @classmethod
    def system(cls) -> Actor:
        return cls(user_id=None, role="system")

    def can_act_for(self, owner_id: UUID) -> bool:
        if self.role in ("admin", "system"):
            return True
        return self.user_id is not None and self.user_id == owner_id
