"""
Delivery component models.

Inputs and outputs for rendering and transmitting one digest.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from src.core.entities import ContentItem, ContentOwner, Subscriber

NO_SUBSCRIBERS_REASON = "No active subscribers"


@dataclass(frozen=True)
class DeliveryConfig:
    """Rendering and transport settings, from rules.yaml."""

    base_url: str = "http://localhost:3000"
    site_name: str = "Creator Newsletter"
    default_from_email: str = "onboarding@resend.dev"


# --- Input Models ---


@dataclass(frozen=True)
class DeliveryInput:
    """One digest: an owner, the selected items and the recipients."""

    owner: ContentOwner
    items: tuple[ContentItem, ...]
    subscribers: tuple[Subscriber, ...]
    sent_on: date | None = None  # Date printed in the digest, defaults to today (UTC)


# --- Output Models ---


@dataclass(frozen=True)
class RecipientError:
    """One recipient that could not be sent to."""

    email: str | None
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"email": self.email, "error": self.error}


@dataclass(frozen=True)
class DeliveryOutput:
    """
    Result of one digest transmission.

    Never raised for partial failure: the counts and errors carry it.
    """

    success_count: int = 0
    failure_count: int = 0
    errors: list[RecipientError] = field(default_factory=list)
    batches: int = 0
    delays: int = 0
    skipped_reason: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None

    @property
    def attempted(self) -> int:
        return self.success_count + self.failure_count
