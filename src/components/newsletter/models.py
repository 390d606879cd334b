"""
Newsletter subscription component models.

Data models for the double opt-in subscription flow.

State machine (Subscriber):
- pending -> active (verification link)
- pending -> unsubscribed
- active -> unsubscribed
- unsubscribed -> pending (resubscribe)
- active -> bounced (terminal, transport feedback)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from src.core.entities import SubscriberStatus

# --- State Machine ---

VALID_TRANSITIONS: dict[SubscriberStatus, set[SubscriberStatus]] = {
    SubscriberStatus.PENDING: {SubscriberStatus.ACTIVE, SubscriberStatus.UNSUBSCRIBED},
    SubscriberStatus.ACTIVE: {SubscriberStatus.UNSUBSCRIBED, SubscriberStatus.BOUNCED},
    SubscriberStatus.UNSUBSCRIBED: {SubscriberStatus.PENDING, SubscriberStatus.ACTIVE},  # ACTIVE via a live token
    SubscriberStatus.BOUNCED: set(),  # Terminal state
}


def can_transition(from_status: SubscriberStatus, to_status: SubscriberStatus) -> bool:
    """Check if a subscriber status transition is allowed."""
    return to_status in VALID_TRANSITIONS.get(from_status, set())


# --- Configuration ---


@dataclass(frozen=True)
class SubscriptionConfig:
    """Subscription settings, from rules.yaml `newsletter` and `rate_limits`."""

    site_name: str = "Creator Newsletter"
    base_url: str = "http://localhost:3000"
    default_from_email: str = "onboarding@resend.dev"
    default_from_name: str = "Media Tech Compass"
    token_bytes: int = 32
    reject_disposable_emails: bool = False


# --- Input Models ---


@dataclass(frozen=True)
class SubscribeInput:
    """Subscribe request for one owner's newsletter."""

    email: str
    owner_username: str
    ip_address: str | None = None  # For rate limiting


@dataclass(frozen=True)
class ConfirmInput:
    """Verification token redemption."""

    token: str


@dataclass(frozen=True)
class UnsubscribeInput:
    """Opt-out, keyed by owner + email (as in the digest unsubscribe link)."""

    email: str
    owner_username: str


# --- Output Models ---


@dataclass(frozen=True)
class ValidationError:
    """Validation error detail."""

    code: str
    message: str
    field: str | None = None


@dataclass(frozen=True)
class ValidateEmailOutput:
    """Output from email validation."""

    is_valid: bool
    normalized_email: str | None = None  # Lowercase, trimmed
    errors: list[ValidationError] = field(default_factory=list)
    is_disposable: bool = False


@dataclass(frozen=True)
class SubscribeOutput:
    """Output from a subscribe attempt."""

    success: bool
    subscriber_id: UUID | None = None
    needs_confirmation: bool = True
    already_subscribed: bool = False
    resubscribed: bool = False
    errors: list[ValidationError] = field(default_factory=list)


@dataclass(frozen=True)
class ConfirmOutput:
    """Output from a confirmation attempt."""

    success: bool
    subscriber_id: UUID | None = None
    already_confirmed: bool = False  # Idempotent success
    errors: list[ValidationError] = field(default_factory=list)


@dataclass(frozen=True)
class UnsubscribeOutput:
    """Output from an unsubscribe attempt."""

    success: bool
    already_unsubscribed: bool = False  # Idempotent success
    errors: list[ValidationError] = field(default_factory=list)
