"""
Newsletter subscription component.

Functional core for per-owner newsletter subscriptions.
Implements the double opt-in flow with secure token generation.

Key behaviors:
- Double opt-in (pending -> active via emailed link)
- Cryptographic tokens (secrets.token_hex, 32 bytes)
- Resubscribe reuses the (owner, email) row and issues a new token
- Redeeming a token twice is an idempotent success
- Unsubscribe is idempotent
- Optional disposable-domain rejection
- Rate limiting per client IP

Invariants:
- New and resubscribed rows always start pending
- Bounced addresses cannot resubscribe
- Only active subscribers receive digests
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import UTC, datetime
from uuid import UUID

from src.components.newsletter.models import (
    ConfirmInput,
    ConfirmOutput,
    SubscribeInput,
    SubscribeOutput,
    SubscriptionConfig,
    UnsubscribeInput,
    UnsubscribeOutput,
    ValidateEmailOutput,
    ValidationError,
    can_transition,
)
from src.components.newsletter.ports import (
    OwnerLookupPort,
    RateLimiterPort,
    SubscriberStorePort,
)
from src.core.entities import ContentOwner, Subscriber, SubscriberStatus
from src.core.ports.email import EmailAddress, EmailMessage, EmailPort
from src.core.ports.time import ClockPort
from src.core.services.email_render import build_confirm_url, render_verification

logger = logging.getLogger(__name__)

# --- Email Validation Regex (RFC 5322 simplified) ---

EMAIL_REGEX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

DEFAULT_DISPOSABLE_DOMAINS: frozenset[str] = frozenset(
    {
        "10minutemail.com",
        "guerrillamail.com",
        "mailinator.com",
        "tempmail.com",
        "throwaway.email",
        "yopmail.com",
        "temp-mail.org",
        "trashmail.com",
    }
)

MIN_TOKEN_BYTES = 32


# --- Pure Functions (Functional Core) ---


def normalize_email(email: str | None) -> str:
    return email.strip().lower() if email else ""


def validate_email(
    email: str,
    check_disposable: bool = False,
    disposable_domains: frozenset[str] | set[str] | None = None,
) -> ValidateEmailOutput:
    """
    Validate email address format, optionally rejecting disposable domains.

    Args:
        email: Email address to validate
        check_disposable: Whether to check against disposable domains
        disposable_domains: Custom set of disposable domains (optional)

    Returns:
        ValidateEmailOutput with validation results
    """
    normalized = normalize_email(email)

    if not normalized:
        return ValidateEmailOutput(
            is_valid=False,
            errors=[ValidationError("EMPTY_EMAIL", "Email address is required", "email")],
        )

    if len(normalized) > 254:
        return ValidateEmailOutput(
            is_valid=False,
            errors=[ValidationError("EMAIL_TOO_LONG", "Email address is too long", "email")],
        )

    if not EMAIL_REGEX.match(normalized):
        return ValidateEmailOutput(
            is_valid=False,
            errors=[ValidationError("INVALID_FORMAT", "Invalid email address", "email")],
        )

    is_disposable = False
    if check_disposable:
        domains = disposable_domains or DEFAULT_DISPOSABLE_DOMAINS
        is_disposable = normalized.rsplit("@", 1)[1] in domains

    if is_disposable:
        return ValidateEmailOutput(
            is_valid=False,
            normalized_email=normalized,
            errors=[
                ValidationError(
                    "DISPOSABLE_EMAIL",
                    "Disposable email addresses are not allowed",
                    "email",
                )
            ],
            is_disposable=True,
        )

    return ValidateEmailOutput(is_valid=True, normalized_email=normalized)


def generate_token(nbytes: int = MIN_TOKEN_BYTES) -> str:
    """
    Generate a verification token.

    Args:
        nbytes: Random bytes (never fewer than 32), hex-encoded

    Returns:
        Hex token string
    """
    return secrets.token_hex(max(nbytes, MIN_TOKEN_BYTES))


def new_subscriber(owner_id: UUID, email: str, token: str, now: datetime) -> Subscriber:
    """Create a pending subscriber with a fresh token."""
    return Subscriber(
        owner_id=owner_id,
        email=email,
        status=SubscriberStatus.PENDING,
        verification_token=token,
        subscribed_at=now,
        updated_at=now,
    )


def reissue(subscriber: Subscriber, token: str, now: datetime) -> Subscriber:
    """Back to pending with a new token; verification and opt-out reset."""
    return subscriber.model_copy(
        update={
            "status": SubscriberStatus.PENDING,
            "verification_token": token,
            "redeemed_token": None,
            "subscribed_at": now,
            "verified_at": None,
            "unsubscribed_at": None,
            "updated_at": now,
        }
    )


def activate(subscriber: Subscriber, now: datetime) -> Subscriber:
    """Redeem the token: active, token cleared and remembered as redeemed."""
    return subscriber.model_copy(
        update={
            "status": SubscriberStatus.ACTIVE,
            "verification_token": None,
            "redeemed_token": subscriber.verification_token,
            "verified_at": now,
            "unsubscribed_at": None,
            "updated_at": now,
        }
    )


def unsubscribe(subscriber: Subscriber, now: datetime) -> Subscriber:
    return subscriber.model_copy(
        update={
            "status": SubscriberStatus.UNSUBSCRIBED,
            "unsubscribed_at": now,
            "updated_at": now,
        }
    )


def build_verification_message(
    owner: ContentOwner,
    email: str,
    token: str,
    config: SubscriptionConfig,
) -> EmailMessage:
    """Verification email, sent from the platform default address."""
    url = build_confirm_url(config.base_url, owner.username, token)
    rendered = render_verification(owner.name, url, config.site_name)
    return EmailMessage(
        recipient=EmailAddress(email),
        subject=rendered.subject,
        body_html=rendered.body_html,
        body_text=rendered.body_text,
        sender=EmailAddress(config.default_from_email, config.default_from_name),
    )


def _now(clock: ClockPort | None) -> datetime:
    return clock.now_utc() if clock is not None else datetime.now(UTC)


# --- Run Handlers ---


def run_subscribe(
    inp: SubscribeInput,
    *,
    owners: OwnerLookupPort,
    subscribers: SubscriberStorePort,
    email_sender: EmailPort | None = None,
    rate_limiter: RateLimiterPort | None = None,
    config: SubscriptionConfig | None = None,
    clock: ClockPort | None = None,
) -> SubscribeOutput:
    """
    Handle a subscribe request.
    """
    cfg = config or SubscriptionConfig()

    validation = validate_email(inp.email, check_disposable=cfg.reject_disposable_emails)
    if not validation.is_valid or validation.normalized_email is None:
        return SubscribeOutput(success=False, errors=validation.errors)
    email = validation.normalized_email

    if rate_limiter and inp.ip_address and not rate_limiter.check_subscribe(inp.ip_address):
        return SubscribeOutput(
            success=False,
            errors=[ValidationError("RATE_LIMIT", "Too many attempts, please try later", None)],
        )

    owner = owners.get_by_username(inp.owner_username) if inp.owner_username else None
    if owner is None or owner.is_deleted:
        return SubscribeOutput(
            success=False,
            errors=[ValidationError("OWNER_NOT_FOUND", "Author not found", "author_username")],
        )
    if not owner.newsletter_enabled:
        return SubscribeOutput(
            success=False,
            errors=[
                ValidationError(
                    "NEWSLETTER_DISABLED",
                    "Newsletter is not enabled for this author",
                    None,
                )
            ],
        )

    now = _now(clock)
    token = generate_token(cfg.token_bytes)
    existing = subscribers.get_by_owner_and_email(owner.id, email)

    if existing is not None:
        if existing.status == SubscriberStatus.ACTIVE:
            return SubscribeOutput(
                success=True,
                subscriber_id=existing.id,
                needs_confirmation=False,
                already_subscribed=True,
            )
        if existing.status == SubscriberStatus.BOUNCED:
            return SubscribeOutput(
                success=False,
                subscriber_id=existing.id,
                errors=[ValidationError("ADDRESS_BOUNCED", "This address cannot receive email", "email")],
            )
        subscriber = subscribers.save(reissue(existing, token, now))
        resubscribed = True
    else:
        subscriber = subscribers.save(new_subscriber(owner.id, email, token, now))
        resubscribed = False

    if email_sender is not None:
        result = email_sender.send(build_verification_message(owner, email, token, cfg))
        if not result.ok:
            logger.error("Failed to send verification email to %s: %s", email, result.error)
            return SubscribeOutput(
                success=False,
                subscriber_id=subscriber.id,
                resubscribed=resubscribed,
                errors=[ValidationError("EMAIL_SEND_FAILED", "Failed to send verification email", None)],
            )

    return SubscribeOutput(
        success=True,
        subscriber_id=subscriber.id,
        needs_confirmation=True,
        resubscribed=resubscribed,
    )


def run_confirm(
    inp: ConfirmInput,
    *,
    subscribers: SubscriberStorePort,
    clock: ClockPort | None = None,
) -> ConfirmOutput:
    """
    Handle a verification token redemption.
    """
    token = inp.token.strip() if inp.token else ""
    if not token:
        return ConfirmOutput(
            success=False,
            errors=[ValidationError("MISSING_TOKEN", "Token is required", "token")],
        )

    subscriber = subscribers.get_by_token(token)
    if subscriber is None:
        return ConfirmOutput(
            success=False,
            errors=[ValidationError("INVALID_TOKEN", "Invalid or expired token", "token")],
        )

    if subscriber.status == SubscriberStatus.ACTIVE:
        return ConfirmOutput(success=True, subscriber_id=subscriber.id, already_confirmed=True)

    # A remembered token only proves an earlier redemption; it cannot reactivate.
    if subscriber.verification_token != token or not can_transition(
        subscriber.status, SubscriberStatus.ACTIVE
    ):
        return ConfirmOutput(
            success=False,
            errors=[ValidationError("INVALID_TOKEN", "Invalid or expired token", "token")],
        )

    confirmed = subscribers.save(activate(subscriber, _now(clock)))
    return ConfirmOutput(success=True, subscriber_id=confirmed.id)


def run_unsubscribe(
    inp: UnsubscribeInput,
    *,
    owners: OwnerLookupPort,
    subscribers: SubscriberStorePort,
    clock: ClockPort | None = None,
) -> UnsubscribeOutput:
    """
    Handle an opt-out request.
    """
    email = normalize_email(inp.email)
    if not email:
        return UnsubscribeOutput(
            success=False,
            errors=[ValidationError("EMPTY_EMAIL", "Email address is required", "email")],
        )

    owner = owners.get_by_username(inp.owner_username) if inp.owner_username else None
    if owner is None or owner.is_deleted:
        return UnsubscribeOutput(
            success=False,
            errors=[ValidationError("OWNER_NOT_FOUND", "Author not found", "author_username")],
        )

    subscriber = subscribers.get_by_owner_and_email(owner.id, email)
    if subscriber is None:
        return UnsubscribeOutput(
            success=False,
            errors=[ValidationError("SUBSCRIPTION_NOT_FOUND", "Subscription not found", "email")],
        )

    if subscriber.status == SubscriberStatus.UNSUBSCRIBED:
        return UnsubscribeOutput(success=True, already_unsubscribed=True)

    # Bounced is terminal and already excluded from every send.
    if not can_transition(subscriber.status, SubscriberStatus.UNSUBSCRIBED):
        return UnsubscribeOutput(success=True)

    subscribers.save(unsubscribe(subscriber, _now(clock)))
    return UnsubscribeOutput(success=True)


def run(
    inp: SubscribeInput | ConfirmInput | UnsubscribeInput,
    *,
    owners: OwnerLookupPort,
    subscribers: SubscriberStorePort,
    email_sender: EmailPort | None = None,
    rate_limiter: RateLimiterPort | None = None,
    config: SubscriptionConfig | None = None,
    clock: ClockPort | None = None,
) -> SubscribeOutput | ConfirmOutput | UnsubscribeOutput:
    """
    Main component entry point.

    Args:
        inp: Input command
        owners: Owner lookup port
        subscribers: Subscriber store port
        email_sender: Outbound mail for verification messages (optional)
        rate_limiter: Subscribe rate limiter (optional)
        config: Subscription settings (optional)
        clock: Clock port (optional)

    Returns:
        Operation result
    """
    if isinstance(inp, SubscribeInput):
        return run_subscribe(
            inp,
            owners=owners,
            subscribers=subscribers,
            email_sender=email_sender,
            rate_limiter=rate_limiter,
            config=config,
            clock=clock,
        )
    elif isinstance(inp, ConfirmInput):
        return run_confirm(inp, subscribers=subscribers, clock=clock)
    elif isinstance(inp, UnsubscribeInput):
        return run_unsubscribe(inp, owners=owners, subscribers=subscribers, clock=clock)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
