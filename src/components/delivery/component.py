"""
Delivery Executor component.

Renders and transmits one message per active subscriber of an owner.

Key behaviors:
- Disabled newsletter is a hard error (NewsletterDisabledError)
- No items or no active subscribers returns a skipped result
- Recipients are batched by the dispatcher (50 per batch, pause between)
- A failure for one recipient is recorded and the run continues
- No store writes; the ledger persists the outcome
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, date, datetime

from src.components.delivery.dispatcher import BatchDispatcher, SequentialDispatcher
from src.components.delivery.models import (
    NO_SUBSCRIBERS_REASON,
    DeliveryConfig,
    DeliveryInput,
    DeliveryOutput,
    RecipientError,
)
from src.components.selection.models import NO_ITEMS_REASON
from src.core.entities import ContentItem, ContentOwner, Subscriber, SubscriberStatus
from src.core.errors import NewsletterDisabledError
from src.core.ports.email import EmailAddress, EmailMessage, EmailPort, EmailSendError
from src.core.services.email_render import (
    build_unsubscribe_url,
    digest_sender,
    render_digest,
)

logger = logging.getLogger(__name__)


def active_only(subscribers: Sequence[Subscriber]) -> list[Subscriber]:
    """Only active subscribers receive mail."""
    return [s for s in subscribers if s.status == SubscriberStatus.ACTIVE]


def build_message(
    owner: ContentOwner,
    items: Sequence[ContentItem],
    subscriber: Subscriber,
    config: DeliveryConfig,
    sent_on: date,
) -> EmailMessage:
    """Render the personalised digest for one subscriber."""
    unsubscribe_url = build_unsubscribe_url(config.base_url, owner.username, subscriber.email)
    rendered = render_digest(
        owner,
        items,
        unsubscribe_url=unsubscribe_url,
        base_url=config.base_url,
        site_name=config.site_name,
        sent_on=sent_on,
    )
    return EmailMessage(
        recipient=EmailAddress(subscriber.email),
        subject=rendered.subject,
        body_html=rendered.body_html,
        body_text=rendered.body_text,
        sender=digest_sender(owner, config.default_from_email),
        headers={"List-Unsubscribe": f"<{unsubscribe_url}>"},
    )


def run(
    inp: DeliveryInput,
    *,
    email: EmailPort,
    dispatcher: BatchDispatcher | None = None,
    config: DeliveryConfig | None = None,
) -> DeliveryOutput:
    """
    Transmit one digest to every active subscriber.

    Args:
        inp: Owner, items and subscribers
        email: Outbound transport
        dispatcher: Batching strategy (sequential, 50 per batch by default)
        config: Rendering settings

    Returns:
        DeliveryOutput with success/failure counts and per-recipient errors

    Raises:
        NewsletterDisabledError: owner has the newsletter turned off
    """
    if not inp.owner.newsletter_enabled:
        raise NewsletterDisabledError(inp.owner.id)

    if not inp.items:
        return DeliveryOutput(skipped_reason=NO_ITEMS_REASON)

    recipients = active_only(inp.subscribers)
    if not recipients:
        return DeliveryOutput(skipped_reason=NO_SUBSCRIBERS_REASON)

    cfg = config or DeliveryConfig()
    strategy = dispatcher or SequentialDispatcher()
    sent_on = inp.sent_on or datetime.now(UTC).date()

    def send_one(subscriber: Subscriber) -> None:
        message = build_message(inp.owner, inp.items, subscriber, cfg, sent_on)
        result = email.send(message)
        if not result.ok:
            raise EmailSendError(subscriber.email, result.error or "Unknown error")

    report = strategy.dispatch(recipients, send_one)

    errors = []
    for outcome in report.failures:
        logger.error("Failed to send newsletter to %s: %s", outcome.recipient.email, outcome.error)
        errors.append(RecipientError(email=outcome.recipient.email, error=outcome.error or ""))

    return DeliveryOutput(
        success_count=report.success_count,
        failure_count=report.failure_count,
        errors=errors,
        batches=report.batches,
        delays=report.delays,
    )
