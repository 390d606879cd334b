"""
NewsletterService - orchestrates the digest pipeline.

Per owner, strictly in order:
    Eligibility (scheduled runs only) -> Selection -> Delivery -> Ledger

Also serves the owner-facing settings, subscriber and delivery-history
reads. Every owner-scoped operation takes the calling Actor explicitly.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from src.components import delivery, eligibility, ledger, selection
from src.components.delivery import BatchDispatcher, build_dispatcher
from src.core.entities import (
    Actor,
    ContentOwner,
    DeliveryRecord,
    Subscriber,
    SubscriberStatus,
)
from src.core.errors import NewsletterDisabledError, OwnerNotFoundError
from src.core.ports.db import (
    ContentRepoPort,
    DeliveryRepoPort,
    OwnerRepoPort,
    SubscriberRepoPort,
)
from src.core.ports.email import EmailPort
from src.core.ports.time import ClockPort
from src.core.services.email_render import digest_subject
from src.rules.models import Rules

logger = logging.getLogger(__name__)

SEND_MODES = ("immediate", "digest")
FREQUENCIES = ("daily", "weekly", "monthly")

_FROM_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

OutcomeStatus = Literal["succeeded", "skipped", "failed"]


# --- Results ---


@dataclass(frozen=True)
class SendOutcome:
    """Outcome of one owner's pipeline run."""

    owner_id: UUID
    owner_name: str
    status: OutcomeStatus
    reason: str | None = None
    delivery_id: UUID | None = None
    success_count: int = 0
    failed_count: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "owner_id": str(self.owner_id),
            "owner_name": self.owner_name,
            "status": self.status,
        }
        if self.status == "succeeded":
            data.update(
                delivery_id=str(self.delivery_id) if self.delivery_id else None,
                success_count=self.success_count,
                failed_count=self.failed_count,
                errors=self.errors,
            )
        elif self.status == "skipped":
            data["reason"] = self.reason
        else:
            data["error"] = self.reason
        return data


@dataclass(frozen=True)
class NewsletterSettings:
    owner: ContentOwner
    stats: dict[str, int]


@dataclass(frozen=True)
class DeliveryView:
    """A delivery record with its items resolved and errors decoded."""

    record: DeliveryRecord
    items: list[dict[str, str]]
    errors: list[dict[str, Any]]


class NewsletterService:
    def __init__(
        self,
        owners: OwnerRepoPort,
        content: ContentRepoPort,
        subscribers: SubscriberRepoPort,
        deliveries: DeliveryRepoPort,
        email: EmailPort,
        clock: ClockPort,
        rules: Rules,
        dispatcher: BatchDispatcher | None = None,
    ):
        self.owners = owners
        self.content = content
        self.subscribers = subscribers
        self.deliveries = deliveries
        self.email = email
        self.clock = clock
        self.rules = rules
        self.dispatcher = dispatcher or build_dispatcher(
            rules.delivery.dispatcher,
            batch_size=rules.delivery.batch_size,
            batch_delay_ms=rules.delivery.batch_delay_ms,
            max_workers=rules.delivery.max_workers,
        )

        self._eligibility_config = eligibility.EligibilityConfig(
            frequency_hours=dict(rules.digest.frequency_hours)
        )
        self._delivery_config = delivery.DeliveryConfig(
            base_url=rules.newsletter.base_url,
            site_name=rules.newsletter.site_name,
            default_from_email=rules.newsletter.default_from_email,
        )
        self._ledger_policy = ledger.LedgerPolicy(
            mark_failed_when_all_fail=rules.delivery.mark_failed_when_all_fail,
            stale_after_minutes=rules.delivery.stale_after_minutes,
        )

    # --- Access ---

    def _owner_for(self, actor: Actor, owner_id: UUID) -> ContentOwner:
        if not actor.can_act_for(owner_id):
            raise PermissionError("Access denied")
        owner = self.owners.get_by_id(owner_id)
        if owner is None or owner.is_deleted:
            raise OwnerNotFoundError(owner_id)
        return owner

    # --- Pipeline ---

    def _run_pipeline(
        self,
        owner: ContentOwner,
        item_ids: list[UUID] | None = None,
    ) -> SendOutcome:
        selected = selection.run(
            selection.SelectionInput(
                owner_id=owner.id,
                item_ids=tuple(item_ids) if item_ids else None,
                limit=self.rules.digest.max_items_per_send,
            ),
            content=self.content,
        )
        if selected.is_empty:
            logger.info("Skipping owner %s: %s", owner.id, selection.NO_ITEMS_REASON)
            return SendOutcome(owner.id, owner.name, "skipped", reason=selection.NO_ITEMS_REASON)

        recipients = self.subscribers.list_by_owner(owner.id, SubscriberStatus.ACTIVE)
        recipients = delivery.active_only(recipients)
        if not recipients:
            logger.info("Skipping owner %s: %s", owner.id, delivery.NO_SUBSCRIBERS_REASON)
            return SendOutcome(owner.id, owner.name, "skipped", reason=delivery.NO_SUBSCRIBERS_REASON)

        delivery_input = delivery.DeliveryInput(
            owner=owner,
            items=tuple(selected.items),
            subscribers=tuple(recipients),
            sent_on=self.clock.now_utc().date(),
        )

        def execute() -> delivery.DeliveryOutput:
            return delivery.run(
                delivery_input,
                email=self.email,
                dispatcher=self.dispatcher,
                config=self._delivery_config,
            )

        recorded = ledger.run(
            ledger.LedgerInput(
                owner=owner,
                subject=digest_subject(owner),
                item_ids=tuple(selected.item_ids),
                subscriber_count=len(recipients),
            ),
            execute,
            deliveries=self.deliveries,
            items=self.content,
            owners=self.owners,
            clock=self.clock,
            policy=self._ledger_policy,
        )

        execution = recorded.execution
        return SendOutcome(
            owner_id=owner.id,
            owner_name=owner.name,
            status="succeeded",
            delivery_id=recorded.record.id,
            success_count=execution.success_count,
            failed_count=execution.failure_count,
            errors=[e.to_dict() for e in execution.errors],
        )

    def send_now(
        self,
        actor: Actor,
        owner_id: UUID,
        item_ids: list[UUID] | None = None,
    ) -> SendOutcome:
        """
        Run the pipeline for one owner now.

        Manual mode when item_ids is non-empty, automatic mode otherwise.

        Raises:
            PermissionError: actor may not act for this owner
            OwnerNotFoundError: owner missing or soft-deleted
            NewsletterDisabledError: owner has the newsletter off
            DeliveryRecordError: the delivery record could not be created
        """
        owner = self._owner_for(actor, owner_id)
        if not owner.newsletter_enabled:
            raise NewsletterDisabledError(owner.id)
        return self._run_pipeline(owner, item_ids)

    def scan_and_send_due(self, now: datetime | None = None) -> list[SendOutcome]:
        """
        Scheduled run: one pipeline per due digest owner, sequentially.

        A failure for one owner is reported in its outcome and the scan
        moves on to the next owner.
        """
        scan = eligibility.run(
            eligibility.ScanInput(now=now),
            owners=self.owners,
            clock=self.clock,
            config=self._eligibility_config,
        )

        results: list[SendOutcome] = []
        for decision in scan.decisions:
            owner = decision.owner
            if not decision.due:
                results.append(SendOutcome(owner.id, owner.name, "skipped", reason=decision.reason))
                continue
            try:
                results.append(self._run_pipeline(owner))
            except Exception as e:
                logger.exception("Newsletter run failed for owner %s", owner.id)
                results.append(SendOutcome(owner.id, owner.name, "failed", reason=str(e)))

        for error in scan.errors:
            results.append(SendOutcome(error.owner_id, error.owner_name, "failed", reason=error.message))

        logger.info("Processed %d owners", len(results))
        return results

    def reconcile(self, now: datetime | None = None) -> ledger.ReconcileOutput:
        """Fail deliveries left in `sending` past the stale window."""
        return ledger.reconcile_stale(
            ledger.ReconcileInput(now=now),
            deliveries=self.deliveries,
            clock=self.clock,
            policy=self._ledger_policy,
        )

    # --- Settings ---

    def get_settings(self, actor: Actor, owner_id: UUID) -> NewsletterSettings:
        owner = self._owner_for(actor, owner_id)
        counts = self.subscribers.count_by_status(owner.id)
        stats = {status.value: counts.get(status, 0) for status in SubscriberStatus}
        stats["total"] = sum(stats.values())
        return NewsletterSettings(owner=owner, stats=stats)

    def update_settings(self, actor: Actor, owner_id: UUID, updates: dict[str, Any]) -> ContentOwner:
        """
        Partial update of newsletter settings.

        Raises:
            ValueError: unknown field or invalid value
        """
        owner = self._owner_for(actor, owner_id)
        allowed = {
            "newsletter_enabled",
            "send_mode",
            "frequency",
            "newsletter_title",
            "newsletter_description",
            "from_name",
            "from_email",
        }
        unknown = set(updates) - allowed
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        if "send_mode" in updates and updates["send_mode"] not in SEND_MODES:
            raise ValueError("Invalid send_mode")
        if "frequency" in updates and updates["frequency"] not in FREQUENCIES:
            raise ValueError("Invalid frequency")
        if "newsletter_enabled" in updates and not isinstance(updates["newsletter_enabled"], bool):
            raise ValueError("newsletter_enabled must be a boolean")

        clean = dict(updates)
        for key in ("newsletter_title", "newsletter_description", "from_name", "from_email"):
            if key in clean and isinstance(clean[key], str):
                clean[key] = clean[key].strip() or None
        if clean.get("from_email") and not _FROM_EMAIL_RE.match(clean["from_email"]):
            raise ValueError("Invalid from_email")

        clean["updated_at"] = self.clock.now_utc()
        updated = owner.model_copy(update=clean)
        return self.owners.save(updated)

    # --- Reads ---

    def list_subscribers(
        self,
        actor: Actor,
        owner_id: UUID,
        status: SubscriberStatus | None = None,
    ) -> list[Subscriber]:
        owner = self._owner_for(actor, owner_id)
        return self.subscribers.list_by_owner(owner.id, status)

    def list_deliveries(self, actor: Actor, owner_id: UUID) -> list[DeliveryView]:
        owner = self._owner_for(actor, owner_id)
        records = self.deliveries.list_by_owner(owner.id)

        all_ids = {item_id for r in records for item_id in r.item_ids}
        items = {i.id: i for i in self.content.list_by_ids(list(all_ids))} if all_ids else {}

        views = []
        for record in records:
            resolved = [
                {"id": str(items[i].id), "title": items[i].title, "slug": items[i].slug}
                for i in record.item_ids
                if i in items
            ]
            views.append(
                DeliveryView(
                    record=record,
                    items=resolved,
                    errors=ledger.decode_errors(record.error_detail),
                )
            )
        return views
