"""
Delivery Ledger component.

Makes one send attempt durable. Steps run strictly in order:

1. Insert a DeliveryRecord in `sending` state (failure aborts: nothing sent)
2. Run the executor
3. Finish the record with counts and serialized per-recipient errors
4. Stamp newsletter_sent_at on every included item
5. Stamp the owner's last_digest_sent_at

An exception escaping step 2 leaves the record in `sending`;
reconcile_stale later moves such records to `failed`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from src.components.delivery.models import DeliveryOutput, RecipientError
from src.components.ledger.models import (
    ABANDONED_ERROR,
    LedgerInput,
    LedgerOutput,
    LedgerPolicy,
    ReconcileInput,
    ReconcileOutput,
)
from src.components.ledger.ports import (
    DeliveryLedgerPort,
    OwnerStamperPort,
    SentItemStamperPort,
)
from src.core.entities import DeliveryRecord, DeliveryStatus
from src.core.errors import DeliveryRecordError
from src.core.ports.time import ClockPort

logger = logging.getLogger(__name__)


# --- Error detail encoding ---


def encode_errors(errors: Sequence[RecipientError]) -> str | None:
    """Serialize per-recipient errors; None when there were none."""
    if not errors:
        return None
    return json.dumps([e.to_dict() for e in errors])


def decode_errors(detail: str | None) -> list[dict[str, Any]]:
    """Inverse of encode_errors. Unreadable detail is returned as one entry."""
    if not detail:
        return []
    try:
        data = json.loads(detail)
    except ValueError:
        return [{"email": None, "error": detail}]
    if isinstance(data, list):
        return data
    return [{"email": None, "error": str(data)}]


def final_status(execution: DeliveryOutput, policy: LedgerPolicy) -> DeliveryStatus:
    """Terminal status for a finished run."""
    if (
        policy.mark_failed_when_all_fail
        and execution.success_count == 0
        and execution.failure_count > 0
    ):
        return DeliveryStatus.FAILED
    return DeliveryStatus.COMPLETED


def _now(clock: ClockPort | None) -> datetime:
    return clock.now_utc() if clock is not None else datetime.now(UTC)


# --- Handlers ---


def run(
    inp: LedgerInput,
    execute: Callable[[], DeliveryOutput],
    *,
    deliveries: DeliveryLedgerPort,
    items: SentItemStamperPort,
    owners: OwnerStamperPort,
    clock: ClockPort | None = None,
    policy: LedgerPolicy | None = None,
) -> LedgerOutput:
    """
    Record one send attempt around the executor.

    Args:
        inp: Owner, subject, item IDs and recipient count
        execute: Runs the delivery executor (step 2)
        deliveries: Delivery record store
        items: Content store (newsletter_sent_at stamping)
        owners: Owner store (last_digest_sent_at stamping)
        clock: Clock port
        policy: Partial-failure policy

    Returns:
        LedgerOutput with the finished record

    Raises:
        DeliveryRecordError: step 1 failed; the executor was not run
    """
    pol = policy or LedgerPolicy()

    # Step 1
    record = DeliveryRecord(
        owner_id=inp.owner.id,
        subject=inp.subject,
        item_ids=list(inp.item_ids),
        subscriber_count=inp.subscriber_count,
        status=DeliveryStatus.SENDING,
        sent_at=_now(clock),
    )
    try:
        record = deliveries.create(record)
    except Exception as e:
        logger.error("Could not create delivery record for owner %s: %s", inp.owner.id, e)
        raise DeliveryRecordError(inp.owner.id, str(e)) from e

    logger.info(
        "Delivery %s started: owner=%s items=%d recipients=%d",
        record.id,
        inp.owner.id,
        len(inp.item_ids),
        inp.subscriber_count,
    )

    # Step 2
    execution = execute()

    # Step 3
    finished_at = _now(clock)
    status = final_status(execution, pol)
    record = record.model_copy(
        update={
            "success_count": execution.success_count,
            "failure_count": execution.failure_count,
            "error_detail": encode_errors(execution.errors),
            "status": status,
            "completed_at": finished_at,
        }
    )
    deliveries.save(record)

    logger.info(
        "Delivery %s %s: success=%d failed=%d",
        record.id,
        status.value,
        execution.success_count,
        execution.failure_count,
    )

    if status == DeliveryStatus.FAILED:
        logger.warning("Delivery %s had no successful recipients; content left unsent", record.id)
        return LedgerOutput(record=record, execution=execution, items_stamped=False)

    # Step 4
    items.mark_newsletter_sent(list(inp.item_ids), finished_at)

    # Step 5
    owners.stamp_last_sent(inp.owner.id, finished_at)

    return LedgerOutput(record=record, execution=execution)


def reconcile_stale(
    inp: ReconcileInput,
    *,
    deliveries: DeliveryLedgerPort,
    clock: ClockPort | None = None,
    policy: LedgerPolicy | None = None,
) -> ReconcileOutput:
    """
    Move abandoned `sending` records to `failed`.

    A record is abandoned once it has been `sending` for longer than
    policy.stale_after_minutes.
    """
    pol = policy or LedgerPolicy()
    now = inp.now or _now(clock)
    cutoff = now - timedelta(minutes=pol.stale_after_minutes)

    reconciled = []
    for record in deliveries.list_by_status(DeliveryStatus.SENDING, sent_before=cutoff):
        updated = record.model_copy(
            update={
                "status": DeliveryStatus.FAILED,
                "error_detail": encode_errors([RecipientError(email=None, error=ABANDONED_ERROR)]),
                "completed_at": now,
            }
        )
        deliveries.save(updated)
        logger.warning("Reconciled stale delivery %s (sent_at=%s)", record.id, record.sent_at.isoformat())
        reconciled.append(record.id)

    return ReconcileOutput(reconciled=reconciled)
