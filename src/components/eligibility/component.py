"""
Eligibility Scanner component.

Decides which content owners are due for an automatic digest run.

Key behaviors:
- Never sent (last_digest_sent_at is None) is always due
- Otherwise due once the elapsed hours reach the frequency threshold
- Unknown frequency values are never due
- A failure evaluating one owner is reported and the scan continues

No side effects: the scan only reads.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from src.components.eligibility.models import (
    FREQUENCY_HOURS,
    NOT_DUE_REASON,
    EligibilityConfig,
    OwnerDecision,
    OwnerScanError,
    ScanInput,
    ScanOutput,
)
from src.components.eligibility.ports import DigestOwnerSourcePort
from src.core.entities import ContentOwner
from src.core.ports.time import ClockPort

logger = logging.getLogger(__name__)


def _as_utc(dt: datetime) -> datetime:
    # Stored timestamps without an offset are UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def hours_since(last_sent_at: datetime, now: datetime) -> float:
    """Elapsed hours between two instants."""
    return (_as_utc(now) - _as_utc(last_sent_at)).total_seconds() / 3600


def is_due(
    frequency: str,
    last_sent_at: datetime | None,
    now: datetime,
    thresholds: dict[str, int] | None = None,
) -> bool:
    """
    Check whether a digest is due.

    Args:
        frequency: Owner's frequency setting (daily/weekly/monthly)
        last_sent_at: Last digest send, None if never sent
        now: Current time
        thresholds: Hours per frequency (defaults to FREQUENCY_HOURS)

    Returns:
        True if a digest should be sent now
    """
    if last_sent_at is None:
        return True

    hours = (thresholds or FREQUENCY_HOURS).get(frequency)
    if hours is None:
        return False

    return hours_since(last_sent_at, now) >= hours


def evaluate_owner(
    owner: ContentOwner,
    now: datetime,
    config: EligibilityConfig,
) -> OwnerDecision:
    if is_due(owner.frequency, owner.last_digest_sent_at, now, config.frequency_hours):
        return OwnerDecision(owner=owner, due=True)
    return OwnerDecision(owner=owner, due=False, reason=NOT_DUE_REASON)


def run(
    inp: ScanInput,
    *,
    owners: DigestOwnerSourcePort,
    clock: ClockPort | None = None,
    config: EligibilityConfig | None = None,
) -> ScanOutput:
    """
    Scan digest owners and decide which are due.

    Args:
        inp: Scan input (optional pinned time)
        owners: Source of digest-enabled owners
        clock: Clock port, used when inp.now is None
        config: Frequency thresholds

    Returns:
        ScanOutput with one decision per evaluated owner and one error per
        owner that could not be evaluated
    """
    cfg = config or EligibilityConfig()
    if inp.now is not None:
        now = inp.now
    elif clock is not None:
        now = clock.now_utc()
    else:
        now = datetime.now(UTC)

    decisions: list[OwnerDecision] = []
    errors: list[OwnerScanError] = []

    for owner in owners.list_digest_owners():
        if owner.is_deleted:
            continue
        try:
            decisions.append(evaluate_owner(owner, now, cfg))
        except Exception as e:
            logger.exception("Eligibility check failed for owner %s", owner.id)
            errors.append(OwnerScanError(owner_id=owner.id, owner_name=owner.name, message=str(e)))

    return ScanOutput(scanned_at=now, decisions=decisions, errors=errors)
