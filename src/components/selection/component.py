"""
Content Selector component.

Chooses the content items included in one send.

Modes:
- manual: caller names the items; drafts, scheduled, deleted and other
  owners' items are dropped silently. Already-sent items are kept so a
  manual resend is possible. The caller's order is preserved.
- automatic: published, never newsletter-sent, non-deleted items,
  newest publication first, capped per send.

An empty selection is not an error; the caller skips the send.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from uuid import UUID

from src.components.selection.models import (
    SelectionInput,
    SelectionOutput,
)
from src.components.selection.ports import ContentSourcePort
from src.core.entities import ContentItem

_EPOCH = datetime.min.replace(tzinfo=UTC)


def is_manually_selectable(item: ContentItem, owner_id: UUID) -> bool:
    return item.owner_id == owner_id and item.status == "published" and not item.is_deleted


def is_automatically_eligible(item: ContentItem, owner_id: UUID) -> bool:
    return is_manually_selectable(item, owner_id) and item.newsletter_sent_at is None


def _unique(ids: Iterable[UUID]) -> list[UUID]:
    seen: set[UUID] = set()
    ordered = []
    for item_id in ids:
        if item_id not in seen:
            seen.add(item_id)
            ordered.append(item_id)
    return ordered


def filter_manual(
    items: Iterable[ContentItem],
    requested_ids: Sequence[UUID],
    owner_id: UUID,
) -> list[ContentItem]:
    """
    Keep the requested items that can still be sent, in request order.

    Args:
        items: Items fetched for the requested IDs (any order)
        requested_ids: IDs named by the caller
        owner_id: Owner the send is for

    Returns:
        Selectable items ordered as requested, duplicates removed
    """
    by_id = {item.id: item for item in items}
    return [
        by_id[item_id]
        for item_id in _unique(requested_ids)
        if item_id in by_id and is_manually_selectable(by_id[item_id], owner_id)
    ]


def order_automatic(
    items: Iterable[ContentItem],
    owner_id: UUID,
    limit: int,
) -> list[ContentItem]:
    """Eligible items, newest publication first, at most `limit`."""
    eligible = [item for item in items if is_automatically_eligible(item, owner_id)]
    eligible.sort(key=lambda i: i.published_at or _EPOCH, reverse=True)
    return eligible[: max(limit, 0)]


def run(
    inp: SelectionInput,
    *,
    content: ContentSourcePort,
) -> SelectionOutput:
    """
    Select content for one send.

    Args:
        inp: Owner, optional explicit item IDs and cap
        content: Content source port

    Returns:
        SelectionOutput with the mode used and the ordered items
    """
    if inp.mode == "manual":
        requested = list(inp.item_ids or ())
        fetched = content.list_by_ids(_unique(requested))
        return SelectionOutput(
            mode="manual",
            items=filter_manual(fetched, requested, inp.owner_id),
        )

    fetched = content.list_unsent_published(inp.owner_id, inp.limit)
    return SelectionOutput(
        mode="automatic",
        items=order_automatic(fetched, inp.owner_id, inp.limit),
    )
