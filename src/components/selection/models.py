"""
Selection component models.

Inputs and outputs for choosing the content items of one send.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal
from uuid import UUID

from src.core.entities import ContentItem

MAX_ITEMS_PER_SEND = 10

NO_ITEMS_REASON = "No unsent items"

SelectionMode = Literal["manual", "automatic"]


@dataclass(frozen=True)
class SelectionInput:
    """
    Input for content selection.

    A non-empty item_ids selects manual mode; None or an empty
    sequence selects automatic mode.
    """

    owner_id: UUID
    item_ids: tuple[UUID, ...] | None = None
    limit: int = MAX_ITEMS_PER_SEND

    @property
    def mode(self) -> SelectionMode:
        return "manual" if self.item_ids else "automatic"


@dataclass(frozen=True)
class SelectionOutput:
    """Ordered items for one send (possibly empty)."""

    mode: SelectionMode
    items: list[ContentItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def item_ids(self) -> list[UUID]:
        return [i.id for i in self.items]
