"""
Selection component.

Chooses which content items go into one newsletter send.
"""

from src.components.selection.component import (
    filter_manual,
    is_automatically_eligible,
    is_manually_selectable,
    order_automatic,
    run,
)
from src.components.selection.models import (
    MAX_ITEMS_PER_SEND,
    NO_ITEMS_REASON,
    SelectionInput,
    SelectionMode,
    SelectionOutput,
)
from src.components.selection.ports import ContentSourcePort

__all__ = [
    "run",
    "filter_manual",
    "order_automatic",
    "is_manually_selectable",
    "is_automatically_eligible",
    "MAX_ITEMS_PER_SEND",
    "NO_ITEMS_REASON",
    "SelectionInput",
    "SelectionMode",
    "SelectionOutput",
    "ContentSourcePort",
]
