"""
Selection component ports.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol
from uuid import UUID

from src.core.entities import ContentItem


class ContentSourcePort(Protocol):
    """Read access to content items."""

    def list_by_ids(self, item_ids: Sequence[UUID]) -> list[ContentItem]:
        """Fetch items by ID. Order is not guaranteed."""
        ...

    def list_unsent_published(self, owner_id: UUID, limit: int) -> list[ContentItem]:
        """Published, never newsletter-sent, non-deleted items, newest first."""
        ...
