"""
Eligibility component ports.
"""

from __future__ import annotations

from typing import Protocol

from src.core.entities import ContentOwner


class DigestOwnerSourcePort(Protocol):
    """Supplies the owners with digest mode enabled."""

    def list_digest_owners(self) -> list[ContentOwner]:
        """Owners with newsletter enabled, digest send mode and no tombstone."""
        ...
