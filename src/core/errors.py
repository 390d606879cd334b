"""
Newsletter pipeline errors.

Precondition failures raised before any side effect. Empty results
(no subscribers, no items) are not errors and never raise.
"""

from __future__ import annotations

from uuid import UUID


class NewsletterError(Exception):
    """Base newsletter pipeline error."""

    pass


class OwnerNotFoundError(NewsletterError):
    """Owner does not exist or is soft-deleted."""

    def __init__(self, owner_ref: UUID | str) -> None:
        self.owner_ref = owner_ref
        super().__init__(f"Owner not found: {owner_ref}")


class NewsletterDisabledError(NewsletterError):
    """Owner has not enabled the newsletter."""

    def __init__(self, owner_id: UUID) -> None:
        self.owner_id = owner_id
        super().__init__("Newsletter is not enabled")


class DeliveryRecordError(NewsletterError):
    """The delivery record could not be created; nothing was sent."""

    def __init__(self, owner_id: UUID, reason: str) -> None:
        self.owner_id = owner_id
        self.reason = reason
        super().__init__(f"Failed to create delivery record: {reason}")
