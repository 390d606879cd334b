"""
Newsletter subscription component ports.

Protocol interfaces for subscription dependencies. Outbound mail uses the
shared EmailPort.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from src.core.entities import ContentOwner, Subscriber


class OwnerLookupPort(Protocol):
    def get_by_username(self, username: str) -> ContentOwner | None:
        """Get a non-deleted owner by username."""
        ...


class SubscriberStorePort(Protocol):
    """
    Subscriber persistence.

    (owner_id, email) is unique.
    """

    def get_by_owner_and_email(self, owner_id: UUID, email: str) -> Subscriber | None:
        ...

    def get_by_token(self, token: str) -> Subscriber | None:
        """Match a pending verification token or the last redeemed one."""
        ...

    def save(self, subscriber: Subscriber) -> Subscriber:
        ...


class RateLimiterPort(Protocol):
    """
    Rate limiter for subscribe attempts.

    Tracks and limits attempts per client IP.
    """

    def check_subscribe(self, ip: str) -> bool:
        """
        Check and record one attempt.

        Returns:
            True if the attempt is allowed
        """
        ...
