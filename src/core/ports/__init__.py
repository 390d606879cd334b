# creator-newsletter: Ports (Protocol Interfaces)
# Abstract interfaces for adapters; no implementations here

from src.core.ports.db import (
    ContentRepoPort,
    DeliveryRepoPort,
    OwnerRepoPort,
    SubscriberRepoPort,
)
from src.core.ports.email import (
    EmailAddress,
    EmailConfigError,
    EmailError,
    EmailMessage,
    EmailPort,
    EmailResult,
    EmailSendError,
    EmailStatus,
)
from src.core.ports.time import ClockPort

__all__ = [
    # Store
    "ContentRepoPort",
    "DeliveryRepoPort",
    "OwnerRepoPort",
    "SubscriberRepoPort",
    # Email
    "EmailAddress",
    "EmailConfigError",
    "EmailError",
    "EmailMessage",
    "EmailPort",
    "EmailResult",
    "EmailSendError",
    "EmailStatus",
    # Time
    "ClockPort",
]
