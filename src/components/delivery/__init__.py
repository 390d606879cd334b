"""
Delivery component.

Renders and transmits digests through a swappable batch dispatcher.
"""

from src.components.delivery.component import (
    active_only,
    build_message,
    run,
)
from src.components.delivery.dispatcher import (
    BatchDispatcher,
    DispatchOutcome,
    DispatchReport,
    SequentialDispatcher,
    ThreadedDispatcher,
    build_dispatcher,
    chunked,
)
from src.components.delivery.models import (
    NO_SUBSCRIBERS_REASON,
    DeliveryConfig,
    DeliveryInput,
    DeliveryOutput,
    RecipientError,
)

__all__ = [
    # Component
    "run",
    "active_only",
    "build_message",
    # Dispatcher
    "BatchDispatcher",
    "DispatchOutcome",
    "DispatchReport",
    "SequentialDispatcher",
    "ThreadedDispatcher",
    "build_dispatcher",
    "chunked",
    # Models
    "NO_SUBSCRIBERS_REASON",
    "DeliveryConfig",
    "DeliveryInput",
    "DeliveryOutput",
    "RecipientError",
]
