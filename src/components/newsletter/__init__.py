"""
Newsletter subscription component.

Double opt-in subscription management per content owner.
"""

from src.components.newsletter.component import (
    DEFAULT_DISPOSABLE_DOMAINS,
    EMAIL_REGEX,
    activate,
    build_verification_message,
    generate_token,
    new_subscriber,
    normalize_email,
    reissue,
    run,
    run_confirm,
    run_subscribe,
    run_unsubscribe,
    unsubscribe,
    validate_email,
)
from src.components.newsletter.models import (
    VALID_TRANSITIONS,
    ConfirmInput,
    ConfirmOutput,
    SubscribeInput,
    SubscribeOutput,
    SubscriptionConfig,
    UnsubscribeInput,
    UnsubscribeOutput,
    ValidateEmailOutput,
    ValidationError,
    can_transition,
)
from src.components.newsletter.ports import (
    OwnerLookupPort,
    RateLimiterPort,
    SubscriberStorePort,
)

__all__ = [
    # Component
    "run",
    "run_subscribe",
    "run_confirm",
    "run_unsubscribe",
    # Pure functions
    "validate_email",
    "normalize_email",
    "generate_token",
    "new_subscriber",
    "reissue",
    "activate",
    "unsubscribe",
    "build_verification_message",
    # Constants
    "DEFAULT_DISPOSABLE_DOMAINS",
    "EMAIL_REGEX",
    # State machine
    "VALID_TRANSITIONS",
    "can_transition",
    # Models
    "SubscriptionConfig",
    "SubscribeInput",
    "SubscribeOutput",
    "ConfirmInput",
    "ConfirmOutput",
    "UnsubscribeInput",
    "UnsubscribeOutput",
    "ValidateEmailOutput",
    "ValidationError",
    # Ports
    "OwnerLookupPort",
    "SubscriberStorePort",
    "RateLimiterPort",
]
