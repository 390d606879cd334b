from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from src.adapters.clock import SystemClock
from src.adapters.dev_email import DevEmailAdapter
from src.adapters.resend_email import ResendEmailAdapter
from src.adapters.sqlite_db import (
    SQLiteContentRepo,
    SQLiteDeliveryRepo,
    SQLiteOwnerRepo,
    SQLiteSubscriberRepo,
)
from src.app_shell.rate_limit import RateLimiter
from src.components.newsletter import SubscriptionConfig
from src.core.ports.db import (
    ContentRepoPort,
    DeliveryRepoPort,
    OwnerRepoPort,
    SubscriberRepoPort,
)
from src.core.ports.email import EmailAddress, EmailPort
from src.core.ports.time import ClockPort
from src.rules.models import Rules
from src.services.newsletter import NewsletterService

logger = logging.getLogger(__name__)

DB_FILENAME = "newsletter.db"


def data_dir() -> Path:
    return Path(os.environ.get("NEWSLETTER_DATA_DIR", "./data"))


def default_db_path() -> str:
    return str(data_dir() / DB_FILENAME)


def default_rules_path() -> Path:
    return Path(os.environ.get("NEWSLETTER_RULES_PATH", "rules.yaml"))


def apply_env_overrides(rules: Rules) -> Rules:
    """BASE_URL, when set, replaces newsletter.base_url."""
    base_url = os.environ.get("BASE_URL")
    if not base_url:
        return rules
    newsletter = rules.newsletter.model_copy(update={"base_url": base_url})
    return rules.model_copy(update={"newsletter": newsletter})


def build_email_adapter(rules: Rules) -> EmailPort:
    if rules.email.provider == "resend":
        return ResendEmailAdapter(
            api_key=os.environ.get(rules.email.api_key_env),
            default_sender=EmailAddress(
                rules.newsletter.default_from_email,
                rules.newsletter.default_from_name,
            ),
        )
    return DevEmailAdapter()


def subscription_config(rules: Rules) -> SubscriptionConfig:
    return SubscriptionConfig(
        site_name=rules.newsletter.site_name,
        base_url=rules.newsletter.base_url,
        default_from_email=rules.newsletter.default_from_email,
        default_from_name=rules.newsletter.default_from_name,
        token_bytes=rules.newsletter.verification_token_bytes,
        reject_disposable_emails=rules.newsletter.reject_disposable_emails,
    )


@dataclass
class ServiceContext:
    owner_repo: OwnerRepoPort
    content_repo: ContentRepoPort
    subscriber_repo: SubscriberRepoPort
    delivery_repo: DeliveryRepoPort
    email: EmailPort
    clock: ClockPort
    rate_limiter: RateLimiter
    newsletter_service: NewsletterService
    subscription_config: SubscriptionConfig
    rules: Rules

    @classmethod
    def create(
        cls,
        db_path: str,
        rules: Rules,
        *,
        email: EmailPort | None = None,
        clock: ClockPort | None = None,
    ) -> ServiceContext:
        rules = apply_env_overrides(rules)

        # Adapters
        owner_repo = SQLiteOwnerRepo(db_path)
        content_repo = SQLiteContentRepo(db_path)
        subscriber_repo = SQLiteSubscriberRepo(db_path)
        delivery_repo = SQLiteDeliveryRepo(db_path)
        email = email if email is not None else build_email_adapter(rules)
        clock = clock if clock is not None else SystemClock()

        newsletter_service = NewsletterService(
            owners=owner_repo,
            content=content_repo,
            subscribers=subscriber_repo,
            deliveries=delivery_repo,
            email=email,
            clock=clock,
            rules=rules,
        )
        logger.debug("Service context created for %s (email provider: %s)", db_path, rules.email.provider)

        return cls(
            owner_repo=owner_repo,
            content_repo=content_repo,
            subscriber_repo=subscriber_repo,
            delivery_repo=delivery_repo,
            email=email,
            clock=clock,
            rate_limiter=RateLimiter(rules.rate_limits, time_port=clock),
            newsletter_service=newsletter_service,
            subscription_config=subscription_config(rules),
            rules=rules,
        )
