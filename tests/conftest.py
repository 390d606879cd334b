import os
from pathlib import Path

import pytest

from src.adapters.clock import FixedClock
from src.adapters.dev_email import DevEmailAdapter
from src.adapters.sqlite.migrator import SQLiteMigrator
from src.app_shell.context import ServiceContext
from src.components.delivery import SequentialDispatcher
from src.rules.loader import load_rules
from src.rules.models import Rules
from src.services.newsletter import NewsletterService
from tests.fakes import (
    NOW,
    FakeContentRepo,
    FakeDeliveryRepo,
    FakeOwnerRepo,
    FakeSubscriberRepo,
    RecordingSleep,
)

PROJECT_ROOT = Path(__file__).parent.parent


@pytest.fixture
def rules() -> Rules:
    """The real rules.yaml from the project root."""
    return load_rules(PROJECT_ROOT / "rules.yaml")


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def email() -> DevEmailAdapter:
    return DevEmailAdapter()


@pytest.fixture
def owners() -> FakeOwnerRepo:
    return FakeOwnerRepo()


@pytest.fixture
def content() -> FakeContentRepo:
    return FakeContentRepo()


@pytest.fixture
def subscribers() -> FakeSubscriberRepo:
    return FakeSubscriberRepo()


@pytest.fixture
def deliveries() -> FakeDeliveryRepo:
    return FakeDeliveryRepo()


@pytest.fixture
def service(owners, content, subscribers, deliveries, email, clock, rules, sleep) -> NewsletterService:
    """NewsletterService over in-memory fakes, with no real sleeping."""
    return NewsletterService(
        owners=owners,
        content=content,
        subscribers=subscribers,
        deliveries=deliveries,
        email=email,
        clock=clock,
        rules=rules,
        dispatcher=SequentialDispatcher(
            batch_size=rules.delivery.batch_size,
            delay_seconds=rules.delivery.batch_delay_ms / 1000,
            sleep=sleep,
        ),
    )


@pytest.fixture
def db_path(tmp_path) -> str:
    """A migrated SQLite database in tmp_path."""
    path = os.path.join(str(tmp_path), "newsletter.db")
    SQLiteMigrator(path, str(PROJECT_ROOT / "migrations")).run_migrations()
    return path


@pytest.fixture
def test_ctx(db_path, rules, email, clock, monkeypatch) -> ServiceContext:
    """
    Full ServiceContext backed by a temporary SQLite DB, the dev email
    adapter and a pinned clock.
    """
    monkeypatch.delenv("BASE_URL", raising=False)
    ctx = ServiceContext.create(db_path, rules, email=email, clock=clock)
    ctx.newsletter_service.dispatcher = SequentialDispatcher(
        batch_size=rules.delivery.batch_size,
        delay_seconds=0,
        sleep=RecordingSleep(),
    )
    return ctx
