from datetime import timedelta
from uuid import uuid4

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.api.auth_utils import create_access_token
from src.api.deps import get_ctx, get_newsletter_service, get_rules
from src.api.routes import admin_newsletter, cron, public_newsletter
from src.core.entities import ContentItem, ContentOwner, Subscriber, SubscriberStatus
from tests.fakes import NOW


@pytest.fixture
def app(test_ctx, rules) -> FastAPI:
    """Newsletter routers wired to the temporary SQLite context."""
    app = FastAPI()
    app.include_router(admin_newsletter.router, prefix="/api/admin/newsletter")
    app.include_router(public_newsletter.router, prefix="/api/public")
    app.include_router(cron.router, prefix="/api/cron")

    app.dependency_overrides[get_ctx] = lambda: test_ctx
    app.dependency_overrides[get_newsletter_service] = lambda: test_ctx.newsletter_service
    app.dependency_overrides[get_rules] = lambda: rules
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def owner(test_ctx) -> ContentOwner:
    return test_ctx.owner_repo.save(
        ContentOwner(
            username="jane",
            email="jane@example.com",
            display_name="Jane Doe",
            newsletter_enabled=True,
            send_mode="digest",
            frequency="weekly",
        )
    )


@pytest.fixture
def auth_headers(owner) -> dict[str, str]:
    token = create_access_token(
        {"sub": str(owner.id), "role": "creator"}, expires_delta=timedelta(minutes=30)
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def publish(test_ctx, owner):
    """Factory: publish an item for the default owner."""

    def _publish(title: str, hours_ago: int = 1) -> ContentItem:
        return test_ctx.content_repo.save(
            ContentItem(
                owner_id=owner.id,
                title=title,
                slug=f"{title.lower().replace(' ', '-')}-{uuid4().hex[:4]}",
                status="published",
                published_at=NOW - timedelta(hours=hours_ago),
            )
        )

    return _publish


@pytest.fixture
def add_subscriber(test_ctx, owner):
    """Factory: add a subscriber to the default owner."""

    def _add(email: str, status=SubscriberStatus.ACTIVE) -> Subscriber:
        return test_ctx.subscriber_repo.save(Subscriber(owner_id=owner.id, email=email, status=status))

    return _add
