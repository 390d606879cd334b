"""
Regression tests for pipeline and subscription invariants.

Run against the SQLite-backed service context so the storage
adapters take part.
"""

from __future__ import annotations

import json
from datetime import timedelta
from uuid import uuid4

import pytest

from src.components import newsletter
from src.components.delivery import SequentialDispatcher
from src.core.entities import (
    Actor,
    ContentItem,
    ContentOwner,
    DeliveryStatus,
    Subscriber,
    SubscriberStatus,
)
from src.core.errors import NewsletterDisabledError
from tests.fakes import NOW, RecordingSleep

# --- Helpers ---


def make_owner(ctx, **kwargs) -> ContentOwner:
    defaults = {
        "username": f"author{uuid4().hex[:6]}",
        "email": "author@example.com",
        "display_name": "Author",
        "newsletter_enabled": True,
        "frequency": "daily",
    }
    defaults.update(kwargs)
    return ctx.owner_repo.save(ContentOwner(**defaults))


def publish(ctx, owner, n: int = 1, status: str = "published") -> list[ContentItem]:
    return [
        ctx.content_repo.save(
            ContentItem(
                owner_id=owner.id,
                title=f"Item {uuid4().hex[:4]}",
                slug=f"item-{uuid4().hex[:8]}",
                status=status,
                published_at=NOW - timedelta(hours=i + 1),
            )
        )
        for i in range(n)
    ]


def subscribe_active(ctx, owner, n: int) -> list[Subscriber]:
    return [
        ctx.subscriber_repo.save(
            Subscriber(owner_id=owner.id, email=f"reader{i}@example.com", status=SubscriberStatus.ACTIVE)
        )
        for i in range(n)
    ]


def records(ctx, owner):
    return ctx.delivery_repo.list_by_owner(owner.id)


# --- Properties ---


def test_sent_items_appear_in_exactly_one_record(test_ctx):
    owner = make_owner(test_ctx)
    subscribe_active(test_ctx, owner, 2)
    publish(test_ctx, owner, 3)

    service = test_ctx.newsletter_service
    service.scan_and_send_due()
    test_ctx.clock.advance(days=2)
    publish(test_ctx, owner, 2)
    service.scan_and_send_due()
    test_ctx.clock.advance(days=2)
    service.scan_and_send_due()  # nothing new left

    history = records(test_ctx, owner)
    assert len(history) == 2
    all_ids = [i for r in history for i in r.item_ids]
    assert len(all_ids) == len(set(all_ids)) == 5
    for item in test_ctx.content_repo.list_by_ids(all_ids):
        assert item.newsletter_sent_at is not None


def test_unsubscribed_reader_gets_nothing(test_ctx):
    owner = make_owner(test_ctx)
    kept, gone = subscribe_active(test_ctx, owner, 2)
    publish(test_ctx, owner, 1)

    result = newsletter.run_unsubscribe(
        newsletter.UnsubscribeInput(email=gone.email, owner_username=owner.username),
        owners=test_ctx.owner_repo,
        subscribers=test_ctx.subscriber_repo,
        clock=test_ctx.clock,
    )
    assert result.success

    test_ctx.newsletter_service.send_now(Actor.system(), owner.id)

    assert [e.recipient for e in test_ctx.email.sent_emails] == [kept.email]


def test_token_redemption_is_idempotent(test_ctx):
    owner = make_owner(test_ctx)
    sub = newsletter.run_subscribe(
        newsletter.SubscribeInput(email="reader@example.com", owner_username=owner.username),
        owners=test_ctx.owner_repo,
        subscribers=test_ctx.subscriber_repo,
        email_sender=test_ctx.email,
        config=test_ctx.subscription_config,
        clock=test_ctx.clock,
    )
    token = test_ctx.subscriber_repo.get_by_id(sub.subscriber_id).verification_token

    for _ in range(2):
        result = newsletter.run_confirm(
            newsletter.ConfirmInput(token=token),
            subscribers=test_ctx.subscriber_repo,
            clock=test_ctx.clock,
        )
        assert result.success
        assert test_ctx.subscriber_repo.get_by_id(sub.subscriber_id).status == SubscriberStatus.ACTIVE


def test_counts_add_up_to_subscriber_count(test_ctx):
    owner = make_owner(test_ctx)
    subscribers = subscribe_active(test_ctx, owner, 5)
    test_ctx.email.fail_recipients.update({subscribers[0].email, subscribers[3].email})
    publish(test_ctx, owner, 1)

    test_ctx.newsletter_service.send_now(Actor.system(), owner.id)

    (record,) = records(test_ctx, owner)
    assert record.success_count + record.failure_count == record.subscriber_count == 5
    assert record.failure_count == 2
    assert {e["email"] for e in json.loads(record.error_detail)} == {
        subscribers[0].email,
        subscribers[3].email,
    }


@pytest.mark.parametrize(
    ("last_sent", "due"),
    [
        (None, True),
        (NOW - timedelta(days=6), False),
        (NOW - timedelta(days=8), True),
    ],
)
def test_weekly_frequency_gate(test_ctx, last_sent, due):
    owner = make_owner(test_ctx, frequency="weekly", last_digest_sent_at=last_sent)
    subscribe_active(test_ctx, owner, 1)
    publish(test_ctx, owner, 1)

    (outcome,) = test_ctx.newsletter_service.scan_and_send_due()

    assert (outcome.status == "succeeded") is due


# --- Scenarios ---


def test_scenario_daily_owner_never_sent(test_ctx):
    owner = make_owner(test_ctx, frequency="daily", last_digest_sent_at=None)
    items = publish(test_ctx, owner, 3)
    subscribe_active(test_ctx, owner, 2)

    test_ctx.newsletter_service.scan_and_send_due()

    (record,) = records(test_ctx, owner)
    assert len(record.item_ids) == 3
    assert record.subscriber_count == 2
    assert record.status == DeliveryStatus.COMPLETED
    for item in items:
        assert test_ctx.content_repo.get_by_id(item.id).newsletter_sent_at is not None
    assert test_ctx.owner_repo.get_by_id(owner.id).last_digest_sent_at == NOW


def test_scenario_disabled_owner(test_ctx):
    owner = make_owner(test_ctx, newsletter_enabled=False)
    publish(test_ctx, owner, 1)
    subscribe_active(test_ctx, owner, 1)

    with pytest.raises(NewsletterDisabledError):
        test_ctx.newsletter_service.send_now(Actor.system(), owner.id)

    assert records(test_ctx, owner) == []


def test_scenario_manual_send_drops_draft(test_ctx):
    owner = make_owner(test_ctx)
    (published,) = publish(test_ctx, owner, 1)
    (draft,) = publish(test_ctx, owner, 1, status="draft")
    subscribe_active(test_ctx, owner, 1)

    outcome = test_ctx.newsletter_service.send_now(Actor.system(), owner.id, [published.id, draft.id])

    assert outcome.status == "succeeded"
    (record,) = records(test_ctx, owner)
    assert record.item_ids == [published.id]
    assert test_ctx.content_repo.get_by_id(draft.id).newsletter_sent_at is None


def test_scenario_no_active_subscribers(test_ctx):
    owner = make_owner(test_ctx)
    items = publish(test_ctx, owner, 5)
    test_ctx.subscriber_repo.save(Subscriber(owner_id=owner.id, email="p@example.com"))

    outcome = test_ctx.newsletter_service.send_now(Actor.system(), owner.id)

    assert outcome.status == "skipped"
    assert outcome.reason == "No active subscribers"
    assert records(test_ctx, owner) == []
    assert all(test_ctx.content_repo.get_by_id(i.id).newsletter_sent_at is None for i in items)


def test_scenario_sixty_subscribers_two_batches(test_ctx):
    sleep = RecordingSleep()
    test_ctx.newsletter_service.dispatcher = SequentialDispatcher(batch_size=50, delay_seconds=0.5, sleep=sleep)
    owner = make_owner(test_ctx)
    subscribe_active(test_ctx, owner, 60)
    publish(test_ctx, owner, 1)

    outcome = test_ctx.newsletter_service.send_now(Actor.system(), owner.id)

    assert sleep.calls == [0.5]
    assert outcome.success_count + outcome.failed_count == 60
    assert test_ctx.email.count == 60
