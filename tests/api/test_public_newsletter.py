"""
Public subscription endpoints: double opt-in, confirmation, opt-out.
"""

from __future__ import annotations

from src.app_shell.rate_limit import RateLimiter
from src.core.entities import SubscriberStatus
from src.rules.models import RateLimitRules, RateLimitWindow

SUBSCRIBE = "/api/public/newsletter/subscribe"
CONFIRM = "/api/public/newsletter/confirm"
UNSUBSCRIBE = "/api/public/newsletter/unsubscribe"


def stored(test_ctx, owner, email):
    return test_ctx.subscriber_repo.get_by_owner_and_email(owner.id, email)


class TestSubscribe:
    def test_subscribe_sends_verification(self, client, test_ctx, owner):
        resp = client.post(SUBSCRIBE, json={"email": "Reader@Example.com", "author_username": "jane"})

        assert resp.status_code == 200
        assert resp.json() == {"message": "Verification email sent"}

        subscriber = stored(test_ctx, owner, "reader@example.com")
        assert subscriber.status == SubscriberStatus.PENDING
        assert subscriber.verification_token

        sent = test_ctx.email.get_last_email()
        assert sent.recipient == "reader@example.com"
        assert f"token={subscriber.verification_token}" in sent.body_text

    def test_missing_fields(self, client, owner):
        resp = client.post(SUBSCRIBE, json={"email": "reader@example.com"})

        assert resp.status_code == 400
        assert resp.json()["detail"] == "Email and authorUsername are required"

    def test_invalid_email(self, client, owner):
        resp = client.post(SUBSCRIBE, json={"email": "not-an-email", "author_username": "jane"})
        assert resp.status_code == 400

    def test_unknown_author(self, client, owner):
        resp = client.post(SUBSCRIBE, json={"email": "reader@example.com", "author_username": "nobody"})
        assert resp.status_code == 404

    def test_newsletter_disabled(self, client, test_ctx, owner):
        test_ctx.owner_repo.save(owner.model_copy(update={"newsletter_enabled": False}))

        resp = client.post(SUBSCRIBE, json={"email": "reader@example.com", "author_username": "jane"})

        assert resp.status_code == 403

    def test_already_active(self, client, owner, add_subscriber):
        add_subscriber("reader@example.com")

        resp = client.post(SUBSCRIBE, json={"email": "reader@example.com", "author_username": "jane"})

        assert resp.status_code == 200
        assert resp.json() == {"message": "Already subscribed"}

    def test_bounced_address_rejected(self, client, owner, add_subscriber):
        add_subscriber("reader@example.com", SubscriberStatus.BOUNCED)

        resp = client.post(SUBSCRIBE, json={"email": "reader@example.com", "author_username": "jane"})

        assert resp.status_code == 400

    def test_verification_send_failure(self, client, test_ctx, owner):
        test_ctx.email.fail_recipients.add("reader@example.com")

        resp = client.post(SUBSCRIBE, json={"email": "reader@example.com", "author_username": "jane"})

        assert resp.status_code == 500
        assert stored(test_ctx, owner, "reader@example.com").status == SubscriberStatus.PENDING

    def test_rate_limited(self, client, test_ctx, owner):
        test_ctx.rate_limiter = RateLimiter(
            RateLimitRules(subscribe=RateLimitWindow(window_seconds=3600, max_requests=2)),
            time_port=test_ctx.clock,
        )

        codes = [
            client.post(SUBSCRIBE, json={"email": f"r{i}@example.com", "author_username": "jane"}).status_code
            for i in range(3)
        ]

        assert codes == [200, 200, 429]


class TestConfirm:
    def test_confirm_then_repeat(self, client, test_ctx, owner):
        client.post(SUBSCRIBE, json={"email": "reader@example.com", "author_username": "jane"})
        token = stored(test_ctx, owner, "reader@example.com").verification_token

        first = client.post(CONFIRM, json={"token": token})
        second = client.post(CONFIRM, json={"token": token})

        assert first.status_code == 200
        assert first.json() == {"message": "Subscription verified successfully"}
        assert second.status_code == 200
        assert second.json() == {"message": "Already verified"}

        subscriber = stored(test_ctx, owner, "reader@example.com")
        assert subscriber.status == SubscriberStatus.ACTIVE
        assert subscriber.verification_token is None
        assert subscriber.verified_at is not None

    def test_missing_token(self, client):
        assert client.post(CONFIRM, json={"token": ""}).status_code == 400

    def test_unknown_token(self, client):
        assert client.post(CONFIRM, json={"token": "f" * 64}).status_code == 404

    def test_redeemed_token_cannot_reactivate(self, client, test_ctx, owner):
        client.post(SUBSCRIBE, json={"email": "reader@example.com", "author_username": "jane"})
        token = stored(test_ctx, owner, "reader@example.com").verification_token
        client.post(CONFIRM, json={"token": token})
        client.post(UNSUBSCRIBE, json={"email": "reader@example.com", "author_username": "jane"})

        resp = client.post(CONFIRM, json={"token": token})

        assert resp.status_code == 404
        assert stored(test_ctx, owner, "reader@example.com").status == SubscriberStatus.UNSUBSCRIBED


class TestUnsubscribe:
    def test_unsubscribe_then_repeat(self, client, test_ctx, owner, add_subscriber):
        add_subscriber("reader@example.com")

        first = client.post(UNSUBSCRIBE, json={"email": "READER@example.com", "author_username": "jane"})
        second = client.post(UNSUBSCRIBE, json={"email": "reader@example.com", "author_username": "jane"})

        assert first.json() == {"message": "Successfully unsubscribed"}
        assert second.json() == {"message": "Already unsubscribed"}
        subscriber = stored(test_ctx, owner, "reader@example.com")
        assert subscriber.status == SubscriberStatus.UNSUBSCRIBED
        assert subscriber.unsubscribed_at is not None

    def test_unknown_subscription(self, client, owner):
        resp = client.post(UNSUBSCRIBE, json={"email": "ghost@example.com", "author_username": "jane"})
        assert resp.status_code == 404

    def test_missing_fields(self, client):
        assert client.post(UNSUBSCRIBE, json={"author_username": "jane"}).status_code == 400

    def test_resubscribe_after_unsubscribe(self, client, test_ctx, owner, add_subscriber):
        add_subscriber("reader@example.com")
        client.post(UNSUBSCRIBE, json={"email": "reader@example.com", "author_username": "jane"})

        resp = client.post(SUBSCRIBE, json={"email": "reader@example.com", "author_username": "jane"})

        assert resp.json() == {"message": "Verification email sent"}
        subscriber = stored(test_ctx, owner, "reader@example.com")
        assert subscriber.status == SubscriberStatus.PENDING
        assert subscriber.unsubscribed_at is None
