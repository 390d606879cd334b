"""
Delivery component unit tests.

Covers the batch dispatcher (chunking, delays, exception capture, threaded
ordering) and the executor (preconditions, per-recipient failures,
rendering and active-only filtering).
"""

from __future__ import annotations

import threading
from datetime import UTC, date, datetime

import pytest

from src.adapters.dev_email import DevEmailAdapter
from src.components.delivery import (
    NO_SUBSCRIBERS_REASON,
    DeliveryConfig,
    DeliveryInput,
    SequentialDispatcher,
    ThreadedDispatcher,
    build_dispatcher,
    chunked,
    run,
)
from src.components.selection import NO_ITEMS_REASON
from src.core.entities import ContentItem, ContentOwner, Subscriber, SubscriberStatus
from src.core.errors import NewsletterDisabledError
from src.core.ports.email import EmailMessage, EmailResult

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
CONFIG = DeliveryConfig(base_url="https://news.example.com", site_name="Test Site")


# --- Helpers ---


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class RaisingEmail:
    """Transport that raises for chosen recipients."""

    def __init__(self, explode_for: set[str]) -> None:
        self._explode_for = explode_for
        self.sent: list[str] = []

    def send(self, message: EmailMessage) -> EmailResult:
        if message.recipient.email in self._explode_for:
            raise ConnectionError("connection reset")
        self.sent.append(message.recipient.email)
        return EmailResult.success(message.recipient.email, "msg-1")


def _owner(**overrides) -> ContentOwner:
    data = {
        "username": "alice",
        "email": "alice@example.com",
        "display_name": "Alice",
        "newsletter_enabled": True,
    }
    data.update(overrides)
    return ContentOwner(**data)


def _items(owner: ContentOwner, n: int = 2) -> tuple[ContentItem, ...]:
    return tuple(
        ContentItem(
            owner_id=owner.id,
            title=f"Post {i}",
            slug=f"post-{i}",
            status="published",
            published_at=NOW,
        )
        for i in range(n)
    )


def _subs(owner: ContentOwner, n: int, status: SubscriberStatus = SubscriberStatus.ACTIVE) -> tuple[Subscriber, ...]:
    return tuple(
        Subscriber(owner_id=owner.id, email=f"reader{i}@example.com", status=status)
        for i in range(n)
    )


# --- Dispatcher ---


class TestChunked:
    def test_even_split(self) -> None:
        assert chunked([1, 2, 3, 4], 2) == [[1, 2], [3, 4]]

    def test_remainder(self) -> None:
        assert [len(c) for c in chunked(list(range(60)), 50)] == [50, 10]

    def test_empty(self) -> None:
        assert chunked([], 50) == []

    def test_invalid_size(self) -> None:
        with pytest.raises(ValueError):
            chunked([1], 0)


class TestSequentialDispatcher:
    def test_sixty_recipients_two_batches_one_delay(self) -> None:
        sleep = RecordingSleep()
        dispatcher = SequentialDispatcher(batch_size=50, delay_seconds=0.5, sleep=sleep)

        report = dispatcher.dispatch(list(range(60)), lambda r: None)

        assert report.batches == 2
        assert report.delays == 1
        assert sleep.calls == [0.5]
        assert report.success_count == 60

    def test_no_delay_after_last_batch(self) -> None:
        sleep = RecordingSleep()
        report = SequentialDispatcher(batch_size=50, sleep=sleep).dispatch(list(range(50)), lambda r: None)

        assert report.batches == 1
        assert sleep.calls == []

    def test_exception_captured_and_run_continues(self) -> None:
        seen: list[int] = []

        def handler(r: int) -> None:
            seen.append(r)
            if r == 1:
                raise RuntimeError("boom")

        report = SequentialDispatcher(batch_size=2, sleep=RecordingSleep()).dispatch([0, 1, 2], handler)

        assert seen == [0, 1, 2]
        assert report.success_count == 2
        assert report.failure_count == 1
        assert report.failures[0].recipient == 1
        assert report.failures[0].error == "boom"

    def test_empty_message_exception_uses_type_name(self) -> None:
        def handler(r: int) -> None:
            raise KeyError()

        report = SequentialDispatcher(sleep=RecordingSleep()).dispatch([1], handler)
        assert report.failures[0].error == "KeyError"

    def test_empty_recipients(self) -> None:
        report = SequentialDispatcher(sleep=RecordingSleep()).dispatch([], lambda r: None)
        assert report.batches == 0
        assert report.outcomes == []


class TestThreadedDispatcher:
    def test_outcomes_in_input_order(self) -> None:
        sleep = RecordingSleep()
        dispatcher = ThreadedDispatcher(batch_size=10, max_workers=4, sleep=sleep)

        def handler(r: int) -> None:
            if r % 7 == 0:
                raise ValueError(f"bad {r}")

        report = dispatcher.dispatch(list(range(25)), handler)

        assert [o.recipient for o in report.outcomes] == list(range(25))
        assert report.batches == 3
        assert report.delays == 2
        assert report.failure_count == 4  # 0, 7, 14, 21

    def test_runs_on_worker_threads(self) -> None:
        threads: set[str] = set()
        lock = threading.Lock()

        def handler(r: int) -> None:
            with lock:
                threads.add(threading.current_thread().name)

        ThreadedDispatcher(batch_size=50, max_workers=2, sleep=RecordingSleep()).dispatch(list(range(10)), handler)

        assert threading.main_thread().name not in threads

    def test_invalid_workers(self) -> None:
        with pytest.raises(ValueError):
            ThreadedDispatcher(max_workers=0)


class TestBuildDispatcher:
    def test_sequential(self) -> None:
        d = build_dispatcher("sequential", batch_size=10, batch_delay_ms=250)
        assert type(d) is SequentialDispatcher
        assert d.batch_size == 10
        assert d.delay_seconds == 0.25

    def test_threaded(self) -> None:
        d = build_dispatcher("threaded", max_workers=8)
        assert isinstance(d, ThreadedDispatcher)
        assert d.max_workers == 8

    def test_unknown(self) -> None:
        with pytest.raises(ValueError):
            build_dispatcher("carrier-pigeon")


# --- Executor ---


class TestPreconditions:
    def test_disabled_newsletter_is_error(self) -> None:
        owner = _owner(newsletter_enabled=False)
        email = DevEmailAdapter()

        with pytest.raises(NewsletterDisabledError):
            run(DeliveryInput(owner, _items(owner), _subs(owner, 1)), email=email)

        assert email.count == 0

    def test_no_items_skipped(self) -> None:
        owner = _owner()
        result = run(DeliveryInput(owner, (), _subs(owner, 2)), email=DevEmailAdapter())
        assert result.skipped
        assert result.skipped_reason == NO_ITEMS_REASON

    def test_no_active_subscribers_skipped(self) -> None:
        owner = _owner()
        email = DevEmailAdapter()
        subs = _subs(owner, 3, SubscriberStatus.UNSUBSCRIBED) + _subs(owner, 1, SubscriberStatus.PENDING)

        result = run(DeliveryInput(owner, _items(owner), subs), email=email)

        assert result.skipped_reason == NO_SUBSCRIBERS_REASON
        assert email.count == 0


class TestExecution:
    def test_sends_one_per_active_subscriber(self) -> None:
        owner = _owner()
        email = DevEmailAdapter()
        subs = _subs(owner, 2) + (
            Subscriber(owner_id=owner.id, email="gone@example.com", status=SubscriberStatus.UNSUBSCRIBED),
            Subscriber(owner_id=owner.id, email="bounced@example.com", status=SubscriberStatus.BOUNCED),
        )

        result = run(
            DeliveryInput(owner, _items(owner), subs),
            email=email,
            dispatcher=SequentialDispatcher(sleep=RecordingSleep()),
            config=CONFIG,
        )

        assert result.success_count == 2
        assert result.failure_count == 0
        assert result.errors == []
        assert {e.recipient for e in email.sent_emails} == {"reader0@example.com", "reader1@example.com"}

    def test_transport_failed_result_is_recipient_error(self) -> None:
        owner = _owner()
        email = DevEmailAdapter(fail_recipients={"reader1@example.com"})

        result = run(
            DeliveryInput(owner, _items(owner), _subs(owner, 3)),
            email=email,
            dispatcher=SequentialDispatcher(sleep=RecordingSleep()),
        )

        assert result.success_count == 2
        assert result.failure_count == 1
        assert result.errors[0].email == "reader1@example.com"
        assert result.errors[0].error == "Simulated delivery failure"

    def test_transport_exception_is_recipient_error(self) -> None:
        owner = _owner()
        email = RaisingEmail({"reader0@example.com"})

        result = run(
            DeliveryInput(owner, _items(owner), _subs(owner, 3)),
            email=email,
            dispatcher=SequentialDispatcher(sleep=RecordingSleep()),
        )

        assert result.failure_count == 1
        assert result.errors[0].to_dict() == {"email": "reader0@example.com", "error": "connection reset"}
        assert email.sent == ["reader1@example.com", "reader2@example.com"]

    def test_sixty_subscribers_batched(self) -> None:
        owner = _owner()
        sleep = RecordingSleep()

        result = run(
            DeliveryInput(owner, _items(owner), _subs(owner, 60)),
            email=DevEmailAdapter(),
            dispatcher=SequentialDispatcher(batch_size=50, delay_seconds=0.5, sleep=sleep),
        )

        assert result.batches == 2
        assert result.delays == 1
        assert result.attempted == 60

    def test_message_personalised(self) -> None:
        owner = _owner(newsletter_title="Alice Weekly", from_name="Alice W", from_email="alice@news.example.com")
        email = DevEmailAdapter()

        run(
            DeliveryInput(owner, _items(owner, 1), _subs(owner, 1), sent_on=date(2026, 3, 10)),
            email=email,
            dispatcher=SequentialDispatcher(sleep=RecordingSleep()),
            config=CONFIG,
        )

        sent = email.get_last_email()
        assert sent is not None
        assert sent.subject == "Alice Weekly"
        assert sent.sender == '"Alice W" <alice@news.example.com>'
        assert "https://news.example.com/alice/newsletter/unsubscribe?email=reader0%40example.com" in sent.body_html
        assert "https://news.example.com/alice/posts/post-0" in sent.body_html
        assert "March 10, 2026" in sent.body_text
        assert sent.headers["List-Unsubscribe"].startswith("<https://news.example.com/alice/")

    def test_default_sender_and_subject(self) -> None:
        owner = _owner()
        email = DevEmailAdapter()

        run(
            DeliveryInput(owner, _items(owner, 1), _subs(owner, 1)),
            email=email,
            dispatcher=SequentialDispatcher(sleep=RecordingSleep()),
            config=CONFIG,
        )

        sent = email.get_last_email()
        assert sent is not None
        assert sent.subject == "Latest posts from Alice"
        assert sent.sender == '"Alice" <onboarding@resend.dev>'

    def test_threaded_dispatcher_same_counts(self) -> None:
        owner = _owner()
        email = DevEmailAdapter(fail_recipients={"reader5@example.com"})

        result = run(
            DeliveryInput(owner, _items(owner), _subs(owner, 12)),
            email=email,
            dispatcher=ThreadedDispatcher(batch_size=5, max_workers=3, sleep=RecordingSleep()),
        )

        assert result.success_count == 11
        assert result.failure_count == 1
        assert email.count == 11
