"""
Adapter tests: dev and Resend mail transports, clocks.
"""

from datetime import UTC, datetime, timedelta

import pytest
import resend

from src.adapters.clock import FixedClock, SystemClock
from src.adapters.dev_email import DevEmailAdapter
from src.adapters.resend_email import ResendEmailAdapter
from src.core.ports.email import (
    EmailAddress,
    EmailConfigError,
    EmailMessage,
    EmailStatus,
)


def message(to: str = "reader@example.com", **kwargs) -> EmailMessage:
    defaults = {
        "recipient": EmailAddress(to),
        "subject": "Hello",
        "body_html": "<p>Hi</p>",
        "body_text": "Hi",
    }
    defaults.update(kwargs)
    return EmailMessage(**defaults)


class TestEmailMessage:
    def test_requires_subject(self):
        with pytest.raises(ValueError):
            message(subject="")

    def test_requires_a_body(self):
        with pytest.raises(ValueError):
            message(body_html="", body_text="")

    def test_address_formatting(self):
        assert str(EmailAddress("a@x.com")) == "a@x.com"
        assert str(EmailAddress("a@x.com", 'The "A" Team')) == '"The \\"A\\" Team" <a@x.com>'


class TestDevEmailAdapter:
    def test_records_and_skips(self):
        adapter = DevEmailAdapter()
        result = adapter.send(message(headers={"List-Unsubscribe": "<https://u>"}))

        assert result.status == EmailStatus.SKIPPED
        assert result.ok
        assert result.message_id.startswith("dev-")
        assert adapter.count == 1
        assert adapter.get_last_email().headers == {"List-Unsubscribe": "<https://u>"}

    def test_simulated_failure(self):
        adapter = DevEmailAdapter(fail_recipients={"bad@example.com"})

        result = adapter.send(message("bad@example.com"))

        assert result.status == EmailStatus.FAILED
        assert not result.ok
        assert adapter.count == 0

    def test_helpers(self):
        adapter = DevEmailAdapter()
        adapter.send(message("a@example.com"))
        adapter.send(message("b@example.com"))
        adapter.send(message("a@example.com"))

        assert len(adapter.get_emails_to("a@example.com")) == 2
        adapter.clear()
        assert adapter.get_last_email() is None


class TestResendEmailAdapter:
    def test_missing_key_is_a_config_error(self):
        with pytest.raises(EmailConfigError):
            ResendEmailAdapter(api_key=None, default_sender=EmailAddress("noreply@x.com"))

    def test_send_builds_payload(self, monkeypatch):
        captured = {}

        def fake_send(params):
            captured.update(params)
            return {"id": "re_123"}

        monkeypatch.setattr(resend.Emails, "send", staticmethod(fake_send))
        adapter = ResendEmailAdapter(api_key="re_test", default_sender=EmailAddress("noreply@x.com", "Site"))

        result = adapter.send(
            message(
                reply_to=EmailAddress("jane@x.com"),
                headers={"List-Unsubscribe": "<https://u>"},
            )
        )

        assert result.status == EmailStatus.SENT
        assert result.message_id == "re_123"
        assert captured["from"] == '"Site" <noreply@x.com>'
        assert captured["to"] == ["reader@example.com"]
        assert captured["subject"] == "Hello"
        assert captured["text"] == "Hi"
        assert captured["reply_to"] == "jane@x.com"
        assert captured["headers"] == {"List-Unsubscribe": "<https://u>"}

    def test_explicit_sender_wins(self, monkeypatch):
        captured = {}
        monkeypatch.setattr(
            resend.Emails, "send", staticmethod(lambda params: captured.update(params) or {"id": "x"})
        )
        adapter = ResendEmailAdapter(api_key="re_test", default_sender=EmailAddress("noreply@x.com"))

        adapter.send(message(sender=EmailAddress("desk@jane.dev", "Jane")))

        assert captured["from"] == '"Jane" <desk@jane.dev>'

    def test_provider_error_becomes_failed_result(self, monkeypatch):
        def boom(params):
            raise RuntimeError("provider down")

        monkeypatch.setattr(resend.Emails, "send", staticmethod(boom))
        adapter = ResendEmailAdapter(api_key="re_test", default_sender=EmailAddress("noreply@x.com"))

        result = adapter.send(message())

        assert result.status == EmailStatus.FAILED
        assert result.error == "provider down"
        assert result.recipient == "reader@example.com"


class TestClocks:
    def test_system_clock_is_aware(self):
        assert SystemClock().now_utc().tzinfo is not None

    def test_fixed_clock_advance(self):
        start = datetime(2026, 1, 1, tzinfo=UTC)
        clock = FixedClock(start)

        assert clock.now_utc() == start
        assert clock.advance(hours=2) == start + timedelta(hours=2)
        clock.set(start)
        assert clock.now_utc() == start
