"""
Dev Email Adapter.

Logs emails instead of sending. Used for local development and tests.

Key behaviors:
- Logs recipient, subject and a body preview
- Returns SKIPPED status (not SENT); the executor counts it as submitted
- Stores messages in memory for test assertions
- Can be told to fail for chosen recipients
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from src.core.ports.email import (
    EmailMessage,
    EmailResult,
    EmailStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class SentEmail:
    """Record of a logged email for test assertions."""

    id: str
    recipient: str
    subject: str
    body_html: str
    body_text: str
    sender: str | None
    headers: dict[str, str]
    logged_at: datetime


@dataclass
class DevEmailAdapter:
    """
    Email adapter that logs instead of sending.

    Implements EmailPort. Thread-safe, so it also works under the
    threaded dispatcher.
    """

    sent_emails: list[SentEmail] = field(default_factory=list)

    # Recipients (bare addresses) that get a FAILED result
    fail_recipients: set[str] = field(default_factory=set)

    log_level: int = logging.INFO
    log_body: bool = False
    body_preview_length: int = 100

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def send(self, message: EmailMessage) -> EmailResult:
        """
        Log a message.

        Args:
            message: Complete email message

        Returns:
            EmailResult with SKIPPED status, or FAILED for a configured
            failing recipient
        """
        address = message.recipient.email
        if address in self.fail_recipients:
            logger.warning("EMAIL (dev): simulated failure for %s", address)
            return EmailResult.failed(address, "Simulated delivery failure")

        message_id = f"dev-{uuid4().hex[:12]}"
        sender_str = str(message.sender) if message.sender else None

        with self._lock:
            self.sent_emails.append(
                SentEmail(
                    id=message_id,
                    recipient=address,
                    subject=message.subject,
                    body_html=message.body_html,
                    body_text=message.body_text,
                    sender=sender_str,
                    headers=dict(message.headers),
                    logged_at=datetime.now(UTC),
                )
            )

        self._log_email(address, message, message_id, sender_str)

        return EmailResult(
            status=EmailStatus.SKIPPED,
            message_id=message_id,
            recipient=address,
            error="Dev mode - email logged, not sent",
        )

    def _log_email(
        self,
        recipient: str,
        message: EmailMessage,
        message_id: str,
        sender: str | None,
    ) -> None:
        parts = [f"EMAIL (dev): To={recipient}", f"Subject={message.subject}"]
        if sender:
            parts.append(f"From={sender}")
        if self.log_body and message.body_text:
            preview = message.body_text[: self.body_preview_length]
            if len(message.body_text) > self.body_preview_length:
                preview += "..."
            parts.append(f"Body={preview}")
        parts.append(f"MessageID={message_id}")
        logger.log(self.log_level, ", ".join(parts))

    # --- Test Helper Methods ---

    def get_last_email(self) -> SentEmail | None:
        return self.sent_emails[-1] if self.sent_emails else None

    def get_emails_to(self, recipient: str) -> list[SentEmail]:
        return [e for e in self.sent_emails if e.recipient == recipient]

    def clear(self) -> None:
        with self._lock:
            self.sent_emails.clear()

    @property
    def count(self) -> int:
        return len(self.sent_emails)
