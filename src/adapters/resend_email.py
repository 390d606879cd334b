"""
Resend Email Adapter.

Submits messages through the Resend HTTP API. Provider errors are
returned as FAILED results, never raised.
"""

from __future__ import annotations

import logging
from typing import Any

import resend

from src.core.ports.email import (
    EmailAddress,
    EmailConfigError,
    EmailMessage,
    EmailResult,
)

logger = logging.getLogger(__name__)


class ResendEmailAdapter:
    """EmailPort implementation backed by the `resend` package."""

    def __init__(self, api_key: str | None, default_sender: EmailAddress):
        if not api_key:
            raise EmailConfigError("Resend API key is not configured")
        resend.api_key = api_key
        self.default_sender = default_sender

    def _payload(self, message: EmailMessage) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "from": str(message.sender or self.default_sender),
            "to": [message.recipient.email],
            "subject": message.subject,
            "html": message.body_html,
        }
        if message.body_text:
            payload["text"] = message.body_text
        if message.reply_to:
            payload["reply_to"] = str(message.reply_to)
        if message.headers:
            payload["headers"] = dict(message.headers)
        return payload

    def send(self, message: EmailMessage) -> EmailResult:
        recipient = message.recipient.email
        try:
            response = resend.Emails.send(self._payload(message))
        except Exception as e:
            logger.error("Resend send to %s failed: %s", recipient, e)
            return EmailResult.failed(recipient, str(e) or type(e).__name__)

        message_id = response.get("id") if isinstance(response, dict) else None
        logger.debug("Resend accepted message %s for %s", message_id, recipient)
        return EmailResult.success(recipient, message_id)
