"""Alert delivery — SMS via Twilio, or a log-only fallback.

A sink takes ``(phone, message)`` and either returns or raises
``TransportError``. The worker never retries a failed send.
"""

from __future__ import annotations

import logging
from typing import Protocol

from pingwatch.config import Settings
from pingwatch.errors import ValidationError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 1600


class NotificationSink(Protocol):
    async def send(self, phone: str, message: str) -> None: ...


def validate_sms(phone: str, message: str) -> tuple[str, str]:
    """Return the trimmed (phone, message) or raise ValidationError."""
    phone = phone.strip() if isinstance(phone, str) else ""
    message = message.strip() if isinstance(message, str) else ""
    if len(phone) != 10 or not phone.isdigit():
        raise ValidationError("Given phone number is missing or invalid")
    if not message or len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError("Given message is missing or invalid")
    return phone, message


class LoggingSink:
    """Logs alerts instead of sending them. Used when Twilio is not configured."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    async def send(self, phone: str, message: str) -> None:
        phone, message = validate_sms(phone, message)
        self.sent.append((phone, message))
        logger.warning("ALERT for %s: %s", phone, message)


def build_sink(settings: Settings) -> NotificationSink:
    """Twilio when credentials are present, otherwise log-only."""
    if settings.twilio_configured:
        from pingwatch.notifications.twilio import TwilioSmsSink

        logger.info("SMS alerts enabled (from=%s)", settings.twilio_from_phone)
        return TwilioSmsSink(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_phone=settings.twilio_from_phone,
        )
    logger.info("SMS alerts disabled (no Twilio credentials) — alerts will be logged")
    return LoggingSink()
