"""Twilio SMS sink.

Posts to the Messages endpoint of the REST API via httpx. US numbers
only: the 10-digit phone is sent as ``+1<phone>``.
"""

from __future__ import annotations

import logging

import httpx

from pingwatch.errors import TransportError
from pingwatch.notifications import validate_sms

logger = logging.getLogger(__name__)

TWILIO_API = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class TwilioSmsSink:
    """Sends alerts as SMS through Twilio."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_phone: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_phone = from_phone
        self._timeout = timeout
        self._transport = transport

    async def send(self, phone: str, message: str) -> None:
        phone, message = validate_sms(phone, message)
        url = TWILIO_API.format(sid=self.account_sid)
        payload = {"From": self.from_phone, "To": f"+1{phone}", "Body": message}

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.post(url, data=payload, auth=(self.account_sid, self.auth_token))
        except httpx.HTTPError as exc:
            raise TransportError(f"Twilio request failed: {exc}") from exc

        if resp.status_code not in (200, 201):
            logger.warning("Twilio returned %d: %s", resp.status_code, resp.text[:200])
            raise TransportError(f"Status code returned was {resp.status_code}")
        logger.info("SMS sent to %s", phone)
