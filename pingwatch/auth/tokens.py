"""Token authorizer — short-lived bearer tokens bound to a user's phone.

Tokens live in the ``tokens`` collection as ``{id, phone, expires}``.
``verify`` is the gate every user and check operation passes through;
it never raises.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any

from pingwatch.auth.security import ID_LENGTH, passwords_match, random_id
from pingwatch.errors import DecodeError, NotFound, PingwatchError, Unauthorized, ValidationError
from pingwatch.storage.records import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 60 * 60


@dataclass
class Token:
    id: str
    phone: str
    expires: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_record(cls, data: dict[str, Any]) -> "Token":
        return cls(
            id=str(data.get("id", "")),
            phone=str(data.get("phone", "")),
            expires=_expires_of(data),
        )


def _expires_of(data: dict[str, Any]) -> float:
    try:
        return float(data.get("expires", 0))
    except (TypeError, ValueError):
        raise DecodeError(f"Token {data.get('id')!r} has an invalid expiry") from None


def normalize_phone(phone: Any) -> str:
    """Return a trimmed 10-character phone, or '' when invalid."""
    if isinstance(phone, str) and len(phone.strip()) == 10:
        return phone.strip()
    return ""


class TokenAuthorizer:
    """Issues, extends, validates and revokes tokens."""

    def __init__(
        self,
        store: RecordStore,
        hashing_secret: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._secret = hashing_secret
        self._ttl = ttl_seconds
        self._clock = clock

    def issue(self, phone: Any, password: Any) -> Token:
        """Log in: check the password and persist a fresh token."""
        phone = normalize_phone(phone)
        password = password.strip() if isinstance(password, str) else ""
        if not phone or not password:
            raise ValidationError("Missing required field(s)")

        try:
            user = self._store.read("users", phone)
        except NotFound:
            raise Unauthorized("Could not find the specified user") from None

        if not passwords_match(password, user.get("hashedPassword", ""), self._secret):
            raise Unauthorized("Password did not match the specified user's stored password")

        token = Token(id=random_id(), phone=phone, expires=self._clock() + self._ttl)
        self._store.create("tokens", token.id, token.to_dict())
        logger.info("Issued token for %s", phone)
        return token

    def get(self, token_id: Any) -> Token:
        token_id = _normalize_token_id(token_id)
        if not token_id:
            raise ValidationError("Missing required field")
        return Token.from_record(self._store.read("tokens", token_id))

    def verify(self, token_id: Any, phone: Any) -> bool:
        """True iff the token exists, belongs to ``phone`` and has not expired."""
        if not isinstance(token_id, str) or not token_id.strip():
            return False
        try:
            data = self._store.read("tokens", token_id.strip())
            token = Token.from_record(data)
        except (PingwatchError, TypeError, ValueError):
            return False
        return token.phone == phone and token.expires > self._clock()

    def owner_of(self, token_id: Any) -> str:
        """Phone of the user holding a live token. Raises Unauthorized otherwise."""
        if not isinstance(token_id, str) or not token_id.strip():
            raise Unauthorized("Missing or invalid token")
        try:
            token = Token.from_record(self._store.read("tokens", token_id.strip()))
        except (PingwatchError, TypeError, ValueError):
            raise Unauthorized("Missing or invalid token") from None
        if token.expires <= self._clock():
            raise Unauthorized("Token has expired")
        return token.phone

    def extend(self, token_id: Any) -> Token:
        """Push expiry to now + TTL. Expired tokens cannot be extended."""
        token_id = _normalize_token_id(token_id)
        if not token_id:
            raise ValidationError("Missing required field(s) or field(s) are invalid")

        def _extend(data: dict[str, Any]) -> None:
            now = self._clock()
            if _expires_of(data) <= now:
                raise ValidationError("The token has expired, and cannot be extended")
            data["expires"] = now + self._ttl

        return Token.from_record(self._store.modify("tokens", token_id, _extend))

    def revoke(self, token_id: Any) -> None:
        token_id = _normalize_token_id(token_id)
        if not token_id:
            raise ValidationError("Missing required field")
        self._store.delete("tokens", token_id)
        logger.info("Revoked token %s", token_id)


def _normalize_token_id(token_id: Any) -> str:
    if isinstance(token_id, str) and len(token_id.strip()) == ID_LENGTH:
        return token_id.strip()
    return ""
