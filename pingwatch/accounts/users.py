"""User accounts, keyed by 10-digit phone number."""

from __future__ import annotations

import logging
from typing import Any

from pingwatch.auth.security import hash_password
from pingwatch.auth.tokens import TokenAuthorizer, normalize_phone
from pingwatch.errors import Conflict, Forbidden, NotFound, PingwatchError, ValidationError
from pingwatch.storage.records import RecordStore

logger = logging.getLogger(__name__)

_TOKEN_ERROR = "Missing required token in header, or token is invalid"


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


class UserService:
    """Create, read, update and delete users."""

    def __init__(self, store: RecordStore, authorizer: TokenAuthorizer, hashing_secret: str) -> None:
        self._store = store
        self._authorizer = authorizer
        self._secret = hashing_secret

    def _authorized_phone(self, phone: Any, token: Any) -> str:
        phone = normalize_phone(phone)
        if not phone:
            raise ValidationError("Missing required field")
        if not self._authorizer.verify(token, phone):
            raise Forbidden(_TOKEN_ERROR)
        return phone

    def create(self, payload: dict[str, Any]) -> dict[str, Any]:
        firstname = _text(payload.get("firstname"))
        lastname = _text(payload.get("lastname"))
        phone = normalize_phone(payload.get("phone"))
        password = _text(payload.get("password"))
        tos = payload.get("tosAgreement") is True
        if not (firstname and lastname and phone and password and tos):
            raise ValidationError("Missing required fields")

        user = {
            "firstname": firstname,
            "lastname": lastname,
            "phone": phone,
            "hashedPassword": hash_password(password, self._secret),
            "tosAgreement": True,
            "checks": [],
        }
        try:
            self._store.create("users", phone, user)
        except Conflict:
            raise Conflict("A user with that phone number already exists") from None
        logger.info("Created user %s", phone)
        return _public(user)

    def get(self, phone: Any, token: Any) -> dict[str, Any]:
        phone = self._authorized_phone(phone, token)
        return _public(self._store.read("users", phone))

    def update(self, payload: dict[str, Any], token: Any) -> dict[str, Any]:
        """Change firstname / lastname / password; at least one is required."""
        phone = self._authorized_phone(payload.get("phone"), token)
        changes = {
            "firstname": _text(payload.get("firstname")),
            "lastname": _text(payload.get("lastname")),
        }
        password = _text(payload.get("password"))
        if password:
            changes["hashedPassword"] = hash_password(password, self._secret)
        changes = {k: v for k, v in changes.items() if v}
        if not changes:
            raise ValidationError("Missing fields to update")

        try:
            user = self._store.modify("users", phone, lambda data: data.update(changes))
        except NotFound:
            raise ValidationError("The specified user does not exist") from None
        return _public(user)

    def delete(self, phone: Any, token: Any) -> None:
        """Delete the user and, best-effort, every check they own."""
        phone = self._authorized_phone(phone, token)
        try:
            user = self._store.read("users", phone)
        except NotFound:
            raise ValidationError("Could not find the specified user") from None

        self._store.delete("users", phone)

        failed = []
        for check_id in user.get("checks") or []:
            try:
                self._store.delete("checks", check_id)
            except PingwatchError as e:
                logger.warning("Could not delete check %s of %s: %s", check_id, phone, e)
                failed.append(check_id)

        if failed:
            raise PingwatchError(
                "One or more errors encountered while attempting to delete user's checks. "
                f"All of user's checks may not have been deleted: {', '.join(failed)}"
            )
        logger.info("Deleted user %s", phone)


def _public(user: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in user.items() if k != "hashedPassword"}
