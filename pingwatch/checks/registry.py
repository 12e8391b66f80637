"""Check registry — create, read, update and delete check definitions.

Every read or mutation is gated on the caller's token verifying for the
check's owner. Creation also enforces the per-user quota and a DNS
preflight on the target hostname.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Callable
from typing import Any

from pingwatch.auth.security import ID_LENGTH, random_id
from pingwatch.auth.tokens import TokenAuthorizer, normalize_phone
from pingwatch.checks.models import Check, hostname_of, parse_check_fields
from pingwatch.errors import Forbidden, NotFound, PingwatchError, Unauthorized, ValidationError
from pingwatch.storage.records import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_CHECKS = 5


def resolves(hostname: str) -> bool:
    """True if the hostname has at least one DNS record."""
    if not hostname:
        return False
    try:
        return bool(socket.getaddrinfo(hostname, None))
    except (socket.gaierror, UnicodeError):
        return False


class CheckRegistry:
    """CRUD for checks with quota and ownership enforcement."""

    def __init__(
        self,
        store: RecordStore,
        authorizer: TokenAuthorizer,
        max_checks: int = DEFAULT_MAX_CHECKS,
        resolver: Callable[[str], bool] = resolves,
    ) -> None:
        self._store = store
        self._authorizer = authorizer
        self._max_checks = max_checks
        self._resolver = resolver

    @property
    def max_checks(self) -> int:
        return self._max_checks

    # ── Helpers ───────────────────────────────────────────────────────────

    def _load(self, check_id: Any, missing_message: str) -> Check:
        if not isinstance(check_id, str) or len(check_id.strip()) != ID_LENGTH:
            raise ValidationError("Missing required field")
        try:
            return Check.from_record(self._store.read("checks", check_id.strip()))
        except NotFound:
            raise NotFound(missing_message) from None

    def _authorize(self, check: Check, token: Any) -> None:
        if not self._authorizer.verify(token, check.user_phone):
            raise Forbidden("Missing required token in header, or token is invalid")

    def _preflight(self, protocol: str, url: str) -> None:
        hostname = hostname_of(protocol, url)
        if not hostname:
            raise ValidationError("Missing required fields, or fields are invalid: url")
        if not self._resolver(hostname):
            raise ValidationError("The hostname name of the url entered did not resolve to any DNS entries")

    # ── CRUD ──────────────────────────────────────────────────────────────

    def create(self, user_phone: str, fields: dict[str, Any]) -> Check:
        """Create a check for ``user_phone`` and link it to the user."""
        cleaned = parse_check_fields(fields, required=True)

        try:
            user = self._store.read("users", user_phone)
        except NotFound:
            raise Unauthorized("There is no user associated with the provided token") from None

        user_checks = user.get("checks") if isinstance(user.get("checks"), list) else []
        if len(user_checks) >= self._max_checks:
            raise ValidationError(f"The user already has the maximum number ({self._max_checks}) of checks")

        self._preflight(cleaned["protocol"], cleaned["url"])

        check = Check(
            id=random_id(),
            user_phone=user_phone,
            protocol=cleaned["protocol"],
            url=cleaned["url"],
            method=cleaned["method"],
            success_codes=cleaned["successCodes"],
            timeout_seconds=cleaned["timeoutSeconds"],
        )
        self._store.create("checks", check.id, check.to_dict())

        def _link(data: dict[str, Any]) -> None:
            checks = data.get("checks") if isinstance(data.get("checks"), list) else []
            checks.append(check.id)
            data["checks"] = checks

        try:
            self._store.modify("users", user_phone, _link)
        except PingwatchError:
            # Undo the first write so the check is not left orphaned
            logger.error("Could not link check %s to user %s, rolling back", check.id, user_phone)
            try:
                self._store.delete("checks", check.id)
            except PingwatchError:
                logger.exception("Rollback of orphaned check %s failed", check.id)
            raise

        logger.info("Created check %s for %s (%s)", check.id, user_phone, check.target)
        return check

    def get(self, check_id: Any, token: Any) -> Check:
        check = self._load(check_id, "Check does not exist")
        self._authorize(check, token)
        return check

    def list_for_user(self, phone: Any, token: Any) -> list[Check]:
        """All checks owned by ``phone``. Unreadable checks are skipped."""
        phone = normalize_phone(phone)
        if not phone:
            raise ValidationError("Missing required field")
        if not self._authorizer.verify(token, phone):
            raise Forbidden("Missing required token in header, or token is invalid")

        user = self._store.read("users", phone)
        checks = []
        for check_id in user.get("checks") or []:
            try:
                checks.append(Check.from_record(self._store.read("checks", check_id)))
            except PingwatchError as e:
                logger.warning("Skipping check %s of %s: %s", check_id, phone, e)
        return checks

    def update(self, check_id: Any, token: Any, fields: dict[str, Any]) -> Check:
        """Merge the supplied editable fields into an owned check."""
        cleaned = parse_check_fields(fields, required=False)
        check = self._load(check_id, "Check does not exist")
        self._authorize(check, token)
        if "protocol" in cleaned or "url" in cleaned:
            self._preflight(cleaned.get("protocol", check.protocol), cleaned.get("url", check.url))

        stored = self._store.modify("checks", check.id, lambda data: data.update(cleaned))
        logger.info("Updated check %s: %s", check.id, ", ".join(sorted(cleaned)))
        return Check.from_record(stored)

    def delete(self, check_id: Any, token: Any) -> None:
        """Remove an owned check and unlink it from its user."""
        check = self._load(check_id, "The specified check does not exist")
        self._authorize(check, token)

        self._store.delete("checks", check.id)

        def _unlink(data: dict[str, Any]) -> None:
            checks = data.get("checks") if isinstance(data.get("checks"), list) else []
            if check.id not in checks:
                raise NotFound("Could not find the check on the user's object, so could not remove it")
            checks.remove(check.id)
            data["checks"] = checks

        self._store.modify("users", check.user_phone, _unlink)
        logger.info("Deleted check %s of %s", check.id, check.user_phone)
