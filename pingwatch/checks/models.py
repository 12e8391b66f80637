"""Check definitions and the field rules shared by the registry and worker."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx

from pingwatch.auth.security import ID_LENGTH
from pingwatch.errors import ValidationError

PROTOCOLS = ("http", "https")
METHODS = ("get", "post", "put", "delete")
STATES = ("up", "down")
MIN_TIMEOUT_SECONDS = 1
MAX_TIMEOUT_SECONDS = 5

EDITABLE_FIELDS = ("protocol", "url", "method", "successCodes", "timeoutSeconds")


# ── Field parsers ────────────────────────────────────────────────────────────
# Each returns the cleaned value, or None when the input is invalid.


def parse_protocol(value: Any) -> str | None:
    return value if isinstance(value, str) and value in PROTOCOLS else None


def parse_url(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_method(value: Any) -> str | None:
    return value if isinstance(value, str) and value in METHODS else None


def parse_success_codes(value: Any) -> list[int] | None:
    if not isinstance(value, list) or not value:
        return None
    if not all(isinstance(c, int) and not isinstance(c, bool) for c in value):
        return None
    return list(value)


def parse_timeout(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int) and MIN_TIMEOUT_SECONDS <= value <= MAX_TIMEOUT_SECONDS:
        return value
    return None


FIELD_PARSERS = {
    "protocol": parse_protocol,
    "url": parse_url,
    "method": parse_method,
    "successCodes": parse_success_codes,
    "timeoutSeconds": parse_timeout,
}


def hostname_of(protocol: str, url: str) -> str:
    """Hostname part of ``<protocol>://<url>``, or '' if httpx cannot request it."""
    try:
        return httpx.URL(f"{protocol}://{url}").host
    except (httpx.InvalidURL, ValueError):
        return ""


# ── Model ────────────────────────────────────────────────────────────────────


@dataclass
class Check:
    """A monitored URL with its success criteria and last observed state."""

    id: str
    user_phone: str
    protocol: str
    url: str
    method: str
    success_codes: list[int] = field(default_factory=list)
    timeout_seconds: int = MIN_TIMEOUT_SECONDS
    state: str = "down"
    last_checked: float | None = None  # None = never probed

    @property
    def target(self) -> str:
        return f"{self.protocol}://{self.url}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "userPhone": self.user_phone,
            "protocol": self.protocol,
            "url": self.url,
            "method": self.method,
            "successCodes": list(self.success_codes),
            "timeoutSeconds": self.timeout_seconds,
            "state": self.state,
        }
        if self.last_checked is not None:
            data["lastChecked"] = self.last_checked
        return data

    @classmethod
    def from_record(cls, data: Any) -> "Check":
        """Build a Check from a stored document, enforcing the creation rules.

        Missing ``state`` defaults to ``down``; missing or non-positive
        ``lastChecked`` means the check has never been probed.
        """
        if not isinstance(data, dict):
            raise ValidationError("Check record is not an object")

        check_id = data.get("id")
        check_id = check_id.strip() if isinstance(check_id, str) else ""
        user_phone = data.get("userPhone")
        user_phone = user_phone.strip() if isinstance(user_phone, str) else ""

        invalid = []
        if len(check_id) != ID_LENGTH:
            invalid.append("id")
        if len(user_phone) != 10:
            invalid.append("userPhone")
        cleaned = {name: parser(data.get(name)) for name, parser in FIELD_PARSERS.items()}
        invalid += [name for name, value in cleaned.items() if value is None]
        if invalid:
            raise ValidationError(f"Check has invalid fields: {', '.join(invalid)}")

        state = data.get("state")
        last_checked = data.get("lastChecked")
        if isinstance(last_checked, bool) or not isinstance(last_checked, (int, float)) or last_checked <= 0:
            last_checked = None

        return cls(
            id=check_id,
            user_phone=user_phone,
            protocol=cleaned["protocol"],
            url=cleaned["url"],
            method=cleaned["method"],
            success_codes=cleaned["successCodes"],
            timeout_seconds=cleaned["timeoutSeconds"],
            state=state if state in STATES else "down",
            last_checked=float(last_checked) if last_checked is not None else None,
        )


def parse_check_fields(raw: dict[str, Any], required: bool) -> dict[str, Any]:
    """Validate the editable fields of a check payload.

    With ``required`` every field must be present and valid (creation).
    Otherwise only supplied fields are validated, and at least one is
    needed (update).
    """
    cleaned: dict[str, Any] = {}
    invalid: list[str] = []
    for name in EDITABLE_FIELDS:
        value = raw.get(name)
        if value is None:
            if required:
                invalid.append(name)
            continue
        parsed = FIELD_PARSERS[name](value)
        if parsed is None:
            invalid.append(name)
        else:
            cleaned[name] = parsed

    if "protocol" in cleaned and "url" in cleaned and not hostname_of(cleaned["protocol"], cleaned["url"]):
        invalid.append("url")
    if invalid:
        raise ValidationError(f"Missing required fields, or fields are invalid: {', '.join(invalid)}")
    if not cleaned:
        raise ValidationError("Missing fields to update")
    return cleaned
