"""Password hashing and random identifiers."""

from __future__ import annotations

import hashlib
import hmac
import secrets
import string

ID_ALPHABET = string.ascii_lowercase + string.digits
ID_LENGTH = 20


def hash_password(password: str, secret: str) -> str:
    """HMAC-SHA256 of ``password`` keyed by ``secret``. Empty input hashes to ''."""
    if not isinstance(password, str) or not password:
        return ""
    return hmac.new(secret.encode("utf-8"), password.encode("utf-8"), hashlib.sha256).hexdigest()


def passwords_match(password: str, hashed: str, secret: str) -> bool:
    candidate = hash_password(password, secret)
    return bool(candidate) and hmac.compare_digest(candidate, hashed or "")


def random_id(length: int = ID_LENGTH) -> str:
    """Random lowercase alphanumeric string, e.g. for token and check ids."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(length))
