"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from pingwatch.accounts.users import UserService
from pingwatch.auth.security import random_id
from pingwatch.auth.tokens import TokenAuthorizer
from pingwatch.checks.registry import CheckRegistry
from pingwatch.errors import TransportError
from pingwatch.storage.logs import LogStore
from pingwatch.storage.records import RecordStore

SECRET = "test-secret"
PHONE = "5551234567"
PASSWORD = "hunter2"


class FakeClock:
    """Manually advanced clock, in epoch seconds."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSink:
    """Notification sink that remembers messages, or fails on demand."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    async def send(self, phone: str, message: str) -> None:
        if self.fail:
            raise TransportError("Status code returned was 500")
        self.sent.append((phone, message))


def make_check(**overrides: Any) -> dict[str, Any]:
    """A valid stored check document."""
    data: dict[str, Any] = {
        "id": random_id(),
        "userPhone": PHONE,
        "protocol": "http",
        "url": "example.com/health",
        "method": "get",
        "successCodes": [200],
        "timeoutSeconds": 3,
    }
    data.update(overrides)
    return data


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path: Path) -> RecordStore:
    return RecordStore(tmp_path / "data")


@pytest.fixture
def logs(tmp_path: Path) -> LogStore:
    return LogStore(tmp_path / "logs")


@pytest.fixture
def authorizer(store: RecordStore, clock: FakeClock) -> TokenAuthorizer:
    return TokenAuthorizer(store, SECRET, ttl_seconds=3600, clock=clock)


@pytest.fixture
def users(store: RecordStore, authorizer: TokenAuthorizer) -> UserService:
    return UserService(store, authorizer, SECRET)


@pytest.fixture
def registry(store: RecordStore, authorizer: TokenAuthorizer) -> CheckRegistry:
    """Registry whose DNS preflight always succeeds."""
    return CheckRegistry(store, authorizer, max_checks=5, resolver=lambda hostname: True)


@pytest.fixture
def user(users: UserService) -> dict[str, Any]:
    return users.create({
        "firstname": "Ada",
        "lastname": "Lovelace",
        "phone": PHONE,
        "password": PASSWORD,
        "tosAgreement": True,
    })


@pytest.fixture
def token(user: dict[str, Any], authorizer: TokenAuthorizer) -> str:
    return authorizer.issue(PHONE, PASSWORD).id


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
