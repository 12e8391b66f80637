"""Builds every component from one Settings instance."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

import httpx

from pingwatch.accounts.users import UserService
from pingwatch.auth.tokens import TokenAuthorizer
from pingwatch.checks.registry import CheckRegistry, resolves
from pingwatch.config import Settings
from pingwatch.monitor.worker import CheckWorker
from pingwatch.notifications import NotificationSink, build_sink
from pingwatch.storage.logs import LogStore
from pingwatch.storage.records import RecordStore


@dataclass
class Services:
    settings: Settings
    store: RecordStore
    logs: LogStore
    authorizer: TokenAuthorizer
    users: UserService
    checks: CheckRegistry
    worker: CheckWorker


def build_services(
    settings: Settings,
    sink: NotificationSink | None = None,
    resolver: Callable[[str], bool] = resolves,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Services:
    store = RecordStore(settings.data_dir)
    logs = LogStore(settings.logs_dir)
    authorizer = TokenAuthorizer(store, settings.hashing_secret, ttl_seconds=settings.token_ttl_seconds)
    return Services(
        settings=settings,
        store=store,
        logs=logs,
        authorizer=authorizer,
        users=UserService(store, authorizer, settings.hashing_secret),
        checks=CheckRegistry(store, authorizer, max_checks=settings.max_checks, resolver=resolver),
        worker=CheckWorker(
            store,
            logs,
            sink or build_sink(settings),
            check_interval=settings.check_interval_seconds,
            rotation_interval=settings.rotation_interval_seconds,
            max_concurrent_probes=settings.max_concurrent_probes,
            transport=transport,
        ),
    )
