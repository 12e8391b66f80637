"""Check execution worker — periodic probe sweeps and log rotation.

Lifecycle:
    worker = CheckWorker(store, logs, sink, ...)
    await worker.start()     # sweeps now, then every interval
    ...
    await worker.stop()

Per check and per cycle: validate → probe → compute state → persist →
alert (only after a successful persist) → append to the check's log.
A failure in one check is logged and never affects the others.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from pingwatch.checks.models import Check
from pingwatch.errors import NotFound, PingwatchError
from pingwatch.monitor.probe import ProbeOutcome, compute_state, run_probe
from pingwatch.monitor.rotation import LogRotator, RotationReport
from pingwatch.notifications import NotificationSink
from pingwatch.storage.logs import LogStore
from pingwatch.storage.records import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_CHECK_INTERVAL = 60
DEFAULT_ROTATION_INTERVAL = 60 * 60 * 24
DEFAULT_MAX_CONCURRENT_PROBES = 16


@dataclass
class CycleResult:
    """What happened to one check during one sweep."""

    check_id: str
    outcome: ProbeOutcome
    previous_state: str
    state: str
    alert_warranted: bool
    persisted: bool = False
    alert_sent: bool = False
    time: float = field(default_factory=time.time)


def alert_message(check: Check, state: str) -> str:
    return f"Alert: Your check for {check.method.upper()} {check.protocol}://{check.url} is currently {state}"


class CheckWorker:
    """Probes every stored check on a fixed interval and alerts on transitions."""

    def __init__(
        self,
        store: RecordStore,
        logs: LogStore,
        sink: NotificationSink,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        rotation_interval: float = DEFAULT_ROTATION_INTERVAL,
        max_concurrent_probes: int = DEFAULT_MAX_CONCURRENT_PROBES,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.logs = logs
        self.sink = sink
        self.rotator = LogRotator(logs, clock=clock)
        self.check_interval = check_interval
        self.rotation_interval = rotation_interval
        self.max_concurrent_probes = max(1, max_concurrent_probes)
        self._transport = transport
        self._clock = clock
        self._tasks: list[asyncio.Task[None]] = []
        self._sweep_lock = asyncio.Lock()
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # ── Lifecycle ─────────────────────────────────────────────────────────

    async def start(self) -> None:
        """Start the probe and rotation loops."""
        if self._running:
            return
        self._running = True
        self._tasks = [
            asyncio.create_task(self._loop(self.run_sweep, self.check_interval), name="pingwatch-probes"),
            asyncio.create_task(self._loop(self.run_rotation, self.rotation_interval), name="pingwatch-rotation"),
        ]
        logger.info(
            "Worker started (checks every %ss, rotation every %ss, max %d concurrent probes)",
            self.check_interval, self.rotation_interval, self.max_concurrent_probes,
        )

    async def stop(self) -> None:
        """Cancel both loops and wait for them to finish."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()
        logger.info("Worker stopped")

    async def _loop(self, job: Callable[[], Any], interval: float) -> None:
        """Run ``job`` now, then every ``interval`` seconds until stopped."""
        while self._running:
            try:
                await job()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Worker job %s failed", getattr(job, "__name__", job))
            await asyncio.sleep(interval)

    # ── Sweeps ────────────────────────────────────────────────────────────

    async def run_sweep(self) -> list[CycleResult]:
        """Process every stored check once. Overlapping sweeps are skipped."""
        if self._sweep_lock.locked():
            logger.warning("Previous sweep still running, skipping this tick")
            return []

        async with self._sweep_lock:
            loop = asyncio.get_event_loop()
            try:
                check_ids = sorted(await loop.run_in_executor(None, self.store.list, "checks"))
            except OSError:
                logger.exception("Could not list checks")
                return []
            if not check_ids:
                logger.info("No checks to process")
                return []

            semaphore = asyncio.Semaphore(self.max_concurrent_probes)
            async with httpx.AsyncClient(follow_redirects=False, transport=self._transport) as client:

                async def _bounded(check_id: str) -> CycleResult | None:
                    async with semaphore:
                        return await self._process_safely(check_id, client)

                results = await asyncio.gather(*(_bounded(cid) for cid in check_ids))

        done = [r for r in results if r is not None]
        logger.info(
            "Sweep finished: %d checks, %d processed, %d alerts",
            len(check_ids), len(done), sum(1 for r in done if r.alert_sent),
        )
        return done

    async def run_rotation(self) -> RotationReport:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.rotator.rotate)

    # ── Per-check cycle ───────────────────────────────────────────────────

    async def _process_safely(self, check_id: str, client: httpx.AsyncClient) -> CycleResult | None:
        try:
            return await self.process_check(check_id, client)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Unexpected failure processing check %s", check_id)
            return None

    async def process_check(self, check_id: str, client: httpx.AsyncClient) -> CycleResult | None:
        """Run one full cycle for a check. Returns None if it was skipped.

        Store and log access runs in the default executor.
        """
        loop = asyncio.get_event_loop()
        try:
            snapshot = await loop.run_in_executor(None, self.store.read, "checks", check_id)
            check = Check.from_record(snapshot)
        except PingwatchError as e:
            logger.warning("Skipping check %s: %s", check_id, e)
            return None

        outcome = await run_probe(check, client)
        state = compute_state(outcome, check.success_codes)
        now = self._clock()
        result = CycleResult(
            check_id=check.id,
            outcome=outcome,
            previous_state=check.state,
            state=state,
            alert_warranted=check.last_checked is not None and check.state != state,
            time=now,
        )

        try:
            result.persisted = await loop.run_in_executor(None, self._persist, check.id, state, now)
        except NotFound:
            logger.info("Check %s was deleted during the sweep, dropping its outcome", check.id)
            return result

        if result.alert_warranted and result.persisted:
            result.alert_sent = await self._alert(check, state)
        elif not result.alert_warranted:
            logger.debug("Check %s outcome unchanged (%s), no alert needed", check.id, state)

        await loop.run_in_executor(None, self._append_log, snapshot, result)
        return result

    def _persist(self, check_id: str, state: str, now: float) -> bool:
        """Save state and lastChecked. NotFound propagates; other failures return False."""
        def _apply(data: dict[str, Any]) -> None:
            data["state"] = state
            data["lastChecked"] = now

        try:
            self.store.modify("checks", check_id, _apply)
            return True
        except NotFound:
            raise
        except (PingwatchError, OSError) as e:
            logger.error("Error trying to save updates to check %s: %s", check_id, e)
            return False

    async def _alert(self, check: Check, state: str) -> bool:
        message = alert_message(check, state)
        try:
            await self.sink.send(check.user_phone, message)
        except Exception as e:
            logger.error("Could not send alert for check %s to %s: %s", check.id, check.user_phone, e)
            return False
        logger.info("User %s alerted: %s", check.user_phone, message)
        return True

    def _append_log(self, snapshot: dict[str, Any], result: CycleResult) -> None:
        entry = {
            "check": snapshot,
            "outcome": result.outcome.to_dict(),
            "state": result.state,
            "alert": result.alert_warranted,
            "alertSent": result.alert_sent,
            "persisted": result.persisted,
            "time": result.time,
        }
        try:
            self.logs.append(result.check_id, json.dumps(entry))
        except OSError as e:
            logger.error("Logging outcome of check %s failed: %s", result.check_id, e)
