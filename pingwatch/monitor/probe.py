"""Probe runner — one outbound HTTP(S) request per check per cycle.

The request is bounded by a hard deadline of ``timeoutSeconds``: when it
fires, the in-flight request is cancelled and the outcome is a timeout.
Transport failures never raise out of ``run_probe``; they are folded
into the outcome and the check is considered down.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import httpx

from pingwatch.checks.models import Check

logger = logging.getLogger(__name__)


@dataclass
class ProbeOutcome:
    """Result of a single probe.

    ``error`` is ``None`` on a completed request, otherwise a dict with
    ``timeout`` (bool) and ``value`` (description).
    """

    error: dict[str, Any] | None = None
    response_code: int | None = None
    latency_ms: float = 0.0

    @property
    def timed_out(self) -> bool:
        return bool(self.error and self.error.get("timeout"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.error if self.error else False,
            "responseCode": self.response_code if self.response_code is not None else False,
            "latencyMs": self.latency_ms,
        }

    @classmethod
    def timeout(cls, seconds: float, latency_ms: float = 0.0) -> "ProbeOutcome":
        return cls(error={"error": True, "timeout": True, "value": f"timeout after {seconds}s"}, latency_ms=latency_ms)

    @classmethod
    def failure(cls, exc: BaseException, latency_ms: float = 0.0) -> "ProbeOutcome":
        value = f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__
        return cls(error={"error": True, "timeout": False, "value": value}, latency_ms=latency_ms)


@dataclass
class OutcomeLatch:
    """Holds the first outcome reported for a probe; later reports are ignored."""

    _outcome: ProbeOutcome | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def resolve(self, outcome: ProbeOutcome) -> bool:
        """Record ``outcome`` if none has been recorded yet. Returns True if it won."""
        with self._lock:
            if self._outcome is not None:
                return False
            self._outcome = outcome
            return True

    @property
    def outcome(self) -> ProbeOutcome | None:
        return self._outcome


def compute_state(outcome: ProbeOutcome, success_codes: list[int]) -> str:
    """``up`` iff the request completed and its status is a success code."""
    if outcome.error is None and outcome.response_code is not None and outcome.response_code in success_codes:
        return "up"
    return "down"


async def run_probe(check: Check, client: httpx.AsyncClient) -> ProbeOutcome:
    """Probe ``check`` once and return exactly one outcome."""
    latch = OutcomeLatch()
    t0 = time.perf_counter()

    def _elapsed() -> float:
        return round((time.perf_counter() - t0) * 1000, 1)

    try:
        resp = await asyncio.wait_for(
            client.request(check.method.upper(), check.target, timeout=check.timeout_seconds),
            timeout=check.timeout_seconds,
        )
        latch.resolve(ProbeOutcome(response_code=resp.status_code, latency_ms=_elapsed()))
    except (asyncio.TimeoutError, httpx.TimeoutException):
        latch.resolve(ProbeOutcome.timeout(check.timeout_seconds, _elapsed()))
    except (httpx.HTTPError, httpx.InvalidURL) as exc:
        latch.resolve(ProbeOutcome.failure(exc, _elapsed()))
    except (OSError, ValueError) as exc:
        latch.resolve(ProbeOutcome.failure(exc, _elapsed()))
    except Exception as exc:
        logger.exception("Unexpected error probing check %s", check.id)
        latch.resolve(ProbeOutcome.failure(exc, _elapsed()))

    outcome = latch.outcome or ProbeOutcome.failure(RuntimeError("no outcome recorded"), _elapsed())
    logger.debug(
        "Probe %s %s: error=%s code=%s (%.0fms)",
        check.method.upper(), check.target, bool(outcome.error), outcome.response_code, outcome.latency_ms,
    )
    return outcome
