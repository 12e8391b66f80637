"""Compress each active per-check log, then truncate it."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from pingwatch.errors import PingwatchError
from pingwatch.storage.logs import LogStore

logger = logging.getLogger(__name__)


@dataclass
class RotationReport:
    rotated: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class LogRotator:
    """Compresses every active log into a timestamped snapshot and empties it.

    Compression and truncation are separate steps; if compression fails the
    log is left untouched, and the sweep moves on to the next file.
    """

    def __init__(self, logs: LogStore, clock: Callable[[], float] = time.time) -> None:
        self._logs = logs
        self._clock = clock

    def rotate(self) -> RotationReport:
        report = RotationReport()
        try:
            log_ids = self._logs.list(include_compressed=False)
        except OSError:
            logger.exception("Could not list logs to rotate")
            return report

        if not log_ids:
            logger.info("No logs to rotate")
            return report

        for log_id in log_ids:
            new_file_id = f"{log_id}-{int(self._clock() * 1000)}"
            try:
                self._logs.compress(log_id, new_file_id)
            except (PingwatchError, OSError) as e:
                logger.error("Error compressing log %s: %s", log_id, e)
                report.failed.append(log_id)
                continue

            try:
                self._logs.truncate(log_id)
            except (PingwatchError, OSError) as e:
                logger.error("Error truncating log %s: %s", log_id, e)
                report.failed.append(log_id)
                continue

            report.rotated.append(log_id)

        logger.info("Rotated %d logs (%d failed)", len(report.rotated), len(report.failed))
        return report
