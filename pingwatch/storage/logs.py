"""Append-only per-check log files plus compressed snapshots.

Active logs are ``<log_id>.log`` (newline-delimited JSON). Rotated
snapshots are gzip data, base64 encoded, in ``<file_id>.gz.b64``.
"""

from __future__ import annotations

import base64
import gzip
import logging
from pathlib import Path

from pingwatch.errors import NotFound

logger = logging.getLogger(__name__)

LOG_SUFFIX = ".log"
COMPRESSED_SUFFIX = ".gz.b64"


class LogStore:
    """File-backed log storage for probe outcomes."""

    def __init__(self, base_dir: Path | str) -> None:
        self._base_dir = Path(base_dir)
        self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _log_path(self, log_id: str) -> Path:
        return self._base_dir / f"{log_id}{LOG_SUFFIX}"

    def _compressed_path(self, file_id: str) -> Path:
        return self._base_dir / f"{file_id}{COMPRESSED_SUFFIX}"

    def append(self, log_id: str, line: str) -> None:
        """Append one line to a log, creating the file if needed."""
        with self._log_path(log_id).open("a", encoding="utf-8") as fh:
            fh.write(f"{line}\n")

    def list(self, include_compressed: bool = False) -> list[str]:
        """Names of the active logs, optionally with compressed snapshots."""
        names = []
        for path in sorted(self._base_dir.iterdir()):
            if path.name.endswith(LOG_SUFFIX):
                names.append(path.name[: -len(LOG_SUFFIX)])
            elif include_compressed and path.name.endswith(COMPRESSED_SUFFIX):
                names.append(path.name[: -len(COMPRESSED_SUFFIX)])
        return names

    def read(self, log_id: str) -> str:
        try:
            return self._log_path(log_id).read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFound(f"Log {log_id} does not exist") from None

    def compress(self, log_id: str, new_file_id: str) -> None:
        """Write a compressed copy of ``log_id`` to ``new_file_id``."""
        source = self.read(log_id)
        payload = base64.b64encode(gzip.compress(source.encode("utf-8")))
        self._compressed_path(new_file_id).write_bytes(payload)

    def decompress(self, file_id: str) -> str:
        """Return the text of a compressed snapshot."""
        try:
            payload = self._compressed_path(file_id).read_bytes()
        except FileNotFoundError:
            raise NotFound(f"Compressed log {file_id} does not exist") from None
        return gzip.decompress(base64.b64decode(payload)).decode("utf-8")

    def truncate(self, log_id: str) -> None:
        """Empty an active log. Raises NotFound if it does not exist."""
        path = self._log_path(log_id)
        if not path.exists():
            raise NotFound(f"Log {log_id} does not exist")
        with path.open("r+", encoding="utf-8") as fh:
            fh.truncate(0)
