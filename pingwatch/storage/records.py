"""Flat-file record store — one JSON document per record.

Layout: ``<base_dir>/<collection>/<id>.json``.
Writes replace the whole document (temp file + ``os.replace``); there is
no partial merge and no cross-record transaction.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pingwatch.errors import Conflict, DecodeError, NotFound, ValidationError

logger = logging.getLogger(__name__)

COLLECTIONS = ("users", "tokens", "checks")


class RecordStore:
    """CRUD over named collections of JSON records keyed by string id."""

    def __init__(self, base_dir: Path | str) -> None:
        self._base_dir = Path(base_dir)
        for collection in COLLECTIONS:
            (self._base_dir / collection).mkdir(parents=True, exist_ok=True)
        self._locks: dict[tuple[str, str], threading.RLock] = {}
        self._locks_guard = threading.Lock()

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    # ── Paths & locks ─────────────────────────────────────────────────────

    def _path(self, collection: str, record_id: str) -> Path:
        if collection not in COLLECTIONS:
            raise ValidationError(f"Unknown collection: {collection}")
        if not isinstance(record_id, str) or not record_id or record_id != Path(record_id).name:
            raise ValidationError(f"Invalid record id: {record_id!r}")
        if record_id.startswith("."):
            raise ValidationError(f"Invalid record id: {record_id!r}")
        return self._base_dir / collection / f"{record_id}.json"

    def lock(self, collection: str, record_id: str) -> threading.RLock:
        """Return the lock serializing writers of one record."""
        key = (collection, record_id)
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    def _write(self, path: Path, data: dict[str, Any]) -> None:
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    # ── CRUD ──────────────────────────────────────────────────────────────

    def create(self, collection: str, record_id: str, data: dict[str, Any]) -> None:
        """Store a new record. Raises Conflict if the id is taken."""
        path = self._path(collection, record_id)
        with self.lock(collection, record_id):
            try:
                with path.open("x", encoding="utf-8") as fh:
                    json.dump(data, fh)
            except FileExistsError:
                raise Conflict(f"{collection}/{record_id} already exists") from None

    def read(self, collection: str, record_id: str) -> dict[str, Any]:
        """Load a record. Raises NotFound, or DecodeError for a corrupt file."""
        path = self._path(collection, record_id)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NotFound(f"{collection}/{record_id} does not exist") from None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DecodeError(f"{collection}/{record_id} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise DecodeError(f"{collection}/{record_id} is not a JSON object")
        return data

    def update(self, collection: str, record_id: str, data: dict[str, Any]) -> None:
        """Overwrite an existing record. Raises NotFound if absent."""
        path = self._path(collection, record_id)
        with self.lock(collection, record_id):
            if not path.exists():
                raise NotFound(f"{collection}/{record_id} does not exist")
            self._write(path, data)

    def modify(
        self,
        collection: str,
        record_id: str,
        mutate: Callable[[dict[str, Any]], dict[str, Any] | None],
    ) -> dict[str, Any]:
        """Locked read-modify-write of a single record.

        ``mutate`` receives the current document and either edits it in
        place or returns a replacement. The stored result is returned.
        """
        path = self._path(collection, record_id)
        with self.lock(collection, record_id):
            current = self.read(collection, record_id)
            result = mutate(current)
            data = current if result is None else result
            self._write(path, data)
            return data

    def delete(self, collection: str, record_id: str) -> None:
        """Remove a record. Raises NotFound if absent."""
        path = self._path(collection, record_id)
        with self.lock(collection, record_id):
            try:
                path.unlink()
            except FileNotFoundError:
                raise NotFound(f"{collection}/{record_id} does not exist") from None

    def list(self, collection: str) -> set[str]:
        """Ids currently stored in a collection."""
        if collection not in COLLECTIONS:
            raise ValidationError(f"Unknown collection: {collection}")
        folder = self._base_dir / collection
        return {p.stem for p in folder.glob("*.json") if not p.name.startswith(".")}
