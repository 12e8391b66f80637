"""Flat-file persistence: JSON records and per-check logs."""

from pingwatch.storage.logs import LogStore
from pingwatch.storage.records import COLLECTIONS, RecordStore

__all__ = ["COLLECTIONS", "LogStore", "RecordStore"]
