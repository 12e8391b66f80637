"""Typed failures shared by the store, services and worker.

Each error carries an HTTP-style ``status_code``. The core never turns
these into responses itself; only the API layer reads ``status_code``.
"""

from __future__ import annotations


class PingwatchError(Exception):
    """Base class for every expected failure."""

    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(PingwatchError):
    """Malformed input or out-of-range fields."""

    status_code = 400


class Conflict(PingwatchError):
    """A record with that id already exists."""

    status_code = 400


class NotFound(PingwatchError):
    """The requested record does not exist."""

    status_code = 404


class Unauthorized(PingwatchError):
    """Bad credentials, or a missing / expired token."""

    status_code = 403


class Forbidden(PingwatchError):
    """Valid token, but it does not belong to the record's owner."""

    status_code = 403


class TransportError(PingwatchError):
    """An outbound network call failed or returned a non-success status."""

    status_code = 500


class DecodeError(PingwatchError):
    """A stored record could not be parsed."""

    status_code = 500
