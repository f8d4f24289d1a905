"""Shared types for tasksync.

This module defines enums, the batch transport error and timestamp helpers
used by both client and server.

Timestamps travel as ISO 8601 strings in UTC with microsecond precision.
A fixed width keeps lexical order equal to chronological order, which the
client relies on when ordering SQLite rows by timestamp columns.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import Enum


class SyncStatus(str, Enum):
    """Sync status of a local task."""

    PENDING = "pending"
    SYNCED = "synced"
    ERROR = "error"


class Operation(str, Enum):
    """Kind of mutation carried by a sync queue entry."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class ItemStatus(str, Enum):
    """Per-item verdict status returned by the remote authority."""

    SUCCESS = "success"
    ERROR = "error"


class TransportError(Exception):
    """The whole batch call failed (network, timeout or bad response)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC.

    SQLite drops timezone information, so values read back from it are naive.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as a fixed-width ISO 8601 UTC string."""
    return ensure_utc(value).isoformat(timespec="microseconds")


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO 8601 timestamp into an aware UTC datetime.

    Args:
        value: ISO string (``Z`` suffix accepted) or datetime.

    Returns:
        Aware UTC datetime.

    Raises:
        ValueError: If the string is not a valid ISO 8601 timestamp.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))


def next_timestamp(previous: datetime | None = None) -> datetime:
    """Get a timestamp strictly greater than ``previous``.

    Uses the current time unless the clock has not moved past ``previous``,
    in which case ``previous`` plus one microsecond is returned.
    """
    now = utc_now()
    if previous is not None:
        previous = ensure_utc(previous)
        if now <= previous:
            return previous + timedelta(microseconds=1)
    return now
