"""Core module - Shared configuration and types."""

from tasksync.core.config import SyncConfig
from tasksync.core.types import (
    ItemStatus,
    Operation,
    SyncStatus,
    TransportError,
    format_timestamp,
    next_timestamp,
    parse_timestamp,
    utc_now,
)

__all__ = [
    # Config
    "SyncConfig",
    # Types
    "ItemStatus",
    "Operation",
    "SyncStatus",
    "TransportError",
    "format_timestamp",
    "next_timestamp",
    "parse_timestamp",
    "utc_now",
]
