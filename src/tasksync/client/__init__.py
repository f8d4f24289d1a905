"""Client module - Local task store, sync queue and reconciler."""

from tasksync.client.api import HTTPClient, TransportError, Verdict
from tasksync.client.queue import SyncQueue, SyncQueueEntry
from tasksync.client.reconciler import (
    ConflictEvent,
    Reconciler,
    SyncError,
    SyncResult,
    SyncStatusReport,
)
from tasksync.client.state import LocalDatabase
from tasksync.client.tasks import NotFoundError, Task, TaskStore, ValidationError

__all__ = [
    # Storage
    "LocalDatabase",
    "NotFoundError",
    "SyncQueue",
    "SyncQueueEntry",
    "Task",
    "TaskStore",
    "ValidationError",
    # Transport
    "HTTPClient",
    "TransportError",
    "Verdict",
    # Reconciliation
    "ConflictEvent",
    "Reconciler",
    "SyncError",
    "SyncResult",
    "SyncStatusReport",
]
