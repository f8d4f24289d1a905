"""Durable queue of pending sync operations.

This module provides:
- SyncQueue: FIFO log of create/update/delete operations awaiting reconciliation
- SyncQueueEntry: One queued operation with its task snapshot

Each entry stores a snapshot of the task taken when the operation was
enqueued. Replaying the queue sends those snapshots as-is, so later local
edits never leak into older operations.

Entries are drained oldest first (``created_at``, then insertion order).
An entry is removed once the remote authority confirms it. Entries whose
``retry_count`` reached the retry limit stay in the table for diagnostics.
Until ``reset_exhausted`` is called, ``peek_batch`` skips them together with
every later entry of the same task.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from tasksync.client.state import LocalDatabase
from tasksync.core.types import Operation, format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)


@dataclass
class SyncQueueEntry:
    """A pending operation on a task.

    Attributes:
        id: Unique entry identifier.
        task_id: Task targeted by the operation.
        operation: create, update or delete.
        data: Snapshot of the task fields at enqueue time.
        created_at: Enqueue time, used for FIFO ordering.
        retry_count: Number of failed deliveries so far.
        error_message: Last failure reason.
    """

    id: str
    task_id: str
    operation: Operation
    data: dict[str, Any]
    created_at: datetime
    retry_count: int = 0
    error_message: str | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> SyncQueueEntry:
        """Create SyncQueueEntry from database row."""
        return cls(
            id=row["id"],
            task_id=row["task_id"],
            operation=Operation(row["operation"]),
            data=json.loads(row["data"]),
            created_at=parse_timestamp(row["created_at"]),
            retry_count=row["retry_count"],
            error_message=row["error_message"],
        )

    def to_payload(self) -> dict[str, Any]:
        """Convert to a batch request item."""
        return {
            "id": self.id,
            "task_id": self.task_id,
            "operation": self.operation.value,
            "data": self.data,
            "created_at": format_timestamp(self.created_at),
            "retry_count": self.retry_count,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        payload = self.to_payload()
        payload["error_message"] = self.error_message
        return payload


class SyncQueue:
    """SQLite-backed queue of pending sync operations."""

    def __init__(self, db: LocalDatabase) -> None:
        """Initialize the queue.

        Args:
            db: Local database shared with the task store.
        """
        self._db = db

    def enqueue(
        self,
        task_id: str,
        operation: Operation,
        data: dict[str, Any],
    ) -> SyncQueueEntry:
        """Append an operation to the queue.

        Joins the caller's transaction when called inside
        ``LocalDatabase.transaction()``.

        Args:
            task_id: Task targeted by the operation.
            operation: Kind of operation.
            data: Task snapshot to replay.

        Returns:
            The created entry.
        """
        entry = SyncQueueEntry(
            id=str(uuid.uuid4()),
            task_id=task_id,
            operation=Operation(operation),
            data=dict(data),
            created_at=utc_now(),
        )
        self._db.execute(
            """
            INSERT INTO sync_queue (id, task_id, operation, data, created_at, retry_count)
            VALUES (?, ?, ?, ?, ?, 0)
            """,
            (
                entry.id,
                entry.task_id,
                entry.operation.value,
                json.dumps(entry.data),
                format_timestamp(entry.created_at),
            ),
        )
        logger.debug("Queued %s for task %s", entry.operation.value, task_id)
        return entry

    def peek_batch(self, limit: int, max_retries: int | None = None) -> list[SyncQueueEntry]:
        """Get the oldest entries without removing them.

        Args:
            limit: Maximum number of entries.
            max_retries: If given, skip every entry of a task that has an
                entry whose retry_count reached it, so a task's operations
                are never sent out of order.

        Returns:
            Entries in FIFO order.
        """
        if max_retries is None:
            rows = self._db.fetchall(
                "SELECT * FROM sync_queue ORDER BY created_at ASC, rowid ASC LIMIT ?",
                (limit,),
            )
        else:
            rows = self._db.fetchall(
                """
                SELECT * FROM sync_queue
                WHERE task_id NOT IN (
                    SELECT task_id FROM sync_queue WHERE retry_count >= ?
                )
                ORDER BY created_at ASC, rowid ASC
                LIMIT ?
                """,
                (max_retries, limit),
            )
        return [SyncQueueEntry.from_row(row) for row in rows]

    def get(self, entry_id: str) -> SyncQueueEntry | None:
        """Get an entry by ID."""
        row = self._db.fetchone("SELECT * FROM sync_queue WHERE id = ?", (entry_id,))
        if row is None:
            return None
        return SyncQueueEntry.from_row(row)

    def list_entries(self, task_id: str | None = None) -> list[SyncQueueEntry]:
        """List entries in FIFO order, optionally for one task."""
        if task_id is None:
            rows = self._db.fetchall(
                "SELECT * FROM sync_queue ORDER BY created_at ASC, rowid ASC"
            )
        else:
            rows = self._db.fetchall(
                "SELECT * FROM sync_queue WHERE task_id = ? ORDER BY created_at ASC, rowid ASC",
                (task_id,),
            )
        return [SyncQueueEntry.from_row(row) for row in rows]

    def count_for_task(self, task_id: str) -> int:
        """Count entries still queued for a task."""
        row = self._db.fetchone(
            "SELECT COUNT(*) AS c FROM sync_queue WHERE task_id = ?",
            (task_id,),
        )
        return int(row["c"]) if row else 0

    def remove(self, entry_id: str) -> bool:
        """Remove an entry.

        Returns:
            True if the entry existed.
        """
        cursor = self._db.execute("DELETE FROM sync_queue WHERE id = ?", (entry_id,))
        return cursor.rowcount > 0

    def record_failure(self, entry_id: str, message: str) -> int:
        """Increment the retry counter of an entry and store the failure reason.

        Returns:
            The new retry count (0 if the entry does not exist).
        """
        with self._db.transaction():
            self._db.execute(
                """
                UPDATE sync_queue
                SET retry_count = retry_count + 1, error_message = ?
                WHERE id = ?
                """,
                (message, entry_id),
            )
            row = self._db.fetchone(
                "SELECT retry_count FROM sync_queue WHERE id = ?",
                (entry_id,),
            )
        return int(row["retry_count"]) if row else 0

    def record_error(self, entry_id: str, message: str) -> None:
        """Store a failure reason without touching the retry counter."""
        self._db.execute(
            "UPDATE sync_queue SET error_message = ? WHERE id = ?",
            (message, entry_id),
        )

    def list_exhausted(self, max_retries: int) -> list[SyncQueueEntry]:
        """List entries whose retries are exhausted."""
        rows = self._db.fetchall(
            """
            SELECT * FROM sync_queue
            WHERE retry_count >= ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (max_retries,),
        )
        return [SyncQueueEntry.from_row(row) for row in rows]

    def exhausted_task_ids(self, max_retries: int) -> list[str]:
        """Get the tasks blocked by at least one exhausted entry."""
        rows = self._db.fetchall(
            "SELECT DISTINCT task_id FROM sync_queue WHERE retry_count >= ?",
            (max_retries,),
        )
        return [row["task_id"] for row in rows]

    def reset_exhausted(self, max_retries: int) -> list[str]:
        """Make exhausted entries eligible for draining again.

        Args:
            max_retries: Retry limit the entries reached.

        Returns:
            IDs of the tasks owning the reset entries.
        """
        with self._db.transaction():
            entries = self.list_exhausted(max_retries)
            self._db.execute(
                "UPDATE sync_queue SET retry_count = 0 WHERE retry_count >= ?",
                (max_retries,),
            )
        task_ids = list(dict.fromkeys(entry.task_id for entry in entries))
        if entries:
            logger.info("Reset %d exhausted queue entries", len(entries))
        return task_ids

    def __len__(self) -> int:
        """Get number of queued entries."""
        row = self._db.fetchone("SELECT COUNT(*) AS c FROM sync_queue")
        return int(row["c"]) if row else 0
