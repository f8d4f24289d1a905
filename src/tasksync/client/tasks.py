"""Local task store.

This module provides:
- TaskStore: CRUD over local tasks with soft delete and sync status
- Task: A local task
- ValidationError, NotFoundError: Typed failures returned to the caller

Every mutation bumps ``updated_at``, resets ``sync_status`` to pending and
appends one sync queue entry in the same transaction as the task write.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from tasksync.client.queue import SyncQueue
from tasksync.client.state import LocalDatabase
from tasksync.core.types import (
    Operation,
    SyncStatus,
    format_timestamp,
    next_timestamp,
    parse_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)


class TaskStoreError(Exception):
    """Base exception for task store errors."""


class ValidationError(TaskStoreError):
    """Invalid input to a task mutation."""


class NotFoundError(TaskStoreError):
    """Task does not exist."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id


# Sentinel for "argument not provided" where None is a valid value
_UNSET: Any = object()


@dataclass
class Task:
    """A task as stored on the client.

    Attributes:
        id: Client-assigned identifier.
        title: Non-empty title.
        description: Optional free text.
        completed: Whether the task is done.
        created_at: Creation time.
        updated_at: Last mutation time, the conflict resolution key.
        is_deleted: Soft-delete flag.
        sync_status: pending, synced or error.
        server_id: Identifier assigned by the server after first sync.
        last_synced_at: Time of the last successful reconciliation.
    """

    id: str
    title: str
    description: str | None
    completed: bool
    created_at: datetime
    updated_at: datetime
    is_deleted: bool = False
    sync_status: SyncStatus = SyncStatus.PENDING
    server_id: str | None = None
    last_synced_at: datetime | None = None

    @classmethod
    def from_row(cls, row: sqlite3.Row) -> Task:
        """Create Task from database row."""
        return cls(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            completed=bool(row["completed"]),
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
            is_deleted=bool(row["is_deleted"]),
            sync_status=SyncStatus(row["sync_status"]),
            server_id=row["server_id"],
            last_synced_at=(
                parse_timestamp(row["last_synced_at"]) if row["last_synced_at"] else None
            ),
        )

    def snapshot(self) -> dict[str, Any]:
        """Get the fields replayed to the server for this task."""
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "completed": self.completed,
            "is_deleted": self.is_deleted,
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        data = self.snapshot()
        data["sync_status"] = self.sync_status.value
        data["server_id"] = self.server_id
        data["last_synced_at"] = (
            format_timestamp(self.last_synced_at) if self.last_synced_at else None
        )
        return data


def _clean_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Title is required")
    return cleaned


class TaskStore:
    """SQLite task store writing a sync queue entry for every mutation."""

    def __init__(self, db: LocalDatabase, queue: SyncQueue | None = None) -> None:
        """Initialize the task store.

        Args:
            db: Local database.
            queue: Sync queue sharing the same database (created if omitted).
        """
        self._db = db
        self._queue = queue or SyncQueue(db)

    @property
    def queue(self) -> SyncQueue:
        """Sync queue receiving this store's operations."""
        return self._queue

    # === Reads ===

    def get_task(self, task_id: str) -> Task | None:
        """Get a task by ID, including soft-deleted tasks.

        Args:
            task_id: Task ID.

        Returns:
            Task if found, None otherwise.
        """
        row = self._db.fetchone("SELECT * FROM tasks WHERE id = ?", (task_id,))
        if row is None:
            return None
        return Task.from_row(row)

    def _require(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def list_tasks(self) -> list[Task]:
        """List tasks that are not deleted, newest first."""
        rows = self._db.fetchall(
            "SELECT * FROM tasks WHERE is_deleted = 0 ORDER BY created_at DESC"
        )
        return [Task.from_row(row) for row in rows]

    def list_tasks_needing_sync(self) -> list[Task]:
        """List tasks in pending or error state, least recently updated first."""
        rows = self._db.fetchall(
            "SELECT * FROM tasks WHERE sync_status IN (?, ?) ORDER BY updated_at ASC",
            (SyncStatus.PENDING.value, SyncStatus.ERROR.value),
        )
        return [Task.from_row(row) for row in rows]

    def last_synced_at(self) -> datetime | None:
        """Get the most recent ``last_synced_at`` across all tasks."""
        row = self._db.fetchone(
            "SELECT MAX(last_synced_at) AS t FROM tasks WHERE last_synced_at IS NOT NULL"
        )
        if row is None or row["t"] is None:
            return None
        return parse_timestamp(row["t"])

    # === Mutations ===

    def create_task(
        self,
        title: str,
        description: str | None = None,
        completed: bool = False,
    ) -> Task:
        """Create a task and queue its creation.

        Args:
            title: Task title (trimmed, must not be empty).
            description: Optional description.
            completed: Initial completion flag.

        Returns:
            Created task.

        Raises:
            ValidationError: If the title is empty.
        """
        now = utc_now()
        task = Task(
            id=str(uuid.uuid4()),
            title=_clean_title(title),
            description=description,
            completed=bool(completed),
            created_at=now,
            updated_at=now,
        )

        with self._db.transaction():
            self._db.execute(
                """
                INSERT INTO tasks (
                    id, title, description, completed, created_at, updated_at,
                    is_deleted, sync_status, server_id, last_synced_at
                ) VALUES (?, ?, ?, ?, ?, ?, 0, ?, NULL, NULL)
                """,
                (
                    task.id,
                    task.title,
                    task.description,
                    int(task.completed),
                    format_timestamp(task.created_at),
                    format_timestamp(task.updated_at),
                    SyncStatus.PENDING.value,
                ),
            )
            self._queue.enqueue(task.id, Operation.CREATE, task.snapshot())

        logger.info("Created task %s", task.id)
        return task

    def update_task(
        self,
        task_id: str,
        *,
        title: str | None = None,
        description: str | None = _UNSET,
        completed: bool | None = None,
    ) -> Task:
        """Update a task and queue the change.

        Fields left out keep their previous values. ``description=None``
        clears the description.

        Returns:
            Updated task.

        Raises:
            NotFoundError: If the task does not exist.
            ValidationError: If the resulting title is empty.
        """
        with self._db.transaction():
            task = self._require(task_id)

            if title is not None:
                task.title = _clean_title(title)
            if description is not _UNSET:
                task.description = description
            if completed is not None:
                task.completed = bool(completed)
            task.updated_at = next_timestamp(task.updated_at)
            task.sync_status = SyncStatus.PENDING

            self._db.execute(
                """
                UPDATE tasks
                SET title = ?, description = ?, completed = ?, updated_at = ?, sync_status = ?
                WHERE id = ?
                """,
                (
                    task.title,
                    task.description,
                    int(task.completed),
                    format_timestamp(task.updated_at),
                    task.sync_status.value,
                    task_id,
                ),
            )
            self._queue.enqueue(task_id, Operation.UPDATE, task.snapshot())

        logger.info("Updated task %s", task_id)
        return task

    def delete_task(self, task_id: str) -> Task:
        """Soft-delete a task and queue the deletion.

        Returns:
            The deleted task.

        Raises:
            NotFoundError: If the task does not exist.
        """
        with self._db.transaction():
            task = self._require(task_id)
            task.is_deleted = True
            task.updated_at = next_timestamp(task.updated_at)
            task.sync_status = SyncStatus.PENDING

            self._db.execute(
                "UPDATE tasks SET is_deleted = 1, updated_at = ?, sync_status = ? WHERE id = ?",
                (format_timestamp(task.updated_at), task.sync_status.value, task_id),
            )
            self._queue.enqueue(task_id, Operation.DELETE, task.snapshot())

        logger.info("Deleted task %s", task_id)
        return task

    # === Sync bookkeeping (used by the reconciler, never queued) ===

    def mark_synced(
        self,
        task_id: str,
        server_id: str | None,
        resolved_at: datetime,
        resolved: dict[str, Any] | None = None,
    ) -> None:
        """Mark a task as synced with the server's resolved timestamp.

        Args:
            task_id: Task ID.
            server_id: Server-side identifier.
            resolved_at: Resolved ``updated_at`` from the server.
            resolved: If given, the server's record replaces the local fields.
        """
        stamp = format_timestamp(resolved_at)
        self._db.execute(
            """
            UPDATE tasks
            SET sync_status = ?, server_id = ?, last_synced_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (SyncStatus.SYNCED.value, server_id, stamp, stamp, task_id),
        )
        if resolved:
            current = self.get_task(task_id)
            if current is None:
                return
            self._db.execute(
                "UPDATE tasks SET title = ?, description = ?, completed = ?, is_deleted = ? WHERE id = ?",
                (
                    resolved.get("title") or current.title,
                    resolved.get("description", current.description),
                    int(bool(resolved.get("completed", current.completed))),
                    int(bool(resolved.get("is_deleted", current.is_deleted))),
                    task_id,
                ),
            )

    def record_server_id(self, task_id: str, server_id: str | None, synced_at: datetime) -> None:
        """Record a server confirmation while newer operations are still queued."""
        self._db.execute(
            "UPDATE tasks SET server_id = ?, last_synced_at = ? WHERE id = ?",
            (server_id, format_timestamp(synced_at), task_id),
        )

    def mark_error(self, task_id: str) -> None:
        """Put a task in error state after exhausting its retries."""
        self._db.execute(
            "UPDATE tasks SET sync_status = ? WHERE id = ?",
            (SyncStatus.ERROR.value, task_id),
        )

    def mark_pending(self, task_id: str) -> None:
        """Put a task back in pending state."""
        self._db.execute(
            "UPDATE tasks SET sync_status = ? WHERE id = ?",
            (SyncStatus.PENDING.value, task_id),
        )
