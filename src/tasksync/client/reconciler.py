"""Reconciliation of the local sync queue with the remote authority.

This module provides:
- Reconciler: Drains the sync queue in batches and applies the verdicts
- SyncResult, SyncError: Outcome of one reconciliation
- ConflictEvent: Emitted when the server kept a newer version
- SyncStatusReport: Snapshot of the local sync state
- BatchTransport: Contract implemented by HTTPClient and AuthorityTransport

One reconciliation:
1. Read up to ``batch_size`` queue entries, oldest first
2. Send their snapshots as one batch
3. For each verdict: on success remove the entry and mark the task synced,
   on error record the failure and keep the entry
4. If the batch could not be delivered, bump the retry counter of every
   entry; tasks whose entries hit ``max_retries`` move to error state

A task with an exhausted entry is held back as a whole and stays in error
state until ``retry_failed()`` makes its entries eligible again.

Retries are driven by the caller: the next ``reconcile()`` picks up whatever
is still queued.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Protocol

from tasksync.client.api import TransportError, Verdict, parse_batch_response
from tasksync.client.queue import SyncQueue, SyncQueueEntry
from tasksync.client.state import LocalDatabase
from tasksync.client.tasks import TaskStore
from tasksync.core.config import SyncConfig
from tasksync.core.types import format_timestamp, parse_timestamp, utc_now

logger = logging.getLogger(__name__)

CONFLICT_MESSAGE = "resolved using last-write-wins"


class BatchTransport(Protocol):
    """Anything able to deliver a batch to the remote authority."""

    def send_batch(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Deliver a batch request and return the decoded response."""
        ...

    def health_check(self) -> bool:
        """Return True if the remote authority is alive."""
        ...


@dataclass
class SyncError:
    """One failure recorded during reconciliation."""

    task_id: str | None
    operation: str
    error: str
    timestamp: str


@dataclass
class ConflictEvent:
    """The server kept a newer version than the one we sent."""

    task_id: str
    server_id: str | None
    message: str
    timestamp: str


@dataclass
class SyncResult:
    """Outcome of one reconciliation.

    ``success`` is False only when the batch could not be delivered;
    item-level errors show up in ``failed_items`` and ``errors``.
    """

    success: bool = True
    synced_items: int = 0
    failed_items: int = 0
    errors: list[SyncError] = field(default_factory=list)
    conflicts: list[ConflictEvent] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the sync result wire shape."""
        return {
            "success": self.success,
            "synced_items": self.synced_items,
            "failed_items": self.failed_items,
            "errors": [asdict(error) for error in self.errors],
        }


@dataclass
class SyncStatusReport:
    """Local sync state as exposed to callers."""

    pending_sync_count: int
    last_sync_timestamp: datetime | None
    is_online: bool
    sync_queue_size: int

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "pending_sync_count": self.pending_sync_count,
            "last_sync_timestamp": (
                format_timestamp(self.last_sync_timestamp) if self.last_sync_timestamp else None
            ),
            "is_online": self.is_online,
            "sync_queue_size": self.sync_queue_size,
        }


class Reconciler:
    """Client side of the batch sync protocol."""

    def __init__(
        self,
        db: LocalDatabase,
        transport: BatchTransport,
        config: SyncConfig | None = None,
        on_conflict: Callable[[ConflictEvent], None] | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            db: Local database holding tasks and the sync queue.
            transport: Batch transport to the remote authority.
            config: Batch size and retry limit (defaults if omitted).
            on_conflict: Optional callback for each conflict resolved by the server.
        """
        self._db = db
        self._transport = transport
        self._config = config or SyncConfig()
        self._on_conflict = on_conflict
        self._queue = SyncQueue(db)
        self._tasks = TaskStore(db, self._queue)
        # One reconciliation in flight at a time
        self._lock = threading.Lock()

    @property
    def config(self) -> SyncConfig:
        """Configuration used by this reconciler."""
        return self._config

    # === Connectivity ===

    def check_connectivity(self) -> bool:
        """Probe the remote authority.

        Advisory only: ``reconcile()`` does not call it.

        Returns:
            True if the authority answered its liveness endpoint.
        """
        try:
            return bool(self._transport.health_check())
        except TransportError as e:
            logger.debug("Connectivity probe failed: %s", e)
            return False

    # === Reconciliation ===

    def reconcile(self) -> SyncResult:
        """Run one drain-send-apply cycle.

        Returns:
            SyncResult describing what was synced and what failed.
        """
        with self._lock:
            return self._reconcile()

    def _reconcile(self) -> SyncResult:
        result = SyncResult()

        # Edits made after a task gave up reset it to pending; its entries
        # stay blocked until retry_failed(), so it goes back to error
        self._flag_blocked_tasks()

        entries = self._queue.peek_batch(
            self._config.batch_size,
            max_retries=self._config.max_retries,
        )
        if not entries:
            return result

        payload = {
            "items": [entry.to_payload() for entry in entries],
            "client_timestamp": format_timestamp(utc_now()),
        }
        logger.info("Sending batch of %d operations", len(entries))

        try:
            verdicts = parse_batch_response(self._transport.send_batch(payload))
            if len(verdicts) != len(entries):
                raise TransportError(
                    f"Batch response has {len(verdicts)} items, expected {len(entries)}"
                )
        except TransportError as e:
            return self._handle_transport_failure(entries, str(e))

        for entry, verdict in zip(entries, verdicts, strict=True):
            if verdict.client_id is not None and verdict.client_id != entry.task_id:
                self._record_item_error(
                    result,
                    entry,
                    f"Verdict for {verdict.client_id} does not match queued task",
                )
            elif verdict.ok:
                self._apply_success(result, entry, verdict)
            else:
                self._record_item_error(result, entry, verdict.error or "failed")

        logger.info(
            "Reconciliation done: %d synced, %d failed, %d conflicts",
            result.synced_items,
            result.failed_items,
            len(result.conflicts),
        )
        return result

    def _flag_blocked_tasks(self) -> None:
        blocked = self._queue.exhausted_task_ids(self._config.max_retries)
        if not blocked:
            return
        with self._db.transaction():
            for task_id in blocked:
                self._tasks.mark_error(task_id)
        logger.debug("%d task(s) blocked by exhausted queue entries", len(blocked))

    def _apply_success(self, result: SyncResult, entry: SyncQueueEntry, verdict: Verdict) -> None:
        resolved = verdict.resolved_data
        try:
            resolved_at = parse_timestamp(resolved["updated_at"])
        except (KeyError, TypeError, ValueError):
            resolved_at = utc_now()

        with self._db.transaction():
            self._queue.remove(entry.id)
            if self._queue.count_for_task(entry.task_id) == 0:
                self._tasks.mark_synced(
                    entry.task_id,
                    verdict.server_id,
                    resolved_at,
                    resolved=resolved if verdict.conflict else None,
                )
            else:
                # Newer operations for this task are still queued
                self._tasks.record_server_id(entry.task_id, verdict.server_id, resolved_at)

        result.synced_items += 1

        if verdict.conflict:
            event = ConflictEvent(
                task_id=entry.task_id,
                server_id=verdict.server_id,
                message=CONFLICT_MESSAGE,
                timestamp=format_timestamp(utc_now()),
            )
            result.conflicts.append(event)
            logger.info("Conflict on task %s %s", entry.task_id, CONFLICT_MESSAGE)
            if self._on_conflict:
                self._on_conflict(event)

    def _record_item_error(self, result: SyncResult, entry: SyncQueueEntry, message: str) -> None:
        self._queue.record_error(entry.id, message)
        result.failed_items += 1
        result.errors.append(
            SyncError(
                task_id=entry.task_id,
                operation=entry.operation.value,
                error=message,
                timestamp=format_timestamp(utc_now()),
            )
        )
        logger.warning(
            "Server rejected %s for task %s: %s", entry.operation.value, entry.task_id, message
        )

    def _handle_transport_failure(self, entries: list[SyncQueueEntry], message: str) -> SyncResult:
        logger.warning("Batch delivery failed: %s", message)

        with self._db.transaction():
            for entry in entries:
                retry_count = self._queue.record_failure(entry.id, message)
                if retry_count >= self._config.max_retries:
                    self._tasks.mark_error(entry.task_id)
                    logger.warning(
                        "Task %s gave up after %d attempts", entry.task_id, retry_count
                    )

        return SyncResult(
            success=False,
            synced_items=0,
            failed_items=len(entries),
            errors=[
                SyncError(
                    task_id=None,
                    operation="batch",
                    error=message,
                    timestamp=format_timestamp(utc_now()),
                )
            ],
        )

    # === Status and manual intervention ===

    def get_status(self, check_online: bool = True) -> SyncStatusReport:
        """Report the local sync state.

        Args:
            check_online: Probe the server to fill ``is_online``.

        Returns:
            SyncStatusReport.
        """
        queued = len(self._queue)
        return SyncStatusReport(
            pending_sync_count=queued,
            last_sync_timestamp=self._tasks.last_synced_at(),
            is_online=self.check_connectivity() if check_online else False,
            sync_queue_size=queued,
        )

    def retry_failed(self) -> int:
        """Make entries that exhausted their retries eligible again.

        Returns:
            Number of tasks put back in pending state.
        """
        with self._lock, self._db.transaction():
            task_ids = self._queue.reset_exhausted(self._config.max_retries)
            for task_id in task_ids:
                self._tasks.mark_pending(task_id)
        return len(task_ids)
