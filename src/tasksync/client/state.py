"""Local SQLite database for the tasksync client.

This module provides:
- LocalDatabase: connection, schema and transaction handling shared by the
  task store and the sync queue

Architecture:
    Tasks and sync queue entries live in the same SQLite file so a task
    mutation and its queue entry can be written in one transaction. The
    connection runs in autocommit mode; ``transaction()`` opens an explicit
    ``BEGIN IMMEDIATE`` block for multi-statement writes.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class LocalDatabase:
    """SQLite database holding local tasks and pending sync operations."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the local database.

        Args:
            db_path: Path to SQLite database file, or ":memory:".
        """
        self._db_path = db_path if db_path == ":memory:" else Path(db_path)
        if isinstance(self._db_path, Path):
            self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Reentrant so queue writes can join a task store transaction
        self._lock = threading.RLock()
        self._in_transaction = False

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
        )
        self._conn.row_factory = sqlite3.Row

        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")

        self._create_tables()
        logger.debug("Opened local database at %s", self._db_path)

    @property
    def path(self) -> Path | str:
        """Location of the database."""
        return self._db_path

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT,
                completed INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                is_deleted INTEGER NOT NULL DEFAULT 0,
                sync_status TEXT NOT NULL DEFAULT 'pending',
                server_id TEXT,
                last_synced_at TEXT
            );

            CREATE TABLE IF NOT EXISTS sync_queue (
                id TEXT PRIMARY KEY,
                task_id TEXT NOT NULL REFERENCES tasks(id),
                operation TEXT NOT NULL,
                data TEXT NOT NULL,
                created_at TEXT NOT NULL,
                retry_count INTEGER NOT NULL DEFAULT 0,
                error_message TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_sync_queue_created
                ON sync_queue (created_at);
            CREATE INDEX IF NOT EXISTS idx_sync_queue_task
                ON sync_queue (task_id);
            CREATE INDEX IF NOT EXISTS idx_tasks_sync_status
                ON tasks (sync_status);
        """)

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> LocalDatabase:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block of writes atomically.

        Nested calls join the outermost transaction.

        Yields:
            The underlying connection.
        """
        with self._lock:
            if self._in_transaction:
                yield self._conn
                return

            self._conn.execute("BEGIN IMMEDIATE")
            self._in_transaction = True
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")
            finally:
                self._in_transaction = False

    def execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        """Execute a single statement."""
        with self._lock:
            return self._conn.execute(sql, params)

    def fetchone(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        """Execute a query and return the first row."""
        with self._lock:
            row: sqlite3.Row | None = self._conn.execute(sql, params).fetchone()
            return row

    def fetchall(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        """Execute a query and return all rows."""
        with self._lock:
            return list(self._conn.execute(sql, params).fetchall())
