"""Server database using SQLAlchemy with SQLite.

This module provides:
- Database: engine and session handling
- Lookups of server task records by client identifier
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session

from tasksync.server.models import Base, ServerTask

if TYPE_CHECKING:
    from sqlalchemy import Engine


class Database:
    """SQLAlchemy database for server task records.

    Uses SQLite with WAL mode for better concurrency with multiple readers.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize the database.

        Args:
            db_path: Path to the SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        # Create engine with check_same_thread=False for multi-threaded access
        self._engine: Engine = create_engine(
            f"sqlite:///{self._db_path}",
            connect_args={"check_same_thread": False},
            echo=False,
        )

        with self._engine.connect() as conn:
            conn.exec_driver_sql("PRAGMA journal_mode=WAL")

        # Create tables if they don't exist
        Base.metadata.create_all(self._engine)

    @property
    def path(self) -> Path:
        """Location of the database file."""
        return self._db_path

    def close(self) -> None:
        """Close the database connection."""
        self._engine.dispose()

    def _session(self) -> Session:
        """Create a new database session."""
        return Session(self._engine, expire_on_commit=False)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Open a session whose work is committed on success, rolled back on error.

        Yields:
            Session bound to the transaction.
        """
        with self._session() as session, session.begin():
            yield session

    # === Task record operations ===

    @staticmethod
    def find_by_client_id(session: Session, client_id: str) -> ServerTask | None:
        """Find the record of a client task inside an open session."""
        stmt = select(ServerTask).where(ServerTask.client_id == client_id)
        return session.execute(stmt).scalar_one_or_none()

    def get_task_by_client_id(self, client_id: str) -> ServerTask | None:
        """Get a task record by client identifier.

        Args:
            client_id: Identifier assigned by the client.

        Returns:
            ServerTask if found, None otherwise.
        """
        with self._session() as session:
            task = self.find_by_client_id(session, client_id)
            if task:
                session.expunge(task)
            return task

    def list_tasks(self, include_deleted: bool = False) -> list[ServerTask]:
        """List task records, most recently updated first.

        Args:
            include_deleted: Include tombstones.

        Returns:
            List of task records.
        """
        with self._session() as session:
            stmt = select(ServerTask).order_by(ServerTask.updated_at.desc())
            if not include_deleted:
                stmt = stmt.where(ServerTask.is_deleted.is_(False))
            tasks = list(session.execute(stmt).scalars().all())
            for task in tasks:
                session.expunge(task)
            return tasks

    def count_tasks(self) -> int:
        """Count all task records, tombstones included."""
        with self._session() as session:
            return int(session.execute(select(func.count()).select_from(ServerTask)).scalar_one())
