"""Shared fixtures for tasksync tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest

from tasksync.client.queue import SyncQueue
from tasksync.client.state import LocalDatabase
from tasksync.client.tasks import TaskStore
from tasksync.server.authority import AuthorityTransport, RemoteAuthority
from tasksync.server.database import Database


@pytest.fixture
def local_db(tmp_path: Path) -> Generator[LocalDatabase, None, None]:
    """Create a client database."""
    db = LocalDatabase(tmp_path / "client" / "tasks.db")
    yield db
    db.close()


@pytest.fixture
def store(local_db: LocalDatabase) -> TaskStore:
    """Create a task store."""
    return TaskStore(local_db)


@pytest.fixture
def queue(local_db: LocalDatabase) -> SyncQueue:
    """Create a sync queue sharing the client database."""
    return SyncQueue(local_db)


@pytest.fixture
def server_db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a server database."""
    db = Database(tmp_path / "server" / "server.db")
    yield db
    db.close()


@pytest.fixture
def authority(server_db: Database) -> RemoteAuthority:
    """Create a remote authority."""
    return RemoteAuthority(server_db)


@pytest.fixture
def authority_transport(authority: RemoteAuthority) -> AuthorityTransport:
    """Create an in-process transport to the authority."""
    return AuthorityTransport(authority)
