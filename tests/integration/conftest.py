"""Pytest fixtures for integration tests.

This module provides a FastAPI server backed by a temporary database and
devices that talk to it through the real HTTP client, or through a
transport that is always offline.
"""

from __future__ import annotations

from collections.abc import Generator
from dataclasses import dataclass
from pathlib import Path

import httpx
import pytest
from fastapi.testclient import TestClient

from tasksync.client.api import HTTPClient
from tasksync.client.queue import SyncQueue
from tasksync.client.reconciler import ConflictEvent, Reconciler
from tasksync.client.state import LocalDatabase
from tasksync.client.tasks import TaskStore
from tasksync.core.config import SyncConfig
from tasksync.server.app import create_app
from tasksync.server.database import Database


def _refuse(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("Network is unreachable", request=request)


@dataclass
class Device:
    """A simulated client device with its own local database."""

    name: str
    db: LocalDatabase
    store: TaskStore
    queue: SyncQueue
    online: Reconciler
    offline: Reconciler
    conflicts: list[ConflictEvent]


@pytest.fixture
def server(tmp_path: Path) -> Generator[TestClient, None, None]:
    """Run the server app in-process."""
    db = Database(tmp_path / "server.db")
    with TestClient(create_app(db)) as client:
        yield client
    db.close()


@pytest.fixture
def device(tmp_path: Path, server: TestClient) -> Generator[Device, None, None]:
    """Create a device able to switch between online and offline."""
    config = SyncConfig(server_url=str(server.base_url), batch_size=10, max_retries=3)
    db = LocalDatabase(tmp_path / "device" / "tasks.db")
    queue = SyncQueue(db)
    conflicts: list[ConflictEvent] = []

    online = HTTPClient(config, client=server)
    unreachable = httpx.Client(base_url=config.server_url, transport=httpx.MockTransport(_refuse))
    offline = HTTPClient(config, client=unreachable)

    yield Device(
        name="device",
        db=db,
        store=TaskStore(db, queue),
        queue=queue,
        online=Reconciler(db, online, config, on_conflict=conflicts.append),
        offline=Reconciler(db, offline, config, on_conflict=conflicts.append),
        conflicts=conflicts,
    )

    unreachable.close()
    db.close()
