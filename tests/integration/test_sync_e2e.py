"""End-to-end integration tests for the sync workflow.

Tests the complete flow: edit offline, fail to sync, come back online,
reconcile against the HTTP server.
"""

from __future__ import annotations

from datetime import timedelta

from fastapi.testclient import TestClient

from tasksync.core.types import SyncStatus, format_timestamp, parse_timestamp
from tests.integration.conftest import Device


class TestOfflineThenOnline:
    """Operations queued offline reach the server once it is reachable."""

    def test_offline_edits_sync_later(self, device: Device, server: TestClient) -> None:
        """Failed attempts keep the queue; the next online sync drains it."""
        task = device.store.create_task("Buy milk")
        device.store.update_task(task.id, completed=True)

        assert device.offline.check_connectivity() is False
        failed = device.offline.reconcile()
        assert failed.success is False
        assert failed.failed_items == 2
        assert [e.retry_count for e in device.queue.list_entries()] == [1, 1]

        assert device.online.check_connectivity() is True
        result = device.online.reconcile()

        assert result.success is True
        assert result.synced_items == 2
        assert len(device.queue) == 0

        record = server.get(f"/api/tasks/{task.id}").json()
        assert record["title"] == "Buy milk"
        assert record["completed"] is True

        local = device.store.get_task(task.id)
        assert local is not None
        assert local.sync_status == SyncStatus.SYNCED
        assert local.server_id == record["id"]

    def test_gives_up_after_max_retries(self, device: Device) -> None:
        """A task stays in error until retried manually."""
        task = device.store.create_task("Buy milk")

        for _ in range(3):
            device.offline.reconcile()

        assert device.store.get_task(task.id).sync_status == SyncStatus.ERROR  # type: ignore[union-attr]
        assert device.online.reconcile().synced_items == 0

        assert device.online.retry_failed() == 1
        assert device.online.reconcile().synced_items == 1
        assert device.store.get_task(task.id).sync_status == SyncStatus.SYNCED  # type: ignore[union-attr]

    def test_status_reports_connectivity(self, device: Device) -> None:
        """Status should reflect the transport in use."""
        device.store.create_task("Buy milk")

        assert device.offline.get_status().is_online is False
        status = device.online.get_status()
        assert status.is_online is True
        assert status.pending_sync_count == 1
        assert status.last_sync_timestamp is None

        device.online.reconcile()
        status = device.online.get_status()
        assert status.pending_sync_count == 0
        assert status.last_sync_timestamp is not None


class TestConflicts:
    """Last-write-wins between this device and another writer."""

    def test_newer_server_version_wins(self, device: Device, server: TestClient) -> None:
        """A stale local edit should be replaced by the server's version."""
        task = device.store.create_task("Buy milk")
        device.online.reconcile()

        device.store.update_task(task.id, title="Buy oat milk")
        later = task.updated_at + timedelta(hours=1)
        server.post(
            "/api/batch",
            json={
                "items": [
                    {
                        "task_id": task.id,
                        "operation": "update",
                        "data": {
                            "title": "Buy soy milk",
                            "completed": True,
                            "updated_at": format_timestamp(later),
                        },
                    }
                ]
            },
        )

        result = device.online.reconcile()

        assert result.synced_items == 1
        assert [c.task_id for c in device.conflicts] == [task.id]
        local = device.store.get_task(task.id)
        assert local is not None
        assert local.title == "Buy soy milk"
        assert local.completed is True
        assert local.updated_at == later

    def test_newer_local_version_wins(self, device: Device, server: TestClient) -> None:
        """A newer local edit should overwrite the server's version."""
        task = device.store.create_task("Buy milk")
        device.online.reconcile()
        updated = device.store.update_task(task.id, title="Buy oat milk")

        result = device.online.reconcile()

        assert result.synced_items == 1
        assert device.conflicts == []
        record = server.get(f"/api/tasks/{task.id}").json()
        assert record["title"] == "Buy oat milk"
        assert parse_timestamp(record["updated_at"]) == updated.updated_at


class TestDeletion:
    """Deletes reach the server as tombstones."""

    def test_delete_propagates(self, device: Device, server: TestClient) -> None:
        """Deleted tasks disappear from listings but stay as tombstones."""
        keep = device.store.create_task("Keep me")
        gone = device.store.create_task("Delete me")
        device.store.delete_task(gone.id)

        result = device.online.reconcile()

        assert result.synced_items == 3
        listed = [t["client_id"] for t in server.get("/api/tasks").json()]
        assert listed == [keep.id]
        tombstone = server.get(f"/api/tasks/{gone.id}").json()
        assert tombstone["is_deleted"] is True
        assert [t.id for t in device.store.list_tasks()] == [keep.id]
