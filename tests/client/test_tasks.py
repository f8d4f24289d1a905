"""Tests for the local task store."""

from datetime import UTC, datetime, timedelta

import pytest

from tasksync.client import tasks as tasks_module
from tasksync.client.queue import SyncQueue
from tasksync.client.state import LocalDatabase
from tasksync.client.tasks import NotFoundError, TaskStore, ValidationError
from tasksync.core import types
from tasksync.core.types import Operation, SyncStatus


class TestCreateTask:
    """Tests for TaskStore.create_task."""

    def test_creates_pending_task(self, store: TaskStore) -> None:
        """New tasks should start pending, not deleted, never synced."""
        task = store.create_task("Buy milk")

        assert task.title == "Buy milk"
        assert task.description is None
        assert task.completed is False
        assert task.is_deleted is False
        assert task.sync_status == SyncStatus.PENDING
        assert task.server_id is None
        assert task.last_synced_at is None
        assert task.created_at == task.updated_at

    def test_persists_task(self, store: TaskStore) -> None:
        """The task should be readable back."""
        task = store.create_task("Buy milk", description="2 liters")
        loaded = store.get_task(task.id)
        assert loaded == task

    def test_trims_title(self, store: TaskStore) -> None:
        """Surrounding whitespace should be removed."""
        assert store.create_task("  Buy milk \n").title == "Buy milk"

    def test_enqueues_one_create(self, store: TaskStore, queue: SyncQueue) -> None:
        """Exactly one create entry should reference the task."""
        task = store.create_task("Buy milk")

        entries = queue.list_entries()
        assert len(entries) == 1
        assert entries[0].task_id == task.id
        assert entries[0].operation == Operation.CREATE
        assert entries[0].retry_count == 0
        assert entries[0].data["title"] == "Buy milk"

    @pytest.mark.parametrize("title", ["", "   ", "\t\n"])
    def test_empty_title_rejected(self, store: TaskStore, queue: SyncQueue, title: str) -> None:
        """Empty titles should raise ValidationError and write nothing."""
        with pytest.raises(ValidationError):
            store.create_task(title)
        assert store.list_tasks() == []
        assert len(queue) == 0

    def test_task_and_entry_are_atomic(
        self, local_db: LocalDatabase, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """If the queue insert fails the task row must not exist either."""
        queue = SyncQueue(local_db)
        store = TaskStore(local_db, queue)

        def fail(*args: object, **kwargs: object) -> None:
            raise RuntimeError("disk full")

        monkeypatch.setattr(queue, "enqueue", fail)

        with pytest.raises(RuntimeError):
            store.create_task("Buy milk")
        assert local_db.fetchall("SELECT * FROM tasks") == []


class TestUpdateTask:
    """Tests for TaskStore.update_task."""

    def test_updates_fields(self, store: TaskStore) -> None:
        """Given fields should change, others stay."""
        task = store.create_task("Buy milk", description="2 liters")

        updated = store.update_task(task.id, completed=True)

        assert updated.completed is True
        assert updated.title == "Buy milk"
        assert updated.description == "2 liters"
        assert store.get_task(task.id) == updated

    def test_clears_description(self, store: TaskStore) -> None:
        """Passing description=None should clear it."""
        task = store.create_task("Buy milk", description="2 liters")
        assert store.update_task(task.id, description=None).description is None

    def test_updated_at_strictly_increases(self, store: TaskStore) -> None:
        """Every update should move updated_at forward."""
        task = store.create_task("Buy milk")
        previous = task.updated_at
        for i in range(5):
            updated = store.update_task(task.id, title=f"Buy milk {i}")
            assert updated.updated_at > previous
            previous = updated.updated_at

    def test_updated_at_increases_with_frozen_clock(
        self, store: TaskStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A stalled clock should still produce a newer timestamp."""
        frozen = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        monkeypatch.setattr(types, "utc_now", lambda: frozen)
        monkeypatch.setattr(tasks_module, "utc_now", lambda: frozen)

        task = store.create_task("Buy milk")
        updated = store.update_task(task.id, completed=True)

        assert updated.updated_at == frozen + timedelta(microseconds=1)

    def test_resets_sync_status(self, store: TaskStore) -> None:
        """Updating a synced task should make it pending again."""
        task = store.create_task("Buy milk")
        store.mark_synced(task.id, "srv_1", task.updated_at)

        updated = store.update_task(task.id, title="Buy oat milk")

        assert updated.sync_status == SyncStatus.PENDING
        assert updated.server_id == "srv_1"

    def test_enqueues_snapshot(self, store: TaskStore, queue: SyncQueue) -> None:
        """The update entry should carry the values at update time."""
        task = store.create_task("Buy milk")
        updated = store.update_task(task.id, title="Buy oat milk")
        store.update_task(task.id, title="Buy soy milk")

        entries = queue.list_entries(task.id)
        assert [e.operation for e in entries] == [
            Operation.CREATE,
            Operation.UPDATE,
            Operation.UPDATE,
        ]
        assert entries[0].data["title"] == "Buy milk"
        assert entries[1].data["title"] == "Buy oat milk"
        assert entries[1].data["updated_at"] == updated.snapshot()["updated_at"]
        assert entries[2].data["title"] == "Buy soy milk"

    def test_empty_title_rejected(self, store: TaskStore, queue: SyncQueue) -> None:
        """An empty resulting title should fail without side effects."""
        task = store.create_task("Buy milk")

        with pytest.raises(ValidationError):
            store.update_task(task.id, title="  ")

        assert store.get_task(task.id) == task
        assert len(queue) == 1

    def test_missing_task(self, store: TaskStore, queue: SyncQueue) -> None:
        """Unknown ids should raise NotFoundError and queue nothing."""
        with pytest.raises(NotFoundError) as exc_info:
            store.update_task("missing", title="x")
        assert exc_info.value.task_id == "missing"
        assert len(queue) == 0


class TestDeleteTask:
    """Tests for TaskStore.delete_task."""

    def test_soft_deletes(self, store: TaskStore) -> None:
        """The task should be hidden from list but still readable."""
        task = store.create_task("Buy milk")

        deleted = store.delete_task(task.id)

        assert deleted.is_deleted is True
        assert deleted.updated_at > task.updated_at
        assert deleted.sync_status == SyncStatus.PENDING
        assert store.list_tasks() == []
        loaded = store.get_task(task.id)
        assert loaded is not None
        assert loaded.is_deleted is True

    def test_enqueues_delete(self, store: TaskStore, queue: SyncQueue) -> None:
        """A delete entry should be queued."""
        task = store.create_task("Buy milk")
        store.delete_task(task.id)

        entries = queue.list_entries(task.id)
        assert entries[-1].operation == Operation.DELETE
        assert entries[-1].data["is_deleted"] is True

    def test_delete_twice_queues_twice(self, store: TaskStore, queue: SyncQueue) -> None:
        """Deleting an already deleted task is not special-cased."""
        task = store.create_task("Buy milk")
        store.delete_task(task.id)
        store.delete_task(task.id)
        assert len(queue.list_entries(task.id)) == 3

    def test_missing_task(self, store: TaskStore, queue: SyncQueue) -> None:
        """Unknown ids should raise NotFoundError and queue nothing."""
        with pytest.raises(NotFoundError):
            store.delete_task("missing")
        assert len(queue) == 0


class TestListing:
    """Tests for list operations."""

    def test_list_tasks_newest_first(self, store: TaskStore) -> None:
        """Active tasks should be listed newest first."""
        first = store.create_task("first")
        second = store.create_task("second")
        assert [t.id for t in store.list_tasks()] == [second.id, first.id]

    def test_list_needing_sync(self, store: TaskStore) -> None:
        """Pending and error tasks should be listed, synced ones not."""
        synced = store.create_task("synced")
        pending = store.create_task("pending")
        failed = store.create_task("failed")
        deleted = store.create_task("deleted")
        store.mark_synced(synced.id, "srv_1", synced.updated_at)
        store.mark_error(failed.id)
        store.delete_task(deleted.id)

        ids = {t.id for t in store.list_tasks_needing_sync()}

        assert ids == {pending.id, failed.id, deleted.id}

    def test_last_synced_at(self, store: TaskStore) -> None:
        """Should return the most recent sync time or None."""
        assert store.last_synced_at() is None

        a = store.create_task("a")
        b = store.create_task("b")
        early = datetime(2026, 1, 1, tzinfo=UTC)
        late = datetime(2026, 2, 1, tzinfo=UTC)
        store.mark_synced(a.id, "srv_a", late)
        store.mark_synced(b.id, "srv_b", early)

        assert store.last_synced_at() == late


class TestSyncBookkeeping:
    """Tests for the writes used by the reconciler."""

    def test_mark_synced(self, store: TaskStore, queue: SyncQueue) -> None:
        """Should set status, server id and both timestamps, queueing nothing."""
        task = store.create_task("Buy milk")
        resolved_at = datetime(2030, 1, 1, tzinfo=UTC)

        store.mark_synced(task.id, "srv_1", resolved_at)

        loaded = store.get_task(task.id)
        assert loaded is not None
        assert loaded.sync_status == SyncStatus.SYNCED
        assert loaded.server_id == "srv_1"
        assert loaded.last_synced_at == resolved_at
        assert loaded.updated_at == resolved_at
        assert len(queue) == 1

    def test_mark_synced_adopts_resolved_record(self, store: TaskStore) -> None:
        """Resolved values should replace local fields when given."""
        task = store.create_task("Buy milk")

        store.mark_synced(
            task.id,
            "srv_1",
            datetime(2030, 1, 1, tzinfo=UTC),
            resolved={"title": "Buy bread", "description": "rye", "completed": True},
        )

        loaded = store.get_task(task.id)
        assert loaded is not None
        assert loaded.title == "Buy bread"
        assert loaded.description == "rye"
        assert loaded.completed is True
        assert loaded.is_deleted is False

    def test_mark_error_and_pending(self, store: TaskStore) -> None:
        """Status helpers should switch sync_status."""
        task = store.create_task("Buy milk")
        store.mark_error(task.id)
        assert store.get_task(task.id).sync_status == SyncStatus.ERROR  # type: ignore[union-attr]
        store.mark_pending(task.id)
        assert store.get_task(task.id).sync_status == SyncStatus.PENDING  # type: ignore[union-attr]
