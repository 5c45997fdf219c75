"""Tests for the durable sync queue and the enqueue dispatcher."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from trail_sync.store import EnqueueDispatcher, SyncQueue


@pytest.fixture
def queue(store):
    return SyncQueue(store)


class TestSyncQueue:
    def test_enqueue_defaults(self, queue):
        item = queue.enqueue("create", "poi", "clonfert-g-200225-120000-123")
        assert item.attempts == 0
        assert item.synced_at is None
        assert item.is_pending
        assert queue.get_item(item.id) == item

    def test_fifo_order(self, queue):
        ids = [queue.enqueue("update", "trail", f"t{n}").entity_id for n in range(5)]
        assert [i.entity_id for i in queue.pending_items()] == ids

    def test_order_survives_failures(self, queue):
        first = queue.enqueue("create", "trail", "a")
        queue.enqueue("create", "trail", "b")
        queue.record_failure(first.id, "timeout")
        assert [i.entity_id for i in queue.pending_items()] == ["a", "b"]

    def test_mark_synced(self, queue):
        item = queue.enqueue("create", "trail", "a")
        done = queue.mark_synced(item.id)
        assert done.synced_at
        assert queue.pending_count() == 0
        assert queue.last_synced_at() == done.synced_at

    def test_mark_synced_twice_keeps_stamp(self, queue):
        item = queue.enqueue("create", "trail", "a")
        done = queue.mark_synced(item.id, synced_at="2025-01-01T00:00:00.000Z")
        again = queue.mark_synced(item.id)
        assert again.synced_at == done.synced_at

    def test_mark_synced_unknown(self, queue):
        with pytest.raises(KeyError):
            queue.mark_synced("missing")

    def test_record_failure_counts_then_abandons(self, queue):
        item = queue.enqueue("update", "poi", "p1", payload={"source": "edit"})
        for attempt in range(1, 5):
            item = queue.record_failure(item.id, "503", max_attempts=5)
            assert item.attempts == attempt
            assert item.is_pending
        item = queue.record_failure(item.id, "503 again", max_attempts=5)
        assert item.attempts == 5
        assert not item.is_pending
        assert item.is_abandoned
        assert item.payload == {"source": "edit", "_abandoned": True, "_lastError": "503 again"}

    def test_stats(self, queue):
        poi = queue.enqueue("create", "poi", "clonfert-g-200225-120000-123")
        trail = queue.enqueue("create", "trail", "clonfert-parish")
        dropped = queue.enqueue("create", "poi", "ardmore-g-200225-120000-124")
        queue.enqueue("update", "trail", "clonfert-parish")
        queue.mark_synced(poi.id)
        queue.mark_synced(trail.id)
        queue.record_failure(dropped.id, "boom", max_attempts=1)

        stats = queue.stats()
        assert stats.poi_count == 1
        # the synced POI also touches clonfert-graveyard
        assert stats.trail_count == 2
        assert stats.synced_items == 2
        assert stats.abandoned_items == 1
        assert stats.pending_items == 1
        assert stats.total_items == 4

    def test_clear(self, queue):
        queue.enqueue("create", "trail", "a")
        queue.clear()
        assert queue.all_items() == []


class _BrokenQueue:
    def enqueue(self, *args):
        raise RuntimeError("disk full")


class TestEnqueueDispatcher:
    def test_disabled_returns_none(self, queue):
        dispatcher = EnqueueDispatcher(queue, enabled=False)
        assert dispatcher.dispatch("create", "trail", "a") is None
        assert queue.all_items() == []

    def test_inline_dispatch(self, queue):
        future = EnqueueDispatcher(queue).dispatch("create", "trail", "a")
        assert future.done()
        assert future.result().entity_id == "a"

    def test_failures_are_recorded_not_raised(self):
        dispatcher = EnqueueDispatcher(_BrokenQueue())
        future = dispatcher.dispatch("delete", "poi", "p1")
        assert isinstance(future.exception(), RuntimeError)
        (failure,) = dispatcher.failures
        assert failure.operation == "delete"
        assert failure.entity_type == "poi"
        assert failure.error == "disk full"

    def test_failure_buffer_is_bounded(self):
        dispatcher = EnqueueDispatcher(_BrokenQueue(), max_failures=2)
        for n in range(5):
            dispatcher.dispatch("create", "trail", f"t{n}")
        assert [f.entity_id for f in dispatcher.failures] == ["t3", "t4"]

    def test_executor_dispatch(self, queue):
        with ThreadPoolExecutor(max_workers=1) as executor:
            dispatcher = EnqueueDispatcher(queue, executor=executor)
            future = dispatcher.dispatch("create", "trail", "a")
            future.result(timeout=5)
        assert [i.entity_id for i in queue.all_items()] == ["a"]
