"""Outbound sync queue and the fire-and-forget enqueue dispatcher.

``SyncQueue`` is a durable, append-only log of entity mutations awaiting
propagation to the remote store.  It never touches the network.

``EnqueueDispatcher`` is what repositories call after every write: it hands
the append to an executor and reports failures on its own channel (logged
and kept in a bounded ``failures`` deque) so the repository caller neither
blocks on nor sees queue errors.
"""

from __future__ import annotations

import logging
import uuid
from collections import deque
from concurrent.futures import Executor, Future
from dataclasses import dataclass
from typing import Any

from ..identifiers import trail_id_from_poi_id
from ..timestamps import utc_now_iso
from .database import LocalStore
from .models import EntityType, SyncOperation, SyncQueueItem, SyncStats

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 5


class SyncQueue:
    """Durable FIFO of ``SyncQueueItem`` records.

    Args:
        store: Open local store.
    """

    def __init__(self, store: LocalStore) -> None:
        self._store = store

    @property
    def _items(self):
        return self._store.sync_queue

    def enqueue(
        self,
        operation: SyncOperation | str,
        entity_type: EntityType | str,
        entity_id: str,
        payload: dict[str, Any] | None = None,
    ) -> SyncQueueItem:
        """Append a pending item with a fresh id and zero attempts."""
        item = SyncQueueItem(
            id=uuid.uuid4().hex,
            operation=SyncOperation(operation),
            entity_type=EntityType(entity_type),
            entity_id=entity_id,
            payload=dict(payload or {}),
            created_at=utc_now_iso(),
            synced_at=None,
            attempts=0,
        )
        self._items.add(item.model_dump(mode="json"))
        logger.debug(
            "Queued %s %s %s", item.operation.value, item.entity_type.value,
            entity_id,
        )
        return item

    def get_item(self, item_id: str) -> SyncQueueItem | None:
        record = self._items.get(item_id)
        return None if record is None else SyncQueueItem(**record)

    def all_items(self) -> list[SyncQueueItem]:
        return [
            SyncQueueItem(**record)
            for record in self._items.all(order_by="created_at")
        ]

    def pending_items(self) -> list[SyncQueueItem]:
        """Pending items, oldest first (ties broken by insertion order)."""
        return [item for item in self.all_items() if item.is_pending]

    def pending_count(self) -> int:
        return len(self.pending_items())

    def last_synced_at(self) -> str | None:
        """Most recent ``synced_at`` among finished items, or ``None``."""
        stamps = [item.synced_at for item in self.all_items() if item.synced_at]
        return max(stamps) if stamps else None

    def mark_synced(
        self, item_id: str, synced_at: str | None = None
    ) -> SyncQueueItem:
        """Mark an item as successfully propagated.

        Already-finished items are returned unchanged.
        """
        item = self._require(item_id)
        if not item.is_pending:
            logger.warning("Queue item %s is already synced", item_id)
            return item
        updated = item.model_copy(
            update={"synced_at": synced_at or utc_now_iso()}
        )
        self._items.put(updated.model_dump(mode="json"))
        return updated

    def record_failure(
        self,
        item_id: str,
        error: str,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ) -> SyncQueueItem:
        """Count a failed attempt; abandon the item at the retry ceiling.

        Abandoned items get ``synced_at`` set and their payload flagged with
        ``_abandoned`` and ``_lastError`` so they stop blocking the queue.
        """
        item = self._require(item_id)
        attempts = item.attempts + 1
        changes: dict[str, Any] = {"attempts": attempts}
        if attempts >= max_attempts:
            changes["synced_at"] = utc_now_iso()
            changes["payload"] = {
                **item.payload,
                "_abandoned": True,
                "_lastError": error,
            }
            logger.error(
                "Abandoning %s %s %s after %d attempts: %s",
                item.operation.value,
                item.entity_type.value,
                item.entity_id,
                attempts,
                error,
            )
        updated = item.model_copy(update=changes)
        self._items.put(updated.model_dump(mode="json"))
        return updated

    def stats(self) -> SyncStats:
        """Aggregate counts over the whole queue.

        Distinct POIs and trails are counted among successfully synced items
        only; a POI item also marks its owning trail as touched.
        """
        items = self.all_items()
        synced = [i for i in items if not i.is_pending and not i.is_abandoned]
        poi_ids = {
            i.entity_id for i in synced if i.entity_type is EntityType.POI
        }
        trail_ids = {
            i.entity_id for i in synced if i.entity_type is EntityType.TRAIL
        }
        trail_ids |= {trail_id_from_poi_id(poi_id) for poi_id in poi_ids}
        return SyncStats(
            poi_count=len(poi_ids),
            trail_count=len(trail_ids),
            synced_items=len(synced),
            abandoned_items=sum(1 for i in items if i.is_abandoned),
            pending_items=sum(1 for i in items if i.is_pending),
            total_items=len(items),
        )

    def clear(self) -> None:
        self._items.clear()

    def _require(self, item_id: str) -> SyncQueueItem:
        item = self.get_item(item_id)
        if item is None:
            raise KeyError(f"Sync queue item not found: {item_id}")
        return item


def _label(value: SyncOperation | EntityType | str) -> str:
    return value.value if isinstance(value, (SyncOperation, EntityType)) else value


@dataclass(frozen=True, slots=True)
class EnqueueFailure:
    """One enqueue that could not be written."""

    operation: str
    entity_type: str
    entity_id: str
    error: str


class EnqueueDispatcher:
    """Fire-and-forget front end to ``SyncQueue.enqueue``.

    Args:
        queue: Queue that receives the items.
        enabled: When false (sync disabled or no remote configured) nothing
            is queued and ``dispatch`` returns ``None``.
        executor: Executor that runs the append.  ``None`` runs it inline
            and still returns a completed ``Future``.
        max_failures: How many recent failures to keep.
    """

    def __init__(
        self,
        queue: SyncQueue,
        enabled: bool = True,
        executor: Executor | None = None,
        max_failures: int = 100,
    ) -> None:
        self.queue = queue
        self.enabled = enabled
        self._executor = executor
        self.failures: deque[EnqueueFailure] = deque(maxlen=max_failures)

    def dispatch(
        self,
        operation: SyncOperation | str,
        entity_type: EntityType | str,
        entity_id: str,
        payload: dict[str, Any] | None = None,
    ) -> Future | None:
        if not self.enabled:
            return None
        args = (operation, entity_type, entity_id, payload)
        if self._executor is not None:
            future = self._executor.submit(self.queue.enqueue, *args)
        else:
            future = Future()
            try:
                future.set_result(self.queue.enqueue(*args))
            except Exception as exc:
                future.set_exception(exc)
        op_label, type_label = _label(operation), _label(entity_type)
        future.add_done_callback(
            lambda done: self._on_done(done, op_label, type_label, entity_id)
        )
        return future

    def _on_done(
        self, future: Future, operation: str, entity_type: str, entity_id: str
    ) -> None:
        error = future.exception()
        if error is None:
            return
        logger.error(
            "Failed to queue %s for %s %s: %s",
            operation,
            entity_type,
            entity_id,
            error,
        )
        self.failures.append(
            EnqueueFailure(
                operation=operation,
                entity_type=entity_type,
                entity_id=entity_id,
                error=str(error),
            )
        )
