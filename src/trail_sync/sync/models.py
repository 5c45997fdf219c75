"""Pydantic models describing sync runs.

- ``ItemOutcome``: result of pushing one queue item.
- ``SyncRunResult``: aggregate result of one drain cycle.
- ``SyncStatus``: snapshot of queue state for status reporting.

All models are frozen.
"""

from __future__ import annotations

from pydantic import BaseModel

from ..store.models import EntityType, SyncOperation, SyncStats


class ItemOutcome(BaseModel):
    """Result of processing one queue item.

    Attributes:
        item_id: Queue item id.
        operation: Queued operation.
        entity_type: Entity collection.
        entity_id: Entity id.
        success: Whether the remote accepted the item.
        error: Error message if the item failed.
        attempts: Attempt counter after this run.
        abandoned: True if this failure hit the retry ceiling.
    """

    item_id: str
    operation: SyncOperation
    entity_type: EntityType
    entity_id: str
    success: bool
    error: str | None = None
    attempts: int = 0
    abandoned: bool = False

    model_config = {"frozen": True}


class SyncRunResult(BaseModel):
    """Aggregate result of one drain cycle.

    Attributes:
        success: False when an item failed this cycle.
        synced_count: Items pushed successfully.
        last_synced_at: Latest ``synced_at`` in the queue after the run.
        error: Message of the failure that stopped the cycle.
        skipped_reason: Why the run was a no-op, if it was one.
        started_at: ISO 8601 start timestamp.
        completed_at: ISO 8601 end timestamp.
        outcomes: Per-item results, in processing order.
    """

    success: bool
    synced_count: int = 0
    last_synced_at: str | None = None
    error: str | None = None
    skipped_reason: str | None = None
    started_at: str
    completed_at: str | None = None
    outcomes: list[ItemOutcome] = []

    model_config = {"frozen": True}

    @property
    def failed(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if not o.success]

    @property
    def abandoned(self) -> list[ItemOutcome]:
        return [o for o in self.outcomes if o.abandoned]


class SyncStatus(BaseModel):
    """Queue snapshot for status reports."""

    sync_enabled: bool
    remote_configured: bool
    identity: str | None = None
    pending_count: int = 0
    last_synced_at: str | None = None
    stats: SyncStats

    model_config = {"frozen": True}
