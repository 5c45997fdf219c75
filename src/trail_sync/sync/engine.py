"""Sync engine that drains the outbound queue against the remote store.

One ``drain()`` call is one cycle:

1. No-op (success, zero synced) when sync is disabled, no remote store is
   configured, or the device has no known identity.
2. Upsert the local profile to ``user_profile`` keyed by email.  A failure
   here is logged and does not block the queue.
3. Push pending items oldest first, one at a time.  The first failure
   increments that item's attempt counter (abandoning it at the retry
   ceiling) and ends the cycle; later items are not attempted, so an
   ``update`` never reaches the remote before the ``create`` it follows.

Retries are driven by the next trigger; there is no backoff inside the
engine.  Callers are responsible for not running two drains at once.
"""

from __future__ import annotations

import logging

from ..config import Config
from ..core.remote import RemoteStoreClient, RemoteStoreError
from ..errors import EntityNotFoundError
from ..store.context import Repositories
from ..store.models import EntityType, SyncOperation, SyncQueueItem
from ..timestamps import utc_now_iso
from .mapper import (
    BROCHURE_BUCKET,
    BROCHURE_TABLE,
    COVER_OBJECT,
    MAP_OBJECT,
    POI_PHOTO_BUCKET,
    POI_TABLE,
    PROFILE_TABLE,
    SIGNED_URL_TTL,
    TRAIL_TABLE,
    brochure_to_row,
    photo_path,
    poi_to_row,
    profile_to_row,
    thumbnail_path,
    trail_to_row,
)
from .models import ItemOutcome, SyncRunResult, SyncStatus

logger = logging.getLogger(__name__)


class SyncEngine:
    """Drain the sync queue against a remote store.

    Args:
        repos: Repositories over the open local store.
        remote: Remote store client, or ``None`` when none is configured.
        config: Runtime configuration (sync switch and retry ceiling).
    """

    def __init__(
        self,
        repos: Repositories,
        remote: RemoteStoreClient | None,
        config: Config,
    ) -> None:
        self.repos = repos
        self.remote = remote
        self.config = config

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def drain(self) -> SyncRunResult:
        """Run one drain cycle and return its result."""
        started_at = utc_now_iso()
        queue = self.repos.queue

        skip_reason = self._skip_reason()
        if skip_reason:
            logger.debug("Sync skipped: %s", skip_reason)
            return SyncRunResult(
                success=True,
                synced_count=0,
                skipped_reason=skip_reason,
                started_at=started_at,
                completed_at=utc_now_iso(),
            )

        self._push_profile()

        outcomes: list[ItemOutcome] = []
        synced_count = 0
        last_error: str | None = None

        for item in queue.pending_items():
            try:
                self._process_item(item)
            except Exception as exc:
                last_error = str(exc) or type(exc).__name__
                failed = queue.record_failure(
                    item.id, last_error, self.config.max_attempts
                )
                logger.error(
                    "Sync of %s %s %s failed (attempt %d): %s",
                    item.operation.value,
                    item.entity_type.value,
                    item.entity_id,
                    failed.attempts,
                    last_error,
                )
                outcomes.append(
                    self._outcome(
                        item,
                        success=False,
                        error=last_error,
                        attempts=failed.attempts,
                        abandoned=failed.is_abandoned,
                    )
                )
                break

            queue.mark_synced(item.id)
            synced_count += 1
            outcomes.append(
                self._outcome(item, success=True, attempts=item.attempts)
            )

        if synced_count:
            logger.info("Synced %d queue item(s)", synced_count)

        return SyncRunResult(
            success=last_error is None,
            synced_count=synced_count,
            last_synced_at=queue.last_synced_at(),
            error=last_error,
            started_at=started_at,
            completed_at=utc_now_iso(),
            outcomes=outcomes,
        )

    def status(self) -> SyncStatus:
        queue = self.repos.queue
        return SyncStatus(
            sync_enabled=self.config.sync_enabled,
            remote_configured=self.remote is not None,
            identity=self.repos.profiles.get_identity(),
            pending_count=queue.pending_count(),
            last_synced_at=queue.last_synced_at(),
            stats=queue.stats(),
        )

    # ------------------------------------------------------------------
    # Cycle helpers
    # ------------------------------------------------------------------

    def _skip_reason(self) -> str | None:
        if not self.config.sync_enabled:
            return "Sync is disabled"
        if self.remote is None:
            return "No remote store configured"
        if not self.repos.profiles.get_identity():
            return "No user identity on this device"
        return None

    def _push_profile(self) -> None:
        profile = self.repos.profiles.get_profile()
        if profile is None:
            return
        try:
            self.remote.upsert(
                PROFILE_TABLE, profile_to_row(profile), on_conflict="email"
            )
        except RemoteStoreError as exc:
            logger.warning("Profile upsert failed, continuing: %s", exc)

    @staticmethod
    def _outcome(item: SyncQueueItem, **fields) -> ItemOutcome:
        return ItemOutcome(
            item_id=item.id,
            operation=item.operation,
            entity_type=item.entity_type,
            entity_id=item.entity_id,
            **fields,
        )

    # ------------------------------------------------------------------
    # Per-item processing
    # ------------------------------------------------------------------

    def _process_item(self, item: SyncQueueItem) -> None:
        match item.entity_type:
            case EntityType.TRAIL:
                self._process_trail(item)
            case EntityType.POI:
                self._process_poi(item)
            case EntityType.BROCHURE_SETUP:
                self._process_brochure_setup(item)
            case _:
                raise ValueError(f"Unknown entity type: {item.entity_type}")

    def _process_trail(self, item: SyncQueueItem) -> None:
        if item.operation is SyncOperation.DELETE:
            self.remote.delete(TRAIL_TABLE, "id", item.entity_id)
            return
        trail = self.repos.trails.get_trail(item.entity_id)
        if trail is None:
            raise EntityNotFoundError("Trail", item.entity_id)
        self.remote.upsert(TRAIL_TABLE, trail_to_row(trail))

    def _process_poi(self, item: SyncQueueItem) -> None:
        if item.operation is SyncOperation.DELETE:
            self.remote.delete(POI_TABLE, "id", item.entity_id)
            return
        poi = self.repos.pois.get_poi_by_id(item.entity_id, include_blobs=True)
        if poi is None:
            raise EntityNotFoundError("POI", item.entity_id)

        photo_url = None
        thumbnail_url = None
        if poi.photo_blob:
            photo_url = self._upload(
                POI_PHOTO_BUCKET,
                photo_path(poi.trail_id, poi.filename),
                poi.photo_blob,
            )
        if poi.thumbnail_blob:
            thumbnail_url = self._upload(
                POI_PHOTO_BUCKET,
                thumbnail_path(poi.trail_id, poi.filename),
                poi.thumbnail_blob,
            )
        self.remote.upsert(POI_TABLE, poi_to_row(poi, photo_url, thumbnail_url))

    def _process_brochure_setup(self, item: SyncQueueItem) -> None:
        if item.operation is SyncOperation.DELETE:
            self.remote.delete(BROCHURE_TABLE, "id", item.entity_id)
            return
        setup = self.repos.brochures.get_brochure_setup(item.entity_id)
        if setup is None:
            raise EntityNotFoundError("Brochure setup", item.entity_id)

        cover_url = None
        map_url = None
        if setup.cover_photo_blob:
            cover_url = self._upload(
                BROCHURE_BUCKET,
                f"{setup.trail_id}/{COVER_OBJECT}",
                setup.cover_photo_blob,
            )
        if setup.map_blob:
            map_url = self._upload(
                BROCHURE_BUCKET,
                f"{setup.trail_id}/{MAP_OBJECT}",
                setup.map_blob,
                content_type="image/png",
            )
        self.remote.upsert(BROCHURE_TABLE, brochure_to_row(setup, cover_url, map_url))

    def _upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str = "image/jpeg",
    ) -> str:
        self.remote.upload(bucket, path, data, content_type=content_type)
        return self.remote.create_signed_url(bucket, path, SIGNED_URL_TTL)
