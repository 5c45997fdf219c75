"""POI repository.

POIs are keyed by a timestamp id (``{code}-{g|p}-DDMMYY-HHmmss-SSS``) that
is unique without coordination between devices.  ``sequence`` is the
display order and is independent of the id.

Deleting a POI does not renumber the survivors; callers that want a
contiguous ``1..n`` ordering ask for it with ``renumber_trail``.
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from ..errors import EntityNotFoundError, ValidationError
from ..identifiers import generate_filename, generate_poi_id
from ..timestamps import utc_now_iso
from ..validators import require, validate_rotation, validate_trail_type
from .database import LocalStore
from .models import (
    DEFAULT_CATEGORY,
    DEFAULT_CONDITION,
    CreatePOIInput,
    EntityType,
    POIRecord,
    SyncOperation,
    UpdatePOIInput,
    compute_completed,
)
from .sync_queue import EnqueueDispatcher

logger = logging.getLogger(__name__)

_COMPLETION_FIELDS = frozenset({"site_name", "story"})


def _to_record(doc: dict[str, Any]) -> POIRecord:
    return POIRecord(**doc)


def _to_doc(record: POIRecord) -> dict[str, Any]:
    return record.model_dump(mode="python")


class POIRepository:
    """CRUD over POIs with id, filename and completion derivation."""

    def __init__(self, store: LocalStore, dispatcher: EnqueueDispatcher) -> None:
        self._store = store
        self._dispatcher = dispatcher

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_poi_by_id(
        self, poi_id: str, include_blobs: bool = True
    ) -> POIRecord | None:
        doc = self._store.pois.get(poi_id, include_blobs=include_blobs)
        return None if doc is None else _to_record(doc)

    def get_pois_by_trail_id(
        self, trail_id: str, include_blobs: bool = True
    ) -> list[POIRecord]:
        """POIs of a trail ordered by ``sequence``."""
        docs = self._store.pois.where(
            "trail_id", trail_id, include_blobs=include_blobs, order_by="sequence"
        )
        return [_to_record(doc) for doc in docs]

    def get_pois_by_group_code(
        self, group_code: str, include_blobs: bool = False
    ) -> list[POIRecord]:
        docs = self._store.pois.where(
            "group_code", group_code, include_blobs=include_blobs,
            order_by="sequence",
        )
        return [_to_record(doc) for doc in docs]

    def count_pois(self, trail_id: str) -> int:
        return len(self._store.pois.where("trail_id", trail_id, include_blobs=False))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_poi(self, data: CreatePOIInput) -> POIRecord:
        """Create a POI with a freshly minted id and derived filename.

        Raises:
            ValidationError: Bad trail type or rotation.
        """
        require(validate_trail_type(data.trail_type))
        require(validate_rotation(data.rotation))
        poi_id = generate_poi_id(data.group_code, data.trail_type)
        site_name = data.site_name or ""
        description = data.description or ""
        story = data.story or ""
        record = POIRecord(
            id=poi_id,
            trail_id=data.trail_id,
            group_code=data.group_code,
            trail_type=data.trail_type,
            sequence=data.sequence,
            filename=generate_filename(poi_id),
            photo_blob=data.photo_blob,
            thumbnail_blob=data.thumbnail_blob,
            latitude=data.latitude,
            longitude=data.longitude,
            accuracy=data.accuracy,
            coordinate_source=data.coordinate_source,
            captured_at=data.captured_at,
            site_name=site_name,
            category=data.category or DEFAULT_CATEGORY,
            description=description,
            story=story,
            url=data.url or "",
            condition=data.condition or DEFAULT_CONDITION,
            notes=data.notes or "",
            completed=compute_completed(site_name, story),
            rotation=data.rotation,
            created_by=data.created_by,
            last_modified_by=data.last_modified_by,
            last_modified_at=data.last_modified_at,
        )
        self._store.pois.add(_to_doc(record))
        logger.debug("Created POI %s in %s", poi_id, data.trail_id)
        self._dispatcher.dispatch(SyncOperation.CREATE, EntityType.POI, poi_id)
        return record

    def update_poi(
        self,
        poi_id: str,
        changes: UpdatePOIInput | dict[str, Any],
        modified_by: str | None = None,
    ) -> POIRecord:
        """Apply a partial patch.

        ``completed`` is recomputed only when the patch touches the site
        name or story.  ``last_modified_at`` is stamped on every
        update.

        Raises:
            EntityNotFoundError: No POI has *poi_id*.
            ValidationError: Bad rotation.
        """
        if isinstance(changes, dict):
            changes = UpdatePOIInput(**changes)
        patch = changes.model_dump(exclude_unset=True)
        if "rotation" in patch:
            if patch["rotation"] is None:
                raise ValidationError("Rotation cannot be empty")
            require(validate_rotation(patch["rotation"]))
        for text_field in ("site_name", "description", "story", "url", "notes"):
            if text_field in patch and patch[text_field] is None:
                patch[text_field] = ""

        with self._store.transaction():
            current = self.get_poi_by_id(poi_id, include_blobs=False)
            if current is None:
                raise EntityNotFoundError("POI", poi_id)
            if _COMPLETION_FIELDS & patch.keys():
                merged = current.model_copy(update=patch)
                patch["completed"] = compute_completed(merged.site_name, merged.story)
            patch["last_modified_at"] = utc_now_iso()
            if modified_by:
                patch["last_modified_by"] = modified_by
            doc = self._store.pois.update(poi_id, patch)
        self._dispatcher.dispatch(SyncOperation.UPDATE, EntityType.POI, poi_id)
        return _to_record(doc)

    def delete_poi(self, poi_id: str) -> bool:
        """Remove a POI; survivors keep their sequence numbers.

        Returns:
            Whether a POI was removed.  Deleting an unknown id is a no-op.
        """
        removed = self._store.pois.delete(poi_id)
        if removed:
            logger.debug("Deleted POI %s", poi_id)
            self._dispatcher.dispatch(SyncOperation.DELETE, EntityType.POI, poi_id)
        return removed

    def put_imported_poi(self, record: POIRecord) -> POIRecord:
        """Upsert a fully formed POI from an archive import."""
        if record.photo_blob is None:
            raise ValidationError(f"POI {record.id} has no photo bytes")
        require(validate_rotation(record.rotation))
        self._store.pois.put(_to_doc(record))
        self._dispatcher.dispatch(SyncOperation.CREATE, EntityType.POI, record.id)
        return record

    def put_restored_poi(self, record: POIRecord) -> POIRecord:
        """Write a POI pulled from the remote store.

        Local only: the remote already holds it.  Photo bytes may be empty
        when the download failed.
        """
        self._store.pois.put(_to_doc(record))
        return record

    def delete_pois_by_trail_id(self, trail_id: str, propagate: bool = False) -> int:
        """Remove every POI of a trail.

        Args:
            trail_id: Owning trail.
            propagate: Queue a remote ``delete`` for each removed POI.
        """
        removed = self._store.pois.delete_where("trail_id", trail_id)
        if propagate:
            for poi_id in removed:
                self._dispatcher.dispatch(
                    SyncOperation.DELETE, EntityType.POI, poi_id
                )
        return len(removed)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def reorder_poi(
        self, trail_id: str, poi_id: str, direction: Literal["up", "down"]
    ) -> list[POIRecord]:
        """Swap a POI with its neighbour, then resequence the trail 1..n.

        Moving the first POI up or the last one down is a no-op.

        Raises:
            EntityNotFoundError: The POI is not part of the trail.
            ValidationError: *direction* is not ``up`` or ``down``.
        """
        if direction not in ("up", "down"):
            raise ValidationError(
                f"Direction must be 'up' or 'down' (got '{direction}')"
            )
        pois = self.get_pois_by_trail_id(trail_id, include_blobs=False)
        index = next((i for i, p in enumerate(pois) if p.id == poi_id), None)
        if index is None:
            raise EntityNotFoundError("POI", poi_id)
        target = index - 1 if direction == "up" else index + 1
        if target < 0 or target >= len(pois):
            return pois
        pois[index], pois[target] = pois[target], pois[index]
        return self._resequence(pois)

    def renumber_trail(self, trail_id: str) -> list[POIRecord]:
        """Reassign sequences 1..n in current order (e.g. after deletions)."""
        return self._resequence(
            self.get_pois_by_trail_id(trail_id, include_blobs=False)
        )

    def _resequence(self, pois: list[POIRecord]) -> list[POIRecord]:
        changed: list[str] = []
        result: list[POIRecord] = []
        with self._store.transaction():
            for position, poi in enumerate(pois, start=1):
                if poi.sequence != position:
                    self._store.pois.update(poi.id, {"sequence": position})
                    poi = poi.model_copy(update={"sequence": position})
                    changed.append(poi.id)
                result.append(poi)
        for poi_id in changed:
            self._dispatcher.dispatch(SyncOperation.UPDATE, EntityType.POI, poi_id)
        return result
