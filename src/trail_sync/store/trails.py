"""Trail repository."""

from __future__ import annotations

import logging

from ..errors import EntityNotFoundError
from ..identifiers import make_trail_id
from ..timestamps import utc_now_iso
from ..validators import require, validate_group_code, validate_trail_type
from .database import SETTING_ACTIVE_TRAIL, LocalStore
from .models import EntityType, SyncOperation, Trail
from .sync_queue import EnqueueDispatcher

logger = logging.getLogger(__name__)


class TrailRepository:
    """CRUD over trails.

    Every create/update is followed by a fire-and-forget queue append via
    *dispatcher*; ``reset_trail`` is local only.
    """

    def __init__(self, store: LocalStore, dispatcher: EnqueueDispatcher) -> None:
        self._store = store
        self._dispatcher = dispatcher

    def get_trail(self, trail_id: str) -> Trail | None:
        record = self._store.trails.get(trail_id)
        return None if record is None else Trail(**record)

    def require_trail(self, trail_id: str) -> Trail:
        trail = self.get_trail(trail_id)
        if trail is None:
            raise EntityNotFoundError("Trail", trail_id)
        return trail

    def get_trails_by_group_code(self, group_code: str) -> list[Trail]:
        return [
            Trail(**record)
            for record in self._store.trails.where("group_code", group_code)
        ]

    def list_trails(self) -> list[Trail]:
        return [Trail(**record) for record in self._store.trails.all()]

    def create_trail(
        self, group_code: str, trail_type: str, display_name: str
    ) -> Trail:
        """Create a trail with id ``{group_code}-{trail_type}``.

        Raises:
            ValidationError: Bad group code or trail type.
            DuplicateKeyError: The trail already exists.
        """
        require(validate_group_code(group_code))
        require(validate_trail_type(trail_type))
        trail = Trail(
            id=make_trail_id(group_code, trail_type),
            group_code=group_code,
            trail_type=trail_type,
            display_name=display_name,
            created_at=utc_now_iso(),
            next_sequence=1,
        )
        self._store.trails.add(trail.model_dump(mode="json"))
        logger.info("Created trail %s", trail.id)
        self._dispatcher.dispatch(SyncOperation.CREATE, EntityType.TRAIL, trail.id)
        return trail

    def upsert_trail(self, trail: Trail, propagate: bool = True) -> Trail:
        """Insert or field-replace a trail (import and restore paths)."""
        require(validate_trail_type(trail.trail_type))
        self._store.trails.put(trail.model_dump(mode="json"))
        if propagate:
            self._dispatcher.dispatch(
                SyncOperation.UPDATE, EntityType.TRAIL, trail.id
            )
        return trail

    def increment_trail_sequence(self, trail_id: str) -> int:
        """Advance ``next_sequence`` by one and return the new value.

        Raises:
            EntityNotFoundError: The trail does not exist.
        """
        with self._store.transaction():
            trail = self.require_trail(trail_id)
            next_sequence = trail.next_sequence + 1
            self._store.trails.update(trail_id, {"next_sequence": next_sequence})
        self._dispatcher.dispatch(SyncOperation.UPDATE, EntityType.TRAIL, trail_id)
        return next_sequence

    def reserve_sequence(self, trail_id: str, sequence: int) -> int:
        """Make sure ``next_sequence`` is past *sequence*; never lowers it."""
        with self._store.transaction():
            trail = self.require_trail(trail_id)
            if trail.next_sequence > sequence:
                return trail.next_sequence
            next_sequence = sequence + 1
            self._store.trails.update(trail_id, {"next_sequence": next_sequence})
        self._dispatcher.dispatch(SyncOperation.UPDATE, EntityType.TRAIL, trail_id)
        return next_sequence

    def reset_trail(self, trail_id: str) -> int:
        """Delete every POI of the trail and restart numbering at 1.

        Local only: nothing is queued, so remote rows are left in place.

        Returns:
            Number of POIs deleted.
        """
        with self._store.transaction():
            self.require_trail(trail_id)
            removed = self._store.pois.delete_where("trail_id", trail_id)
            self._store.trails.update(trail_id, {"next_sequence": 1})
        logger.info("Reset trail %s (%d POIs removed)", trail_id, len(removed))
        return len(removed)

    def delete_trail(self, trail_id: str) -> None:
        """Delete a trail with its POIs and brochure setup."""
        with self._store.transaction():
            self.require_trail(trail_id)
            poi_ids = self._store.pois.delete_where("trail_id", trail_id)
            self._store.brochure_setup.delete(trail_id)
            self._store.trails.delete(trail_id)
        for poi_id in poi_ids:
            self._dispatcher.dispatch(SyncOperation.DELETE, EntityType.POI, poi_id)
        self._dispatcher.dispatch(SyncOperation.DELETE, EntityType.TRAIL, trail_id)
        if self.get_active_trail_id() == trail_id:
            self._store.delete_setting(SETTING_ACTIVE_TRAIL)
        logger.info("Deleted trail %s", trail_id)

    def get_active_trail_id(self) -> str | None:
        return self._store.get_setting(SETTING_ACTIVE_TRAIL)

    def set_active_trail_id(self, trail_id: str) -> None:
        self.require_trail(trail_id)
        self._store.set_setting(SETTING_ACTIVE_TRAIL, trail_id)
