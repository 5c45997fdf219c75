"""Brochure setup repository (one record per trail, keyed by trail id)."""

from __future__ import annotations

from ..errors import ValidationError
from ..timestamps import utc_now_iso
from ..validators import MAX_FUNDER_LOGOS
from .database import LocalStore
from .models import BrochureSetup, EntityType, SyncOperation
from .sync_queue import EnqueueDispatcher


class BrochureSetupRepository:
    def __init__(self, store: LocalStore, dispatcher: EnqueueDispatcher) -> None:
        self._store = store
        self._dispatcher = dispatcher

    def get_brochure_setup(
        self, trail_id: str, include_blobs: bool = True
    ) -> BrochureSetup | None:
        record = self._store.brochure_setup.get(
            trail_id, include_blobs=include_blobs
        )
        return None if record is None else BrochureSetup(**record)

    def save_brochure_setup(self, setup: BrochureSetup) -> BrochureSetup:
        """Insert or replace the brochure setup of a trail.

        Raises:
            ValidationError: ``id`` differs from ``trail_id`` or more than six
                funder logos were given.
        """
        if setup.id != setup.trail_id:
            raise ValidationError(
                f"Brochure setup id must equal its trail id ({setup.trail_id})"
            )
        if len(setup.funder_logos) > MAX_FUNDER_LOGOS:
            raise ValidationError(
                f"At most {MAX_FUNDER_LOGOS} funder logos are allowed "
                f"(got {len(setup.funder_logos)})"
            )
        if not setup.updated_at:
            setup = setup.model_copy(update={"updated_at": utc_now_iso()})
        self._store.brochure_setup.put(setup.model_dump(mode="python"))
        self._dispatcher.dispatch(
            SyncOperation.CREATE, EntityType.BROCHURE_SETUP, setup.id
        )
        return setup
