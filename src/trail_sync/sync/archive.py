"""Soft-delete of trails in the remote store."""

from __future__ import annotations

import logging

from ..core.remote import RemoteStoreClient, RemoteStoreError
from ..errors import IdentityRequiredError, RemoteUnavailableError, TrailNotSyncedError
from ..timestamps import utc_now_iso
from .mapper import TRAIL_TABLE

logger = logging.getLogger(__name__)

NOT_LOGGED_IN = "You must be logged in to archive a trail."
NOT_SYNCED = "Trail not found in cloud. Sync your data first."


def archive_trail(
    remote: RemoteStoreClient | None, identity: str | None, trail_id: str
) -> str:
    """Mark a remote trail row ``archived`` and stamp ``archived_at``.

    Local data is not touched.

    Returns:
        The ``archived_at`` timestamp written.

    Raises:
        IdentityRequiredError: The device has no known identity.
        RemoteUnavailableError: No remote is configured or the call failed.
        TrailNotSyncedError: The remote has no row for *trail_id*.
    """
    if not identity:
        raise IdentityRequiredError(NOT_LOGGED_IN)
    if remote is None:
        raise RemoteUnavailableError("No remote store is configured.")

    archived_at = utc_now_iso()
    try:
        rows = remote.update(
            TRAIL_TABLE,
            {"archived": True, "archived_at": archived_at},
            "id",
            trail_id,
        )
    except RemoteStoreError as exc:
        raise RemoteUnavailableError(str(exc)) from exc

    if not rows:
        raise TrailNotSyncedError(NOT_SYNCED)

    logger.info("Archived trail %s at %s", trail_id, archived_at)
    return archived_at
