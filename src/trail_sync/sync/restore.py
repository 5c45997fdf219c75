"""First-run welcome flow: restore a returning user or set up a new one.

A returning user is one whose email already has a ``user_profile`` row in
the remote store.  Their trails and POIs are pulled down (photos fetched by
URL) and written locally without queueing anything, since the remote
already holds them.  Everyone else gets a fresh profile plus a default
graveyard and parish trail.
"""

from __future__ import annotations

import logging
from typing import Callable

from pydantic import BaseModel, Field

from ..core.remote import RemoteStoreClient, RemoteStoreError
from ..store.context import Repositories
from ..store.models import UserProfile
from ..validators import derive_group_code_from_email, normalize_email
from .mapper import (
    POI_TABLE,
    PROFILE_TABLE,
    TRAIL_TABLE,
    profile_to_row,
    row_to_poi,
    row_to_trail,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class RestoreSummary(BaseModel):
    """What a returning-user restore pulled down.

    Attributes:
        trail_count: Trails found remotely.
        poi_count: POIs found remotely.
        failed_photos: Site names (or filenames) whose photo or thumbnail
            could not be downloaded.
    """

    trail_count: int = 0
    poi_count: int = 0
    failed_photos: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class WelcomeResult(BaseModel):
    is_returning_user: bool
    profile: UserProfile
    restore: RestoreSummary | None = None

    model_config = {"frozen": True}


class WelcomeService:
    """Run the welcome flow against the local store and optional remote.

    Args:
        repos: Repositories over the open local store.
        remote: Remote store client, or ``None`` to work offline.
    """

    def __init__(
        self, repos: Repositories, remote: RemoteStoreClient | None
    ) -> None:
        self.repos = repos
        self.remote = remote

    def process_welcome(
        self,
        name: str,
        email: str,
        on_progress: ProgressCallback | None = None,
    ) -> WelcomeResult:
        """Set up this device for *email*.

        Args:
            name: Display name entered by the user.
            email: Email entered by the user (normalised here).
            on_progress: Called as ``(current, total)`` while POIs restore.
        """
        email = normalize_email(email)
        name = name.strip()

        if self.remote is None:
            return self._create_local_only(name, email)

        try:
            rows = self.remote.select(PROFILE_TABLE, "email", email)
        except RemoteStoreError as exc:
            logger.warning("Profile lookup failed, treating as new user: %s", exc)
            rows = []

        if rows:
            return self._restore_returning_user(rows[0], name, email, on_progress)
        return self._create_new_user(name, email)

    # ------------------------------------------------------------------
    # New users
    # ------------------------------------------------------------------

    def _create_local_only(self, name: str, email: str) -> WelcomeResult:
        profile = self.repos.profiles.create_profile(
            email,
            name,
            group_name=f"{name}'s recordings",
            group_code=derive_group_code_from_email(email),
        )
        self._create_default_trails(profile)
        return WelcomeResult(is_returning_user=False, profile=profile)

    def _create_new_user(self, name: str, email: str) -> WelcomeResult:
        profile = self.repos.profiles.create_profile(email, name)
        try:
            self.remote.upsert(
                PROFILE_TABLE, profile_to_row(profile), on_conflict="email"
            )
        except RemoteStoreError as exc:
            logger.warning(
                "Remote profile upsert failed; the next sync retries it: %s", exc
            )
        self._create_default_trails(profile)
        return WelcomeResult(is_returning_user=False, profile=profile)

    def _create_default_trails(self, profile: UserProfile) -> None:
        trails = self.repos.trails
        for trail_type, label in (("graveyard", "Graveyard"), ("parish", "Parish")):
            trail_id = f"{profile.group_code}-{trail_type}"
            if trails.get_trail(trail_id) is not None:
                continue
            trails.create_trail(
                profile.group_code, trail_type, f"{profile.name} {label} Trail"
            )

    # ------------------------------------------------------------------
    # Returning users
    # ------------------------------------------------------------------

    def _restore_returning_user(
        self,
        remote_profile: dict,
        name: str,
        email: str,
        on_progress: ProgressCallback | None,
    ) -> WelcomeResult:
        profile = self.repos.profiles.create_profile(
            email,
            name or remote_profile.get("name") or "",
            group_name=remote_profile.get("group_name"),
            group_code=remote_profile.get("group_code"),
        )
        group_code = profile.group_code

        trail_rows = self.remote.select(TRAIL_TABLE, "group_code", group_code)
        if not trail_rows:
            self._create_default_trails(profile)
            return WelcomeResult(
                is_returning_user=True,
                profile=profile,
                restore=RestoreSummary(),
            )

        for row in trail_rows:
            self.repos.trails.upsert_trail(row_to_trail(row), propagate=False)

        poi_rows = self.remote.select(POI_TABLE, "group_code", group_code)
        failed_photos: list[str] = []
        total = len(poi_rows)
        for index, row in enumerate(poi_rows, start=1):
            if on_progress is not None:
                on_progress(index, total)
            photo, photo_ok = self._download(row.get("photo_url"))
            thumbnail, thumb_ok = self._download(row.get("thumbnail_url"))
            if not (photo_ok and thumb_ok):
                failed_photos.append(
                    row.get("site_name") or row.get("filename") or row["id"]
                )
            self.repos.pois.put_restored_poi(row_to_poi(row, photo, thumbnail))

        logger.info(
            "Restored %d trail(s) and %d POI(s) for %s",
            len(trail_rows),
            total,
            group_code,
        )
        return WelcomeResult(
            is_returning_user=True,
            profile=profile,
            restore=RestoreSummary(
                trail_count=len(trail_rows),
                poi_count=total,
                failed_photos=failed_photos,
            ),
        )

    def _download(self, url: str | None) -> tuple[bytes | None, bool]:
        """Fetch *url*; returns ``(data, ok)`` where a missing URL is ok."""
        if not url:
            return None, True
        try:
            return self.remote.download(url), True
        except RemoteStoreError as exc:
            logger.warning("Photo download failed for %s: %s", url, exc)
            return None, False
