"""Export packager: trails to a portable ZIP archive.

Layout, one folder per exported trail type::

    graveyard/
        trail_graveyard.json          manifest (schemaVersion "1.0")
        {filename}                    one photo per POI
        {groupCode}_graveyard.csv     POI table
        {groupCode}_graveyard_stories.txt
        {groupCode}_graveyard.kml     only when a POI has coordinates
    parish/
        ...

Trails without POIs are left out.
"""

from __future__ import annotations

import io
import json
import logging
import re
import zipfile
from collections.abc import Iterable
from pathlib import Path

from ..errors import NothingToExportError
from ..store.context import Repositories
from ..store.models import POIRecord, Trail, UserProfile
from ..timestamps import utc_now_iso
from .csv_codec import encode_pois
from .models import SCHEMA_VERSION, TrailManifest
from .templates import build_kml, build_stories_template, has_coordinates

logger = logging.getLogger(__name__)

GRAVEYARD_SUFFIX = " Graveyard Trail"
ZIP_SUFFIX = "_historic_graves_trail_export.zip"


def manifest_name(trail_type: str) -> str:
    return f"trail_{trail_type}.json"


def member_path(trail_type: str, name: str) -> str:
    return f"{trail_type}/{name}"


def slugify(text: str) -> str:
    """Lowercase, runs of non-alphanumerics become ``_``, edges trimmed."""
    return re.sub(r"[^a-z0-9]+", "_", text.lower()).strip("_")


def export_zip_filename(profile: UserProfile | None, trails: Iterable[Trail]) -> str:
    """Archive filename derived from the graveyard trail's name.

    ``"Ardmore Graveyard Trail"`` gives
    ``ardmore_historic_graves_trail_export.zip``.  Falls back to the
    profile's group code (or the first trail's) when the name slugifies to
    nothing.
    """
    trails = list(trails)
    graveyard = next((t for t in trails if t.trail_type == "graveyard"), None)
    slug = ""
    if graveyard is not None:
        slug = slugify(graveyard.display_name.removesuffix(GRAVEYARD_SUFFIX))
    if not slug:
        if profile is not None:
            slug = slugify(profile.group_code)
        elif trails:
            slug = slugify(trails[0].group_code)
    return f"{slug or 'trail'}{ZIP_SUFFIX}"


class ExportPackager:
    """Serialise trails from the local store into one archive."""

    def __init__(self, repos: Repositories) -> None:
        self.repos = repos

    def build_archive(self, trails: Iterable[Trail] | None = None) -> bytes:
        """Return the archive bytes for *trails* (default: every trail).

        Raises:
            NothingToExportError: None of the trails has a POI.
        """
        if trails is None:
            trails = self.repos.trails.list_trails()

        buffer = io.BytesIO()
        exported = 0
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for trail in trails:
                pois = self.repos.pois.get_pois_by_trail_id(trail.id, include_blobs=True)
                if not pois:
                    logger.debug("Skipping empty trail %s", trail.id)
                    continue
                self._write_trail(archive, trail, pois)
                exported += 1

        if not exported:
            raise NothingToExportError("None of the selected trails has any POIs to export.")
        logger.info("Exported %d trail(s)", exported)
        return buffer.getvalue()

    def write_archive(
        self, path: str | Path, trails: Iterable[Trail] | None = None
    ) -> Path:
        """Build the archive and write it to *path*.

        If *path* is an existing directory the archive gets the name from
        ``export_zip_filename``.
        """
        trails = list(self.repos.trails.list_trails() if trails is None else trails)
        target = Path(path)
        if target.is_dir():
            target = target / export_zip_filename(self.repos.profiles.get_profile(), trails)
        target.write_bytes(self.build_archive(trails))
        return target

    def _write_trail(
        self, archive: zipfile.ZipFile, trail: Trail, pois: list[POIRecord]
    ) -> None:
        kind = trail.trail_type
        stem = f"{trail.group_code}_{kind}"
        manifest = TrailManifest(
            schema_version=SCHEMA_VERSION,
            trail_id=trail.id,
            group_code=trail.group_code,
            trail_type=kind,
            display_name=trail.display_name,
            created_at=trail.created_at,
            next_sequence=trail.next_sequence,
            last_modified_at=utc_now_iso(),
            poi_count=len(pois),
        )
        archive.writestr(
            member_path(kind, manifest_name(kind)),
            json.dumps(manifest.to_wire(), indent=2),
        )
        for poi in pois:
            if not poi.photo_blob:
                logger.warning("POI %s has no photo, leaving it out", poi.id)
                continue
            # JPEG data does not deflate.
            archive.writestr(
                member_path(kind, poi.filename),
                poi.photo_blob,
                compress_type=zipfile.ZIP_STORED,
            )
        archive.writestr(member_path(kind, f"{stem}.csv"), encode_pois(pois))
        archive.writestr(
            member_path(kind, f"{stem}_stories.txt"),
            build_stories_template(pois, trail.display_name),
        )
        if has_coordinates(pois):
            archive.writestr(
                member_path(kind, f"{stem}.kml"),
                build_kml(pois, trail.display_name),
            )
