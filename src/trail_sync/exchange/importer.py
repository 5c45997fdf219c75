"""Import engine: archive to local store, with conflict detection.

Importing is two-phase because resolving a conflict needs the user:

1. ``parse_zip_file`` validates the archive and, when the trail already
   exists locally, returns a ``conflict`` result without writing anything.
   Otherwise it imports straight away.
2. ``resolve_conflict_and_import`` is called after a conflict with
   ``keep`` (no-op) or ``overwrite`` (re-read the archive from scratch,
   drop the trail's local POIs, import).

Imported POIs always get freshly minted ids; ids from the other device are
never reused.  Archive-level problems (missing manifest, bad schema, no
CSV) yield an ``error`` result.  Row-level problems are warnings.
"""

from __future__ import annotations

import io
import json
import logging
import time
import zipfile
from collections.abc import Callable
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Iterator, Literal, Union

from pydantic import ValidationError as PydanticValidationError

from ..errors import ArchiveFormatError, TrailSyncError, UnsupportedSchemaError, ValidationError
from ..identifiers import generate_filename, generate_poi_id
from ..store.context import Repositories
from ..store.models import DEFAULT_CATEGORY, DEFAULT_CONDITION, POIRecord, Trail, compute_completed
from ..timestamps import parse_iso, utc_now_iso
from ..validators import validate_coordinates
from .csv_codec import decode_table
from .export import manifest_name, member_path
from .files import decode_text
from .models import (
    SCHEMA_VERSION,
    ConflictDetails,
    ImportResult,
    ImportStatus,
    ParsedPOIRow,
    TrailManifest,
)

logger = logging.getLogger(__name__)

ArchiveSource = Union[str, Path, bytes, BinaryIO]
Strategy = Literal["keep", "overwrite"]

DEFAULT_WRITE_DELAY = 1.1
KEPT_MESSAGE = "Import cancelled - existing trail kept"
NO_MANIFEST = "No trail manifest found in ZIP. This file may be from an older export version."
NO_SCHEMA = "Schema version missing from trail manifest. Cannot import this file."

_MANIFEST_CANDIDATES = (
    ("graveyard", member_path("graveyard", manifest_name("graveyard"))),
    ("parish", member_path("parish", manifest_name("parish"))),
    ("", manifest_name("graveyard")),
    ("", manifest_name("parish")),
)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@contextmanager
def open_archive(source: ArchiveSource) -> Iterator[zipfile.ZipFile]:
    """Open *source* (path, bytes or binary file object) as a ZIP archive."""
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    elif not isinstance(source, (str, Path)) and source.seekable():
        source.seek(0)
    try:
        archive = zipfile.ZipFile(source)
    except zipfile.BadZipFile as exc:
        raise ArchiveFormatError(f"Not a valid ZIP archive: {exc}") from exc
    with archive:
        yield archive


class ImportEngine:
    """Import trail archives into the local store.

    Args:
        repos: Repositories over the open local store.  Writes go through
            them, so imported data is queued for sync like any other edit.
        write_delay: Seconds to pause between successive POI writes.
        sleep: Sleep function (injected in tests).
    """

    def __init__(
        self,
        repos: Repositories,
        write_delay: float = DEFAULT_WRITE_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.repos = repos
        self.write_delay = write_delay
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Public protocol
    # ------------------------------------------------------------------

    def parse_zip_file(self, source: ArchiveSource) -> ImportResult:
        """Validate *source*; import it unless its trail already exists."""
        try:
            manifest, rows = self._read_archive(source)
        except (TrailSyncError, zipfile.BadZipFile, OSError, ValueError) as exc:
            logger.error("Import failed: %s", exc)
            return ImportResult.error(str(exc))

        conflict = self.detect_conflict(manifest)
        if conflict is not None:
            logger.info("Import of %s needs a decision: trail exists", manifest.trail_id)
            return ImportResult(
                status=ImportStatus.CONFLICT,
                trail_id=manifest.trail_id,
                trail_name=manifest.display_name,
                conflict_details=conflict,
            )

        return self._import_trail(manifest, rows, overwrite=False)

    def resolve_conflict_and_import(
        self, source: ArchiveSource, strategy: Strategy
    ) -> ImportResult:
        """Apply the user's decision after ``parse_zip_file`` reported a conflict.

        Raises:
            ValidationError: *strategy* is neither ``keep`` nor ``overwrite``.
        """
        if strategy == "keep":
            return ImportResult(status=ImportStatus.SUCCESS, error_message=KEPT_MESSAGE)
        if strategy != "overwrite":
            raise ValidationError(
                f"Strategy must be 'keep' or 'overwrite' (got '{strategy}')"
            )

        try:
            manifest, rows = self._read_archive(source)
        except (TrailSyncError, zipfile.BadZipFile, OSError, ValueError) as exc:
            logger.error("Import failed: %s", exc)
            return ImportResult.error(str(exc))
        return self._import_trail(manifest, rows, overwrite=True)

    def detect_conflict(self, manifest: TrailManifest) -> ConflictDetails | None:
        """Return conflict timestamps if the manifest's trail exists locally.

        The local side is the latest ``last_modified_at`` (or
        ``captured_at``) over the trail's POIs, or the trail's creation time
        when it has none.
        """
        trail = self.repos.trails.get_trail(manifest.trail_id)
        if trail is None:
            return None

        latest = trail.created_at
        latest_at: datetime | None = None
        for poi in self.repos.pois.get_pois_by_trail_id(trail.id, include_blobs=False):
            stamp = poi.last_modified_at or poi.captured_at
            parsed = parse_iso(stamp) or _EPOCH
            if latest_at is None or parsed > latest_at:
                latest, latest_at = stamp, parsed

        return ConflictDetails(
            existing_last_modified=latest,
            incoming_last_modified=manifest.last_modified_at,
        )

    # ------------------------------------------------------------------
    # Archive reading
    # ------------------------------------------------------------------

    def _read_archive(
        self, source: ArchiveSource
    ) -> tuple[TrailManifest, list[ParsedPOIRow]]:
        with open_archive(source) as archive:
            manifest, folder = read_manifest(archive)
            rows = read_rows(archive, manifest, folder)
            attach_photos(archive, rows, folder)
        return manifest, rows

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def _import_trail(
        self, manifest: TrailManifest, rows: list[ParsedPOIRow], overwrite: bool
    ) -> ImportResult:
        trails = self.repos.trails
        pois = self.repos.pois
        existing = trails.get_trail(manifest.trail_id)

        if existing is not None and overwrite:
            removed = pois.delete_pois_by_trail_id(existing.id, propagate=True)
            logger.info("Overwrite: removed %d local POI(s) from %s", removed, existing.id)

        highest = max((row.sequence for row in rows), default=0)
        next_sequence = max(
            manifest.next_sequence,
            highest + 1,
            existing.next_sequence if existing is not None else 1,
        )
        trails.upsert_trail(
            Trail(
                id=manifest.trail_id,
                group_code=manifest.group_code,
                trail_type=manifest.trail_type,
                display_name=manifest.display_name,
                created_at=manifest.created_at,
                next_sequence=next_sequence,
            )
        )

        imported = skipped = images_failed = 0
        warnings: list[str] = []
        for row in rows:
            warnings.extend(f"{row.filename}: {w}" for w in row.warnings)
            if row.photo is None:
                skipped += 1
                images_failed += 1
                continue
            if imported and self.write_delay > 0:
                self._sleep(self.write_delay)
            try:
                pois.put_imported_poi(self._to_record(manifest, row))
            except Exception as exc:
                logger.error("Failed to import POI %s: %s", row.site_name or row.filename, exc)
                warnings.append(f"{row.filename}: {exc}")
                skipped += 1
                continue
            imported += 1

        logger.info(
            "Imported %d POI(s) into %s (%d skipped, %d images missing)",
            imported,
            manifest.trail_id,
            skipped,
            images_failed,
        )
        return ImportResult(
            status=ImportStatus.SUCCESS,
            trail_id=manifest.trail_id,
            trail_name=manifest.display_name,
            pois_imported=imported,
            pois_skipped=skipped,
            images_failed=images_failed,
            warnings=warnings,
        )

    @staticmethod
    def _to_record(manifest: TrailManifest, row: ParsedPOIRow) -> POIRecord:
        poi_id = generate_poi_id(manifest.group_code, manifest.trail_type)
        return POIRecord(
            id=poi_id,
            trail_id=manifest.trail_id,
            group_code=manifest.group_code,
            trail_type=manifest.trail_type,
            sequence=row.sequence,
            filename=generate_filename(poi_id),
            photo_blob=row.photo,
            thumbnail_blob=row.photo,
            latitude=row.latitude,
            longitude=row.longitude,
            accuracy=row.accuracy,
            captured_at=row.captured_at,
            site_name=row.site_name,
            category=row.category or DEFAULT_CATEGORY,
            description=row.description,
            story=row.story,
            url=row.url,
            condition=row.condition or DEFAULT_CONDITION,
            notes=row.notes,
            completed=compute_completed(row.site_name, row.story),
            rotation=0,
            created_by=row.created_by,
            last_modified_by=row.last_modified_by,
            last_modified_at=row.last_modified_at,
        )


# ---------------------------------------------------------------------------
# Archive parsing helpers
# ---------------------------------------------------------------------------


def read_manifest(archive: zipfile.ZipFile) -> tuple[TrailManifest, str]:
    """Locate and validate the trail manifest.

    The graveyard manifest wins over the parish one.  Archives from older
    single-folder exports keep the manifest at the root.

    Returns:
        The manifest and the folder (``"graveyard"``, ``"parish"`` or ``""``)
        holding it.

    Raises:
        ArchiveFormatError: No manifest, or it is unreadable.
        UnsupportedSchemaError: ``schemaVersion`` is absent or not ``"1.0"``.
    """
    names = set(archive.namelist())
    found = next(
        ((folder, name) for folder, name in _MANIFEST_CANDIDATES if name in names),
        None,
    )
    if found is None:
        raise ArchiveFormatError(NO_MANIFEST)
    folder, name = found

    text, _ = decode_text(archive.read(name))
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ArchiveFormatError(f"Trail manifest is not valid JSON: {exc}") from exc
    if not isinstance(raw, dict):
        raise ArchiveFormatError("Trail manifest must be a JSON object")

    version = raw.get("schemaVersion")
    if not version:
        raise UnsupportedSchemaError(NO_SCHEMA)
    if version != SCHEMA_VERSION:
        raise UnsupportedSchemaError(
            f"Unsupported schema version: {version}. "
            f"This app supports version {SCHEMA_VERSION} only."
        )

    try:
        return TrailManifest.model_validate(raw), folder
    except PydanticValidationError as exc:
        raise ArchiveFormatError(f"Trail manifest is invalid: {exc}") from exc


def _member(archive: zipfile.ZipFile, folder: str, name: str) -> str | None:
    """Archive path for *name*, looked up in *folder* first, then the root."""
    names = archive.namelist()
    candidates = [member_path(folder, name), name] if folder else [name]
    return next((c for c in candidates if c in names), None)


def _float(text: str) -> float | None:
    try:
        value = float(text)
    except ValueError:
        return None
    return None if value != value else value


def read_rows(
    archive: zipfile.ZipFile, manifest: TrailManifest, folder: str
) -> list[ParsedPOIRow]:
    """Parse the POI table for the manifest's group code and trail type.

    Raises:
        ArchiveFormatError: The CSV is missing or has no data rows.
    """
    csv_name = f"{manifest.group_code}_{manifest.trail_type}.csv"
    member = _member(archive, folder, csv_name)
    if member is None:
        raise ArchiveFormatError(f"CSV file not found: {csv_name}")

    text, _ = decode_text(archive.read(member))
    _, records = decode_table(text)
    if not records:
        raise ArchiveFormatError("CSV file is empty or contains only headers")

    rows: list[ParsedPOIRow] = []
    for index, record in enumerate(records, start=1):
        filename = record.get("filename", "").strip()
        if not filename:
            logger.warning("CSV row %d: Missing filename - POI skipped", index)
            continue

        row = ParsedPOIRow(row_number=index, filename=filename)
        row.site_name = record.get("siteName", "")
        row.category = record.get("category", "")
        row.description = record.get("description", "")
        row.story = record.get("story", "")
        row.url = record.get("url", "")
        row.condition = record.get("condition", "")
        row.notes = record.get("notes", "")

        lat_text = record.get("latitude", "").strip()
        lon_text = record.get("longitude", "").strip()
        row.latitude = _float(lat_text) if lat_text else None
        row.longitude = _float(lon_text) if lon_text else None
        if not validate_coordinates(row.latitude, row.longitude)[0]:
            row.warnings.append("Missing or invalid GPS coordinates")
        accuracy_text = record.get("accuracy", "").strip()
        row.accuracy = _float(accuracy_text) if accuracy_text else None

        row.captured_at = record.get("capturedAt", "").strip() or utc_now_iso()
        sequence_text = record.get("sequence", "").strip()
        try:
            row.sequence = int(sequence_text) if sequence_text else index
        except ValueError:
            row.warnings.append(f"Invalid sequence '{sequence_text}', using {index}")
            row.sequence = index

        row.created_by = record.get("createdBy") or None
        row.last_modified_by = record.get("lastModifiedBy") or None
        row.last_modified_at = record.get("lastModifiedAt") or None
        rows.append(row)
    return rows


def attach_photos(
    archive: zipfile.ZipFile, rows: list[ParsedPOIRow], folder: str
) -> None:
    """Resolve each row's photo bytes; a missing or empty photo is a row warning."""
    for row in rows:
        member = _member(archive, folder, row.filename)
        if member is None:
            row.warnings.append(f"Photo file not found: {row.filename}")
            continue
        try:
            data = archive.read(member)
        except (zipfile.BadZipFile, OSError) as exc:
            row.warnings.append(f"Failed to load photo: {exc}")
            continue
        if not data:
            row.warnings.append(f"Photo file is empty: {row.filename}")
            continue
        row.photo = data
