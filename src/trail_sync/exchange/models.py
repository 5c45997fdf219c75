"""Models for the trail archive exchange format.

- ``TrailManifest``: the ``trail_{type}.json`` document (camelCase on the
  wire, snake_case in Python).
- ``ParsedPOIRow``: one CSV row after parsing, with its resolved photo and
  per-row warnings.
- ``ConflictDetails`` / ``ImportResult``: outcome of an import attempt.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field

from ..store.models import TrailType

SCHEMA_VERSION = "1.0"


class TrailManifest(BaseModel):
    schema_version: str = Field(alias="schemaVersion")
    trail_id: str = Field(alias="trailId")
    group_code: str = Field(alias="groupCode")
    trail_type: TrailType = Field(alias="trailType")
    display_name: str = Field(alias="displayName")
    created_at: str = Field(alias="createdAt")
    next_sequence: int = Field(default=1, alias="nextSequence")
    last_modified_at: str = Field(default="", alias="lastModifiedAt")
    poi_count: int = Field(default=0, alias="poiCount")

    model_config = {"frozen": True, "populate_by_name": True}

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


@dataclass
class ParsedPOIRow:
    """One CSV data row.  ``photo`` stays ``None`` if no archive entry matched."""

    row_number: int
    filename: str
    site_name: str = ""
    category: str = ""
    description: str = ""
    story: str = ""
    url: str = ""
    condition: str = ""
    notes: str = ""
    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = None
    captured_at: str = ""
    sequence: int = 0
    created_by: str | None = None
    last_modified_by: str | None = None
    last_modified_at: str | None = None
    photo: bytes | None = None
    warnings: list[str] = field(default_factory=list)


class ImportStatus(str, Enum):
    SUCCESS = "success"
    CONFLICT = "conflict"
    ERROR = "error"


class ConflictDetails(BaseModel):
    """Timestamps shown to the user when an archive's trail already exists.

    Attributes:
        existing_last_modified: Most recent local modification of the trail.
        incoming_last_modified: ``lastModifiedAt`` from the archive manifest.
    """

    existing_last_modified: str
    incoming_last_modified: str

    model_config = {"frozen": True}


class ImportResult(BaseModel):
    """Outcome of ``parse_zip_file`` or ``resolve_conflict_and_import``.

    Attributes:
        status: success, conflict or error.
        trail_id: Trail the archive describes (empty on early errors).
        trail_name: Display name from the manifest.
        pois_imported: POIs written to the local store.
        pois_skipped: Rows not written (no photo, or failed to persist).
        images_failed: Rows whose photo could not be found in the archive.
        conflict_details: Set when ``status`` is conflict.
        error_message: Failure text, or the "kept" notice for ``keep``.
        warnings: Per-row warnings for display.
    """

    status: ImportStatus
    trail_id: str = ""
    trail_name: str = ""
    pois_imported: int = 0
    pois_skipped: int = 0
    images_failed: int = 0
    conflict_details: ConflictDetails | None = None
    error_message: str | None = None
    warnings: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @classmethod
    def error(cls, message: str) -> ImportResult:
        return cls(status=ImportStatus.ERROR, error_message=message)

    def to_json(self) -> dict:
        return self.model_dump(mode="json")
