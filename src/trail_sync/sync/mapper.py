"""Translation between local entities and remote table rows.

Local field names are snake_case already; the remote schema differs in
that binaries become storage URLs and some local-only fields are dropped.
"""

from __future__ import annotations

from typing import Any

from ..store.models import (
    DEFAULT_CATEGORY,
    DEFAULT_CONDITION,
    BrochureSetup,
    POIRecord,
    Trail,
    UserProfile,
)
from ..timestamps import utc_now_iso

PROFILE_TABLE = "user_profile"
TRAIL_TABLE = "trails"
POI_TABLE = "pois"
BROCHURE_TABLE = "brochure_setup"

POI_PHOTO_BUCKET = "poi-photos"
BROCHURE_BUCKET = "brochure-assets"
SIGNED_URL_TTL = 60 * 60 * 24 * 365  # one year, in seconds

COVER_OBJECT = "cover.jpg"
MAP_OBJECT = "map.png"


def photo_path(trail_id: str, filename: str) -> str:
    return f"{trail_id}/{filename}"


def thumbnail_path(trail_id: str, filename: str) -> str:
    return f"{trail_id}/thumb_{filename}"


# ---------------------------------------------------------------------------
# Local -> remote
# ---------------------------------------------------------------------------


def profile_to_row(profile: UserProfile) -> dict[str, Any]:
    return {
        "email": profile.email,
        "name": profile.name,
        "group_name": profile.group_name,
        "group_code": profile.group_code,
    }


def trail_to_row(trail: Trail) -> dict[str, Any]:
    return {
        "id": trail.id,
        "group_code": trail.group_code,
        "trail_type": trail.trail_type,
        "display_name": trail.display_name,
        "next_sequence": trail.next_sequence,
        "created_at": trail.created_at,
    }


def poi_to_row(
    poi: POIRecord, photo_url: str | None, thumbnail_url: str | None
) -> dict[str, Any]:
    """Build a ``pois`` row; bytes are replaced by their storage URLs."""
    return {
        "id": poi.id,
        "trail_id": poi.trail_id,
        "group_code": poi.group_code,
        "trail_type": poi.trail_type,
        "sequence": poi.sequence,
        "filename": poi.filename,
        "photo_url": photo_url,
        "thumbnail_url": thumbnail_url,
        "latitude": poi.latitude,
        "longitude": poi.longitude,
        "accuracy": poi.accuracy,
        "captured_at": poi.captured_at,
        "site_name": poi.site_name,
        "category": poi.category,
        "description": poi.description,
        "story": poi.story,
        "url": poi.url,
        "condition": poi.condition,
        "notes": poi.notes,
        "completed": poi.completed,
        "rotation": poi.rotation,
        "created_by": poi.created_by,
        "last_modified_by": poi.last_modified_by,
        "last_modified_at": poi.last_modified_at,
    }


def brochure_to_row(
    setup: BrochureSetup, cover_url: str | None, map_url: str | None
) -> dict[str, Any]:
    # Funder logos stay on the device; only their slot is reserved remotely.
    return {
        "id": setup.id,
        "trail_id": setup.trail_id,
        "cover_title": setup.cover_title,
        "cover_photo_url": cover_url,
        "group_name": setup.group_name,
        "funder_text": setup.funder_text,
        "credits_text": setup.credits_text,
        "intro_text": setup.intro_text,
        "funder_logos_urls": [],
        "map_url": map_url,
        "updated_at": setup.updated_at,
    }


# ---------------------------------------------------------------------------
# Remote -> local (returning-user restore)
# ---------------------------------------------------------------------------


def row_to_trail(row: dict[str, Any]) -> Trail:
    return Trail(
        id=row["id"],
        group_code=row["group_code"],
        trail_type=row["trail_type"],
        display_name=row.get("display_name") or "",
        created_at=row.get("created_at") or utc_now_iso(),
        next_sequence=row.get("next_sequence") or 1,
    )


def row_to_poi(
    row: dict[str, Any], photo: bytes | None, thumbnail: bytes | None
) -> POIRecord:
    return POIRecord(
        id=row["id"],
        trail_id=row["trail_id"],
        group_code=row["group_code"],
        trail_type=row["trail_type"],
        sequence=row.get("sequence") or 0,
        filename=row.get("filename") or "",
        photo_blob=photo or b"",
        thumbnail_blob=thumbnail or b"",
        latitude=row.get("latitude"),
        longitude=row.get("longitude"),
        accuracy=row.get("accuracy"),
        captured_at=row.get("captured_at") or utc_now_iso(),
        site_name=row.get("site_name") or "",
        category=row.get("category") or DEFAULT_CATEGORY,
        description=row.get("description") or "",
        story=row.get("story") or "",
        url=row.get("url") or "",
        condition=row.get("condition") or DEFAULT_CONDITION,
        notes=row.get("notes") or "",
        completed=bool(row.get("completed")),
        rotation=row.get("rotation") or 0,
        created_by=row.get("created_by"),
        last_modified_by=row.get("last_modified_by"),
        last_modified_at=row.get("last_modified_at"),
    )
