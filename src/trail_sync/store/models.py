"""Pydantic models for the local store.

Defines the entity contracts persisted by the repositories:

- ``UserProfile``: singleton device profile, keyed by a fixed id.
- ``Trail``: a graveyard or parish trail for one community group.
- ``POIRecord``: one recorded site with photo, thumbnail and metadata.
- ``CreatePOIInput`` / ``UpdatePOIInput``: repository inputs for POIs.
- ``BrochureSetup``: brochure settings, one per trail.
- ``SyncQueueItem``: one outbound mutation awaiting remote propagation.
- ``SyncStats``: aggregate view over the sync queue.

Entity models are frozen; repositories produce modified copies with
``model_copy(update=...)``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

TrailType = Literal["graveyard", "parish"]

DEFAULT_CATEGORY = "Other"
DEFAULT_CONDITION = "Good"

POI_CATEGORIES = (
    "Monument",
    "Vernacular Building",
    "Holy Well",
    "Famine Site",
    "Historic Feature",
    "Natural Feature",
    "Grave",
    "Wrought Iron Gate",
    "Timber Gate",
    "Gate Piers",
    "Creamery Stand",
    "Stone Bridge",
    "Iron Bridge",
    "Timber Bridge",
    "Boreen",
    "Sruthán",
    "Stream",
    "River",
    "Lime Kiln",
    "Shed",
    "Post Box",
    "Phone Box",
    "Petrol Pump",
    "Ambush Site",
    "Battle Site",
    "Other",
)

POI_CONDITIONS = ("Good", "Fair", "Poor", "At Risk")

POI_BLOB_FIELDS = ("photo_blob", "thumbnail_blob")
BROCHURE_BLOB_FIELDS = ("cover_photo_blob", "map_blob")


class SyncOperation(str, Enum):
    """Mutation kinds recorded in the sync queue."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class EntityType(str, Enum):
    """Entity collections that propagate to the remote store."""

    TRAIL = "trail"
    POI = "poi"
    BROCHURE_SETUP = "brochure_setup"


def compute_completed(site_name: str, story: str) -> bool:
    """A POI is complete once it has both a site name and a story."""
    return bool(site_name.strip()) and bool(story.strip())


class UserProfile(BaseModel):
    """Singleton device profile.

    Attributes:
        id: Fixed singleton key (``"default"``).
        email: Normalised email; identifies the user across devices.
        name: Display name.
        group_name: Community group name.
        group_code: Short slug derived from the group name or email.
        graveyard_name: Optional secondary descriptor.
        created_at: ISO 8601 creation timestamp.
    """

    id: str
    email: str
    name: str
    group_name: str
    group_code: str
    graveyard_name: str | None = None
    created_at: str

    model_config = {"frozen": True}


class Trail(BaseModel):
    """A trail of POIs for one group and trail type."""

    id: str
    group_code: str
    trail_type: TrailType
    display_name: str
    created_at: str
    next_sequence: int = 1

    model_config = {"frozen": True}


class POIRecord(BaseModel):
    """One point of interest.

    ``photo_blob`` and ``thumbnail_blob`` are ``None`` when the record was
    loaded with ``include_blobs=False``.
    """

    id: str
    trail_id: str
    group_code: str
    trail_type: TrailType
    sequence: int
    filename: str
    photo_blob: bytes | None = None
    thumbnail_blob: bytes | None = None
    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = None
    coordinate_source: str | None = None
    captured_at: str
    site_name: str = ""
    category: str = DEFAULT_CATEGORY
    description: str = ""
    story: str = ""
    url: str = ""
    condition: str = DEFAULT_CONDITION
    notes: str = ""
    completed: bool = False
    rotation: int = 0
    created_by: str | None = None
    last_modified_by: str | None = None
    last_modified_at: str | None = None

    model_config = {"frozen": True}

    @field_validator("rotation", mode="before")
    @classmethod
    def _legacy_rotation(cls, value: Any) -> Any:
        # Records written before rotation existed carry no value.
        return 0 if value is None else value

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class CreatePOIInput(BaseModel):
    """Input for ``POIRepository.create_poi``.

    Photo bytes and the GPS triple are required (the GPS values may be
    ``None`` when no fix was available).  Any ``filename`` passed is ignored;
    the filename is always derived from the generated id.
    """

    trail_id: str
    group_code: str
    trail_type: TrailType
    sequence: int
    photo_blob: bytes
    thumbnail_blob: bytes
    latitude: float | None
    longitude: float | None
    accuracy: float | None
    captured_at: str
    filename: str | None = None
    coordinate_source: str | None = None
    site_name: str | None = None
    category: str | None = None
    description: str | None = None
    story: str | None = None
    url: str | None = None
    condition: str | None = None
    notes: str | None = None
    rotation: int = 0
    created_by: str | None = None
    last_modified_by: str | None = None
    last_modified_at: str | None = None


class UpdatePOIInput(BaseModel):
    """Partial patch for ``POIRecord``; only explicitly set fields apply."""

    site_name: str | None = None
    category: str | None = None
    description: str | None = None
    story: str | None = None
    url: str | None = None
    condition: str | None = None
    notes: str | None = None
    rotation: int | None = None
    latitude: float | None = None
    longitude: float | None = None
    accuracy: float | None = None
    coordinate_source: str | None = None


class BrochureSetup(BaseModel):
    """Brochure settings for one trail (``id == trail_id``)."""

    id: str
    trail_id: str
    cover_title: str = ""
    cover_photo_blob: bytes | None = None
    group_name: str = ""
    funder_text: str = ""
    credits_text: str = ""
    intro_text: str = ""
    map_blob: bytes | None = None
    funder_logos: list[bytes] = Field(default_factory=list)
    updated_at: str = ""

    model_config = {"frozen": True}


class SyncQueueItem(BaseModel):
    """One append-only outbound work record.

    Attributes:
        id: Unique item id.
        operation: ``create``, ``update`` or ``delete``.
        entity_type: ``trail``, ``poi`` or ``brochure_setup``.
        entity_id: Id of the mutated entity.
        payload: Opaque context; flagged ``_abandoned`` after the retry
            ceiling is reached.
        created_at: ISO 8601 enqueue timestamp (drain order).
        synced_at: ``None`` (or empty) while pending.
        attempts: Failed attempts so far.
    """

    id: str
    operation: SyncOperation
    entity_type: EntityType
    entity_id: str
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str
    synced_at: str | None = None
    attempts: int = 0

    model_config = {"frozen": True}

    @property
    def is_pending(self) -> bool:
        return not self.synced_at

    @property
    def is_abandoned(self) -> bool:
        return bool(self.payload.get("_abandoned"))


class SyncStats(BaseModel):
    """Aggregate queue statistics.

    ``poi_count`` and ``trail_count`` count distinct entities among items
    that synced successfully; ``synced_items`` counts those raw items.
    Abandoned items are reported separately.
    """

    poi_count: int = 0
    trail_count: int = 0
    synced_items: int = 0
    abandoned_items: int = 0
    pending_items: int = 0
    total_items: int = 0

    model_config = {"frozen": True}
