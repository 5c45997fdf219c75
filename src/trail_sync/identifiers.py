"""Deterministic trail ids and coordination-free POI ids.

Trail ids are ``{group_code}-{trail_type}`` so the same group gets the same
id on every device, which is what makes remote upsert-by-id safe.

POI ids encode the group code, a one-letter trail-type tag and a timestamp
with millisecond precision::

    clonfert-g-200225-120000-123
    {code}  -{g|p}-DDMMYY-HHmmss-SSS

Earlier releases used a fixed-width sequence suffix (``clonfert-g-001``);
``trail_id_from_poi_id`` still understands that form.
"""

from __future__ import annotations

import re
import threading
from datetime import datetime, timedelta, timezone

from .validators import TRAIL_TYPES

TRAIL_TYPE_TAGS: dict[str, str] = {"graveyard": "g", "parish": "p"}
_TAG_TRAIL_TYPES: dict[str, str] = {v: k for k, v in TRAIL_TYPE_TAGS.items()}

POI_ID_PATTERN = re.compile(
    r"^(?P<group_code>.+)-(?P<tag>[gp])-(?P<stamp>\d{6}-\d{6}-\d{3})$"
)
LEGACY_POI_ID_PATTERN = re.compile(
    r"^(?P<group_code>.+)-(?P<tag>[gp])-(?P<seq>\d{3})$"
)

_lock = threading.Lock()
_last_issued: datetime | None = None


def make_trail_id(group_code: str, trail_type: str) -> str:
    """Return the deterministic trail id for a group and trail type."""
    return f"{group_code}-{trail_type}"


def trail_type_tag(trail_type: str) -> str:
    if trail_type not in TRAIL_TYPE_TAGS:
        raise ValueError(
            f"Unknown trail type '{trail_type}'; expected one of {TRAIL_TYPES}"
        )
    return TRAIL_TYPE_TAGS[trail_type]


def _next_instant(now: datetime | None) -> datetime:
    """Return a millisecond instant strictly after the last one issued.

    Two POIs created inside the same millisecond on one device would
    otherwise share an id.
    """
    global _last_issued
    current = now or datetime.now(timezone.utc)
    current = current.replace(microsecond=(current.microsecond // 1000) * 1000)
    with _lock:
        if _last_issued is not None and current <= _last_issued:
            current = _last_issued + timedelta(milliseconds=1)
        _last_issued = current
    return current


def generate_poi_id(
    group_code: str, trail_type: str, now: datetime | None = None
) -> str:
    """Mint a new POI id from the current (UTC) time.

    Args:
        group_code: Owning group code.
        trail_type: ``graveyard`` or ``parish``.
        now: Clock override for tests.  Ids stay unique per process even
            when the same instant is passed twice.
    """
    tag = trail_type_tag(trail_type)
    instant = _next_instant(now)
    stamp = instant.strftime("%d%m%y-%H%M%S")
    millis = instant.microsecond // 1000
    return f"{group_code}-{tag}-{stamp}-{millis:03d}"


def generate_filename(poi_id: str) -> str:
    """Return the photo filename for a POI: ``{id}.jpg``."""
    return f"{poi_id}.jpg"


def trail_id_from_poi_id(poi_id: str) -> str:
    """Derive the owning trail id from a POI id.

    Supports both the timestamp format and the legacy three-digit format.
    Ids matching neither are returned unchanged.
    """
    match = POI_ID_PATTERN.match(poi_id) or LEGACY_POI_ID_PATTERN.match(
        poi_id
    )
    if match is None:
        return poi_id
    trail_type = _TAG_TRAIL_TYPES[match.group("tag")]
    return make_trail_id(match.group("group_code"), trail_type)
