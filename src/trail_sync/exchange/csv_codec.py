"""POI table codec.

One header row plus one row per POI.  Fields containing a comma, quote or
line break are wrapped in double quotes with internal quotes doubled, so
stories with embedded newlines survive the round trip.  Reading tracks
quote state across line boundaries (``csv`` module with ``newline=""``)
and drops blank lines.
"""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable, Sequence

from ..store.models import POIRecord

CSV_HEADER = (
    "filename",
    "siteName",
    "category",
    "description",
    "story",
    "url",
    "condition",
    "notes",
    "latitude",
    "longitude",
    "accuracy",
    "capturedAt",
    "sequence",
    "trailType",
    "groupCode",
    "createdBy",
    "lastModifiedBy",
    "lastModifiedAt",
)


def escape_csv_value(value: str) -> str:
    """Quote *value* if it contains a comma, quote or line break."""
    if any(ch in value for ch in ('"', ",", "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def _text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def poi_to_csv_row(poi: POIRecord) -> list[str]:
    return [
        _text(value)
        for value in (
            poi.filename,
            poi.site_name,
            poi.category,
            poi.description,
            poi.story,
            poi.url,
            poi.condition,
            poi.notes,
            poi.latitude,
            poi.longitude,
            poi.accuracy,
            poi.captured_at,
            poi.sequence,
            poi.trail_type,
            poi.group_code,
            poi.created_by,
            poi.last_modified_by,
            poi.last_modified_at,
        )
    ]


def encode_rows(header: Sequence[str], rows: Iterable[Sequence[str]]) -> str:
    """Render a table with ``\\n`` line endings."""
    lines = [",".join(escape_csv_value(v) for v in header)]
    lines += [",".join(escape_csv_value(v) for v in row) for row in rows]
    return "\n".join(lines)


def encode_pois(pois: Iterable[POIRecord]) -> str:
    return encode_rows(CSV_HEADER, (poi_to_csv_row(p) for p in pois))


def decode_rows(content: str) -> list[list[str]]:
    """Split *content* into records, honouring quoted commas and newlines.

    Lines that are empty or whitespace-only are dropped.
    """
    reader = csv.reader(io.StringIO(content, newline=""), strict=False)
    return [row for row in reader if any(value.strip() for value in row)]


def decode_table(content: str) -> tuple[list[str], list[dict[str, str]]]:
    """Parse a table into its header and one dict per data row.

    Missing trailing cells read as ``""``; unknown columns are kept.
    """
    rows = decode_rows(content)
    if not rows:
        return ([], [])
    header = [name.strip() for name in rows[0]]
    records = [
        {name: (row[i] if i < len(row) else "") for i, name in enumerate(header)}
        for row in rows[1:]
    ]
    return (header, records)
