"""Human-facing archive members: the stories template and the KML map."""

from __future__ import annotations

from collections.abc import Sequence
from xml.sax.saxutils import escape

from ..store.models import POIRecord

_XML_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def escape_xml(text: str) -> str:
    return escape(text, _XML_ENTITIES)


def build_stories_template(pois: Sequence[POIRecord], trail_label: str) -> str:
    """Fill-in-the-blank story sheet, one entry per POI in sequence order."""
    lines = [
        f"{trail_label.upper()} — Add your 100–200 word story under each POI",
        "Open in Word, fill in the brackets, save as .txt, and email to your coordinator.",
        "",
        "—" * 50,
        "",
    ]
    for poi in sorted(pois, key=lambda p: p.sequence):
        lines.append(f"{poi.sequence}. {poi.filename}")
        lines.append("[Type your 100–200 word story here]")
        lines.append("")
        lines.append("")
    return "\n".join(lines)


def has_coordinates(pois: Sequence[POIRecord]) -> bool:
    return any(p.has_coordinates for p in pois)


def build_kml(pois: Sequence[POIRecord], trail_label: str) -> str:
    """KML document with one Placemark per geotagged POI."""
    placemarks = "".join(
        f"""
  <Placemark>
    <name>{poi.sequence}. {escape_xml(poi.filename)}</name>
    <description>{escape_xml(poi.site_name or poi.filename)}</description>
    <Point>
      <coordinates>{poi.longitude},{poi.latitude},0</coordinates>
    </Point>
  </Placemark>"""
        for poi in sorted(pois, key=lambda p: p.sequence)
        if poi.has_coordinates
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <name>{escape_xml(trail_label)}</name>{placemarks}
  </Document>
</kml>"""
