"""Tests for trail and POI identifiers."""

from datetime import datetime, timezone

import pytest

from trail_sync import identifiers
from trail_sync.identifiers import (
    POI_ID_PATTERN,
    generate_filename,
    generate_poi_id,
    make_trail_id,
    trail_id_from_poi_id,
    trail_type_tag,
)

NOON = datetime(2025, 2, 20, 12, 0, 0, 123456, tzinfo=timezone.utc)


class TestTrailIds:
    def test_trail_id_is_deterministic(self):
        assert make_trail_id("clonfert", "graveyard") == "clonfert-graveyard"
        assert make_trail_id("clonfert", "parish") == "clonfert-parish"

    def test_tags(self):
        assert trail_type_tag("graveyard") == "g"
        assert trail_type_tag("parish") == "p"

    def test_unknown_type_rejected(self):
        with pytest.raises(ValueError, match="Unknown trail type"):
            trail_type_tag("cathedral")


class TestPOIIds:
    @pytest.fixture(autouse=True)
    def _fresh_clock(self, monkeypatch):
        monkeypatch.setattr(identifiers, "_last_issued", None)

    def test_format(self):
        poi_id = generate_poi_id("clonfert", "graveyard", now=NOON.replace(year=2031))
        assert POI_ID_PATTERN.match(poi_id)
        assert poi_id.startswith("clonfert-g-200231-120000-")

    def test_same_instant_gives_distinct_ids(self):
        instant = datetime(2032, 1, 1, 9, 30, 0, tzinfo=timezone.utc)
        first = generate_poi_id("clonfert", "parish", now=instant)
        second = generate_poi_id("clonfert", "parish", now=instant)
        assert first != second
        assert first.endswith("-000")
        assert second.endswith("-001")

    def test_filename_derives_from_id(self):
        assert generate_filename("clonfert-g-200225-120000-123") == (
            "clonfert-g-200225-120000-123.jpg"
        )


class TestTrailIdFromPoiId:
    """Owning trail is recoverable from both id generations."""

    def test_timestamp_format(self):
        assert trail_id_from_poi_id("clonfert-g-200225-120000-123") == "clonfert-graveyard"

    def test_legacy_format(self):
        assert trail_id_from_poi_id("clonfert-p-007") == "clonfert-parish"

    def test_unrecognised_returned_unchanged(self):
        assert trail_id_from_poi_id("something-else") == "something-else"
