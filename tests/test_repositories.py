"""Tests for the profile, trail, POI and brochure repositories."""

import pytest

from trail_sync.errors import (
    DuplicateKeyError,
    EntityNotFoundError,
    ValidationError,
)
from trail_sync.store import BrochureSetup, Repositories, SyncOperation
from trail_sync.store.models import POIRecord


def _queued(repos):
    return [(i.operation.value, i.entity_type.value, i.entity_id) for i in repos.queue.all_items()]


class TestProfileRepository:
    def test_create_profile_sets_identity(self, repos):
        profile = repos.profiles.create_profile(" Mary@Example.IE ", "Mary", "Clonfert Trails")
        assert profile.email == "mary@example.ie"
        assert profile.group_code == "clonfert"
        assert repos.profiles.get_identity() == "mary@example.ie"
        assert repos.profiles.get_profile() == profile

    def test_defaults_from_email(self, repos):
        profile = repos.profiles.create_profile("mary.kelly@example.ie", "Mary")
        assert profile.group_code == "marykelly"
        assert profile.group_name == "Mary's recordings"

    def test_invalid_email(self, repos):
        with pytest.raises(ValidationError):
            repos.profiles.create_profile("not-an-email", "Mary")

    def test_profile_not_queued(self, repos):
        repos.profiles.create_profile("a@b.ie", "A")
        assert repos.queue.all_items() == []

    def test_clear_identity(self, repos):
        repos.profiles.set_identity("A@B.ie")
        repos.profiles.clear_identity()
        assert repos.profiles.get_identity() is None


class TestTrailRepository:
    def test_create_trail(self, repos, trail):
        assert trail.id == "clonfert-graveyard"
        assert trail.next_sequence == 1
        assert _queued(repos) == [("create", "trail", "clonfert-graveyard")]

    def test_duplicate_trail(self, repos, trail):
        with pytest.raises(DuplicateKeyError):
            repos.trails.create_trail("clonfert", "graveyard", "Again")

    def test_invalid_trail_type(self, repos):
        with pytest.raises(ValidationError):
            repos.trails.create_trail("clonfert", "abbey", "Abbey")

    def test_increment_and_reserve(self, repos, trail):
        assert repos.trails.increment_trail_sequence(trail.id) == 2
        assert repos.trails.reserve_sequence(trail.id, 7) == 8
        # never lowers
        assert repos.trails.reserve_sequence(trail.id, 3) == 8
        assert repos.trails.require_trail(trail.id).next_sequence == 8

    def test_increment_unknown_trail(self, repos):
        with pytest.raises(EntityNotFoundError):
            repos.trails.increment_trail_sequence("nowhere-graveyard")

    def test_reset_is_local_only(self, repos, trail, poi_factory):
        poi_factory(trail)
        poi_factory(trail)
        before = len(repos.queue.all_items())
        assert repos.trails.reset_trail(trail.id) == 2
        assert repos.pois.count_pois(trail.id) == 0
        assert repos.trails.require_trail(trail.id).next_sequence == 1
        assert len(repos.queue.all_items()) == before

    def test_delete_trail_cascades(self, repos, trail, poi_factory):
        poi = poi_factory(trail)
        repos.brochures.save_brochure_setup(BrochureSetup(id=trail.id, trail_id=trail.id))
        repos.trails.set_active_trail_id(trail.id)
        repos.trails.delete_trail(trail.id)
        assert repos.trails.get_trail(trail.id) is None
        assert repos.pois.get_poi_by_id(poi.id) is None
        assert repos.brochures.get_brochure_setup(trail.id) is None
        assert repos.trails.get_active_trail_id() is None
        tail = _queued(repos)[-2:]
        assert tail == [("delete", "poi", poi.id), ("delete", "trail", trail.id)]

    def test_groups(self, repos, trail):
        repos.trails.create_trail("clonfert", "parish", "Clonfert Parish Trail")
        repos.trails.create_trail("ardmore", "parish", "Ardmore Parish Trail")
        assert {t.id for t in repos.trails.get_trails_by_group_code("clonfert")} == {
            "clonfert-graveyard",
            "clonfert-parish",
        }
        assert len(repos.trails.list_trails()) == 3


class TestPOIRepository:
    def test_create_derives_id_and_filename(self, repos, trail, poi_factory):
        poi = poi_factory(
            trail, site_name="High Cross", story="Legend of the cross"
        )
        assert poi.id.startswith("clonfert-g-")
        assert poi.filename == f"{poi.id}.jpg"
        assert poi.completed is True
        assert poi.category == "Other"
        assert poi.condition == "Good"
        stored = repos.pois.get_poi_by_id(poi.id)
        assert stored.photo_blob == poi.photo_blob
        assert ("create", "poi", poi.id) in _queued(repos)

    def test_supplied_filename_ignored(self, repos, trail, poi_factory):
        poi = poi_factory(trail, filename="holiday.jpg")
        assert poi.filename == f"{poi.id}.jpg"

    def test_bad_rotation_rejected(self, repos, trail, poi_factory):
        with pytest.raises(ValidationError):
            poi_factory(trail, rotation=45)

    def test_list_without_blobs(self, repos, trail, poi_factory):
        poi_factory(trail)
        (listed,) = repos.pois.get_pois_by_trail_id(trail.id, include_blobs=False)
        assert listed.photo_blob is None
        assert listed.thumbnail_blob is None

    def test_update_recomputes_completed(self, repos, trail, poi_factory):
        poi = poi_factory(trail, site_name="High Cross")
        assert poi.completed is False
        updated = repos.pois.update_poi(poi.id, {"story": "Legend of the cross"})
        assert updated.completed is True
        assert updated.last_modified_at

    def test_notes_only_update_keeps_completed(self, repos, trail, poi_factory):
        poi = poi_factory(trail, site_name="High Cross", story="Legend")
        # A stale stored flag is left alone when no completion field changes.
        repos.store.pois.update(poi.id, {"completed": False})
        updated = repos.pois.update_poi(poi.id, {"notes": "check lichen"})
        assert updated.completed is False
        assert updated.notes == "check lichen"

    def test_description_does_not_complete(self, repos, trail, poi_factory):
        poi = poi_factory(trail, site_name="High Cross", description="Carved stone")
        assert poi.completed is False
        updated = repos.pois.update_poi(poi.id, {"description": "Carved sandstone"})
        assert updated.completed is False

    def test_clearing_story_uncompletes(self, repos, trail, poi_factory):
        poi = poi_factory(trail, site_name="High Cross", story="Legend")
        assert repos.pois.update_poi(poi.id, {"story": "  "}).completed is False

    def test_missing_rotation_reads_as_zero(self, repos, trail, poi_factory):
        poi = poi_factory(trail)
        doc = repos.store.pois.get(poi.id)
        del doc["rotation"]
        repos.store.pois.put(doc)
        assert "rotation" not in repos.store.pois.get(poi.id, include_blobs=False)
        stored = repos.pois.get_poi_by_id(poi.id)
        assert stored.rotation == 0
        assert stored.photo_blob == poi.photo_blob

    def test_update_rotation_validated(self, repos, trail, poi_factory):
        poi = poi_factory(trail)
        with pytest.raises(ValidationError):
            repos.pois.update_poi(poi.id, {"rotation": 100})
        assert repos.pois.update_poi(poi.id, {"rotation": 270}).rotation == 270

    def test_update_unknown(self, repos):
        with pytest.raises(EntityNotFoundError):
            repos.pois.update_poi("missing", {"notes": "x"})

    def test_update_keeps_photo(self, repos, trail, poi_factory):
        poi = poi_factory(trail)
        repos.pois.update_poi(poi.id, {"site_name": "Font"})
        assert repos.pois.get_poi_by_id(poi.id).photo_blob == poi.photo_blob

    def test_delete_leaves_gaps(self, repos, trail, poi_factory):
        first, second, third = (poi_factory(trail) for _ in range(3))
        assert repos.pois.delete_poi(second.id) is True
        assert [p.sequence for p in repos.pois.get_pois_by_trail_id(trail.id)] == [1, 3]
        assert ("delete", "poi", second.id) in _queued(repos)

    def test_delete_unknown_is_noop(self, repos):
        assert repos.pois.delete_poi("missing") is False

    def test_renumber_after_delete(self, repos, trail, poi_factory):
        first, second, third = (poi_factory(trail) for _ in range(3))
        repos.pois.delete_poi(first.id)
        renumbered = repos.pois.renumber_trail(trail.id)
        assert [(p.id, p.sequence) for p in renumbered] == [(second.id, 1), (third.id, 2)]

    def test_reorder(self, repos, trail, poi_factory):
        first, second, third = (poi_factory(trail) for _ in range(3))
        moved = repos.pois.reorder_poi(trail.id, third.id, "up")
        assert [p.id for p in moved] == [first.id, third.id, second.id]
        assert [p.sequence for p in moved] == [1, 2, 3]
        stored = repos.pois.get_pois_by_trail_id(trail.id, include_blobs=False)
        assert [p.id for p in stored] == [first.id, third.id, second.id]

    def test_reorder_edges_are_noops(self, repos, trail, poi_factory):
        first, second = poi_factory(trail), poi_factory(trail)
        assert [p.id for p in repos.pois.reorder_poi(trail.id, first.id, "up")] == [
            first.id,
            second.id,
        ]
        assert [p.id for p in repos.pois.reorder_poi(trail.id, second.id, "down")] == [
            first.id,
            second.id,
        ]

    def test_reorder_bad_direction(self, repos, trail, poi_factory):
        poi = poi_factory(trail)
        with pytest.raises(ValidationError):
            repos.pois.reorder_poi(trail.id, poi.id, "sideways")

    def test_delete_by_trail_propagate(self, repos, trail, poi_factory):
        poi = poi_factory(trail)
        assert repos.pois.delete_pois_by_trail_id(trail.id, propagate=True) == 1
        assert ("delete", "poi", poi.id) in _queued(repos)

    def test_put_restored_is_not_queued(self, repos, trail, poi_factory):
        poi = poi_factory(trail)
        before = len(repos.queue.all_items())
        restored = POIRecord(**{**poi.model_dump(), "id": "clonfert-g-010125-000000-000"})
        repos.pois.put_restored_poi(restored)
        assert len(repos.queue.all_items()) == before


class TestBrochureRepository:
    def test_round_trip_logos(self, repos, trail):
        setup = BrochureSetup(
            id=trail.id,
            trail_id=trail.id,
            cover_title="Clonfert",
            funder_logos=[b"logo-1", b"logo-2"],
        )
        saved = repos.brochures.save_brochure_setup(setup)
        assert saved.updated_at
        loaded = repos.brochures.get_brochure_setup(trail.id)
        assert loaded.funder_logos == [b"logo-1", b"logo-2"]
        assert repos.queue.all_items()[-1].operation is SyncOperation.CREATE

    def test_too_many_logos(self, repos, trail):
        setup = BrochureSetup(id=trail.id, trail_id=trail.id, funder_logos=[b"x"] * 7)
        with pytest.raises(ValidationError, match="At most 6"):
            repos.brochures.save_brochure_setup(setup)

    def test_id_must_match_trail(self, repos, trail):
        with pytest.raises(ValidationError):
            repos.brochures.save_brochure_setup(BrochureSetup(id="other", trail_id=trail.id))


class TestSyncDisabled:
    def test_nothing_queued_when_disabled(self, store):
        repos = Repositories.create(store, sync_enabled=False)
        repos.trails.create_trail("clonfert", "parish", "Parish")
        assert repos.queue.all_items() == []
