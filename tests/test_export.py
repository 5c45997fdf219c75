"""Tests for the export packager."""

import io
import json
import zipfile

import pytest

from trail_sync.errors import NothingToExportError
from trail_sync.exchange import ExportPackager
from trail_sync.exchange.csv_codec import decode_table
from trail_sync.exchange.export import export_zip_filename, slugify


def _open(data):
    return zipfile.ZipFile(io.BytesIO(data))


@pytest.fixture
def packager(repos):
    return ExportPackager(repos)


class TestFilename:
    def test_graveyard_name_drives_filename(self, trail):
        assert export_zip_filename(None, [trail]) == "clonfert_historic_graves_trail_export.zip"

    def test_punctuation_slugified(self, repos):
        trail = repos.trails.create_trail("stmarys", "graveyard", "St. Mary's Abbey Graveyard Trail")
        assert export_zip_filename(None, [trail]) == (
            "st_mary_s_abbey_historic_graves_trail_export.zip"
        )

    def test_parish_only_falls_back_to_group_code(self, repos):
        parish = repos.trails.create_trail("clonfert", "parish", "Clonfert Parish Trail")
        profile = repos.profiles.create_profile("mary@example.ie", "Mary", "Kilmore Group")
        assert export_zip_filename(profile, [parish]) == "kilmore_historic_graves_trail_export.zip"

    def test_slugify(self):
        assert slugify("  Ardmore -- Old  ") == "ardmore_old"


class TestBuildArchive:
    def test_layout(self, packager, trail, poi_factory):
        first = poi_factory(trail, site_name="High Cross")
        second = poi_factory(trail, site_name="Holy Well", latitude=None, longitude=None)
        with _open(packager.build_archive()) as archive:
            names = set(archive.namelist())
            assert names == {
                "graveyard/trail_graveyard.json",
                f"graveyard/{first.filename}",
                f"graveyard/{second.filename}",
                "graveyard/clonfert_graveyard.csv",
                "graveyard/clonfert_graveyard_stories.txt",
                "graveyard/clonfert_graveyard.kml",
            }
            manifest = json.loads(archive.read("graveyard/trail_graveyard.json"))
            kml = archive.read("graveyard/clonfert_graveyard.kml").decode()
            stories = archive.read("graveyard/clonfert_graveyard_stories.txt").decode()

        assert manifest["schemaVersion"] == "1.0"
        assert manifest["trailId"] == "clonfert-graveyard"
        assert manifest["groupCode"] == "clonfert"
        assert manifest["poiCount"] == 2
        assert manifest["nextSequence"] == 3
        assert manifest["lastModifiedAt"]
        assert kml.count("<Placemark>") == 1
        assert "High Cross" in kml
        assert stories.startswith("CLONFERT GRAVEYARD TRAIL")
        assert f"2. {second.filename}" in stories

    def test_photos_stored_byte_identical(self, packager, trail, poi_factory):
        poi = poi_factory(trail)
        with _open(packager.build_archive()) as archive:
            info = archive.getinfo(f"graveyard/{poi.filename}")
            assert info.compress_type == zipfile.ZIP_STORED
            assert archive.read(info) == poi.photo_blob

    def test_empty_photo_not_written(self, packager, trail, poi_factory):
        poi = poi_factory(trail, photo_blob=b"")
        with _open(packager.build_archive()) as archive:
            assert f"graveyard/{poi.filename}" not in archive.namelist()
            _, records = decode_table(archive.read("graveyard/clonfert_graveyard.csv").decode())
        assert records[0]["filename"] == poi.filename

    def test_csv_rows(self, packager, trail, poi_factory):
        poi = poi_factory(trail, story='He said, "hello"\nnext line')
        with _open(packager.build_archive()) as archive:
            _, records = decode_table(archive.read("graveyard/clonfert_graveyard.csv").decode())
        assert records[0]["filename"] == poi.filename
        assert records[0]["story"] == 'He said, "hello"\nnext line'

    def test_no_kml_without_coordinates(self, packager, trail, poi_factory):
        poi_factory(trail, latitude=None, longitude=None)
        with _open(packager.build_archive()) as archive:
            assert not any(n.endswith(".kml") for n in archive.namelist())

    def test_empty_trails_left_out(self, packager, repos, trail, poi_factory):
        repos.trails.create_trail("clonfert", "parish", "Clonfert Parish Trail")
        poi_factory(trail)
        with _open(packager.build_archive()) as archive:
            assert not any(n.startswith("parish/") for n in archive.namelist())

    def test_both_trails(self, packager, repos, trail, poi_factory):
        parish = repos.trails.create_trail("clonfert", "parish", "Clonfert Parish Trail")
        poi_factory(trail)
        poi_factory(parish)
        with _open(packager.build_archive()) as archive:
            names = archive.namelist()
        assert "graveyard/trail_graveyard.json" in names
        assert "parish/trail_parish.json" in names
        assert "parish/clonfert_parish.csv" in names

    def test_nothing_to_export(self, packager, trail):
        with pytest.raises(NothingToExportError):
            packager.build_archive()

    def test_write_archive_into_directory(self, packager, trail, poi_factory, tmp_path):
        poi_factory(trail)
        target = packager.write_archive(tmp_path)
        assert target == tmp_path / "clonfert_historic_graves_trail_export.zip"
        assert zipfile.is_zipfile(target)

    def test_write_archive_explicit_path(self, packager, trail, poi_factory, tmp_path):
        poi_factory(trail)
        target = packager.write_archive(tmp_path / "mine.zip", [trail])
        assert target.name == "mine.zip"
