"""Tests for archive path validation and text decoding."""

import pytest

from trail_sync.exchange.files import decode_text, validate_archive_path, validate_output_path


class TestDecodeText:
    def test_utf8(self):
        assert decode_text("Seán's well".encode("utf-8")) == ("Seán's well", "utf-8")

    def test_utf8_bom_stripped(self):
        content, encoding = decode_text(b"\xef\xbb\xbffilename,siteName")
        assert content == "filename,siteName"
        assert encoding == "utf-8"

    def test_empty(self):
        assert decode_text(b"") == ("", "utf-8")

    def test_legacy_encoding_detected(self):
        raw = ("Cill Mhic Réill, Teampall Mór agus an Tobar Naofa. " * 10).encode("cp1252")
        content, encoding = decode_text(raw)
        assert "Réill" in content
        assert encoding != "utf-8"


class TestArchivePath:
    def test_relative_rejected(self):
        with pytest.raises(ValueError, match="absolute"):
            validate_archive_path("exports/trail.zip")

    def test_missing(self, tmp_path):
        with pytest.raises(ValueError, match="File not found"):
            validate_archive_path(str(tmp_path / "missing.zip"))

    def test_directory_rejected(self, tmp_path):
        with pytest.raises(ValueError, match="not a file"):
            validate_archive_path(str(tmp_path))

    def test_existing_file(self, tmp_path):
        archive = tmp_path / "trail.zip"
        archive.write_bytes(b"PK")
        assert validate_archive_path(str(archive)) == archive.resolve()


class TestOutputPath:
    def test_directory_accepted(self, tmp_path):
        assert validate_output_path(str(tmp_path)) == tmp_path.resolve()

    def test_missing_parent(self, tmp_path):
        with pytest.raises(ValueError, match="parent directory not found"):
            validate_output_path(str(tmp_path / "nope" / "out.zip"))

    def test_outside_base_dir(self, tmp_path):
        inside = tmp_path / "exports"
        inside.mkdir()
        with pytest.raises(ValueError, match="outside base directory"):
            validate_output_path(str(tmp_path / "out.zip"), base_dir=str(inside))
