"""Trail archive exchange: ZIP export and two-phase import."""

from .csv_codec import CSV_HEADER, decode_table, encode_pois, escape_csv_value
from .export import ExportPackager, export_zip_filename, slugify
from .files import decode_text, validate_archive_path, validate_output_path
from .importer import ImportEngine, read_manifest
from .models import (
    SCHEMA_VERSION,
    ConflictDetails,
    ImportResult,
    ImportStatus,
    ParsedPOIRow,
    TrailManifest,
)

__all__ = [
    "CSV_HEADER",
    "SCHEMA_VERSION",
    "ConflictDetails",
    "ExportPackager",
    "ImportEngine",
    "ImportResult",
    "ImportStatus",
    "ParsedPOIRow",
    "TrailManifest",
    "decode_table",
    "decode_text",
    "encode_pois",
    "escape_csv_value",
    "export_zip_filename",
    "read_manifest",
    "slugify",
    "validate_archive_path",
    "validate_output_path",
]
