"""Path validation and text decoding for archive files.

Archives are produced on other devices and may be hand-edited between
export and import, so text members are decoded as UTF-8 first and fall back
to charset detection.
"""

from pathlib import Path

from charset_normalizer import from_bytes

from ..errors import ArchiveFormatError

# =============================================================================
# Path Validation
# =============================================================================


def validate_archive_path(path_str: str) -> Path:
    """Validate and resolve an input archive path.

    Raises:
        ValueError: If path is relative, doesn't exist, or is not a file.
    """
    path = Path(path_str).expanduser()
    if not path.is_absolute():
        raise ValueError(f"Path must be absolute: {path_str}")
    resolved = path.resolve()
    if not resolved.exists():
        raise ValueError(f"File not found: {path_str}")
    if not resolved.is_file():
        raise ValueError(f"Path is not a file: {path_str}")
    return resolved


def validate_output_path(path_str: str, base_dir: str | None = None) -> Path:
    """Validate an output path (the file need not exist, its parent must).

    A directory path is accepted; the caller picks the filename.

    Raises:
        ValueError: If path is relative, parent doesn't exist, or path is
            outside *base_dir*.
    """
    path = Path(path_str).expanduser()
    if not path.is_absolute():
        raise ValueError(f"Path must be absolute: {path_str}")
    resolved = path.resolve()
    parent = resolved if resolved.is_dir() else resolved.parent
    if not parent.exists():
        raise ValueError(f"Output parent directory not found: {parent}")
    if base_dir is not None:
        base_resolved = Path(base_dir).resolve()
        if not resolved.is_relative_to(base_resolved):
            raise ValueError(
                f"Output path is outside base directory: {resolved} not under {base_resolved}"
            )
    return resolved


# =============================================================================
# Text decoding
# =============================================================================


def decode_text(raw: bytes) -> tuple[str, str]:
    """Decode an archive text member.

    UTF-8 (with or without BOM) is tried first; anything else goes through
    charset-normalizer.

    Returns:
        Tuple of (content_string, encoding).

    Raises:
        ArchiveFormatError: If no encoding could be determined.
    """
    if not raw:
        return ("", "utf-8")
    try:
        return (raw.decode("utf-8-sig"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        raise ArchiveFormatError("Could not determine text encoding of archive file")
    return (str(result), result.encoding)
