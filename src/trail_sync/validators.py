"""
Input validation and normalisation helpers for trail_sync.

Validators follow a ``(is_valid, error_message)`` convention so callers can
decide whether a failure is fatal (repositories raise ``ValidationError``)
or merely a warning (the import engine records it per row).
"""

import re

from .errors import ValidationError

TRAIL_TYPES = ("graveyard", "parish")
ROTATIONS = (0, 90, 180, 270)
GROUP_CODE_MAX_LENGTH = 12
MAX_FUNDER_LOGOS = 6

_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# ---------------------------------------------------------------------------
# Error message formatting helpers
# ---------------------------------------------------------------------------


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Trail type")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


def normalize_email(email: str) -> str:
    """Return *email* trimmed and lowercased (the remote identity key)."""
    return email.strip().lower()


def _alnum_only(text: str) -> str:
    return "".join(ch for ch in text if ch.isalnum())


def derive_group_code(group_name: str) -> str:
    """
    Derive a short group code from a group name.

    Rule: first word only, lowercased, punctuation stripped, truncated to
    12 characters.  ``"Clonfert Trails"`` becomes ``"clonfert"``.
    """
    if not group_name.strip():
        return ""
    first_word = group_name.strip().split()[0]
    return _alnum_only(first_word.lower())[:GROUP_CODE_MAX_LENGTH]


def derive_group_code_from_email(email: str) -> str:
    """Derive a group code from the local part of an email address."""
    local_part = normalize_email(email).split("@", 1)[0]
    return _alnum_only(local_part)[:GROUP_CODE_MAX_LENGTH]


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def validate_email(email: str) -> tuple[bool, str]:
    """
    Validate an email address used as the device identity.

    Returns:
        Tuple of (is_valid, error_message).
    """
    if not email or not email.strip():
        return (False, format_validation_error("Email", "cannot be empty"))
    if not _EMAIL_PATTERN.match(normalize_email(email)):
        return (
            False,
            format_validation_error("Email", f"is not valid: '{email}'"),
        )
    return (True, "")


def validate_group_code(group_code: str) -> tuple[bool, str]:
    """
    Validate a group code.

    Validation rules:
        - Cannot be empty
        - Cannot contain '-' (it separates id segments)
        - At most 12 characters
    """
    if not group_code:
        return (
            False,
            format_validation_error("Group code", "cannot be empty"),
        )
    if "-" in group_code:
        return (
            False,
            format_validation_error("Group code", "cannot contain '-'"),
        )
    if len(group_code) > GROUP_CODE_MAX_LENGTH:
        return (
            False,
            format_validation_error(
                "Group code",
                f"exceeds {GROUP_CODE_MAX_LENGTH} characters",
            ),
        )
    return (True, "")


def validate_trail_type(trail_type: str) -> tuple[bool, str]:
    """Validate that *trail_type* is ``graveyard`` or ``parish``."""
    if trail_type not in TRAIL_TYPES:
        return (
            False,
            format_validation_error(
                "Trail type",
                f"must be one of {', '.join(TRAIL_TYPES)} (got '{trail_type}')",
            ),
        )
    return (True, "")


def validate_rotation(rotation: int) -> tuple[bool, str]:
    """Validate a photo rotation in degrees."""
    if rotation not in ROTATIONS:
        return (
            False,
            format_validation_error(
                "Rotation", f"must be one of 0, 90, 180, 270 (got {rotation})"
            ),
        )
    return (True, "")


def validate_coordinates(
    latitude: float | None, longitude: float | None
) -> tuple[bool, str]:
    """
    Validate a latitude/longitude pair.

    Both values must be present, finite numbers inside the WGS84 range.
    """
    if latitude is None or longitude is None:
        return (
            False,
            format_validation_error("GPS coordinates", "are missing"),
        )
    if latitude != latitude or longitude != longitude:
        return (
            False,
            format_validation_error("GPS coordinates", "are not numbers"),
        )
    if not (-90.0 <= latitude <= 90.0) or not (-180.0 <= longitude <= 180.0):
        return (
            False,
            format_validation_error("GPS coordinates", "are out of range"),
        )
    return (True, "")


def require(check: tuple[bool, str]) -> None:
    """Raise ``ValidationError`` when a validator result is a failure."""
    is_valid, message = check
    if not is_valid:
        raise ValidationError(message)
