"""Storage-boundary representation of binary values.

Photos, thumbnails, logos and map images are stored as raw byte buffers.
Databases written by earlier releases may instead hold a JSON text envelope
``{"type": "image/jpeg", "data": "<base64>"}`` for the same field.  Both are
modelled as a tagged variant and normalised to ``bytes`` immediately on read;
nothing above the repository layer ever sees the envelope.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RawBytes:
    """Current storage format: the bytes themselves."""

    data: bytes


@dataclass(frozen=True, slots=True)
class LegacyBlobLike:
    """Legacy storage format: base64 payload with an optional MIME type."""

    data: bytes
    mime_type: str | None = None


StoredBlob = RawBytes | LegacyBlobLike


def _decode_envelope(text: str) -> LegacyBlobLike:
    try:
        envelope = json.loads(text)
        payload = base64.b64decode(envelope["data"], validate=True)
    except (ValueError, KeyError, TypeError, binascii.Error) as exc:
        raise ValueError(f"Unreadable legacy blob envelope: {exc}") from exc
    return LegacyBlobLike(data=payload, mime_type=envelope.get("type"))


def classify(value: object) -> StoredBlob:
    """Tag a value read from the store as raw bytes or a legacy envelope.

    Raises:
        ValueError: If *value* is neither form.
    """
    match value:
        case RawBytes() | LegacyBlobLike():
            return value
        case bytes() | bytearray() | memoryview():
            return RawBytes(bytes(value))
        case str():
            return _decode_envelope(value)
        case _:
            raise ValueError(
                f"Unsupported stored blob type: {type(value).__name__}"
            )


def to_bytes(value: object) -> bytes:
    """Normalise any stored blob variant to ``bytes``."""
    return classify(value).data


def to_storage(data: bytes | bytearray | memoryview) -> bytes:
    """Return the value to persist for *data* (always raw bytes)."""
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise TypeError(
            f"Binary fields must be bytes, got {type(data).__name__}"
        )
    return bytes(data)


def legacy_envelope(data: bytes, mime_type: str = "image/jpeg") -> str:
    """Encode *data* the way legacy databases stored it."""
    return json.dumps(
        {"type": mime_type, "data": base64.b64encode(data).decode("ascii")}
    )
