"""Shared pytest fixtures for trail-sync tests."""

from __future__ import annotations

from typing import Any, Callable

import pytest

from trail_sync.config import Config
from trail_sync.core.remote import RemoteStoreError
from trail_sync.store import CreatePOIInput, LocalStore, Repositories

JPEG = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + bytes(range(256)) + b"\xff\xd9"
THUMB = b"\xff\xd8\xff\xe0thumb\xff\xd9"


class FakeRemote:
    """In-memory stand-in for ``RemoteStoreClient``.

    Tables are dicts keyed by the conflict column.  Set ``fail`` to a
    predicate ``(method, table_or_bucket, key) -> bool`` to make matching
    calls raise ``RemoteStoreError``.
    """

    base_url = "https://remote.example.org"

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.objects: dict[str, bytes] = {}
        self.calls: list[tuple[str, str, str]] = []
        self.fail: Callable[[str, str, str], bool] = lambda *_: False

    def _check(self, method: str, target: str, key: str) -> None:
        self.calls.append((method, target, key))
        if self.fail(method, target, key):
            raise RemoteStoreError(f"{method} {target} {key} failed", status_code=503)

    def upsert(self, table: str, row: dict, on_conflict: str = "id") -> list[dict]:
        key = str(row[on_conflict])
        self._check("upsert", table, key)
        rows = self.tables.setdefault(table, {})
        rows[key] = {**rows.get(key, {}), **row}
        return [rows[key]]

    def update(self, table: str, values: dict, column: str, value: Any) -> list[dict]:
        self._check("update", table, str(value))
        matched = [
            row for row in self.tables.get(table, {}).values() if row.get(column) == value
        ]
        for row in matched:
            row.update(values)
        return [{"id": row.get("id")} for row in matched]

    def delete(self, table: str, column: str, value: Any) -> None:
        self._check("delete", table, str(value))
        rows = self.tables.get(table, {})
        for key in [k for k, row in rows.items() if row.get(column) == value]:
            del rows[key]

    def select(self, table: str, column: str, value: Any) -> list[dict]:
        self._check("select", table, str(value))
        return [
            dict(row) for row in self.tables.get(table, {}).values() if row.get(column) == value
        ]

    def upload(self, bucket: str, path: str, data: bytes, content_type: str = "image/jpeg") -> None:
        self._check("upload", bucket, path)
        self.objects[f"{bucket}/{path}"] = data

    def create_signed_url(self, bucket: str, path: str, expires_in: int) -> str:
        return f"{self.base_url}/storage/v1/object/sign/{bucket}/{path}?token=t"

    def download(self, url: str) -> bytes:
        self._check("download", "storage", url)
        key = url.split("/object/sign/", 1)[-1].split("?", 1)[0]
        if key not in self.objects:
            raise RemoteStoreError(f"GET {url} returned 404", status_code=404)
        return self.objects[key]

    def validate_connection(self) -> bool:
        self._check("validate", "", "")
        return True


@pytest.fixture
def store(tmp_path):
    """An open, fully migrated store in a temporary directory."""
    local = LocalStore(tmp_path / "trail_sync.db").open()
    yield local
    local.close()


@pytest.fixture
def repos(store):
    return Repositories.create(store)


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def config(tmp_path):
    return Config(
        remote_url="https://remote.example.org",
        remote_key="service-key",
        db_path=str(tmp_path / "trail_sync.db"),
    )


@pytest.fixture
def trail(repos):
    """The ``clonfert`` graveyard trail."""
    return repos.trails.create_trail("clonfert", "graveyard", "Clonfert Graveyard Trail")


@pytest.fixture
def poi_factory(repos):
    """Create POIs on a trail, numbering them from the trail's counter."""

    def _create(trail, **overrides: Any):
        sequence = overrides.pop("sequence", None)
        if sequence is None:
            sequence = repos.trails.require_trail(trail.id).next_sequence
            repos.trails.increment_trail_sequence(trail.id)
        fields: dict[str, Any] = {
            "trail_id": trail.id,
            "group_code": trail.group_code,
            "trail_type": trail.trail_type,
            "sequence": sequence,
            "photo_blob": JPEG,
            "thumbnail_blob": THUMB,
            "latitude": 53.2351,
            "longitude": -8.1153,
            "accuracy": 4.5,
            "captured_at": "2025-02-20T12:00:00.000Z",
        }
        fields.update(overrides)
        return repos.pois.create_poi(CreatePOIInput(**fields))

    return _create
