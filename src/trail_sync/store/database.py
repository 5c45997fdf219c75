"""SQLite-backed local store.

Each collection is a table of ``(id, doc, <index columns>)`` where ``doc``
holds the record as JSON.  Binary values never live in the document; they
are kept as raw bytes in a shared ``blobs`` table keyed by
``(collection, owner_id, field, position)`` so that list views can skip them
without reading a single byte.

The schema is versioned with ``PRAGMA user_version``.  Every migration step
only creates new tables or indexes, so opening an older database applies
the missing steps and leaves existing rows untouched.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..errors import DuplicateKeyError, RecordNotFoundError
from .blobs import to_bytes, to_storage

logger = logging.getLogger(__name__)

SETTING_USER_EMAIL = "user_email"
SETTING_ACTIVE_TRAIL = "active_trail_id"


@dataclass(frozen=True, slots=True)
class CollectionSpec:
    """Static description of one collection.

    Attributes:
        name: Table name.
        indexes: Document fields mirrored into indexed columns; only these
            can be used with ``where`` and ``order_by``.
        blob_fields: Fields holding a single binary value.
        blob_list_fields: Fields holding a list of binary values.
    """

    name: str
    indexes: tuple[str, ...] = ()
    blob_fields: tuple[str, ...] = ()
    blob_list_fields: tuple[str, ...] = ()

    @property
    def all_blob_fields(self) -> tuple[str, ...]:
        return self.blob_fields + self.blob_list_fields


COLLECTIONS: dict[str, CollectionSpec] = {
    spec.name: spec
    for spec in (
        CollectionSpec("user_profile", indexes=("email",)),
        CollectionSpec("trails", indexes=("group_code", "trail_type")),
        CollectionSpec(
            "pois",
            indexes=("trail_id", "group_code", "sequence"),
            blob_fields=("photo_blob", "thumbnail_blob"),
        ),
        CollectionSpec(
            "brochure_setup",
            indexes=("trail_id",),
            blob_fields=("cover_photo_blob", "map_blob"),
            blob_list_fields=("funder_logos",),
        ),
        CollectionSpec(
            "sync_queue",
            indexes=("entity_id", "created_at", "synced_at"),
        ),
        CollectionSpec("settings"),
    )
}


def _collection_ddl(spec: CollectionSpec) -> list[str]:
    columns = ["id TEXT PRIMARY KEY", "doc TEXT NOT NULL"]
    columns += [f"{field}" for field in spec.indexes]
    statements = [
        f"CREATE TABLE IF NOT EXISTS {spec.name} ({', '.join(columns)})"
    ]
    statements += [
        f"CREATE INDEX IF NOT EXISTS idx_{spec.name}_{field} "
        f"ON {spec.name} ({field})"
        for field in spec.indexes
    ]
    return statements


_BLOBS_DDL = [
    """CREATE TABLE IF NOT EXISTS blobs (
        collection TEXT NOT NULL,
        owner_id TEXT NOT NULL,
        field TEXT NOT NULL,
        position INTEGER NOT NULL DEFAULT 0,
        data BLOB,
        PRIMARY KEY (collection, owner_id, field, position)
    )""",
]


def _step(*names: str, extra: list[str] | None = None) -> list[str]:
    statements = list(extra or [])
    for name in names:
        statements += _collection_ddl(COLLECTIONS[name])
    return statements


# Ordered, additive-only schema history.  Append new steps; never edit old ones.
MIGRATIONS: list[tuple[int, list[str]]] = [
    (1, _step("user_profile", "trails", "pois", extra=_BLOBS_DDL)),
    (2, _step("brochure_setup")),
    (3, _step("sync_queue")),
    (4, _step("settings")),
]

SCHEMA_VERSION = MIGRATIONS[-1][0]


class Collection:
    """Key-value access to one collection of a ``LocalStore``."""

    def __init__(self, store: LocalStore, spec: CollectionSpec) -> None:
        self._store = store
        self.spec = spec

    @property
    def name(self) -> str:
        return self.spec.name

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(
        self, record_id: str, include_blobs: bool = True
    ) -> dict[str, Any] | None:
        """Return the record with *record_id*, or ``None``.

        With ``include_blobs=False`` binary fields are absent from the result
        and the blob table is not queried.
        """
        with self._store.transaction() as conn:
            row = conn.execute(
                f"SELECT id, doc FROM {self.name} WHERE id = ?", (record_id,)
            ).fetchone()
            if row is None:
                return None
            return self._hydrate(conn, row, include_blobs)

    def where(
        self,
        field: str,
        value: Any,
        include_blobs: bool = True,
        order_by: str | None = None,
    ) -> list[dict[str, Any]]:
        """Return all records whose indexed *field* equals *value*."""
        self._check_index(field)
        sql = f"SELECT id, doc FROM {self.name} WHERE {field} = ?"
        sql += self._order_clause(order_by)
        with self._store.transaction() as conn:
            rows = conn.execute(sql, (value,)).fetchall()
            return [self._hydrate(conn, row, include_blobs) for row in rows]

    def all(
        self, order_by: str | None = None, include_blobs: bool = True
    ) -> list[dict[str, Any]]:
        """Return every record, by *order_by* then insertion order."""
        sql = f"SELECT id, doc FROM {self.name}" + self._order_clause(order_by)
        with self._store.transaction() as conn:
            rows = conn.execute(sql).fetchall()
            return [self._hydrate(conn, row, include_blobs) for row in rows]

    def count(self) -> int:
        with self._store.transaction() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {self.name}").fetchone()[0]

    def exists(self, record_id: str) -> bool:
        with self._store.transaction() as conn:
            row = conn.execute(
                f"SELECT 1 FROM {self.name} WHERE id = ?", (record_id,)
            ).fetchone()
            return row is not None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, record: dict[str, Any]) -> str:
        """Insert a new record.

        Raises:
            DuplicateKeyError: If a record with the same id exists.
        """
        record_id = self._record_id(record)
        doc, blobs = self._split(record)
        with self._store.transaction() as conn:
            try:
                self._insert(conn, record_id, doc)
            except sqlite3.IntegrityError:
                raise DuplicateKeyError(self.name, record_id) from None
            self._write_blobs(conn, record_id, blobs)
        return record_id

    def put(self, record: dict[str, Any]) -> str:
        """Insert or replace a record (blobs absent from *record* are dropped)."""
        record_id = self._record_id(record)
        doc, blobs = self._split(record)
        with self._store.transaction() as conn:
            self._insert(conn, record_id, doc, replace=True)
            conn.execute(
                "DELETE FROM blobs WHERE collection = ? AND owner_id = ?",
                (self.name, record_id),
            )
            self._write_blobs(conn, record_id, blobs)
        return record_id

    def update(self, record_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        """Apply a partial patch and return the merged document (no blobs).

        Raises:
            RecordNotFoundError: If no record has *record_id*.
        """
        changes = {k: v for k, v in changes.items() if k != "id"}
        patch, blobs = self._split(changes)
        with self._store.transaction() as conn:
            row = conn.execute(
                f"SELECT doc FROM {self.name} WHERE id = ?", (record_id,)
            ).fetchone()
            if row is None:
                raise RecordNotFoundError(self.name, record_id)
            doc = json.loads(row["doc"])
            doc.update(patch)
            self._insert(conn, record_id, doc, replace=True)
            self._write_blobs(conn, record_id, blobs)
        return doc

    def delete(self, record_id: str) -> bool:
        """Remove a record and its blobs; return whether it existed."""
        with self._store.transaction() as conn:
            cursor = conn.execute(
                f"DELETE FROM {self.name} WHERE id = ?", (record_id,)
            )
            conn.execute(
                "DELETE FROM blobs WHERE collection = ? AND owner_id = ?",
                (self.name, record_id),
            )
            return cursor.rowcount > 0

    def delete_where(self, field: str, value: Any) -> list[str]:
        """Remove every record whose indexed *field* equals *value*.

        Returns:
            The ids that were removed.
        """
        self._check_index(field)
        with self._store.transaction() as conn:
            ids = [
                row["id"]
                for row in conn.execute(
                    f"SELECT id FROM {self.name} WHERE {field} = ?", (value,)
                )
            ]
            for record_id in ids:
                conn.execute(
                    f"DELETE FROM {self.name} WHERE id = ?", (record_id,)
                )
                conn.execute(
                    "DELETE FROM blobs WHERE collection = ? AND owner_id = ?",
                    (self.name, record_id),
                )
        return ids

    def clear(self) -> None:
        with self._store.transaction() as conn:
            conn.execute(f"DELETE FROM {self.name}")
            conn.execute("DELETE FROM blobs WHERE collection = ?", (self.name,))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_index(self, field: str) -> None:
        if field != "id" and field not in self.spec.indexes:
            raise ValueError(
                f"'{field}' is not an indexed field of {self.name}"
            )

    def _order_clause(self, order_by: str | None) -> str:
        if order_by is None:
            return " ORDER BY rowid"
        self._check_index(order_by)
        return f" ORDER BY {order_by}, rowid"

    def _record_id(self, record: dict[str, Any]) -> str:
        record_id = record.get("id")
        if not record_id:
            raise ValueError(f"Records in {self.name} need a non-empty 'id'")
        return str(record_id)

    def _split(
        self, record: dict[str, Any]
    ) -> tuple[dict[str, Any], dict[str, Any]]:
        blob_fields = self.spec.all_blob_fields
        doc = {k: v for k, v in record.items() if k not in blob_fields}
        blobs = {k: record[k] for k in blob_fields if k in record}
        return doc, blobs

    def _insert(
        self,
        conn: sqlite3.Connection,
        record_id: str,
        doc: dict[str, Any],
        replace: bool = False,
    ) -> None:
        # Replacing updates in place: rowid breaks created_at ties in the queue.
        doc = {**doc, "id": record_id}
        columns = ["id", "doc", *self.spec.indexes]
        values = [record_id, json.dumps(doc)]
        values += [doc.get(field) for field in self.spec.indexes]
        placeholders = ", ".join("?" for _ in columns)
        sql = (
            f"INSERT INTO {self.name} ({', '.join(columns)}) "
            f"VALUES ({placeholders})"
        )
        if replace:
            assignments = ", ".join(f"{c} = excluded.{c}" for c in columns[1:])
            sql += f" ON CONFLICT(id) DO UPDATE SET {assignments}"
        conn.execute(sql, values)

    def _write_blobs(
        self, conn: sqlite3.Connection, record_id: str, blobs: dict[str, Any]
    ) -> None:
        for field, value in blobs.items():
            conn.execute(
                "DELETE FROM blobs "
                "WHERE collection = ? AND owner_id = ? AND field = ?",
                (self.name, record_id, field),
            )
            if value is None:
                continue
            items = value if field in self.spec.blob_list_fields else [value]
            conn.executemany(
                "INSERT INTO blobs (collection, owner_id, field, position, data) "
                "VALUES (?, ?, ?, ?, ?)",
                [
                    (self.name, record_id, field, position, to_storage(item))
                    for position, item in enumerate(items)
                ],
            )

    def _hydrate(
        self, conn: sqlite3.Connection, row: sqlite3.Row, include_blobs: bool
    ) -> dict[str, Any]:
        record = json.loads(row["doc"])
        record["id"] = row["id"]
        if not include_blobs or not self.spec.all_blob_fields:
            return record
        for field in self.spec.blob_fields:
            record[field] = None
        for field in self.spec.blob_list_fields:
            record[field] = []
        blob_rows = conn.execute(
            "SELECT field, data FROM blobs "
            "WHERE collection = ? AND owner_id = ? ORDER BY field, position",
            (self.name, row["id"]),
        )
        for blob_row in blob_rows:
            field = blob_row["field"]
            data = to_bytes(blob_row["data"])
            if field in self.spec.blob_list_fields:
                record[field].append(data)
            else:
                record[field] = data
        return record


class LocalStore:
    """Versioned local database holding all collections.

    The store is opened explicitly and handed to every repository and
    engine.  A single connection is shared across threads and serialised
    with a re-entrant lock; nested ``transaction()`` blocks join the
    outermost one.

    Example::

        with LocalStore("trails.db") as store:
            store.trails.put({"id": "ardmore-graveyard", ...})
    """

    def __init__(self, path: str | Path = ":memory:") -> None:
        self.path = str(path)
        self._conn: sqlite3.Connection | None = None
        self._lock = threading.RLock()
        self._depth = 0
        self._collections: dict[str, Collection] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self) -> LocalStore:
        if self._conn is not None:
            return self
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        self._conn = conn
        self.migrate()
        self._collections = {
            name: Collection(self, spec) for name, spec in COLLECTIONS.items()
        }
        logger.debug(
            "Opened local store %s (schema v%d)", self.path, self.schema_version
        )
        return self

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Closed local store %s", self.path)

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def __enter__(self) -> LocalStore:
        return self.open()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    @property
    def schema_version(self) -> int:
        with self.transaction() as conn:
            return conn.execute("PRAGMA user_version").fetchone()[0]

    def migrate(self, target: int | None = None) -> int:
        """Apply the missing migration steps up to *target* (default: latest).

        Returns:
            The schema version after migrating.
        """
        target = SCHEMA_VERSION if target is None else target
        current = self.schema_version
        for version, statements in MIGRATIONS:
            if current < version <= target:
                with self.transaction() as conn:
                    for statement in statements:
                        conn.execute(statement)
                    conn.execute(f"PRAGMA user_version = {version}")
                logger.info("Migrated local store to schema v%d", version)
                current = version
        return current

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Serialise access and commit (or roll back) the outermost block."""
        if self._conn is None:
            raise RuntimeError("Local store is not open")
        with self._lock:
            conn = self._conn
            if self._depth:
                self._depth += 1
                try:
                    yield conn
                finally:
                    self._depth -= 1
                return
            self._depth = 1
            try:
                with conn:
                    yield conn
            finally:
                self._depth = 0

    def collection(self, name: str) -> Collection:
        if self._conn is None:
            raise RuntimeError("Local store is not open")
        try:
            return self._collections[name]
        except KeyError:
            raise ValueError(f"Unknown collection: {name}") from None

    @property
    def user_profile(self) -> Collection:
        return self.collection("user_profile")

    @property
    def trails(self) -> Collection:
        return self.collection("trails")

    @property
    def pois(self) -> Collection:
        return self.collection("pois")

    @property
    def brochure_setup(self) -> Collection:
        return self.collection("brochure_setup")

    @property
    def sync_queue(self) -> Collection:
        return self.collection("sync_queue")

    @property
    def settings(self) -> Collection:
        return self.collection("settings")

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_setting(self, key: str, default: Any = None) -> Any:
        record = self.settings.get(key)
        return default if record is None else record.get("value", default)

    def set_setting(self, key: str, value: Any) -> None:
        self.settings.put({"id": key, "value": value})

    def delete_setting(self, key: str) -> None:
        self.settings.delete(key)

    def wipe(self) -> None:
        """Factory reset: clear every collection, the queue included."""
        with self.transaction():
            for collection in self._collections.values():
                collection.clear()
        logger.warning("Local store %s wiped", self.path)
