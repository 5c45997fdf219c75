"""Exception hierarchy shared across the store, sync and exchange layers.

Validation and not-found errors fail fast and propagate to the caller.
Item-level failures inside the sync and import engines are caught there and
aggregated into their result objects instead.
"""


class TrailSyncError(Exception):
    """Base class for all trail_sync errors."""


class ValidationError(TrailSyncError, ValueError):
    """Input or record failed a domain rule (bad trail type, rotation, ...)."""


class EntityNotFoundError(TrailSyncError, LookupError):
    """A repository operation referenced an entity that does not exist."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class DuplicateKeyError(TrailSyncError):
    """``Collection.add`` was called with an id that already exists."""

    def __init__(self, collection: str, record_id: str) -> None:
        self.collection = collection
        self.record_id = record_id
        super().__init__(
            f"Record '{record_id}' already exists in {collection}"
        )


class RecordNotFoundError(TrailSyncError, LookupError):
    """``Collection.update`` was called for an id that is absent."""

    def __init__(self, collection: str, record_id: str) -> None:
        self.collection = collection
        self.record_id = record_id
        super().__init__(f"Record '{record_id}' not found in {collection}")


class ArchiveFormatError(TrailSyncError):
    """A trail archive is malformed or missing a required member."""


class UnsupportedSchemaError(ArchiveFormatError):
    """A trail manifest carries a schema version this package cannot read."""


class NothingToExportError(TrailSyncError):
    """None of the requested trails has any POIs."""


class IdentityRequiredError(TrailSyncError):
    """A remote operation needs a known user identity on this device."""


class RemoteUnavailableError(TrailSyncError):
    """No remote store is configured, or it could not be reached."""


class TrailNotSyncedError(TrailSyncError):
    """The targeted trail does not exist remotely (never synced)."""
