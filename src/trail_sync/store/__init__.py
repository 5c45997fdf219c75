"""Local persistent store, entity models, repositories and sync queue."""

from .blobs import LegacyBlobLike, RawBytes, classify, to_bytes
from .brochure import BrochureSetupRepository
from .context import Repositories
from .database import COLLECTIONS, SCHEMA_VERSION, Collection, LocalStore
from .models import (
    BrochureSetup,
    CreatePOIInput,
    EntityType,
    POIRecord,
    SyncOperation,
    SyncQueueItem,
    SyncStats,
    Trail,
    UpdatePOIInput,
    UserProfile,
    compute_completed,
)
from .pois import POIRepository
from .profile import PROFILE_ID, ProfileRepository
from .sync_queue import EnqueueDispatcher, EnqueueFailure, SyncQueue
from .trails import TrailRepository

__all__ = [
    "COLLECTIONS",
    "PROFILE_ID",
    "SCHEMA_VERSION",
    "BrochureSetup",
    "BrochureSetupRepository",
    "Collection",
    "CreatePOIInput",
    "EnqueueDispatcher",
    "EnqueueFailure",
    "EntityType",
    "LegacyBlobLike",
    "LocalStore",
    "POIRecord",
    "POIRepository",
    "ProfileRepository",
    "RawBytes",
    "Repositories",
    "SyncOperation",
    "SyncQueue",
    "SyncQueueItem",
    "SyncStats",
    "Trail",
    "TrailRepository",
    "UpdatePOIInput",
    "UserProfile",
    "classify",
    "compute_completed",
    "to_bytes",
]
