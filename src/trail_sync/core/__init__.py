"""Remote store client and async bridging helpers."""

from .async_utils import AlreadyInProgressError, SingleFlight, run_sync
from .remote import RemoteStoreClient, RemoteStoreError

__all__ = [
    "AlreadyInProgressError",
    "RemoteStoreClient",
    "RemoteStoreError",
    "SingleFlight",
    "run_sync",
]
