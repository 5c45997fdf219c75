"""Wiring of the store, the sync queue and the repositories."""

from __future__ import annotations

from concurrent.futures import Executor
from dataclasses import dataclass

from .brochure import BrochureSetupRepository
from .database import LocalStore
from .pois import POIRepository
from .profile import ProfileRepository
from .sync_queue import EnqueueDispatcher, SyncQueue
from .trails import TrailRepository


@dataclass
class Repositories:
    """Every repository over one open ``LocalStore``.

    Build with ``Repositories.create``; all members share the same store
    handle and the same enqueue dispatcher.
    """

    store: LocalStore
    queue: SyncQueue
    dispatcher: EnqueueDispatcher
    profiles: ProfileRepository
    trails: TrailRepository
    pois: POIRepository
    brochures: BrochureSetupRepository

    @classmethod
    def create(
        cls,
        store: LocalStore,
        sync_enabled: bool = True,
        executor: Executor | None = None,
    ) -> Repositories:
        queue = SyncQueue(store)
        dispatcher = EnqueueDispatcher(queue, enabled=sync_enabled, executor=executor)
        return cls(
            store=store,
            queue=queue,
            dispatcher=dispatcher,
            profiles=ProfileRepository(store),
            trails=TrailRepository(store, dispatcher),
            pois=POIRepository(store, dispatcher),
            brochures=BrochureSetupRepository(store, dispatcher),
        )
