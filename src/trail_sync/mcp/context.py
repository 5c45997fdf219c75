"""Services shared by every tool handler for the lifetime of the server."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..config import Config
from ..core.async_utils import SingleFlight
from ..core.remote import RemoteStoreClient
from ..exchange.export import ExportPackager
from ..exchange.importer import ImportEngine
from ..store.context import Repositories
from ..sync.engine import SyncEngine
from ..sync.restore import WelcomeService


@dataclass
class ServerContext:
    """Wiring built once in the lifespan and handed to every handler.

    ``drain_guard`` is shared by the ``sync_run`` tool and the periodic
    trigger so the two never drain at the same time.
    """

    config: Config
    repos: Repositories
    remote: RemoteStoreClient | None
    engine: SyncEngine
    importer: ImportEngine
    exporter: ExportPackager
    welcome: WelcomeService
    drain_guard: SingleFlight = field(default_factory=lambda: SingleFlight("Sync"))
    import_guard: SingleFlight = field(default_factory=lambda: SingleFlight("Import"))

    @classmethod
    def build(
        cls,
        config: Config,
        repos: Repositories,
        remote: RemoteStoreClient | None,
    ) -> ServerContext:
        return cls(
            config=config,
            repos=repos,
            remote=remote,
            engine=SyncEngine(repos, remote, config),
            importer=ImportEngine(repos, write_delay=config.import_delay),
            exporter=ExportPackager(repos),
            welcome=WelcomeService(repos, remote),
        )
