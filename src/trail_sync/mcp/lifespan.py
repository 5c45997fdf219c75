"""Lifespan management for MCP server startup and shutdown."""

import asyncio
import contextlib
import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import Config, load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import LoggingConfig, build_config, to_fallbacks
from ..core.async_utils import run_sync
from ..core.remote import RemoteStoreClient, RemoteStoreError
from ..store.context import Repositories
from ..store.database import LocalStore
from ..sync.triggers import periodic_drain
from .context import ServerContext

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


def load_logging_config() -> LoggingConfig:
    """The YAML `logging` section, read before logging is configured.

    A broken config file yields defaults here; the lifespan reports it.
    """
    load_dotenv()
    if not discover_config_files():
        return LoggingConfig()
    try:
        return build_config(load_hierarchical_config()).logging
    except (ValueError, OSError):
        return LoggingConfig()


def _resolve_config(overrides: dict[str, Any]) -> Config:
    # .env first so ${VAR} interpolation in YAML can see its values
    load_dotenv()

    yaml_fallbacks: dict[str, Any] | None = None
    sources = []
    config_files = discover_config_files()
    if config_files:
        unified = build_config(load_hierarchical_config())
        yaml_fallbacks = to_fallbacks(unified)
        sources.append(f"config file: {config_files[0]}")

    config = load_config(
        remote_url=overrides.get("remote_url"),
        remote_key=overrides.get("remote_key"),
        db_path=overrides.get("db_path"),
        sync_enabled=overrides.get("sync_enabled"),
        insecure=overrides.get("insecure", False),
        debug=overrides.get("debug", False),
        yaml_fallbacks=yaml_fallbacks,
    )

    if overrides:
        sources.append("CLI arguments")
    sources.append("environment variables")
    source_desc = ", ".join(sources)
    logger.info("Configuration loaded from: %s", source_desc)
    _stderr_print(f"  Configuration loaded from: {source_desc}")
    return config


async def _connect_remote(config: Config) -> RemoteStoreClient | None:
    """Build the remote client; an unreachable remote is not fatal."""
    if not config.remote_configured:
        logger.info("No remote store configured; running offline")
        _stderr_print("  No remote store configured; sync is disabled.")
        return None

    remote = RemoteStoreClient(config)
    try:
        await run_sync(remote.validate_connection)
        _stderr_print(f"  Remote store reachable at {remote.base_url}")
    except RemoteStoreError as e:
        logger.warning("Remote store not reachable yet: %s", e)
        _stderr_print(f"  Remote store not reachable ({e}); changes stay queued.")
    return remote


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env and YAML config, merge via load_config():
      CLI args > env vars > .env > YAML > defaults
    - Open (and migrate) the local store
    - Create the remote client when one is configured
    - Start the periodic drain when a poll interval is set

    On shutdown:
    - Stop the periodic drain and close the local store

    Yields:
        Dict with 'context' key containing the ServerContext

    Raises:
        RuntimeError: If configuration is invalid or the store cannot be opened.
    """
    logger.info("MCP server starting...")
    _stderr_print("Trail Sync MCP Server starting...")

    try:
        config = _resolve_config(config_overrides or {})
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    try:
        store = LocalStore(config.db_path).open()
    except Exception as e:
        logger.error("Failed to open local store %s: %s", config.db_path, e)
        _stderr_print(f"ERROR: Cannot open local store at {config.db_path}: {e}")
        raise RuntimeError(f"Cannot open local store at {config.db_path}: {e}") from e
    _stderr_print(f"  Local store: {config.db_path} (schema v{store.schema_version})")

    poller: asyncio.Task | None = None
    stop = asyncio.Event()
    try:
        remote = await _connect_remote(config)
        repos = Repositories.create(store, sync_enabled=config.sync_enabled)
        ctx = ServerContext.build(config, repos, remote)

        if config.poll_interval > 0 and config.sync_active:
            poller = asyncio.create_task(
                periodic_drain(ctx.engine.drain, config.poll_interval, ctx.drain_guard, stop)
            )
            _stderr_print(f"  Periodic sync every {config.poll_interval:.0f}s")

        _stderr_print("Server ready. Waiting for MCP client connection...")
        yield {"context": ctx}
    finally:
        stop.set()
        if poller is not None:
            poller.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poller
        store.close()
        logger.info("MCP server shutting down")
        _stderr_print("Trail Sync MCP Server shutting down.")
