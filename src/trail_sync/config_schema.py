"""Unified configuration schema for trail_sync.

Defines Pydantic models for the YAML config structure with dedicated
sections for the remote store, the local store, sync behaviour, archive
exchange and logging.

Usage:
    from trail_sync.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any, Literal

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RemoteConfig(BaseModel):
    """Remote store connection settings.

    All fields are optional: without a URL the package works offline and
    sync runs are no-ops.
    """

    url: str | None = Field(default=None, description="Remote store base URL")
    key: str | None = Field(default=None, description="Remote store API key")
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    connect_timeout: float = Field(
        default=10.0, gt=0, le=300, description="Connect timeout in seconds"
    )
    read_timeout: float = Field(
        default=60.0, gt=0, le=3600, description="Read timeout in seconds"
    )

    model_config = {"frozen": True}


class StoreConfig(BaseModel):
    """Local store settings."""

    db_path: str | None = Field(default=None, description="SQLite database path")

    model_config = {"frozen": True}


class SyncConfig(BaseModel):
    """Outbound sync settings."""

    enabled: bool = Field(default=True, description="Enable remote sync")
    max_attempts: int = Field(
        default=5, ge=1, le=100, description="Retry ceiling per queue item"
    )
    poll_interval: float = Field(
        default=0.0,
        ge=0,
        le=86400,
        description="Seconds between periodic drains (0 disables)",
    )

    model_config = {"frozen": True}


class ExchangeConfig(BaseModel):
    """Archive import/export settings."""

    import_delay: float = Field(
        default=1.1,
        ge=0,
        le=60,
        description="Seconds between successive POI writes during import",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json`` (one JSON object per line).
    """

    level: str | None = Field(default=None, description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: Literal["text", "json"] = Field(default="text", description="Log line format")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    exchange: ExchangeConfig = Field(default_factory=ExchangeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten a ``UnifiedConfig`` into the ``yaml_fallbacks`` dict that
    ``config.load_config()`` understands.

    Only values actually present are included for the optional string
    fields so env vars and defaults still apply to the rest.
    """
    fallbacks: dict[str, Any] = {
        "insecure": unified.remote.insecure,
        "connect_timeout": unified.remote.connect_timeout,
        "read_timeout": unified.remote.read_timeout,
        "enabled": unified.sync.enabled,
        "max_attempts": unified.sync.max_attempts,
        "poll_interval": unified.sync.poll_interval,
        "import_delay": unified.exchange.import_delay,
    }
    if unified.remote.url:
        fallbacks["url"] = unified.remote.url
    if unified.remote.key:
        fallbacks["key"] = unified.remote.key
    if unified.store.db_path:
        fallbacks["db_path"] = unified.store.db_path
    return fallbacks
