"""Runtime configuration for trail_sync.

Reads remote store, local store and sync settings from CLI args,
environment variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    TRAIL_SYNC_REMOTE_URL: Remote store base URL (optional; sync is a no-op without it)
    TRAIL_SYNC_REMOTE_KEY: Remote store API key (required when a URL is set)
    TRAIL_SYNC_DB_PATH: Local SQLite database path
    TRAIL_SYNC_ENABLED: Enable remote sync (optional, default: true)
    TRAIL_SYNC_MAX_ATTEMPTS: Retry ceiling per queue item (optional, default: 5)
    TRAIL_SYNC_POLL_INTERVAL: Seconds between periodic drains, 0 disables (optional, default: 0)
    TRAIL_SYNC_IMPORT_DELAY: Seconds between POI writes during import (optional, default: 1.1)
    TRAIL_SYNC_INSECURE: Skip SSL verification (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = str(Path.home() / ".local" / "share" / "trail_sync" / "trail_sync.db")


@dataclass
class Config:
    remote_url: str | None = None
    remote_key: str | None = None
    db_path: str = DEFAULT_DB_PATH
    sync_enabled: bool = True
    max_attempts: int = 5
    poll_interval: float = 0.0
    import_delay: float = 1.1
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    insecure: bool = False
    debug: bool = False

    @property
    def remote_configured(self) -> bool:
        return bool(self.remote_url and self.remote_key)

    @property
    def sync_active(self) -> bool:
        """Whether mutations should be queued and drained."""
        return self.sync_enabled and self.remote_configured

    @property
    def timeout(self) -> tuple[float, float]:
        return (self.connect_timeout, self.read_timeout)


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the remote URL is malformed or set without a key.
    """
    if config.remote_url:
        config.remote_url = config.remote_url.strip()

        if not config.remote_url.startswith(("http://", "https://")):
            raise ValueError(
                f"Invalid remote URL '{config.remote_url}': must start with http:// or https://"
            )

        parsed = urlparse(config.remote_url)
        if not parsed.hostname:
            raise ValueError(
                f"Invalid remote URL '{config.remote_url}': URL must include a hostname"
            )

        config.remote_url = config.remote_url.removesuffix("/")

        if not (config.remote_key or "").strip():
            raise ValueError(
                "Remote key cannot be empty when a remote URL is set. "
                "Set TRAIL_SYNC_REMOTE_KEY environment variable."
            )

    if not config.db_path.strip():
        raise ValueError(
            "Database path cannot be empty. Set TRAIL_SYNC_DB_PATH environment variable."
        )

    if config.sync_enabled and not config.remote_configured:
        logger.info("No remote store configured; sync runs are no-ops")

    if config.insecure:
        logger.warning(
            "WARNING: SSL verification disabled (insecure=True). Use only for development."
        )


def get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _resolve_bool(cli_value: bool | None, env_key: str, fallback, default: bool) -> bool:
    if cli_value is not None:
        return cli_value
    env_value = get_bool_env(env_key)
    if env_value is not None:
        return env_value
    if fallback is not None:
        return bool(fallback)
    return default


def _resolve_number(env_key: str, fallback, default, cast, low, high):
    """Numeric fields: env > YAML > default, range-checked when from env."""
    raw = os.getenv(env_key)
    if raw is None:
        return cast(fallback) if fallback is not None else default
    message = f"Invalid {env_key} '{raw}': must be a number between {low} and {high}"
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(message) from None
    if not (low <= value <= high):
        raise ValueError(message)
    return value


def load_config(
    remote_url: str | None = None,
    remote_key: str | None = None,
    db_path: str | None = None,
    sync_enabled: bool | None = None,
    insecure: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        remote_url: Override remote store URL.
        remote_key: Override remote store key.
        db_path: Override local database path.
        sync_enabled: Force sync on or off.
        insecure: Skip SSL verification (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flat dict produced by
            ``config_schema.to_fallbacks()``.  Used when CLI arg and env var
            are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If a value is malformed or out of range.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_url = remote_url or os.getenv("TRAIL_SYNC_REMOTE_URL") or fb.get("url")
    final_key = remote_key or os.getenv("TRAIL_SYNC_REMOTE_KEY") or fb.get("key")
    final_db_path = (
        db_path or os.getenv("TRAIL_SYNC_DB_PATH") or fb.get("db_path") or DEFAULT_DB_PATH
    )
    final_db_path = os.path.expanduser(final_db_path.strip())

    # --- Boolean fields: CLI > env > YAML > default ---

    final_enabled = _resolve_bool(
        sync_enabled, "TRAIL_SYNC_ENABLED", fb.get("enabled"), True
    )
    final_insecure = _resolve_bool(
        True if insecure else None, "TRAIL_SYNC_INSECURE", fb.get("insecure"), False
    )
    final_debug = _resolve_bool(
        True if debug else None, "TRAIL_SYNC_DEBUG", fb.get("debug"), False
    )

    # --- Numeric fields: env > YAML > default ---

    final_max_attempts = _resolve_number(
        "TRAIL_SYNC_MAX_ATTEMPTS", fb.get("max_attempts"), 5, int, 1, 100
    )
    final_poll_interval = _resolve_number(
        "TRAIL_SYNC_POLL_INTERVAL", fb.get("poll_interval"), 0.0, float, 0, 86400
    )
    final_import_delay = _resolve_number(
        "TRAIL_SYNC_IMPORT_DELAY", fb.get("import_delay"), 1.1, float, 0, 60
    )

    config = Config(
        remote_url=final_url.strip() if final_url else None,
        remote_key=final_key.strip() if final_key else None,
        db_path=final_db_path,
        sync_enabled=final_enabled,
        max_attempts=final_max_attempts,
        poll_interval=final_poll_interval,
        import_delay=final_import_delay,
        connect_timeout=float(fb.get("connect_timeout", 10.0)),
        read_timeout=float(fb.get("read_timeout", 60.0)),
        insecure=final_insecure,
        debug=final_debug,
    )

    validate_config(config)

    return config
