"""MCP Server for offline-first trail data using stdio transport.

Exposes the local trail store to AI agents: push pending changes to the
remote store, export trails to ZIP archives and import archives from other
devices.

Transport: stdio
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..core.async_utils import run_sync
from ..logger import DEFAULT_LOG_FILE, setup_logging
from .context import ServerContext
from .lifespan import load_logging_config, server_lifespan
from .tools import (
    ALL_SPECS,
    ToolRegistry,
    build_error_response,
    load_permissions_file,
)
from .tools.registry import ToolSpec

logger = logging.getLogger(__name__)

server = Server("trail-sync-server")

# Initialized in main()
_context: ServerContext | None = None
_registry: ToolRegistry | None = None


# ---------------------------------------------------------------------------
# Ping tool (always available)
# ---------------------------------------------------------------------------


async def _handle_ping(ctx: ServerContext, args: dict) -> types.CallToolResult:
    """Report local store health and remote reachability."""
    schema = await run_sync(lambda: ctx.repos.store.schema_version)
    lines = [f"Trail Sync MCP server {__version__}, local store schema v{schema}"]
    if ctx.remote is None:
        lines.append("Remote store: not configured (offline mode)")
    else:
        try:
            await run_sync(ctx.remote.validate_connection)
            lines.append(f"Remote store: reachable at {ctx.remote.base_url}")
        except Exception as e:
            return types.CallToolResult(
                content=[
                    types.TextContent(
                        type="text",
                        text="\n".join(lines)
                        + f"\nRemote store unreachable: {e}. Check TRAIL_SYNC_REMOTE_URL and TRAIL_SYNC_REMOTE_KEY.",
                    )
                ],
                isError=True,
            )
    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))]
    )


PING_SPEC = ToolSpec(
    tool=types.Tool(
        name="ping",
        description="Check the local store and remote store connectivity",
        inputSchema={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    permissions=frozenset(),
    handler=_handle_ping,
)


# ---------------------------------------------------------------------------
# Global accessors
# ---------------------------------------------------------------------------


def get_context() -> ServerContext:
    """Get the global ServerContext.

    Raises:
        RuntimeError: If the server lifespan has not started.
    """
    if _context is None:
        raise RuntimeError(
            "ServerContext not initialized. Server lifespan not started."
        )
    return _context


def set_context(ctx: ServerContext | None) -> None:
    global _context
    _context = ctx


def get_registry() -> ToolRegistry:
    """Get the global ToolRegistry instance.

    Raises:
        RuntimeError: If registry is not initialized
    """
    if _registry is None:
        raise RuntimeError("ToolRegistry not initialized.")
    return _registry


def set_registry(registry: ToolRegistry | None) -> None:
    global _registry
    _registry = registry


def build_registry(permissions_file: str | None = None) -> ToolRegistry:
    """Registry of every tool, filtered by *permissions_file* when given."""
    allowed = None
    if permissions_file:
        allowed = load_permissions_file(permissions_file)
        logger.info("Loaded %d permissions from %s", len(allowed), permissions_file)
    all_specs = [PING_SPEC] + ALL_SPECS
    registry = ToolRegistry(all_specs, allowed)
    logger.info(
        "Registered %d tools (of %d total)", registry.tool_count(), len(all_specs)
    )
    return registry


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


@server.list_tools()
async def handle_list_tools() -> list[types.Tool]:
    return get_registry().list_tools()


@server.call_tool()
async def handle_call_tool(
    name: str, arguments: dict | None
) -> types.CallToolResult:
    """Handle tool execution via ToolRegistry dispatch."""
    ctx = get_context()
    try:
        return await get_registry().call_tool(name, arguments, ctx)
    except ValueError as e:
        # Unknown or filtered-out tool name
        return build_error_response(
            "unknown_tool",
            str(e),
            "Use list_tools to see available tools.",
        )


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport.

    Args:
        config_overrides: Optional dict of CLI values (remote_url, remote_key,
            db_path, sync_enabled, insecure, debug, log_file, permissions_file)
    """
    overrides = config_overrides or {}

    # Must run before stdio_server so nothing reaches stdout
    log_settings = load_logging_config()
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file") or log_settings.file,
        debug_format=log_settings.format,
        level=log_settings.level,
    )

    registry = build_registry(overrides.get("permissions_file"))
    if overrides.get("permissions_file"):
        print(
            f"Permissions file: {overrides['permissions_file']} "
            f"({registry.tool_count()} of {len(ALL_SPECS) + 1} tools enabled)",
            file=sys.stderr,
        )
    set_registry(registry)

    # set_context() is called here rather than inside the lifespan so that
    # running as `python -m trail_sync.mcp.server` updates this module's
    # globals, not a second import of it.
    async with server_lifespan(config_overrides=overrides) as started:
        set_context(started["context"])
        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name="trail-sync-server",
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            set_context(None)
            set_registry(None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Trail Sync MCP Server - offline-first trail data sync and ZIP exchange",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .trail_sync/config.yml)
  trail-sync-server

  # Use a specific local database
  trail-sync-server --db-path ~/trails/ardmore.db

  # Work offline (queue changes, never push)
  trail-sync-server --no-sync

  # Restrict tools by permission
  trail-sync-server --permissions-file /etc/trail-sync/export-only.permissions

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr.
        """,
    )
    parser.add_argument(
        "--remote-url",
        help="Override remote store URL (takes precedence over TRAIL_SYNC_REMOTE_URL and config files)",
    )
    parser.add_argument(
        "--remote-key",
        help="Override remote store API key"
        " (visible in process list -- prefer TRAIL_SYNC_REMOTE_KEY)",
    )
    parser.add_argument("--db-path", help="Local database path")
    parser.add_argument(
        "--no-sync",
        action="store_true",
        help="Disable remote sync for this run",
    )
    parser.add_argument(
        "--insecure",
        action="store_true",
        help="Skip SSL certificate verification (use only for development)",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log-file",
        help=f"Log file path (default: {DEFAULT_LOG_FILE})",
    )
    parser.add_argument(
        "--permissions-file",
        help="Path to permissions file restricting available tools. "
        "Format: one permission per line (e.g., TRAIL_EXPORT), # for comments. "
        "If not specified, all tools are available.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"trail-sync-server version {__version__}",
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> dict:
    config_overrides: dict = {}
    if args.remote_url:
        config_overrides["remote_url"] = args.remote_url
    if args.remote_key:
        config_overrides["remote_key"] = args.remote_key
    if args.db_path:
        config_overrides["db_path"] = args.db_path
    if args.no_sync:
        config_overrides["sync_enabled"] = False
    if args.insecure:
        config_overrides["insecure"] = True
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file
    if args.permissions_file:
        config_overrides["permissions_file"] = args.permissions_file
    return config_overrides


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    args = build_parser().parse_args()
    config_overrides = overrides_from_args(args)

    override_keys = [k for k in config_overrides if k not in ("remote_key", "log_file")]
    if override_keys:
        print(
            f"Config overrides from CLI: {', '.join(override_keys)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
