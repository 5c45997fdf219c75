"""MCP tool handlers for remote sync.

Defines four tools:

- ``sync_run`` -- drain the outbound queue once.
- ``sync_status`` -- queue snapshot and last sync time.
- ``trail_archive`` -- soft-delete a trail in the remote store.
- ``profile_setup`` -- first-run welcome: restore a returning user or
  create a new profile with default trails.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...sync.archive import archive_trail
from ...sync.reporter import (
    format_sync_result,
    format_sync_status,
    result_to_json,
    status_to_json,
)
from ...sync.restore import WelcomeResult
from ..context import ServerContext
from .errors import require_arg, text_result
from .registry import ToolSpec

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_sync_run(ctx: ServerContext, args: dict[str, Any]) -> types.CallToolResult:
    result = await ctx.drain_guard.run(ctx.engine.drain)
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_result(result))],
        structuredContent=result_to_json(result),
        isError=not result.success,
    )


async def _handle_sync_status(ctx: ServerContext, args: dict[str, Any]) -> types.CallToolResult:
    status = await run_sync(ctx.engine.status)
    return text_result(format_sync_status(status), status_to_json(status))


async def _handle_trail_archive(ctx: ServerContext, args: dict[str, Any]) -> types.CallToolResult:
    trail_id = require_arg(args, "trail_id")
    identity = await run_sync(ctx.repos.profiles.get_identity)
    archived_at = await run_sync(archive_trail, ctx.remote, identity, trail_id)
    return text_result(
        f"Trail {trail_id} archived at {archived_at}. Local data is unchanged.",
        {"trail_id": trail_id, "archived_at": archived_at},
    )


def format_welcome(result: WelcomeResult) -> str:
    profile = result.profile
    lines = [
        f"Welcome back, {profile.name}" if result.is_returning_user else f"Welcome, {profile.name}",
        f"  Email:      {profile.email}",
        f"  Group code: {profile.group_code}",
    ]
    if result.restore is not None:
        restore = result.restore
        lines.append(f"  Restored:   {restore.trail_count} trail(s), {restore.poi_count} POI(s)")
        if restore.failed_photos:
            lines.append(f"  Photos not downloaded ({len(restore.failed_photos)}):")
            lines.extend(f"    - {name}" for name in restore.failed_photos)
    return "\n".join(lines)


async def _handle_profile_setup(ctx: ServerContext, args: dict[str, Any]) -> types.CallToolResult:
    name = require_arg(args, "name")
    email = require_arg(args, "email")
    result = await run_sync(ctx.welcome.process_welcome, name, email)
    logger.info(
        "Profile set up for %s (returning=%s)", result.profile.email, result.is_returning_user
    )
    return text_result(format_welcome(result), result.model_dump(mode="json"))


# ---------------------------------------------------------------------------
# Tool specs
# ---------------------------------------------------------------------------


SYNC_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="sync_run",
            description=(
                "Push pending local changes to the remote store. Items are sent "
                "oldest first; the run stops at the first failure so ordering is kept."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        permissions=frozenset({"SYNC_RUN"}),
        handler=_handle_sync_run,
    ),
    ToolSpec(
        tool=types.Tool(
            name="sync_status",
            description=(
                "Show sync configuration, pending queue size, abandoned items "
                "and the last successful sync time."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=True,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        permissions=frozenset({"SYNC_VIEW"}),
        handler=_handle_sync_status,
    ),
    ToolSpec(
        tool=types.Tool(
            name="trail_archive",
            description=(
                "Mark a trail as archived in the remote store. The trail must "
                "have been synced; local data is not changed."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=True,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "trail_id": {
                        "type": "string",
                        "description": "Trail id, e.g. clonfert-graveyard",
                    },
                },
                "required": ["trail_id"],
            },
        ),
        permissions=frozenset({"TRAIL_ARCHIVE"}),
        handler=_handle_trail_archive,
    ),
    ToolSpec(
        tool=types.Tool(
            name="profile_setup",
            description=(
                "Set up this device for a user. A returning user's trails and "
                "POIs are restored from the remote store; a new user gets a "
                "profile plus empty graveyard and parish trails."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=False,
                openWorldHint=True,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "name": {"type": "string", "description": "User's display name"},
                    "email": {"type": "string", "description": "User's email address"},
                },
                "required": ["name", "email"],
            },
        ),
        permissions=frozenset({"PROFILE_SETUP"}),
        handler=_handle_profile_setup,
    ),
]
