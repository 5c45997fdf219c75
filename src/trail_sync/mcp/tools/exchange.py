"""MCP tool handlers for trail archives.

Defines three tools:

- ``trail_export`` -- write trails to a ZIP archive.
- ``trail_import`` -- validate an archive and import it, or report a
  conflict when its trail already exists.
- ``trail_import_resolve`` -- finish a conflicting import with ``keep`` or
  ``overwrite``.
"""

from __future__ import annotations

import logging
from typing import Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...exchange.files import validate_archive_path, validate_output_path
from ...exchange.models import ImportResult, ImportStatus
from ..context import ServerContext
from .errors import require_arg, text_result
from .registry import ToolSpec

logger = logging.getLogger(__name__)


def format_import_result(result: ImportResult) -> str:
    """Human-readable summary of an import attempt."""
    match result.status:
        case ImportStatus.CONFLICT:
            details = result.conflict_details
            lines = [
                f"Trail '{result.trail_name}' ({result.trail_id}) already exists on this device.",
            ]
            if details is not None:
                lines.append(f"  Local last modified:   {details.existing_last_modified}")
                lines.append(f"  Archive last modified: {details.incoming_last_modified}")
            lines.append(
                "Call trail_import_resolve with strategy 'keep' or 'overwrite'."
            )
            return "\n".join(lines)
        case ImportStatus.ERROR:
            return f"Import failed: {result.error_message}"
        case _:
            if not result.trail_id:
                return result.error_message or "Import finished"
            lines = [
                f"Imported '{result.trail_name}' ({result.trail_id})",
                f"  POIs imported: {result.pois_imported}",
                f"  POIs skipped:  {result.pois_skipped}",
                f"  Missing photos: {result.images_failed}",
            ]
            if result.warnings:
                lines.append(f"  Warnings ({len(result.warnings)}):")
                lines.extend(f"    - {w}" for w in result.warnings)
            return "\n".join(lines)


def _import_response(result: ImportResult) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_import_result(result))],
        structuredContent=result.to_json(),
        isError=result.status is ImportStatus.ERROR,
    )


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


async def _handle_trail_export(ctx: ServerContext, args: dict[str, Any]) -> types.CallToolResult:
    output = validate_output_path(require_arg(args, "output_path"))
    trail_ids = args.get("trail_ids")

    trails = None
    if trail_ids:
        if not isinstance(trail_ids, list):
            raise ValueError("trail_ids must be a list of trail ids")
        trails = [await run_sync(ctx.repos.trails.require_trail, t) for t in trail_ids]

    written = await run_sync(ctx.exporter.write_archive, output, trails)
    size = written.stat().st_size
    logger.info("Exported archive %s (%d bytes)", written, size)
    return text_result(
        f"Exported archive to {written} ({size} bytes)",
        {"path": str(written), "size": size},
    )


async def _handle_trail_import(ctx: ServerContext, args: dict[str, Any]) -> types.CallToolResult:
    path = validate_archive_path(require_arg(args, "archive_path"))
    result = await ctx.import_guard.run(ctx.importer.parse_zip_file, path)
    return _import_response(result)


async def _handle_trail_import_resolve(
    ctx: ServerContext, args: dict[str, Any]
) -> types.CallToolResult:
    strategy = require_arg(args, "strategy")
    if strategy not in ("keep", "overwrite"):
        raise ValueError(f"strategy must be 'keep' or 'overwrite' (got '{strategy}')")
    path = validate_archive_path(require_arg(args, "archive_path"))
    result = await ctx.import_guard.run(
        ctx.importer.resolve_conflict_and_import, path, strategy
    )
    return _import_response(result)


# ---------------------------------------------------------------------------
# Tool specs
# ---------------------------------------------------------------------------


_ARCHIVE_PATH = {
    "type": "string",
    "description": "Absolute path to a trail ZIP archive",
}

EXCHANGE_SPECS: list[ToolSpec] = [
    ToolSpec(
        tool=types.Tool(
            name="trail_export",
            description=(
                "Export trails with their POIs, photos, CSV table, stories "
                "template and KML to a ZIP archive. Trails without POIs are left out."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=True,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "output_path": {
                        "type": "string",
                        "description": (
                            "Absolute file path, or an existing directory to "
                            "write the archive into under its default name"
                        ),
                    },
                    "trail_ids": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Trails to export (default: all)",
                    },
                },
                "required": ["output_path"],
            },
        ),
        permissions=frozenset({"TRAIL_EXPORT"}),
        handler=_handle_trail_export,
    ),
    ToolSpec(
        tool=types.Tool(
            name="trail_import",
            description=(
                "Import a trail archive. If the trail already exists locally "
                "nothing is written and a conflict is reported instead."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=False,
                idempotentHint=False,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {"archive_path": _ARCHIVE_PATH},
                "required": ["archive_path"],
            },
        ),
        permissions=frozenset({"TRAIL_IMPORT"}),
        handler=_handle_trail_import,
    ),
    ToolSpec(
        tool=types.Tool(
            name="trail_import_resolve",
            description=(
                "Resolve an import conflict: 'keep' leaves the local trail "
                "untouched, 'overwrite' replaces its POIs with the archive's."
            ),
            annotations=types.ToolAnnotations(
                readOnlyHint=False,
                destructiveHint=True,
                idempotentHint=False,
                openWorldHint=False,
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "archive_path": _ARCHIVE_PATH,
                    "strategy": {
                        "type": "string",
                        "enum": ["keep", "overwrite"],
                    },
                },
                "required": ["archive_path", "strategy"],
            },
        ),
        permissions=frozenset({"TRAIL_IMPORT"}),
        handler=_handle_trail_import_resolve,
    ),
]
