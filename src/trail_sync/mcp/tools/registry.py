"""ToolSpec and ToolRegistry for permission-based tool filtering.

Operators can restrict which tools are exposed to an agent, e.g. a
read-only deployment that may export but never import or archive.

Key concepts:
- ToolSpec: Immutable dataclass linking a Tool definition, required permissions,
  and an async handler with signature (ctx, args) -> CallToolResult.
- ToolRegistry: Filters specs by allowed permissions at construction time,
  then provides list_tools() and call_tool() dispatch with error translation.
- load_permissions_file: Reads a simple text file of permission names.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

import mcp.types as types

from ...core.async_utils import AlreadyInProgressError
from ...errors import (
    EntityNotFoundError,
    IdentityRequiredError,
    NothingToExportError,
    RemoteUnavailableError,
    TrailNotSyncedError,
    TrailSyncError,
)
from ..context import ServerContext
from .errors import build_error_response

logger = logging.getLogger(__name__)

KNOWN_PERMISSIONS = frozenset(
    {"SYNC_VIEW", "SYNC_RUN", "TRAIL_EXPORT", "TRAIL_IMPORT", "TRAIL_ARCHIVE", "PROFILE_SETUP"}
)


@dataclass(frozen=True, slots=True)
class ToolSpec:
    """Immutable specification for a single MCP tool.

    Attributes:
        tool: The MCP Tool definition (name, description, inputSchema).
        permissions: Permissions required to use this tool.
            Empty frozenset means the tool is always available.
        handler: Async handler with signature (ctx, args) -> CallToolResult.
    """

    tool: types.Tool
    permissions: frozenset[str]
    handler: Callable[[ServerContext, dict], Awaitable[types.CallToolResult]]


class ToolRegistry:
    """Registry of ToolSpecs with optional permission-based filtering.

    If allowed_permissions is None, all specs are included.  Otherwise a
    spec is included only if its permissions are empty or a subset of
    allowed_permissions.
    """

    def __init__(
        self,
        specs: list[ToolSpec],
        allowed_permissions: frozenset[str] | None = None,
    ):
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if (
                allowed_permissions is None
                or not spec.permissions
                or spec.permissions <= allowed_permissions
            ):
                self._specs[spec.tool.name] = spec

    def list_tools(self) -> list[types.Tool]:
        return [spec.tool for spec in self._specs.values()]

    def tool_count(self) -> int:
        return len(self._specs)

    async def call_tool(
        self,
        name: str,
        arguments: dict | None,
        ctx: ServerContext,
    ) -> types.CallToolResult:
        """Dispatch tool call to its registered handler.

        Domain exceptions are translated into structured error responses
        with a corrective action for the agent.

        Raises:
            ValueError: If tool name is not registered (unknown or filtered out).
        """
        spec = self._specs.get(name)
        if spec is None:
            raise ValueError(f"Unknown tool: {name}")
        args = arguments or {}
        try:
            return await spec.handler(ctx, args)
        except AlreadyInProgressError as e:
            return build_error_response(
                "in_progress", str(e), "Wait for the running operation to finish, then retry."
            )
        except EntityNotFoundError as e:
            return build_error_response(
                "not_found", str(e), "Use sync_status or trail_export to check which trails exist."
            )
        except IdentityRequiredError as e:
            return build_error_response(
                "identity_required", str(e), "Run profile_setup with the user's name and email first."
            )
        except TrailNotSyncedError as e:
            return build_error_response(
                "not_synced", str(e), "Run sync_run, then retry."
            )
        except RemoteUnavailableError as e:
            return build_error_response(
                "remote_unavailable",
                str(e),
                "Check TRAIL_SYNC_REMOTE_URL and TRAIL_SYNC_REMOTE_KEY, then retry.",
            )
        except NothingToExportError as e:
            return build_error_response(
                "nothing_to_export", str(e), "Add at least one POI to a trail before exporting."
            )
        except ValueError as e:
            return build_error_response(
                "validation_error",
                str(e),
                "Check parameter values and retry.",
            )
        except TrailSyncError as e:
            logger.warning("Tool %s failed: %s", name, e)
            return build_error_response(
                "server_error", str(e), "Check the server log and retry."
            )
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            return build_error_response(
                "server_error",
                str(e),
                "Check the server log and retry later.",
            )


def load_permissions_file(path: str | Path) -> frozenset[str]:
    """Load permissions from a text file.

    Format: one permission per line, ``#`` for comments, blank lines ignored.

    Example file::

        # Read-only deployment
        SYNC_VIEW
        TRAIL_EXPORT

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file names an unknown permission or is empty.
    """
    path = Path(path)
    permissions: set[str] = set()
    for line_num, line in enumerate(path.read_text().splitlines(), 1):
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped not in KNOWN_PERMISSIONS:
            raise ValueError(
                f"Invalid permission '{stripped}' at line {line_num} in {path}. "
                f"Expected one of: {', '.join(sorted(KNOWN_PERMISSIONS))}."
            )
        permissions.add(stripped)
    if not permissions:
        raise ValueError(
            f"No permissions found in {path}. File must contain at least one permission."
        )
    return frozenset(permissions)
