"""MCP tool handlers for trail sync and archive exchange."""

from .errors import build_error_response
from .exchange import EXCHANGE_SPECS
from .registry import ToolRegistry, ToolSpec, load_permissions_file
from .sync import SYNC_SPECS

ALL_SPECS: list[ToolSpec] = SYNC_SPECS + EXCHANGE_SPECS

__all__ = [
    "build_error_response",
    "ToolSpec",
    "ToolRegistry",
    "load_permissions_file",
    "ALL_SPECS",
    "SYNC_SPECS",
    "EXCHANGE_SPECS",
]
