"""Tests for ToolSpec, ToolRegistry, and load_permissions_file.

Covers:
- ToolRegistry filtering (no filter, permission filter, empty permissions)
- call_tool dispatch and translation of domain errors
- load_permissions_file parsing, validation, and error cases
"""

import asyncio
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

import mcp.types as types

from trail_sync.core.async_utils import AlreadyInProgressError
from trail_sync.errors import (
    ArchiveFormatError,
    EntityNotFoundError,
    IdentityRequiredError,
    NothingToExportError,
    RemoteUnavailableError,
    TrailNotSyncedError,
    ValidationError,
)
from trail_sync.mcp.tools import ALL_SPECS
from trail_sync.mcp.tools.registry import (
    KNOWN_PERMISSIONS,
    ToolRegistry,
    ToolSpec,
    load_permissions_file,
)


def _make_spec(
    name: str,
    permissions: frozenset[str] | None = None,
    handler=None,
) -> ToolSpec:
    """Helper to create a ToolSpec for testing."""
    if permissions is None:
        permissions = frozenset()
    if handler is None:

        async def handler(ctx, args):
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=f"ok:{name}")]
            )

    return ToolSpec(
        tool=types.Tool(
            name=name,
            description=f"Test tool {name}",
            inputSchema={"type": "object", "properties": {}, "required": []},
        ),
        permissions=permissions,
        handler=handler,
    )


def _raising(exc: Exception) -> ToolSpec:
    async def handler(ctx, args):
        raise exc

    return _make_spec("boom", handler=handler)


def _call(registry: ToolRegistry, name: str, args=None) -> types.CallToolResult:
    return asyncio.run(registry.call_tool(name, args, MagicMock()))


def _text(result: types.CallToolResult) -> str:
    content = result.content[0]
    assert isinstance(content, types.TextContent)
    return content.text


class TestToolSpec(unittest.TestCase):
    def test_frozen(self):
        spec = _make_spec("sync_status", frozenset({"SYNC_VIEW"}))
        with self.assertRaises(AttributeError):
            spec.permissions = frozenset({"SYNC_RUN"})

    def test_every_spec_uses_known_permissions(self):
        for spec in ALL_SPECS:
            self.assertTrue(spec.permissions)
            self.assertLessEqual(spec.permissions, KNOWN_PERMISSIONS, spec.tool.name)

    def test_tool_names_unique(self):
        names = [spec.tool.name for spec in ALL_SPECS]
        self.assertEqual(len(names), len(set(names)))


class TestToolRegistryFiltering(unittest.TestCase):
    def setUp(self):
        self.specs = [
            _make_spec("ping"),
            _make_spec("sync_status", frozenset({"SYNC_VIEW"})),
            _make_spec("trail_export", frozenset({"TRAIL_EXPORT"})),
            _make_spec("trail_import", frozenset({"TRAIL_IMPORT"})),
        ]

    def test_no_filter_includes_all(self):
        registry = ToolRegistry(self.specs)
        self.assertEqual(registry.tool_count(), 4)

    def test_filter_by_permissions(self):
        registry = ToolRegistry(self.specs, frozenset({"SYNC_VIEW", "TRAIL_EXPORT"}))
        names = [tool.name for tool in registry.list_tools()]
        self.assertEqual(names, ["ping", "sync_status", "trail_export"])

    def test_empty_permissions_always_available(self):
        registry = ToolRegistry(self.specs, frozenset())
        self.assertEqual([t.name for t in registry.list_tools()], ["ping"])

    def test_filtered_tool_is_unknown(self):
        registry = ToolRegistry(self.specs, frozenset({"SYNC_VIEW"}))
        with self.assertRaises(ValueError) as cm:
            _call(registry, "trail_import")
        self.assertIn("Unknown tool: trail_import", str(cm.exception))


class TestCallTool(unittest.TestCase):
    def test_dispatches_with_empty_args(self):
        seen = {}

        async def handler(ctx, args):
            seen["args"] = args
            return types.CallToolResult(content=[types.TextContent(type="text", text="ok")])

        registry = ToolRegistry([_make_spec("ping", handler=handler)])
        result = _call(registry, "ping", None)
        self.assertEqual(_text(result), "ok")
        self.assertEqual(seen["args"], {})

    def _error_type(self, exc: Exception) -> str:
        result = _call(ToolRegistry([_raising(exc)]), "boom")
        self.assertTrue(result.isError)
        text = _text(result)
        self.assertIn("Action: ", text)
        return text.split("(", 1)[1].split(")", 1)[0]

    def test_error_translation(self):
        cases = [
            (AlreadyInProgressError("Sync already in progress"), "in_progress"),
            (EntityNotFoundError("Trail", "x-graveyard"), "not_found"),
            (IdentityRequiredError("log in"), "identity_required"),
            (TrailNotSyncedError("sync first"), "not_synced"),
            (RemoteUnavailableError("down"), "remote_unavailable"),
            (NothingToExportError("empty"), "nothing_to_export"),
            (ValidationError("bad rotation"), "validation_error"),
            (ValueError("strategy must be 'keep' or 'overwrite'"), "validation_error"),
            (ArchiveFormatError("no manifest"), "server_error"),
            (RuntimeError("unexpected"), "server_error"),
        ]
        for exc, expected in cases:
            with self.subTest(exc=type(exc).__name__):
                self.assertEqual(self._error_type(exc), expected)

    def test_message_kept(self):
        result = _call(ToolRegistry([_raising(EntityNotFoundError("Trail", "x-parish"))]), "boom")
        self.assertIn("Trail not found: x-parish", _text(result))


class TestLoadPermissionsFile(unittest.TestCase):
    def _write(self, text: str) -> Path:
        tmp = tempfile.NamedTemporaryFile("w", suffix=".permissions", delete=False)
        tmp.write(text)
        tmp.close()
        path = Path(tmp.name)
        self.addCleanup(path.unlink)
        return path

    def test_parses_with_comments_and_blanks(self):
        path = self._write("# export-only\n\nSYNC_VIEW\n  TRAIL_EXPORT  \n")
        self.assertEqual(
            load_permissions_file(path), frozenset({"SYNC_VIEW", "TRAIL_EXPORT"})
        )

    def test_accepts_str_path(self):
        path = self._write("TRAIL_IMPORT\n")
        self.assertEqual(load_permissions_file(str(path)), frozenset({"TRAIL_IMPORT"}))

    def test_unknown_permission(self):
        path = self._write("SYNC_VIEW\nTICKET_VIEW\n")
        with self.assertRaises(ValueError) as cm:
            load_permissions_file(path)
        self.assertIn("'TICKET_VIEW' at line 2", str(cm.exception))

    def test_only_comments(self):
        path = self._write("# nothing enabled\n")
        with self.assertRaises(ValueError) as cm:
            load_permissions_file(path)
        self.assertIn("No permissions found", str(cm.exception))

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            load_permissions_file("/nonexistent/trail.permissions")
