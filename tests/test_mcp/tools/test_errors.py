"""Tests for mcp/tools/errors.py: response builders and argument checks."""

import mcp.types as types
import pytest

from trail_sync.mcp.tools.errors import build_error_response, require_arg, text_result


class TestBuildErrorResponse:
    def test_format(self):
        result = build_error_response("not_synced", "Trail not in cloud", "Run sync_run")
        assert result.isError is True
        assert len(result.content) == 1
        content = result.content[0]
        assert isinstance(content, types.TextContent)
        assert content.text == "Error (not_synced): Trail not in cloud\n\nAction: Run sync_run"


class TestTextResult:
    def test_structured_content(self):
        result = text_result("done", {"size": 10})
        assert not result.isError
        assert result.content[0].text == "done"
        assert result.structuredContent == {"size": 10}

    def test_text_only(self):
        assert text_result("done").structuredContent is None


class TestRequireArg:
    def test_present(self):
        assert require_arg({"trail_id": "clonfert-parish"}, "trail_id") == "clonfert-parish"

    def test_non_string_kept(self):
        assert require_arg({"trail_ids": ["a"]}, "trail_ids") == ["a"]

    @pytest.mark.parametrize("args", [{}, {"trail_id": None}, {"trail_id": "  "}])
    def test_missing_or_blank(self, args):
        with pytest.raises(ValueError, match="trail_id is required"):
            require_arg(args, "trail_id")
