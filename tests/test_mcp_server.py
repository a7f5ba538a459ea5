"""Tests for the MCP server tool handler.

The handler does not need the MCP SDK, so these tests run without it.
"""

import asyncio
import os
from pathlib import Path

import pytest

from codemap.exceptions import NotFoundError, UserError
from codemap.mcp.server import TOOLS, CodeMapToolHandler


@pytest.fixture
def handler(tmp_path: Path, monkeypatch) -> CodeMapToolHandler:
    monkeypatch.setattr("codemap.workspace.atexit.register", lambda *args: None)
    (tmp_path / "main.c").write_text("int setup(void) {\n}\n\nint run(void) {\n}\n")
    (tmp_path / "worker.c").write_text("int run(void)\n{\n    return 0;\n}\n")
    return CodeMapToolHandler(str(tmp_path))


def call(handler, name, **arguments):
    return asyncio.run(handler.handle(name, arguments))


class TestTools:
    """Tests for the tool list."""

    def test_tool_names_unique(self):
        """Test that every tool has a distinct name and a schema."""
        names = [tool["name"] for tool in TOOLS]
        assert len(names) == len(set(names))
        assert all(tool["inputSchema"]["type"] == "object" for tool in TOOLS)

    def test_destructive_tools_take_confirm(self):
        """Test that delete, keep, update and load accept confirm."""
        by_name = {tool["name"]: tool for tool in TOOLS}
        for name in ("codemap_delete", "codemap_keep", "codemap_update", "codemap_load"):
            assert "confirm" in by_name[name]["inputSchema"]["properties"]


class TestHandler:
    """Tests for CodeMapToolHandler.handle."""

    def test_index_built_on_first_use(self, handler):
        """Test that a missing index is built when the workspace is created."""
        call(handler, "codemap_status")
        assert os.path.exists(handler.index_path)

    def test_see_symbol_and_list(self, handler):
        """Test adding a symbol and listing its definitions."""
        result = call(handler, "codemap_see_symbol", file="main.c", symbol="run")
        assert "[definitions] main.c run" in result
        assert "main.c:4" in result
        assert "worker.c:1" in result

    def test_forward_reports_location(self, handler):
        """Test that jumping to a definition returns where it is."""
        call(handler, "codemap_see_symbol", file="main.c", symbol="run")
        result = call(handler, "codemap_forward", key="worker.c:1")
        assert result == f"Opened {os.path.join(handler.workspace_root, 'worker.c')}:1"

    def test_marks_survive_between_calls(self, handler):
        """Test that marks drive a later hide."""
        call(handler, "codemap_see_symbol", file="main.c", symbol="run")
        call(handler, "codemap_mark", keys=["worker.c:1"])

        result = call(handler, "codemap_hide")

        assert "worker.c:1" not in result
        assert call(handler, "codemap_list", all=True).count("(hidden)") == 1

    def test_delete_needs_confirm(self, handler):
        """Test that delete does nothing until confirmed."""
        call(handler, "codemap_see_symbol", file="main.c", symbol="run")
        call(handler, "codemap_back")
        call(handler, "codemap_back")

        assert call(handler, "codemap_delete", keys=["main.c"]).startswith("Not confirmed")
        assert handler.workspace.file_list(handler.workspace_root) == ["main.c"]

        call(handler, "codemap_delete", keys=["main.c"], confirm=True)
        assert handler.workspace.file_list(handler.workspace_root) == []

    def test_update(self, handler):
        """Test that update re-indexes only when confirmed."""
        call(handler, "codemap_see_symbol", file="main.c", symbol="run")
        call(handler, "codemap_see_symbol", file="main.c", symbol="setup")

        assert call(handler, "codemap_update").startswith("Not confirmed")
        assert call(handler, "codemap_update", confirm=True).startswith("2 symbols updated")

    def test_save_and_load(self, handler):
        """Test saving to the configured file and loading it back."""
        call(handler, "codemap_see_symbol", file="main.c", symbol="run")
        result = call(handler, "codemap_save")
        path = os.path.join(handler.workspace_root, ".codemap", "session.json")
        assert result == f"Saved to {path}"

        call(handler, "codemap_see_symbol", file="main.c", symbol="setup")
        assert call(handler, "codemap_load", path=path).startswith("Not confirmed")
        call(handler, "codemap_load", path=path, confirm=True)
        assert handler.workspace.symbol_list(handler.workspace_root, "main.c") == ["run"]

    def test_status(self, handler):
        """Test the status report."""
        call(handler, "codemap_see_symbol", file="main.c", symbol="run")
        status = call(handler, "codemap_status")
        assert "Depth: 2 (definitions)" in status
        assert "Unsaved changes: yes" in status

    def test_errors_propagate(self, handler):
        """Test that workspace errors reach the caller."""
        with pytest.raises(NotFoundError):
            call(handler, "codemap_see_symbol", file="main.c", symbol="nothing")

    def test_unknown_tool(self, handler):
        """Test that an unknown tool name is reported."""
        assert call(handler, "codemap_nothing") == "Unknown tool: codemap_nothing"

    def test_map_of_other_project_refused(self, handler, tmp_path):
        """Test that the configured map file is not taken over from another root."""
        map_path = tmp_path / ".codemap" / "session.json"
        map_path.parent.mkdir()
        map_path.write_text('{"project-root": "/elsewhere", "map": {}, "position": {"depth": 0}}')

        with pytest.raises(UserError, match="/elsewhere"):
            call(handler, "codemap_status")
        assert "/elsewhere" in map_path.read_text()
