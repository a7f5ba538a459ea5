#!/usr/bin/env python3
"""Code Map MCP Server - exposes a long-lived code map session as MCP tools.

Unlike the ``codemap`` command, which loads and saves the map on every call,
the server keeps one :class:`Workspace` in memory for its whole lifetime.
Marks survive between calls, and unsaved maps are offered for saving when the
server exits.

Usage:
    python -m codemap.mcp.server
    codemap-mcp --workspace /path/to/project
"""

import asyncio
import json
import logging
import os
import sys
from typing import Any, Dict, List, Optional, Sequence

# MCP SDK imports
try:
    from mcp.server import Server
    from mcp.server.stdio import stdio_server
    from mcp.types import Resource, TextContent, Tool

    HAS_MCP = True
except ImportError:
    HAS_MCP = False
    Server = None

from .. import __version__
from ..cli import format_listing
from ..config import load_config
from ..exceptions import UserError
from ..indexer import CodeIndexer
from ..models import DEPTH_NAMES
from ..persistence import serialize
from ..query import CodeIndex
from ..workspace import Workspace

logger = logging.getLogger(__name__)

# ==============================================================================
# TOOL DEFINITIONS
# ==============================================================================

_PROJECT = {
    "type": "string",
    "description": "Project root (uses the server workspace if not specified)",
}
_KEYS = {
    "type": "array",
    "items": {"type": "string"},
    "description": "Items of the current list: file paths, symbol names, or path:line",
}
_CONFIRM = {
    "type": "boolean",
    "description": "Must be true: this change cannot be undone",
    "default": False,
}


def _tool(name: str, description: str, properties: Dict[str, Any] = None, required=None):
    schema: Dict[str, Any] = {"type": "object", "properties": {"project": _PROJECT}}
    schema["properties"].update(properties or {})
    if required:
        schema["required"] = required
    return {"name": name, "description": description, "inputSchema": schema}


TOOLS: List[Dict[str, Any]] = [
    _tool(
        "codemap_see_symbol",
        "Add a symbol to the code map under a file and browse its definitions.",
        {"file": {"type": "string"}, "symbol": {"type": "string"}},
        ["file", "symbol"],
    ),
    _tool(
        "codemap_see_file",
        "Browse the symbols recorded for a file already in the code map.",
        {"file": {"type": "string"}},
        ["file"],
    ),
    _tool(
        "codemap_list",
        "List the current level of the code map (files, symbols or definitions).",
        {"all": {"type": "boolean", "description": "Include hidden definitions", "default": False}},
    ),
    _tool(
        "codemap_forward",
        "Enter a file or symbol, or jump to a definition (returns its path:line).",
        {"key": {"type": "string"}},
        ["key"],
    ),
    _tool("codemap_back", "Go up one level in the code map."),
    _tool(
        "codemap_hide",
        "Hide definitions. Targets: keys if given, else marked items, else the current one.",
        {"keys": _KEYS},
    ),
    _tool("codemap_show_all", "Show every hidden definition of the current symbol again."),
    _tool(
        "codemap_delete",
        "Delete files or symbols from the code map.",
        {"keys": _KEYS, "confirm": _CONFIRM},
    ),
    _tool(
        "codemap_keep",
        "Hide (definitions) or delete (files, symbols) everything except the targets.",
        {"keys": _KEYS, "confirm": _CONFIRM},
    ),
    _tool("codemap_mark", "Mark items of the current list.", {"keys": _KEYS}, ["keys"]),
    _tool(
        "codemap_unmark",
        "Unmark items of the current list (all of them if no keys are given).",
        {"keys": _KEYS},
    ),
    _tool("codemap_mark_missing", "Mark files gone from disk, or symbols with no definition."),
    _tool(
        "codemap_replace_file",
        "Rename a file in the code map.",
        {"old": {"type": "string"}, "new": {"type": "string"}},
        ["old", "new"],
    ),
    _tool(
        "codemap_update",
        "Re-index the project and re-query every symbol. Hidden definitions show again.",
        {"confirm": _CONFIRM},
    ),
    _tool("codemap_save", "Save the code map.", {"path": {"type": "string"}}),
    _tool(
        "codemap_load",
        "Load a saved code map, replacing the one in memory.",
        {"path": {"type": "string"}, "confirm": _CONFIRM},
        ["path"],
    ),
    _tool("codemap_status", "Show the position and save state of the code map."),
]


class ServerHost:
    """Host for the MCP server: jumps are reported back to the client."""

    def __init__(self, workspace_root: str):
        self.workspace_root = workspace_root
        self.last_opened: Optional[str] = None

    def open_location(self, path: str, line: int, focus: str) -> None:
        self.last_opened = f"{path}:{line}"

    def current_buffer_file(self) -> Optional[str]:
        return None

    def project_root_of(self, path: str) -> str:
        return self.workspace_root


class CodeMapToolHandler:
    """Runs tool calls against one long-lived workspace."""

    def __init__(self, workspace_root: Optional[str] = None):
        self.workspace_root = os.path.abspath(workspace_root or os.getcwd())
        self.config = load_config(self.workspace_root)
        self.host = ServerHost(self.workspace_root)
        self._confirmed = False
        self._workspace: Optional[Workspace] = None

    @property
    def index_path(self) -> str:
        return self.config.resolve(self.workspace_root, self.config.index_file)

    @property
    def workspace(self) -> Workspace:
        if self._workspace is None:
            workspace = Workspace(
                self._load_index(),
                host=self.host,
                confirm=lambda prompt: self._confirmed,
                config=self.config,
            )
            map_path = self.config.resolve(self.workspace_root, self.config.map_file)
            if os.path.exists(map_path):
                loaded = workspace.load(map_path)
                if loaded != self.workspace_root:
                    raise UserError(
                        f"{map_path} is the code map of {loaded}; "
                        "set map_file in [tool.codemap] to another file"
                    )
            workspace.install_exit_hook(lambda prompt: self.config.save_on_exit)
            self._workspace = workspace
        return self._workspace

    def _load_index(self, rebuild: bool = False) -> CodeIndex:
        if rebuild or not os.path.exists(self.index_path):
            CodeIndexer(self.workspace_root, self.config.ignore).write(self.index_path)
        return CodeIndex.load(self.index_path)

    def _listing(self, project: str, show_hidden: bool = False) -> str:
        return format_listing(self.workspace, project, show_hidden, no_color=True)

    async def handle(self, name: str, arguments: Dict[str, Any]) -> str:
        """Dispatch one tool call and return its text result."""
        workspace = self.workspace
        project = workspace.resolve_project(arguments.get("project") or self.workspace_root)
        self._confirmed = bool(arguments.get("confirm", False))
        keys = workspace.parse_keys(project, arguments.get("keys") or [])

        if name == "codemap_see_symbol":
            workspace.see_symbol(project, arguments["file"], arguments["symbol"])
        elif name == "codemap_see_file":
            workspace.see_file(project, arguments["file"])
        elif name == "codemap_list":
            return self._listing(project, bool(arguments.get("all", False)))
        elif name == "codemap_forward":
            self.host.last_opened = None
            key = workspace.parse_keys(project, [arguments["key"]])[0]
            workspace.forward(project, key)
            if self.host.last_opened:
                return f"Opened {self.host.last_opened}"
        elif name == "codemap_back":
            workspace.backward(project)
        elif name in ("codemap_hide", "codemap_delete", "codemap_keep"):
            position = workspace.position(project)
            selection = workspace.selection(
                project, cursor=position.field_at(position.depth), region=keys or None
            )
            operation = {
                "codemap_hide": workspace.hide,
                "codemap_delete": workspace.delete_items,
                "codemap_keep": workspace.keep,
            }[name]
            if not operation(project, selection):
                return "Not confirmed: pass confirm=true to apply this change."
        elif name == "codemap_show_all":
            shown = workspace.show_all(project)
            return f"{len(shown)} definitions shown again (now marked)\n\n{self._listing(project)}"
        elif name == "codemap_mark":
            workspace.mark(project, keys)
        elif name == "codemap_unmark":
            if keys:
                workspace.unmark(project, keys)
            else:
                workspace.unmark_all(project)
        elif name == "codemap_mark_missing":
            missing = workspace.mark_missing(project)
            if not missing:
                return "Nothing missing."
        elif name == "codemap_replace_file":
            workspace.replace_file(project, arguments["old"], arguments["new"])
        elif name == "codemap_update":
            if not self._confirmed:
                return "Not confirmed: pass confirm=true to apply this change."
            workspace.query = self._load_index(rebuild=True)
            count = workspace.update(project)
            return f"{count} symbols updated\n\n{self._listing(project)}"
        elif name == "codemap_save":
            path = workspace.save(project, arguments.get("path"))
            return f"Saved to {path}"
        elif name == "codemap_load":
            loaded = workspace.load(arguments["path"])
            if loaded is None:
                return "Not confirmed: the code map has unsaved changes; pass confirm=true."
            project = loaded
        elif name == "codemap_status":
            return self._status(project)
        else:
            return f"Unknown tool: {name}"

        return self._listing(project)

    def _status(self, project: str) -> str:
        position = self.workspace.position(project)
        state = self.workspace.store.disk_state(project)
        return "\n".join(
            [
                f"# Code Map: {os.path.basename(project)}",
                f"Depth: {position.depth} ({DEPTH_NAMES[position.depth]})",
                f"File: {position.file or '-'}",
                f"Symbol: {position.symbol or '-'}",
                f"Definition: {position.definition.location if position.definition else '-'}",
                f"Unsaved changes: {'yes' if state.dirty else 'no'}",
                f"Saved to: {state.path or '-'}",
            ]
        )


# ==============================================================================
# SERVER
# ==============================================================================


def create_server(workspace_root: Optional[str] = None) -> "Server":
    """Create and configure the MCP server.

    Unsaved maps with a known file are saved on exit when ``save_on_exit``
    is configured.
    """
    if not HAS_MCP:
        raise ImportError("MCP SDK not installed. Install with: pip install mcp")

    server = Server("codemap")
    handler = CodeMapToolHandler(workspace_root)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return [
            Tool(name=tool["name"], description=tool["description"], inputSchema=tool["inputSchema"])
            for tool in TOOLS
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> Sequence[TextContent]:
        try:
            result = await handler.handle(name, arguments or {})
        except Exception as e:
            logger.exception(f"Error executing tool {name}")
            result = f"Error: {e}"
        return [TextContent(type="text", text=result)]

    @server.list_resources()
    async def list_resources() -> list[Resource]:
        return [
            Resource(
                uri="codemap://map",
                name="Code Map",
                description="The code map of the server workspace, in its saved form",
                mimeType="application/json",
            )
        ]

    @server.read_resource()
    async def read_resource(uri: str) -> str:
        if str(uri) != "codemap://map":
            return f"Unknown resource: {uri}"
        workspace = handler.workspace
        project = handler.workspace_root
        data = serialize(project, workspace.store.get_map(project), workspace.position(project))
        return json.dumps(data, indent=2)

    return server


async def run_server(workspace_root: Optional[str] = None):
    """Run the MCP server using stdio transport."""
    server = create_server(workspace_root)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def main():
    """Entry point for the MCP server."""
    import argparse

    parser = argparse.ArgumentParser(description="Code Map MCP Server")
    parser.add_argument("--workspace", "-w", default=os.getcwd(), help="Workspace root directory")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args()

    if args.debug:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO)

    if not HAS_MCP:
        print("Error: MCP SDK not installed. Install with: pip install mcp", file=sys.stderr)
        sys.exit(1)

    asyncio.run(run_server(args.workspace))


if __name__ == "__main__":
    main()
