"""Code Map MCP Server - Model Context Protocol integration.

Exposes a long-lived code map session as MCP tools and resources.

Usage:
    # Entry point (recommended)
    codemap-mcp

    # Or as a Python module
    python -m codemap.mcp
"""

from .server import CodeMapToolHandler, create_server, main, run_server

__all__ = [
    "CodeMapToolHandler",
    "create_server",
    "run_server",
    "main",
]
