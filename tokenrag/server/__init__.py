"""
TokenRAG MCP server (stdio).
"""

from .server import MCPServerApp, main

__all__ = ["MCPServerApp", "main"]
