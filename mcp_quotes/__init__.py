"""
MCP Quotes Server

A Model Context Protocol server that answers quote requests through a
search-backed ``get_quote`` tool and exposes a prompt template resource.

Transports:
- stdio: single connection over standard streams (default)
- HTTP: session-managed streamable HTTP transport (see mcp_quotes.server)
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("mcp-quotes-server")
except PackageNotFoundError:
    # Development checkout, not installed via pip
    __version__ = "0.1.3"

__all__ = ["__version__"]
