"""
stdio transport for MCP.

A single connection over standard streams. Logging must stay off stdout, which
carries the protocol; configure_logging() only installs file handlers.
"""

import logging

from mcp.server.stdio import stdio_server

from mcp_quotes.server.mcp_server import create_server

logger = logging.getLogger(__name__)


async def serve_stdio() -> None:
    """Serve one MCP connection over stdin/stdout until the client disconnects."""
    server = create_server()
    logger.info(
        "MCP stdio server started",
        extra={"tools": ["get_quote"], "resources": ["prompt-template://quote-request"]},
    )
    async with stdio_server() as (read, write):
        await server.run(read, write, server.create_initialization_options())
    logger.info("MCP stdio server stopped")


__all__ = ["serve_stdio"]
