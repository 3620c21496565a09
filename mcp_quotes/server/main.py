"""
Server entry point: pick a transport and run until stopped.

HTTP is used when ``http.enabled`` is set (``MCP_HTTP_ENABLED=true``) or when
explicitly requested; stdio otherwise.
"""

import logging

from mcp_quotes.server.config import Config
from mcp_quotes.server.http_transport import HttpTransportService
from mcp_quotes.server.mcp_server import create_server_factory
from mcp_quotes.server.stdio_transport import serve_stdio

logger = logging.getLogger(__name__)

TRANSPORTS = ("auto", "stdio", "http")


def select_transport(config: Config, requested: str = "auto") -> str:
    """Resolve ``auto`` to ``http`` or ``stdio`` from the configuration."""
    if requested not in TRANSPORTS:
        msg = f"Unknown transport '{requested}', expected one of {list(TRANSPORTS)}"
        raise ValueError(msg)
    if requested != "auto":
        return requested
    return "http" if config.http.enabled else "stdio"


async def serve_http(config: Config) -> None:
    """Run the HTTP transport until uvicorn exits (SIGINT/SIGTERM)."""
    service = HttpTransportService(
        config.http, create_server_factory(), log_level=config.logging.level
    )
    await service.start()
    logger.info(
        "MCP HTTP Server started successfully",
        extra={
            "port": service.bound_port,
            "https": config.http.https.enabled,
            "tools": ["get_quote"],
            "resources": ["prompt-template://quote-request"],
        },
    )
    try:
        await service.wait_closed()
    finally:
        await service.stop()


async def serve(config: Config, transport: str = "auto") -> None:
    """Start the MCP quotes server on the selected transport."""
    selected = select_transport(config, transport)
    logger.info("Starting MCP Quotes Server", extra={"transport": selected})
    if selected == "http":
        await serve_http(config)
    else:
        await serve_stdio()


__all__ = ["select_transport", "serve", "serve_http"]
