"""MCP protocol engine for the quotes server.

This module wires the low-level ``mcp`` Server with:
1. The ``get_quote`` tool (Serper.dev backed)
2. The ``prompt-template://quote-request`` resource

``create_server_factory()`` returns the zero-argument factory the HTTP
transport calls once per session; stdio uses a single ``create_server()``.

Example:
    server = create_server()
    async with stdio_server() as (read, write):
        await server.run(read, write, server.create_initialization_options())
"""

import logging
import os
from collections.abc import Callable, Iterable
from typing import Any

from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from pydantic import AnyUrl, ValidationError

from mcp_quotes import __version__
from mcp_quotes.observability.logging import log_error
from mcp_quotes.resources.prompt_template import (
    PROMPT_TEMPLATE_DESCRIPTION,
    PROMPT_TEMPLATE_MIME_TYPE,
    PROMPT_TEMPLATE_NAME,
    PROMPT_TEMPLATE_TITLE,
    PROMPT_TEMPLATE_URI,
    render_prompt_template,
)
from mcp_quotes.server.errors import QuoteToolError, SerperApiError, SerperConfigurationError
from mcp_quotes.server.schemas import (
    GET_QUOTE_INPUT_SCHEMA,
    QuoteRequest,
    format_validation_errors,
)
from mcp_quotes.services.serper import SerperService

logger = logging.getLogger(__name__)

SERVER_NAME = "mcp-quotes-server"
GET_QUOTE_TOOL = "get_quote"

MISSING_API_KEY_MESSAGE = (
    "Error: SERPER_API_KEY environment variable is not configured. "
    "Please set your Serper.dev API key."
)
UNEXPECTED_ERROR_MESSAGE = (
    "An unexpected error occurred while retrieving the quote(s). Please try again later."
)

SerperServiceFactory = Callable[[str], SerperService]


def build_tool_list() -> list[types.Tool]:
    return [
        types.Tool(
            name=GET_QUOTE_TOOL,
            title="Get Quote",
            description=(
                "Retrieves one or more quotes from a specified person or topic using "
                "Serper.dev API. Supports retrieving 1-10 quotes per request."
            ),
            inputSchema=GET_QUOTE_INPUT_SCHEMA,
        )
    ]


def build_resource_list() -> list[types.Resource]:
    return [
        types.Resource(
            uri=AnyUrl(PROMPT_TEMPLATE_URI),
            name=PROMPT_TEMPLATE_NAME,
            title=PROMPT_TEMPLATE_TITLE,
            description=PROMPT_TEMPLATE_DESCRIPTION,
            mimeType=PROMPT_TEMPLATE_MIME_TYPE,
        )
    ]


async def handle_get_quote(
    arguments: dict[str, Any],
    api_key: str | None = None,
    service_factory: SerperServiceFactory = SerperService,
) -> list[types.TextContent]:
    """Execute the ``get_quote`` tool.

    Args:
        arguments: Raw tool arguments
        api_key: Serper.dev key (default: $SERPER_API_KEY, read at call time)
        service_factory: Builds the Serper client from the key

    Returns:
        Single text content with the quote(s)

    Raises:
        QuoteToolError: With the user-facing message for any failure
    """
    try:
        request = QuoteRequest.model_validate(arguments)
    except ValidationError as e:
        errors = format_validation_errors(e)
        logger.warning(
            "Parameter validation failed for get_quote tool",
            extra={"errors": errors, "raw_params": arguments},
        )
        msg = f"Validation Error: {', '.join(errors)}"
        raise QuoteToolError(msg) from e

    if api_key is None:
        api_key = os.environ.get("SERPER_API_KEY")
    if not api_key:
        logger.error("SERPER_API_KEY environment variable not set")
        raise QuoteToolError(MISSING_API_KEY_MESSAGE)

    context = {
        "person": request.person,
        "topic": request.topic,
        "number_of_quotes": request.number_of_quotes,
    }

    try:
        async with service_factory(api_key) as serper:
            quote = await serper.get_quote(
                request.person, request.topic, request.number_of_quotes
            )
    except SerperConfigurationError as e:
        log_error(logger, "SerperService configuration error", e, context)
        msg = f"Configuration Error: {e}"
        raise QuoteToolError(msg) from e
    except SerperApiError as e:
        log_error(logger, "SerperService API error", e, {**context, "status_code": e.status_code})
        msg = f"API Error: {e.message}. Please try again later."
        raise QuoteToolError(msg) from e
    except Exception as e:
        log_error(logger, "Unexpected error in get_quote tool", e, context)
        raise QuoteToolError(UNEXPECTED_ERROR_MESSAGE) from e

    logger.info(
        "Quote(s) retrieved successfully", extra={**context, "quote_length": len(quote)}
    )
    return [types.TextContent(type="text", text=quote)]


def register_tools(server: Server) -> None:
    """Register ``get_quote`` on ``server``."""

    @server.list_tools()
    async def list_tools() -> list[types.Tool]:
        return build_tool_list()

    # Arguments are validated by QuoteRequest so errors keep the tool's own wording
    @server.call_tool(validate_input=False)
    async def call_tool(name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        if name != GET_QUOTE_TOOL:
            msg = f"Unknown tool: {name}"
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=msg)], isError=True
            )
        try:
            content = await handle_get_quote(arguments)
        except QuoteToolError as e:
            return types.CallToolResult(
                content=[types.TextContent(type="text", text=str(e))], isError=True
            )
        return types.CallToolResult(content=list(content), isError=False)


def register_resources(server: Server) -> None:
    """Register the prompt template resource on ``server``."""

    @server.list_resources()
    async def list_resources() -> list[types.Resource]:
        return build_resource_list()

    @server.read_resource()
    async def read_resource(uri: AnyUrl) -> Iterable[ReadResourceContents]:
        if str(uri).rstrip("/") != PROMPT_TEMPLATE_URI:
            msg = f"Resource not found: {uri}"
            raise ValueError(msg)
        logger.debug("Prompt template resource accessed", extra={"uri": str(uri)})
        return [ReadResourceContents(content=render_prompt_template(), mime_type=PROMPT_TEMPLATE_MIME_TYPE)]


def create_server() -> Server:
    """Build a fully wired protocol engine (tools and resources registered)."""
    server: Server = Server(SERVER_NAME, version=__version__)
    register_tools(server)
    register_resources(server)
    return server


def create_server_factory() -> Callable[[], Server]:
    """Zero-argument factory handed to the HTTP transport (one engine per session)."""
    return create_server


__all__ = [
    "create_server",
    "create_server_factory",
    "handle_get_quote",
    "register_resources",
    "register_tools",
]
