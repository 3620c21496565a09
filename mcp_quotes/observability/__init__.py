"""Observability for the quotes server (structured logging)."""

from mcp_quotes.observability.logging import (
    JSONFormatter,
    configure_logging,
    log_api_request,
    log_api_response,
    log_error,
)

__all__ = [
    "JSONFormatter",
    "configure_logging",
    "log_api_request",
    "log_api_response",
    "log_error",
]
