"""External service clients."""

from mcp_quotes.services.serper import SerperService

__all__ = ["SerperService"]
