"""
Error taxonomy for the MCP quotes server.

Transport errors carry the HTTP status and JSON-RPC envelope they map to, so
the HTTP layer never has to guess how to surface a failure. Domain errors
(Serper) are translated into tool results by the MCP server layer.

Key features:
- Error type enum (avoid typos)
- JSON-RPC error envelope for HTTP responses
- Configuration errors that are fatal at startup
"""

from enum import Enum
from typing import Any

# ============================================================================
# Error Types
# ============================================================================

JSONRPC_SERVER_ERROR = -32000
JSONRPC_PARSE_ERROR = -32700


class HttpTransportErrorType(str, Enum):
    """Enumeration of HTTP transport error categories."""

    # Session resolution
    INVALID_SESSION = "INVALID_SESSION"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"

    # Startup
    HTTPS_CONFIG_ERROR = "HTTPS_CONFIG_ERROR"
    SERVER_STARTUP_ERROR = "SERVER_STARTUP_ERROR"

    # Internal
    TRANSPORT_INIT_ERROR = "TRANSPORT_INIT_ERROR"


# ============================================================================
# Transport Errors
# ============================================================================


class HttpTransportError(Exception):
    """Base class for HTTP transport errors."""

    def __init__(
        self,
        message: str,
        error_type: HttpTransportErrorType = HttpTransportErrorType.TRANSPORT_INIT_ERROR,
        status_code: int = 500,
        context: dict[str, Any] | None = None,
        session_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.context = context or {}
        self.session_id = session_id

    def to_jsonrpc(self, code: int = JSONRPC_SERVER_ERROR) -> dict[str, Any]:
        """Convert to a JSON-RPC error envelope (no request id)."""
        return {
            "jsonrpc": "2.0",
            "error": {
                "code": code,
                "message": self.message,
                "data": self.context or None,
            },
            "id": None,
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for logging."""
        return {
            "error": self.error_type.value,
            "message": self.message,
            "status_code": self.status_code,
            "session_id": self.session_id,
            "context": self.context,
        }


class SessionNotFoundError(HttpTransportError):
    """Session id missing (INVALID_SESSION) or not present in the registry (SESSION_NOT_FOUND)."""

    def __init__(
        self,
        message: str,
        session_id: str | None = None,
        error_type: HttpTransportErrorType = HttpTransportErrorType.SESSION_NOT_FOUND,
    ) -> None:
        super().__init__(
            message,
            error_type,
            status_code=400,
            session_id=session_id,
        )


class ConfigurationError(HttpTransportError, ValueError):
    """Invalid server configuration. Fatal at startup, never per request."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(
            message,
            HttpTransportErrorType.HTTPS_CONFIG_ERROR,
            status_code=500,
            context=context,
        )


# ============================================================================
# Domain Errors
# ============================================================================


class SerperApiError(Exception):
    """Serper.dev request failed (network, server error or bad response)."""

    def __init__(
        self, message: str, status_code: int | None = None, response: Any | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class SerperConfigurationError(Exception):
    """Serper.dev integration is misconfigured (missing key, bad parameters)."""


class QuoteToolError(Exception):
    """Failure reported back to the MCP client as an error tool result."""
