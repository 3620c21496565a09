"""
HTTP middleware for the MCP transport.

Order matters: Host validation → CORS → request logging → routes.
Host validation runs first so requests from unexpected hosts never reach
session state (DNS rebinding protection).
"""

import logging
import time
import uuid
from collections.abc import Iterable
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import ASGIApp

from mcp_quotes.server.config import SecurityConfig

logger = logging.getLogger(__name__)

MCP_SESSION_ID_HEADER = "mcp-session-id"
REQUEST_ID_HEADER = "x-request-id"

CORS_ALLOWED_HEADERS = [
    "Content-Type",
    MCP_SESSION_ID_HEADER,
    "mcp-protocol-version",
    "Last-Event-ID",
]
CORS_EXPOSED_HEADERS = [MCP_SESSION_ID_HEADER]
CORS_ALLOWED_METHODS = ["GET", "POST", "DELETE", "OPTIONS"]


def parse_hostname(host: str) -> str:
    """
    Strip the port from a Host header value and lower-case it.

    Handles the bracketed IPv6 form (``[::1]:3000`` → ``::1``).
    """
    host = host.strip().lower()
    if host.startswith("["):
        end = host.find("]")
        if end != -1:
            return host[1:end]
        return host[1:]
    if host.count(":") == 1:
        return host.split(":", 1)[0]
    # Bare IPv6 without brackets carries no port
    return host


def is_host_allowed(hostname: str, allowed_hosts: Iterable[str]) -> bool:
    """Check a bare hostname against the allow-list (``*`` allows all)."""
    for allowed in allowed_hosts:
        if allowed == "*":
            return True
        if parse_hostname(allowed) == hostname:
            return True
    return False


class HostValidationMiddleware(BaseHTTPMiddleware):
    """
    Reject requests whose Host header is missing or not allow-listed.

    Responses:
    - 400 when the Host header is absent
    - 403 when the hostname is not in ``allowed_hosts``
    """

    def __init__(self, app: ASGIApp, allowed_hosts: Iterable[str]) -> None:
        super().__init__(app)
        self.allowed_hosts = tuple(allowed_hosts)

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        host = request.headers.get("host")

        if not host:
            logger.warning(
                "Request rejected: missing Host header",
                extra={"path": request.url.path, "allowed_hosts": list(self.allowed_hosts)},
            )
            return JSONResponse(
                {"error": "Bad Request", "message": "Host header is required"},
                status_code=400,
            )

        hostname = parse_hostname(host)
        if not is_host_allowed(hostname, self.allowed_hosts):
            logger.warning(
                "Request rejected: host %s not allowed",
                hostname,
                extra={"hostname": hostname, "allowed_hosts": list(self.allowed_hosts)},
            )
            return JSONResponse(
                {"error": "Forbidden", "message": "Host not allowed"},
                status_code=403,
            )

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id and log method, path, status and duration."""

    async def dispatch(self, request: Request, call_next: Any) -> Any:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            response.status_code,
            extra={
                "request_id": request_id,
                "session_id": request.headers.get(MCP_SESSION_ID_HEADER),
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response


def build_cors_options(security: SecurityConfig) -> dict[str, Any]:
    """Keyword arguments for Starlette's CORSMiddleware."""
    origins = list(security.allowed_origins)
    if "*" in origins:
        origins = ["*"]

    return {
        "allow_origins": origins,
        "allow_credentials": True,
        "allow_methods": CORS_ALLOWED_METHODS,
        "allow_headers": CORS_ALLOWED_HEADERS,
        "expose_headers": CORS_EXPOSED_HEADERS,
    }


__all__ = [
    "MCP_SESSION_ID_HEADER",
    "HostValidationMiddleware",
    "RequestLoggingMiddleware",
    "build_cors_options",
    "is_host_allowed",
    "parse_hostname",
]
