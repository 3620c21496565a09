"""
HTTP transport service for the MCP quotes server.

Serves many concurrent MCP sessions over Streamable HTTP:

    POST   /mcp       client → server messages (initialize creates a session)
    GET    /mcp       server → client notification stream (SSE)
    DELETE /mcp       explicit session termination
    GET    /health    liveness plus service statistics
    GET    /sessions  session statistics

Security Features:
- Host header allow-list (DNS rebinding protection), checked before routing
- CORS restricted to configured origins
- Optional TLS, validated before the socket binds
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import anyio
import uvicorn
from mcp.server.streamable_http import StreamableHTTPServerTransport
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from mcp_quotes.server.bootstrap import build_uvicorn_config, validate_tls_material
from mcp_quotes.server.config import HttpServerConfig
from mcp_quotes.server.errors import HttpTransportError, HttpTransportErrorType
from mcp_quotes.server.middleware import (
    HostValidationMiddleware,
    RequestLoggingMiddleware,
    build_cors_options,
)
from mcp_quotes.server.router import McpRequestRouter
from mcp_quotes.server.sessions import SessionRecord, SessionRegistry, utcnow
from mcp_quotes.server.sweeper import SessionSweeper
from mcp_quotes.server.transport_factory import ServerFactory, SessionTransportFactory

logger = logging.getLogger(__name__)

STARTUP_POLL_INTERVAL = 0.05


class HttpTransportService:
    """
    Owns the session registry, the router, the sweeper and the uvicorn server.

    Construction validates TLS material; a bad certificate never reaches bind.
    """

    def __init__(
        self,
        config: HttpServerConfig,
        server_factory: ServerFactory,
        log_level: str = "info",
    ) -> None:
        validate_tls_material(config.https)

        self.config = config
        self.log_level = log_level
        self.registry = SessionRegistry()
        self.factory = SessionTransportFactory(
            server_factory,
            on_session_initialized=self._on_session_initialized,
            on_session_closed=self._on_session_closed,
            json_response=config.json_response,
        )
        self.sweeper = SessionSweeper(self.registry, config.session_timeout_seconds)
        self.router = McpRequestRouter(self.registry, self.factory)
        self.app = self._create_app()

        self.is_running = False
        self.bound_host = config.host
        self.bound_port = config.port
        self._start_time: datetime | None = None
        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self._sweeper_scope: anyio.CancelScope | None = None

        logger.info(
            "HTTP Transport Service initialized",
            extra={
                "host": config.host,
                "port": config.port,
                "https_enabled": config.https.enabled,
                "allowed_hosts": list(config.security.allowed_hosts),
                "allowed_origins": list(config.security.allowed_origins),
            },
        )

    # ------------------------------------------------------------------
    # App
    # ------------------------------------------------------------------

    def _create_app(self) -> Starlette:
        # Order matters: Host validation → CORS → request logging → routes
        middleware = [
            Middleware(HostValidationMiddleware, allowed_hosts=self.config.security.allowed_hosts),
            Middleware(CORSMiddleware, **build_cors_options(self.config.security)),
            Middleware(RequestLoggingMiddleware),
        ]
        return Starlette(
            routes=[
                Route("/mcp", endpoint=self.router, methods=["GET", "POST", "DELETE"]),
                Route("/health", self._handle_health, methods=["GET"]),
                Route("/sessions", self._handle_sessions, methods=["GET"]),
            ],
            middleware=middleware,
            exception_handlers={Exception: self._handle_unexpected_error},
            lifespan=lambda app: self.run(),
        )

    async def _handle_health(self, request: Request) -> JSONResponse:
        return JSONResponse(
            {"status": "healthy", "timestamp": utcnow().isoformat(), **self.get_stats()}
        )

    async def _handle_sessions(self, request: Request) -> JSONResponse:
        return JSONResponse(self.get_session_stats())

    async def _handle_unexpected_error(self, request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled HTTP error: %s",
            exc,
            extra={"method": request.method, "path": request.url.path},
            exc_info=exc,
        )
        error = HttpTransportError("Internal Server Error", context={"error": str(exc)})
        return JSONResponse(error.to_jsonrpc(), status_code=500)

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def _on_session_initialized(self, session_id: str, transport: StreamableHTTPServerTransport) -> None:
        self.registry.insert(SessionRecord(session_id=session_id, transport=transport))

    def _on_session_closed(self, session_id: str) -> None:
        record = self.registry.remove(session_id)
        if record is not None:
            record.closed = True
            logger.info("Session closed by transport", extra={"session_id": session_id})

    async def terminate_session(self, session_id: str) -> bool:
        """Terminate one session. Returns False if it was not registered."""
        return await self.registry.terminate(session_id)

    async def close_all_sessions(self) -> int:
        """Close every registered transport; individual failures are logged, not raised."""
        records = self.registry.drain()
        for record in records:
            try:
                await record.close()
            except Exception as e:
                logger.warning(
                    "Error closing session during shutdown: %s",
                    e,
                    extra={"session_id": record.session_id},
                )
        if records:
            logger.info("Closed %d session(s)", len(records))
        return len(records)

    async def _run_sweeper(self) -> None:
        with anyio.CancelScope() as scope:
            self._sweeper_scope = scope
            await self.sweeper.run()

    @asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """
        Task group for engine loops and the sweeper (used as the app lifespan).

        On exit every session is closed before the task group is cancelled.
        """
        async with anyio.create_task_group() as tg:
            self.factory.bind(tg)
            tg.start_soon(self._run_sweeper)
            try:
                yield
            finally:
                self.factory.bind(None)
                await self.close_all_sessions()
                tg.cancel_scope.cancel()

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_session_stats(self) -> dict[str, Any]:
        return self.registry.stats()

    def get_stats(self) -> dict[str, Any]:
        uptime_ms = 0.0
        if self.is_running and self._start_time is not None:
            uptime_ms = (utcnow() - self._start_time).total_seconds() * 1000
        return {
            "isRunning": self.is_running,
            "activeSessions": len(self.registry),
            "totalSessionsCreated": self.registry.total_created,
            "totalSessionsTerminated": self.registry.total_terminated,
            "uptime": uptime_ms,
            "port": self.bound_port,
            "host": self.bound_host,
            "https": self.config.https.enabled,
        }

    # ------------------------------------------------------------------
    # Start / stop
    # ------------------------------------------------------------------

    async def _serve(self, server: uvicorn.Server) -> None:
        try:
            await server.serve()
        except SystemExit as e:
            # uvicorn exits the process when it cannot bind
            msg = f"HTTP server failed to start on {self.config.host}:{self.config.port}"
            raise HttpTransportError(msg, HttpTransportErrorType.SERVER_STARTUP_ERROR) from e

    async def start(self) -> None:
        """
        Bind the listener and start serving.

        Raises:
            HttpTransportError: If already running or the server fails to start
        """
        if self.is_running:
            msg = "HTTP transport service is already running"
            raise HttpTransportError(msg, HttpTransportErrorType.SERVER_STARTUP_ERROR)

        server = uvicorn.Server(build_uvicorn_config(self.app, self.config, self.log_level))
        task = asyncio.create_task(self._serve(server))

        while not server.started:
            if task.done():
                exc = task.exception()
                msg = "Failed to start HTTP transport service"
                logger.error(msg, extra={"host": self.config.host, "port": self.config.port})
                raise HttpTransportError(
                    msg, HttpTransportErrorType.SERVER_STARTUP_ERROR
                ) from exc
            await asyncio.sleep(STARTUP_POLL_INTERVAL)

        self._server = server
        self._serve_task = task
        self._start_time = utcnow()
        self.is_running = True

        if server.servers and server.servers[0].sockets:
            sockname = server.servers[0].sockets[0].getsockname()
            self.bound_host, self.bound_port = sockname[0], sockname[1]

        logger.info(
            "HTTP transport service started",
            extra={
                "host": self.bound_host,
                "port": self.bound_port,
                "protocol": "https" if self.config.https.enabled else "http",
            },
        )

    async def wait_closed(self) -> None:
        """Block until the uvicorn server exits (e.g. on SIGINT/SIGTERM)."""
        if self._serve_task is not None:
            await self._serve_task

    async def stop(self) -> None:
        """
        Stop the service. Safe to call when not running.

        Order: sweeper cancelled → sessions closed → listener closed.
        """
        if not self.is_running or self._server is None or self._serve_task is None:
            logger.warning("Attempted to stop HTTP transport service that is not running")
            return

        self.is_running = False

        if self._sweeper_scope is not None:
            self._sweeper_scope.cancel()
            self._sweeper_scope = None

        await self.close_all_sessions()

        self._server.should_exit = True
        try:
            await self._serve_task
        finally:
            self._server = None
            self._serve_task = None
            self._start_time = None
            logger.info("HTTP transport service stopped")


__all__ = ["HttpTransportService"]
