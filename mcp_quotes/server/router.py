"""
Request router for the ``/mcp`` endpoint.

Every request is first classified into a RequestKind, then dispatched:

    POST   + session id                    → SESSION     (route to existing transport)
    POST   + no session id + initialize    → INITIALIZE  (mint a session, then route)
    GET    + session id                    → STREAM      (server push stream)
    DELETE + session id                    → TERMINATE   (transport acks, session removed)
    anything else                          → UNROUTABLE  (400)

A session id that does not resolve in the registry is always a 400, never an
implicit re-initialization.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum

from mcp import types
from mcp.server.streamable_http import StreamableHTTPServerTransport
from pydantic import ValidationError
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.types import Message, Receive, Scope, Send

from mcp_quotes.server.errors import (
    JSONRPC_PARSE_ERROR,
    JSONRPC_SERVER_ERROR,
    HttpTransportError,
    HttpTransportErrorType,
    SessionNotFoundError,
)
from mcp_quotes.server.middleware import MCP_SESSION_ID_HEADER
from mcp_quotes.server.sessions import SessionRegistry
from mcp_quotes.server.transport_factory import SessionTransportFactory

logger = logging.getLogger(__name__)


class RequestKind(str, Enum):
    """What an inbound ``/mcp`` request is asking for."""

    INITIALIZE = "initialize"
    SESSION = "session"
    STREAM = "stream"
    TERMINATE = "terminate"
    UNROUTABLE = "unroutable"


@dataclass(frozen=True)
class RequestClassification:
    kind: RequestKind
    session_id: str | None = None
    error_code: int = JSONRPC_SERVER_ERROR
    message: str | None = None


def is_initialize_request(payload: object) -> bool:
    """True if ``payload`` is a single JSON-RPC ``initialize`` request."""
    try:
        message = types.JSONRPCMessage.model_validate(payload)
    except ValidationError:
        return False
    return isinstance(message.root, types.JSONRPCRequest) and message.root.method == "initialize"


def classify_request(method: str, session_id: str | None, body: bytes = b"") -> RequestClassification:
    """
    Classify a request from its method, session header and raw body.

    Pure function: no registry lookups happen here, so an unknown session id
    still classifies as SESSION/STREAM/TERMINATE and fails at resolution.
    """
    method = method.upper()

    if method == "POST":
        if session_id:
            return RequestClassification(RequestKind.SESSION, session_id)
        try:
            payload = json.loads(body) if body else None
        except (json.JSONDecodeError, UnicodeDecodeError):
            return RequestClassification(
                RequestKind.UNROUTABLE,
                error_code=JSONRPC_PARSE_ERROR,
                message="Parse error: Invalid JSON",
            )
        if is_initialize_request(payload):
            return RequestClassification(RequestKind.INITIALIZE)
        return RequestClassification(
            RequestKind.UNROUTABLE, message="Bad Request: No valid session ID provided"
        )

    if method in ("GET", "DELETE"):
        if not session_id:
            return RequestClassification(
                RequestKind.UNROUTABLE, message="Invalid or missing session ID"
            )
        kind = RequestKind.STREAM if method == "GET" else RequestKind.TERMINATE
        return RequestClassification(kind, session_id)

    return RequestClassification(
        RequestKind.UNROUTABLE, session_id, message=f"Method {method} not allowed"
    )


class _ResponseTracker:
    """Wraps ``send`` to remember whether (and with which status) a response started."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self.status: int | None = None

    @property
    def started(self) -> bool:
        return self.status is not None

    async def send(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.status = message["status"]
        await self._send(message)


def _replay_receive(body: bytes, receive: Receive) -> Receive:
    """Feed an already-read body to the transport, then defer to the real channel."""
    replayed = False

    async def replay() -> Message:
        nonlocal replayed
        if not replayed:
            replayed = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


class McpRequestRouter:
    """Raw ASGI endpoint serving ``/mcp`` for every session."""

    def __init__(self, registry: SessionRegistry, factory: SessionTransportFactory) -> None:
        self.registry = registry
        self.factory = factory

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        session_id = request.headers.get(MCP_SESSION_ID_HEADER) or None
        tracker = _ResponseTracker(send)

        try:
            if request.method == "POST":
                body = await request.body()
                receive = _replay_receive(body, receive)
            else:
                body = b""

            classification = classify_request(request.method, session_id, body)
            await self._dispatch(classification, scope, receive, tracker)
        except Exception as e:
            logger.exception(
                "Error handling MCP %s request",
                request.method,
                extra={"session_id": session_id, "method": request.method, "path": request.url.path},
            )
            if tracker.started:
                return
            error = HttpTransportError(
                "Internal server error",
                HttpTransportErrorType.TRANSPORT_INIT_ERROR,
                status_code=500,
                context={"error": str(e)},
                session_id=session_id,
            )
            response = JSONResponse(error.to_jsonrpc(), status_code=error.status_code)
            await response(scope, receive, tracker.send)

    async def _dispatch(
        self,
        classification: RequestClassification,
        scope: Scope,
        receive: Receive,
        tracker: _ResponseTracker,
    ) -> None:
        kind = classification.kind

        if kind is RequestKind.INITIALIZE:
            await self._initialize(scope, receive, tracker)
            return

        session_id = classification.session_id
        if kind is RequestKind.UNROUTABLE or session_id is None:
            error = SessionNotFoundError(
                classification.message or "Bad Request",
                classification.session_id,
                HttpTransportErrorType.INVALID_SESSION,
            )
            await self._reject(error, scope, receive, tracker, classification.error_code)
            return

        record = self.registry.touch(session_id)
        if record is None:
            message = (
                "Bad Request: No valid session ID provided"
                if kind is RequestKind.SESSION
                else "Invalid or missing session ID"
            )
            await self._reject(SessionNotFoundError(message, session_id), scope, receive, tracker)
            return

        await record.transport.handle_request(scope, receive, tracker.send)

        if kind is RequestKind.TERMINATE:
            await self.registry.terminate(session_id)
            logger.info("Session terminated", extra={"session_id": session_id})
        elif kind is RequestKind.STREAM:
            logger.debug("Stream closed", extra={"session_id": session_id})

    async def _reject(
        self,
        error: HttpTransportError,
        scope: Scope,
        receive: Receive,
        tracker: _ResponseTracker,
        code: int = JSONRPC_SERVER_ERROR,
    ) -> None:
        logger.debug("Rejected MCP request", extra={"error": error.to_dict()})
        response = JSONResponse(error.to_jsonrpc(code), status_code=error.status_code)
        await response(scope, receive, tracker.send)

    async def _initialize(self, scope: Scope, receive: Receive, tracker: _ResponseTracker) -> None:
        transport: StreamableHTTPServerTransport = await self.factory.create()
        session_id = transport.mcp_session_id
        established = False
        try:
            await transport.handle_request(scope, receive, tracker.send)
            established = tracker.status is not None and tracker.status < 400
        finally:
            if not established and session_id:
                # The opening request was refused, so nothing was established
                await self.registry.terminate(session_id)
                logger.debug(
                    "Discarded session after failed initialization",
                    extra={"session_id": session_id, "status": tracker.status},
                )


__all__ = [
    "McpRequestRouter",
    "RequestClassification",
    "RequestKind",
    "classify_request",
    "is_initialize_request",
]
