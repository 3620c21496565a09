"""
Per-session transport factory.

Each call to ``create()`` builds one protocol engine and one streaming
transport, starts the engine loop inside the service task group and reports
the new session through the injected ``on_session_initialized`` callback.
When the engine loop ends, for whatever reason, ``on_session_closed`` fires so
the registry never holds a session whose engine is gone.
"""

import logging
import uuid
from collections.abc import Callable

import anyio
from anyio.abc import TaskGroup, TaskStatus
from mcp.server.lowlevel import Server
from mcp.server.streamable_http import StreamableHTTPServerTransport
from mcp.server.transport_security import TransportSecuritySettings

from mcp_quotes.server.errors import HttpTransportError, HttpTransportErrorType

logger = logging.getLogger(__name__)

ServerFactory = Callable[[], Server]
SessionInitializedCallback = Callable[[str, StreamableHTTPServerTransport], None]
SessionClosedCallback = Callable[[str], None]


def generate_session_id() -> str:
    return str(uuid.uuid4())


class SessionTransportFactory:
    """Builds a protocol engine plus streaming transport for exactly one session."""

    def __init__(
        self,
        server_factory: ServerFactory,
        on_session_initialized: SessionInitializedCallback,
        on_session_closed: SessionClosedCallback,
        session_id_generator: Callable[[], str] = generate_session_id,
        json_response: bool = True,
    ) -> None:
        self.server_factory = server_factory
        self.on_session_initialized = on_session_initialized
        self.on_session_closed = on_session_closed
        self.session_id_generator = session_id_generator
        self.json_response = json_response
        self._task_group: TaskGroup | None = None

    def bind(self, task_group: TaskGroup | None) -> None:
        """Attach (or detach, with None) the task group engine loops run in."""
        self._task_group = task_group

    async def create(self) -> StreamableHTTPServerTransport:
        """
        Mint a new session and start its engine loop.

        Returns once the transport streams are connected and the session has
        been reported through ``on_session_initialized``.

        Raises:
            HttpTransportError: If the factory is not bound to a running task group
        """
        if self._task_group is None:
            msg = "Transport factory is not running (no task group bound)"
            raise HttpTransportError(msg, HttpTransportErrorType.TRANSPORT_INIT_ERROR)

        session_id = self.session_id_generator()
        server = self.server_factory()
        transport = StreamableHTTPServerTransport(
            mcp_session_id=session_id,
            is_json_response_enabled=self.json_response,
            event_store=None,
            # Host checks already ran in HostValidationMiddleware
            security_settings=TransportSecuritySettings(enable_dns_rebinding_protection=False),
        )

        async def run_server(*, task_status: TaskStatus[None] = anyio.TASK_STATUS_IGNORED) -> None:
            try:
                async with transport.connect() as (read_stream, write_stream):
                    self.on_session_initialized(session_id, transport)
                    task_status.started()
                    await server.run(
                        read_stream,
                        write_stream,
                        server.create_initialization_options(),
                        stateless=False,
                    )
            except Exception:
                logger.exception("Session engine crashed", extra={"session_id": session_id})
            finally:
                if not transport.is_terminated:
                    with anyio.CancelScope(shield=True):
                        await transport.terminate()
                self.on_session_closed(session_id)
                logger.debug("Session engine stopped", extra={"session_id": session_id})

        await self._task_group.start(run_server)
        return transport


__all__ = [
    "ServerFactory",
    "SessionTransportFactory",
    "generate_session_id",
]
