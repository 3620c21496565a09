"""Tests for the HTTP transport service lifecycle and statistics."""

import logging
import socket

import anyio
import httpx
import pytest
from starlette.testclient import TestClient

from mcp_quotes.server.config import HttpServerConfig, SecurityConfig
from mcp_quotes.server.errors import HttpTransportError, HttpTransportErrorType
from mcp_quotes.server.http_transport import HttpTransportService
from mcp_quotes.server.mcp_server import create_server_factory
from mcp_quotes.server.sessions import SessionRecord
from tests.helpers import INITIALIZE_BODY, INITIALIZED_NOTIFICATION, MCP_HEADERS, FakeTransport


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _add_session(service: HttpTransportService, session_id: str, **kwargs) -> SessionRecord:  # type: ignore[no-untyped-def]
    record = SessionRecord(session_id=session_id, transport=FakeTransport(**kwargs))  # type: ignore[arg-type]
    service.registry.insert(record)
    return record


class TestStats:
    def test_initial_stats(self, service: HttpTransportService) -> None:
        stats = service.get_stats()

        assert stats == {
            "isRunning": False,
            "activeSessions": 0,
            "totalSessionsCreated": 0,
            "totalSessionsTerminated": 0,
            "uptime": 0.0,
            "port": 3999,
            "host": "localhost",
            "https": False,
        }

    def test_session_stats(self, service: HttpTransportService) -> None:
        _add_session(service, "s1")

        stats = service.get_session_stats()

        assert stats["activeSessions"] == 1
        assert stats["totalSessionsCreated"] == 1
        assert "averageSessionDuration" in stats

    def test_health_endpoint(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["timestamp"]
        assert body["activeSessions"] == 0
        assert body["host"] == "localhost"

    def test_sessions_endpoint(self, client: TestClient) -> None:
        response = client.get("/sessions")

        assert response.status_code == 200
        assert set(response.json()) == {
            "activeSessions",
            "totalSessionsCreated",
            "totalSessionsTerminated",
            "averageSessionDuration",
        }


class TestSessionLifecycle:
    async def test_terminate_session(self, service: HttpTransportService) -> None:
        record = _add_session(service, "s1")

        assert await service.terminate_session("s1") is True
        assert await service.terminate_session("s1") is False
        assert record.transport.terminate_calls == 1  # type: ignore[attr-defined]

    def test_transport_initiated_close(self, service: HttpTransportService) -> None:
        record = _add_session(service, "s1")

        service._on_session_closed("s1")
        service._on_session_closed("s1")

        assert "s1" not in service.registry
        assert record.closed is True
        assert service.registry.total_terminated == 1

    async def test_close_all_sessions_is_best_effort(self, service: HttpTransportService) -> None:
        _add_session(service, "broken", fail=True)
        healthy = _add_session(service, "healthy")

        closed = await service.close_all_sessions()

        assert closed == 2
        assert len(service.registry) == 0
        assert healthy.transport.terminate_calls == 1  # type: ignore[attr-defined]


class TestStartStop:
    async def test_stop_when_not_running(
        self, service: HttpTransportService, caplog: pytest.LogCaptureFixture
    ) -> None:
        with caplog.at_level(logging.WARNING, logger="mcp_quotes.server.http_transport"):
            await service.stop()
            await service.stop()

        assert service.is_running is False
        warnings = [r for r in caplog.records if "not running" in r.getMessage()]
        assert len(warnings) == 2

    async def test_start_twice_rejected(self, service: HttpTransportService) -> None:
        service.is_running = True

        with pytest.raises(HttpTransportError) as exc_info:
            await service.start()

        assert exc_info.value.error_type is HttpTransportErrorType.SERVER_STARTUP_ERROR

    async def test_serve_session_then_stop_twice(self, caplog: pytest.LogCaptureFixture) -> None:
        port = _free_port()
        config = HttpServerConfig(
            enabled=True,
            host="127.0.0.1",
            port=port,
            security=SecurityConfig(allowed_hosts=("127.0.0.1",)),
        )
        service = HttpTransportService(config, create_server_factory())

        await service.start()
        try:
            assert service.is_running is True
            assert (service.bound_host, service.bound_port) == ("127.0.0.1", port)

            async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}", timeout=10) as http:
                response = await http.post("/mcp", json=INITIALIZE_BODY, headers=MCP_HEADERS)
                assert response.status_code == 200, response.text
                session_id = response.headers["mcp-session-id"]
                session_headers = {**MCP_HEADERS, "mcp-session-id": session_id}

                response = await http.post(
                    "/mcp", json=INITIALIZED_NOTIFICATION, headers=session_headers
                )
                assert response.status_code == 202

                stream_headers = {"Accept": "text/event-stream", "mcp-session-id": session_id}
                async with http.stream("GET", "/mcp", headers=stream_headers) as stream:
                    assert stream.status_code == 200
                    assert service.get_stats()["activeSessions"] == 1

                health = (await http.get("/health")).json()
                assert health["isRunning"] is True
                assert health["port"] == port
        finally:
            with anyio.fail_after(10):
                await service.stop()

        assert service.is_running is False
        assert service._sweeper_scope is None
        assert len(service.registry) == 0
        assert service.registry.total_created == 1
        assert service.registry.total_terminated == 1

        with caplog.at_level(logging.WARNING, logger="mcp_quotes.server.http_transport"):
            await service.stop()

        warnings = [r for r in caplog.records if "not running" in r.getMessage()]
        assert len(warnings) == 1
        assert service.registry.total_terminated == 1

        async with httpx.AsyncClient(timeout=2) as http:
            with pytest.raises(httpx.ConnectError):
                await http.get(f"http://127.0.0.1:{port}/health")

    async def test_start_fails_when_port_taken(self) -> None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            sock.listen()
            port = sock.getsockname()[1]
            config = HttpServerConfig(
                enabled=True,
                host="127.0.0.1",
                port=port,
                security=SecurityConfig(allowed_hosts=("127.0.0.1",)),
            )
            service = HttpTransportService(config, create_server_factory())

            with pytest.raises(HttpTransportError) as exc_info:
                await service.start()

        assert exc_info.value.error_type is HttpTransportErrorType.SERVER_STARTUP_ERROR
        assert service.is_running is False

    async def test_factory_requires_running_service(self, service: HttpTransportService) -> None:
        with pytest.raises(HttpTransportError, match="not running"):
            await service.factory.create()
