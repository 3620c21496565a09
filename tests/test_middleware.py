"""Tests for Host validation, CORS options and request logging."""

import logging

import pytest
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from mcp_quotes.server.config import SecurityConfig
from mcp_quotes.server.middleware import (
    HostValidationMiddleware,
    RequestLoggingMiddleware,
    build_cors_options,
    is_host_allowed,
    parse_hostname,
)


async def _ok(request: Request) -> PlainTextResponse:
    return PlainTextResponse("ok")


def _app(allowed_hosts: tuple[str, ...], origins: tuple[str, ...] = ()) -> Starlette:
    security = SecurityConfig(allowed_hosts=allowed_hosts, allowed_origins=origins)
    return Starlette(
        routes=[Route("/", _ok)],
        middleware=[
            Middleware(HostValidationMiddleware, allowed_hosts=allowed_hosts),
            Middleware(CORSMiddleware, **build_cors_options(security)),
            Middleware(RequestLoggingMiddleware),
        ],
    )


class TestParseHostname:
    @pytest.mark.parametrize(
        ("host", "expected"),
        [
            ("localhost", "localhost"),
            ("localhost:3000", "localhost"),
            ("LocalHost:3000", "localhost"),
            ("127.0.0.1:8080", "127.0.0.1"),
            ("[::1]:3000", "::1"),
            ("[::1]", "::1"),
            ("::1", "::1"),
        ],
    )
    def test_parse(self, host: str, expected: str) -> None:
        assert parse_hostname(host) == expected

    def test_is_host_allowed(self) -> None:
        assert is_host_allowed("localhost", ["localhost"])
        assert is_host_allowed("localhost", ["LOCALHOST:3000"])
        assert is_host_allowed("anything.example", ["*"])
        assert not is_host_allowed("evil.example", ["localhost", "127.0.0.1"])
        assert not is_host_allowed("localhost", [])


class TestHostValidationMiddleware:
    def test_allowed_host_passes(self) -> None:
        client = TestClient(_app(("localhost",)), base_url="http://localhost:3000")

        response = client.get("/")

        assert response.status_code == 200
        assert response.text == "ok"

    def test_disallowed_host_forbidden(self, caplog: pytest.LogCaptureFixture) -> None:
        client = TestClient(_app(("localhost",)), base_url="http://localhost")

        with caplog.at_level(logging.WARNING, logger="mcp_quotes.server.middleware"):
            response = client.get("/", headers={"Host": "evil.example"})

        assert response.status_code == 403
        assert response.json() == {"error": "Forbidden", "message": "Host not allowed"}
        assert any("evil.example" in record.getMessage() for record in caplog.records)

    def test_missing_host_rejected(self) -> None:
        app = _app(("localhost",))

        # httpx always sends Host; strip it at the ASGI level
        async def strip_host(scope, receive, send):  # type: ignore[no-untyped-def]
            scope["headers"] = [(k, v) for k, v in scope["headers"] if k != b"host"]
            await app(scope, receive, send)

        client = TestClient(strip_host, base_url="http://localhost")
        response = client.get("/")

        assert response.status_code == 400
        assert response.json() == {"error": "Bad Request", "message": "Host header is required"}

    def test_wildcard_allows_any_host(self) -> None:
        client = TestClient(_app(("*",)), base_url="http://anything.example")

        assert client.get("/").status_code == 200


class TestCors:
    def test_options(self) -> None:
        options = build_cors_options(SecurityConfig(allowed_origins=("http://localhost:5173",)))

        assert options["allow_origins"] == ["http://localhost:5173"]
        assert options["allow_credentials"] is True
        assert "mcp-session-id" in options["allow_headers"]
        assert "mcp-protocol-version" in options["allow_headers"]
        assert "Last-Event-ID" in options["allow_headers"]
        assert options["expose_headers"] == ["mcp-session-id"]
        assert set(options["allow_methods"]) == {"GET", "POST", "DELETE", "OPTIONS"}

    def test_wildcard_origin(self) -> None:
        options = build_cors_options(SecurityConfig(allowed_origins=("http://a", "*")))

        assert options["allow_origins"] == ["*"]

    def test_preflight_allowed_origin(self) -> None:
        client = TestClient(
            _app(("localhost",), origins=("http://localhost:5173",)), base_url="http://localhost"
        )

        response = client.options(
            "/",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "mcp-session-id",
            },
        )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    def test_preflight_unknown_origin(self) -> None:
        client = TestClient(
            _app(("localhost",), origins=("http://localhost:5173",)), base_url="http://localhost"
        )

        response = client.options(
            "/",
            headers={"Origin": "http://evil.example", "Access-Control-Request-Method": "POST"},
        )

        assert response.status_code == 400


class TestRequestLogging:
    def test_request_id_generated(self) -> None:
        client = TestClient(_app(("localhost",)), base_url="http://localhost")

        response = client.get("/")

        assert response.headers["x-request-id"]

    def test_request_id_propagated(self) -> None:
        client = TestClient(_app(("localhost",)), base_url="http://localhost")

        response = client.get("/", headers={"x-request-id": "req-123"})

        assert response.headers["x-request-id"] == "req-123"
