"""Test doubles and request helpers shared across test modules."""

from typing import Any

from starlette.testclient import TestClient

MCP_HEADERS = {
    "Accept": "application/json, text/event-stream",
    "Content-Type": "application/json",
}

INITIALIZE_BODY: dict[str, Any] = {
    "jsonrpc": "2.0",
    "id": 1,
    "method": "initialize",
    "params": {
        "protocolVersion": "2025-06-18",
        "capabilities": {},
        "clientInfo": {"name": "pytest", "version": "1.0"},
    },
}

INITIALIZED_NOTIFICATION: dict[str, Any] = {
    "jsonrpc": "2.0",
    "method": "notifications/initialized",
}


class FakeTransport:
    """Stands in for StreamableHTTPServerTransport in registry and sweeper tests."""

    def __init__(self, fail: bool = False) -> None:
        self.is_terminated = False
        self.terminate_calls = 0
        self.fail = fail

    async def terminate(self) -> None:
        self.terminate_calls += 1
        if self.fail:
            msg = "transport refused to close"
            raise RuntimeError(msg)
        self.is_terminated = True


def initialize_session(client: TestClient) -> str:
    """Open a session and complete the handshake; returns the session id."""
    response = client.post("/mcp", json=INITIALIZE_BODY, headers=MCP_HEADERS)
    assert response.status_code == 200, response.text
    session_id = response.headers["mcp-session-id"]

    response = client.post(
        "/mcp",
        json=INITIALIZED_NOTIFICATION,
        headers={**MCP_HEADERS, "mcp-session-id": session_id},
    )
    assert response.status_code == 202, response.text
    return session_id
