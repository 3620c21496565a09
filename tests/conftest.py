"""Shared pytest fixtures for the quotes server tests."""

import logging
from collections.abc import Iterator

import pytest
from starlette.testclient import TestClient

from mcp_quotes.server.config import HttpServerConfig, SecurityConfig
from mcp_quotes.server.http_transport import HttpTransportService
from mcp_quotes.server.mcp_server import create_server_factory


@pytest.fixture
def http_config() -> HttpServerConfig:
    return HttpServerConfig(
        enabled=True,
        host="localhost",
        port=3999,
        security=SecurityConfig(allowed_hosts=("localhost", "127.0.0.1")),
    )


@pytest.fixture
def service(http_config: HttpServerConfig) -> HttpTransportService:
    return HttpTransportService(http_config, create_server_factory())


@pytest.fixture
def client(service: HttpTransportService) -> Iterator[TestClient]:
    """TestClient with the lifespan (task group) running."""
    with TestClient(service.app, base_url="http://localhost") as test_client:
        yield test_client


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
