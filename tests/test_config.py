"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest

from mcp_quotes.server.config import (
    Config,
    HttpsConfig,
    HttpServerConfig,
    LoggingConfig,
    SecurityConfig,
    load_config,
)
from mcp_quotes.server.errors import ConfigurationError


class TestHttpServerConfig:
    """Validation in the frozen dataclasses."""

    def test_defaults(self) -> None:
        config = HttpServerConfig()

        assert config.enabled is False
        assert config.host == "localhost"
        assert config.port == 3000
        assert config.https.enabled is False
        assert config.security.allowed_hosts == ("127.0.0.1", "localhost")
        assert config.security.allowed_origins == ()
        assert config.session_timeout_seconds == 1800
        assert config.json_response is True

    @pytest.mark.parametrize("port", [0, 65536, -1])
    def test_port_out_of_range(self, port: int) -> None:
        with pytest.raises(ConfigurationError, match="port must be between 1 and 65535"):
            HttpServerConfig(port=port)

    def test_port_must_be_int(self) -> None:
        with pytest.raises(ConfigurationError, match="port must be an integer"):
            HttpServerConfig(port="3000")  # type: ignore[arg-type]

    def test_blank_host_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="host is required"):
            HttpServerConfig(host="  ")

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ConfigurationError):
            HttpServerConfig(session_timeout_seconds=0)

    def test_https_requires_both_paths(self) -> None:
        with pytest.raises(ConfigurationError, match="MCP_HTTPS_CERT_PATH"):
            HttpsConfig(enabled=True, cert_path="cert.pem")

    def test_security_lists_become_tuples(self) -> None:
        security = SecurityConfig(allowed_hosts=["a.example"], allowed_origins=["http://x"])  # type: ignore[arg-type]

        assert security.allowed_hosts == ("a.example",)
        assert security.allowed_origins == ("http://x",)

    def test_configuration_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            HttpServerConfig(port=0)

    def test_frozen(self) -> None:
        config = HttpServerConfig()
        with pytest.raises(AttributeError):
            config.port = 4000  # type: ignore[misc]

    def test_log_level_normalized(self) -> None:
        assert LoggingConfig(level="debug").level == "DEBUG"

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ConfigurationError):
            LoggingConfig(level="LOUD")


class TestLoadConfig:
    """YAML + environment precedence."""

    def test_defaults_without_file(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "missing.yml", environ={})

        assert config == Config()
        assert config.config_path is None

    def test_yaml_file(self, tmp_path: Path) -> None:
        config_file = tmp_path / "mcp_quotes.yml"
        config_file.write_text(
            """
http:
  enabled: true
  host: 0.0.0.0
  port: 8080
  session_timeout_seconds: 60
security:
  allowed_hosts: [example.com]
  allowed_origins: ["http://localhost:5173"]
logging:
  level: debug
"""
        )

        config = load_config(config_file, environ={})

        assert config.http.enabled is True
        assert config.http.host == "0.0.0.0"
        assert config.http.port == 8080
        assert config.http.session_timeout_seconds == 60
        assert config.http.security.allowed_hosts == ("example.com",)
        assert config.http.security.allowed_origins == ("http://localhost:5173",)
        assert config.logging.level == "DEBUG"
        assert config.config_path == config_file

    def test_env_overrides_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "mcp_quotes.yml"
        config_file.write_text("http:\n  port: 8080\n  host: yaml-host\n")

        config = load_config(
            config_file,
            environ={
                "MCP_HTTP_ENABLED": "true",
                "MCP_HTTP_PORT": "9090",
                "MCP_HTTP_ALLOWED_HOSTS": "localhost, api.example.com ,",
                "MCP_HTTP_ALLOWED_ORIGINS": "http://a.example,http://b.example",
                "MCP_SESSION_TIMEOUT_SECONDS": "120",
                "MCP_HTTP_JSON_RESPONSE": "false",
                "MCP_LOG_LEVEL": "warning",
            },
        )

        assert config.http.enabled is True
        assert config.http.port == 9090
        assert config.http.host == "yaml-host"
        assert config.http.security.allowed_hosts == ("localhost", "api.example.com")
        assert config.http.security.allowed_origins == ("http://a.example", "http://b.example")
        assert config.http.session_timeout_seconds == 120.0
        assert config.http.json_response is False
        assert config.logging.level == "WARNING"

    def test_enabled_flag_only_true_enables(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "missing.yml", environ={"MCP_HTTP_ENABLED": "yes"})

        assert config.http.enabled is False

    def test_https_env(self, tmp_path: Path) -> None:
        config = load_config(
            tmp_path / "missing.yml",
            environ={
                "MCP_HTTPS_ENABLED": "true",
                "MCP_HTTPS_CERT_PATH": "/certs/cert.pem",
                "MCP_HTTPS_KEY_PATH": "/certs/key.pem",
            },
        )

        assert config.http.https == HttpsConfig(
            enabled=True, cert_path="/certs/cert.pem", key_path="/certs/key.pem"
        )

    def test_https_env_missing_key_path(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError):
            load_config(
                tmp_path / "missing.yml",
                environ={"MCP_HTTPS_ENABLED": "true", "MCP_HTTPS_CERT_PATH": "cert.pem"},
            )

    def test_non_numeric_port(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="MCP_HTTP_PORT must be an integer"):
            load_config(tmp_path / "missing.yml", environ={"MCP_HTTP_PORT": "abc"})

    def test_unknown_yaml_key(self, tmp_path: Path) -> None:
        config_file = tmp_path / "mcp_quotes.yml"
        config_file.write_text("http:\n  bogus: 1\n")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            load_config(config_file, environ={})

    def test_yaml_must_be_mapping(self, tmp_path: Path) -> None:
        config_file = tmp_path / "mcp_quotes.yml"
        config_file.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            load_config(config_file, environ={})

    def test_config_path_from_environment(self, tmp_path: Path) -> None:
        config_file = tmp_path / "custom.yml"
        config_file.write_text("http:\n  port: 4321\n")

        config = load_config(environ={"MCP_QUOTES_CONFIG": str(config_file)})

        assert config.http.port == 4321

    def test_to_dict(self) -> None:
        data = Config().to_dict()

        assert data["http"]["port"] == 3000
        assert data["https"]["enabled"] is False
        assert data["security"]["allowed_hosts"] == ["127.0.0.1", "localhost"]
        assert data["logging"]["level"] == "INFO"
        assert data["config_path"] is None
