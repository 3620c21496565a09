"""Configuration management with validation.

This module provides centralized configuration for the MCP quotes server with:
- YAML file support (mcp_quotes.yml)
- Environment variable overrides
- Validation in frozen dataclasses (immutable once built)

Configuration precedence (highest to lowest):
1. Environment variables (MCP_*)
2. YAML config file
3. Default values

Example mcp_quotes.yml:
    http:
      enabled: true
      host: "localhost"
      port: 3000
      session_timeout_seconds: 1800

    https:
      enabled: false

    security:
      allowed_hosts: ["localhost", "127.0.0.1"]
      allowed_origins: ["http://localhost:5173"]

    logging:
      level: "INFO"
      log_dir: "."

Usage:
    config = load_config()
    if config.http.enabled:
        print(config.http.host, config.http.port)
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mcp_quotes.server.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "mcp_quotes.yml"
DEFAULT_ALLOWED_HOSTS = ("127.0.0.1", "localhost")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class HttpsConfig:
    """TLS settings for the HTTP transport.

    Attributes:
        enabled: Whether the listener is wrapped in TLS
        cert_path: Path to a PEM certificate file
        key_path: Path to a PEM private key file
    """

    enabled: bool = False
    cert_path: str | None = None
    key_path: str | None = None

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.enabled and (not self.cert_path or not self.key_path):
            msg = (
                "HTTPS is enabled but MCP_HTTPS_CERT_PATH and MCP_HTTPS_KEY_PATH "
                "environment variables are required"
            )
            raise ConfigurationError(msg)


@dataclass(frozen=True)
class SecurityConfig:
    """Allow-lists consulted on every request.

    Attributes:
        allowed_hosts: Host header values accepted (DNS rebinding protection)
        allowed_origins: Origins accepted for CORS
    """

    allowed_hosts: tuple[str, ...] = DEFAULT_ALLOWED_HOSTS
    allowed_origins: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Normalize lists to tuples (use object.__setattr__ for frozen dataclass)."""
        object.__setattr__(self, "allowed_hosts", tuple(self.allowed_hosts))
        object.__setattr__(self, "allowed_origins", tuple(self.allowed_origins))


@dataclass(frozen=True)
class HttpServerConfig:
    """HTTP transport server configuration.

    Attributes:
        enabled: Whether the HTTP transport is used instead of stdio
        host: Bind address
        port: Bind port (1-65535)
        https: TLS settings
        security: Host/origin allow-lists
        session_timeout_seconds: Idle time after which a session is evicted
        json_response: Answer POST requests with JSON bodies instead of SSE streams
    """

    enabled: bool = False
    host: str = "localhost"
    port: int = 3000
    https: HttpsConfig = field(default_factory=HttpsConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    session_timeout_seconds: float = 30 * 60
    json_response: bool = True

    def __post_init__(self) -> None:
        """Validate configuration."""
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            msg = f"Invalid HTTP server configuration: port must be an integer, got {self.port!r}"
            raise ConfigurationError(msg)

        if not 1 <= self.port <= 65535:
            msg = "Invalid HTTP server configuration: port must be between 1 and 65535"
            raise ConfigurationError(msg, context={"port": self.port})

        if not self.host or not str(self.host).strip():
            msg = "Invalid HTTP server configuration: host is required"
            raise ConfigurationError(msg)

        if self.session_timeout_seconds <= 0:
            msg = f"session_timeout_seconds must be > 0, got {self.session_timeout_seconds}"
            raise ConfigurationError(msg)


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration.

    Attributes:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory receiving combined.log and errors.log
    """

    level: str = "INFO"
    log_dir: str = "."

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.level.upper() not in VALID_LOG_LEVELS:
            msg = f"log level must be one of {list(VALID_LOG_LEVELS)}, got '{self.level}'"
            raise ConfigurationError(msg)
        object.__setattr__(self, "level", self.level.upper())


@dataclass(frozen=True)
class Config:
    """Root configuration object.

    Attributes:
        http: HTTP transport configuration
        logging: Logging configuration
        config_path: YAML file the configuration was read from, if any
    """

    http: HttpServerConfig = field(default_factory=HttpServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    config_path: Path | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary.

        Returns:
            Dict representation of config (paths as strings)
        """
        return {
            "http": {
                "enabled": self.http.enabled,
                "host": self.http.host,
                "port": self.http.port,
                "session_timeout_seconds": self.http.session_timeout_seconds,
                "json_response": self.http.json_response,
            },
            "https": {
                "enabled": self.http.https.enabled,
                "cert_path": self.http.https.cert_path,
                "key_path": self.http.https.key_path,
            },
            "security": {
                "allowed_hosts": list(self.http.security.allowed_hosts),
                "allowed_origins": list(self.http.security.allowed_origins),
            },
            "logging": {
                "level": self.logging.level,
                "log_dir": self.logging.log_dir,
            },
            "config_path": str(self.config_path) if self.config_path else None,
        }


def _parse_bool(value: str) -> bool:
    return value.strip().lower() == "true"


def _parse_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        msg = f"{name} must be an integer, got '{value}'"
        raise ConfigurationError(msg) from None


def _parse_float(name: str, value: str) -> float:
    try:
        return float(value)
    except ValueError:
        msg = f"{name} must be a number, got '{value}'"
        raise ConfigurationError(msg) from None


def _read_yaml(config_path: Path) -> dict[str, Any]:
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        msg = f"Configuration file {config_path} must contain a mapping"
        raise ConfigurationError(msg)
    return data


def load_config(
    config_path: Path | None = None, environ: dict[str, str] | None = None
) -> Config:
    """Load configuration from YAML file and environment variables.

    Precedence (highest to lowest):
    1. Environment variables (MCP_*)
    2. YAML config file
    3. Default values

    Args:
        config_path: Optional path to config YAML file
            (default: $MCP_QUOTES_CONFIG or ./mcp_quotes.yml)
        environ: Environment mapping (default: os.environ)

    Returns:
        Config object

    Raises:
        ConfigurationError: If any value fails validation

    Environment variables:
        MCP_HTTP_ENABLED: Enable HTTP transport (true/false)
        MCP_HTTP_HOST: HTTP server host
        MCP_HTTP_PORT: HTTP server port
        MCP_HTTPS_ENABLED: Enable HTTPS (true/false)
        MCP_HTTPS_CERT_PATH: Certificate file path
        MCP_HTTPS_KEY_PATH: Private key file path
        MCP_HTTP_ALLOWED_HOSTS: Comma-separated Host allow-list
        MCP_HTTP_ALLOWED_ORIGINS: Comma-separated CORS origin allow-list
        MCP_SESSION_TIMEOUT_SECONDS: Idle session timeout
        MCP_HTTP_JSON_RESPONSE: JSON (true) or SSE (false) POST responses
        MCP_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL)
        MCP_LOG_DIR: Directory for combined.log / errors.log
    """
    env = os.environ if environ is None else environ

    if config_path is None:
        config_path = Path(env.get("MCP_QUOTES_CONFIG", DEFAULT_CONFIG_FILE))

    http: dict[str, Any] = {}
    https: dict[str, Any] = {}
    security: dict[str, Any] = {}
    logging_section: dict[str, Any] = {}

    # Load from YAML if available
    loaded_path: Path | None = None
    if config_path.exists():
        logger.info("Loading configuration from %s", config_path)
        yaml_config = _read_yaml(config_path)
        http.update(yaml_config.get("http") or {})
        https.update(yaml_config.get("https") or {})
        security.update(yaml_config.get("security") or {})
        logging_section.update(yaml_config.get("logging") or {})
        loaded_path = config_path

    # Apply environment variable overrides (highest precedence)
    if env.get("MCP_HTTP_ENABLED"):
        http["enabled"] = _parse_bool(env["MCP_HTTP_ENABLED"])
    if env.get("MCP_HTTP_HOST"):
        http["host"] = env["MCP_HTTP_HOST"]
    if env.get("MCP_HTTP_PORT"):
        http["port"] = _parse_int("MCP_HTTP_PORT", env["MCP_HTTP_PORT"])
    if env.get("MCP_SESSION_TIMEOUT_SECONDS"):
        http["session_timeout_seconds"] = _parse_float(
            "MCP_SESSION_TIMEOUT_SECONDS", env["MCP_SESSION_TIMEOUT_SECONDS"]
        )
    if env.get("MCP_HTTP_JSON_RESPONSE"):
        http["json_response"] = _parse_bool(env["MCP_HTTP_JSON_RESPONSE"])

    if env.get("MCP_HTTPS_ENABLED"):
        https["enabled"] = _parse_bool(env["MCP_HTTPS_ENABLED"])
    if env.get("MCP_HTTPS_CERT_PATH"):
        https["cert_path"] = env["MCP_HTTPS_CERT_PATH"]
    if env.get("MCP_HTTPS_KEY_PATH"):
        https["key_path"] = env["MCP_HTTPS_KEY_PATH"]

    if env.get("MCP_HTTP_ALLOWED_HOSTS"):
        security["allowed_hosts"] = _parse_list(env["MCP_HTTP_ALLOWED_HOSTS"])
    if env.get("MCP_HTTP_ALLOWED_ORIGINS"):
        security["allowed_origins"] = _parse_list(env["MCP_HTTP_ALLOWED_ORIGINS"])

    if env.get("MCP_LOG_LEVEL"):
        logging_section["level"] = env["MCP_LOG_LEVEL"]
    if env.get("MCP_LOG_DIR"):
        logging_section["log_dir"] = env["MCP_LOG_DIR"]

    # Build (and validate) once all sources are merged
    try:
        config = Config(
            http=HttpServerConfig(
                **http,
                https=HttpsConfig(**https),
                security=SecurityConfig(**security),
            ),
            logging=LoggingConfig(**logging_section),
            config_path=loaded_path,
        )
    except TypeError as e:
        # Unknown keys in the YAML file
        msg = f"Invalid configuration: {e}"
        raise ConfigurationError(msg) from e
    except ConfigurationError as e:
        logger.exception("Configuration validation failed: %s", e)
        raise

    logger.info(
        "Configuration loaded",
        extra={
            "http_enabled": config.http.enabled,
            "https_enabled": config.http.https.enabled,
            "host": config.http.host,
            "port": config.http.port,
            "allowed_hosts": list(config.http.security.allowed_hosts),
            "allowed_origins": list(config.http.security.allowed_origins),
        },
    )
    return config


__all__ = [
    "Config",
    "HttpServerConfig",
    "HttpsConfig",
    "LoggingConfig",
    "SecurityConfig",
    "load_config",
]
