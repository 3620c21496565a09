"""
Listener bootstrap for the HTTP transport.

TLS material is checked before anything binds: a bad certificate or key path
is a startup error, never a per-request one.
"""

import logging
import os
from pathlib import Path
from typing import Any

import uvicorn
from starlette.types import ASGIApp

from mcp_quotes.server.config import HttpsConfig, HttpServerConfig
from mcp_quotes.server.errors import ConfigurationError

logger = logging.getLogger(__name__)

CERTIFICATE_MARKER = "-----BEGIN CERTIFICATE-----"
KEY_BEGIN_MARKER = "-----BEGIN"
KEY_END_MARKER = "PRIVATE KEY-----"


def _read_pem(path: Path, label: str) -> str:
    if not path.is_file():
        msg = f"HTTPS {label} file not found: {path}"
        raise ConfigurationError(msg, context={"path": str(path)})
    if not os.access(path, os.R_OK):
        msg = f"HTTPS {label} file not accessible: {path}"
        raise ConfigurationError(msg, context={"path": str(path)})
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        msg = f"HTTPS {label} file could not be read: {path}"
        raise ConfigurationError(msg, context={"path": str(path), "error": str(e)}) from e


def validate_tls_material(https: HttpsConfig) -> None:
    """
    Check that certificate and key files exist, are readable and look like PEM.

    Args:
        https: TLS settings (no-op when disabled)

    Raises:
        ConfigurationError: On any missing path, unreadable file or bad format
    """
    if not https.enabled:
        return

    if not https.cert_path or not https.key_path:
        msg = "Invalid HTTP server configuration: HTTPS requires cert_path and key_path"
        raise ConfigurationError(msg)

    cert_path = Path(https.cert_path)
    key_path = Path(https.key_path)

    try:
        cert = _read_pem(cert_path, "certificate")
        key = _read_pem(key_path, "private key")

        if CERTIFICATE_MARKER not in cert:
            msg = f"Invalid certificate file format: {cert_path}"
            raise ConfigurationError(msg, context={"path": str(cert_path)})

        if KEY_BEGIN_MARKER not in key or KEY_END_MARKER not in key:
            msg = f"Invalid private key file format: {key_path}"
            raise ConfigurationError(msg, context={"path": str(key_path)})
    except ConfigurationError as e:
        logger.error("HTTPS certificate validation failed: %s", e.message, extra=e.context)
        raise

    logger.info("HTTPS certificates validated successfully")


def build_uvicorn_config(app: ASGIApp, config: HttpServerConfig, log_level: str = "info") -> uvicorn.Config:
    """Plain or TLS uvicorn config for the given server settings."""
    kwargs: dict[str, Any] = {}
    if config.https.enabled:
        kwargs["ssl_certfile"] = config.https.cert_path
        kwargs["ssl_keyfile"] = config.https.key_path

    return uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level=log_level.lower(),
        access_log=False,  # RequestLoggingMiddleware logs every request
        lifespan="on",
        **kwargs,
    )


__all__ = ["build_uvicorn_config", "validate_tls_material"]
