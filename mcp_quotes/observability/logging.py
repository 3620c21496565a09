"""Structured JSON logging for the quotes server.

Handlers are file-only so the stdio transport keeps stdout for protocol
traffic: every record goes to ``combined.log`` and ERROR and above also go to
``errors.log``.
"""

import json
import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

# Attributes present on every LogRecord; anything else came in through ``extra=``
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None)).keys()
) | {"message", "asctime", "taskName"}

_KEY_PARAM = re.compile(r"([?&]key=)[^&]*")

COMBINED_LOG = "combined.log"
ERROR_LOG = "errors.log"

_api_logger = logging.getLogger("mcp_quotes.api")


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["stack"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str = "INFO", log_dir: str | Path = ".") -> None:
    """Install the JSON file handlers on the root logger.

    Safe to call more than once: handlers installed by an earlier call are
    replaced rather than duplicated.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_mcp_quotes", False):
            root.removeHandler(handler)
            handler.close()

    formatter = JSONFormatter()

    combined = logging.FileHandler(log_path / COMBINED_LOG, encoding="utf-8")
    combined.setFormatter(formatter)
    combined._mcp_quotes = True  # type: ignore[attr-defined]

    errors = logging.FileHandler(log_path / ERROR_LOG, encoding="utf-8")
    errors.setLevel(logging.ERROR)
    errors.setFormatter(formatter)
    errors._mcp_quotes = True  # type: ignore[attr-defined]

    root.addHandler(combined)
    root.addHandler(errors)
    root.setLevel(level.upper())


def mask_api_key(url: str) -> str:
    """Replace any ``key=`` query value in ``url`` with ``***``."""
    return _KEY_PARAM.sub(r"\1***", url)


def log_api_request(url: str, method: str, params: dict[str, Any] | None = None) -> None:
    """Log an outbound API request with credentials removed."""
    safe_params = {k: v for k, v in (params or {}).items() if k != "key"}
    _api_logger.info(
        "API Request",
        extra={"url": mask_api_key(url), "method": method, "params": safe_params},
    )


def log_api_response(url: str, status_code: int, response_size: int | None = None) -> None:
    """Log an API response with credentials removed."""
    _api_logger.info(
        "API Response",
        extra={
            "url": mask_api_key(url),
            "statusCode": status_code,
            "responseSize": response_size,
        },
    )


def log_error(
    logger: logging.Logger,
    message: str,
    error: BaseException,
    context: dict[str, Any] | None = None,
) -> None:
    """Log error with context."""
    logger.error(
        message,
        extra={
            "error": str(error),
            "error_type": type(error).__name__,
            **(context or {}),
        },
        exc_info=error,
    )


__all__ = [
    "JSONFormatter",
    "configure_logging",
    "log_api_request",
    "log_api_response",
    "log_error",
    "mask_api_key",
]
