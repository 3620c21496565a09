"""mcp-quotes-server command-line interface.

Example:
    # Start on stdio (default) or HTTP when MCP_HTTP_ENABLED=true
    mcp-quotes-server serve

    # Force the HTTP transport on a given port
    mcp-quotes-server serve --transport http --port 3001

    # Show the effective configuration
    mcp-quotes-server config
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Any

from mcp_quotes import __version__
from mcp_quotes.observability.logging import configure_logging
from mcp_quotes.server.config import Config, load_config
from mcp_quotes.server.errors import ConfigurationError, HttpTransportError
from mcp_quotes.server.main import TRANSPORTS, serve

logger = logging.getLogger(__name__)


def _load(args: argparse.Namespace) -> Config:
    config = load_config(Path(args.config) if args.config else None)

    http_overrides: dict[str, Any] = {}
    if getattr(args, "host", None):
        http_overrides["host"] = args.host
    if getattr(args, "port", None):
        http_overrides["port"] = args.port
    if http_overrides:
        config = dataclasses.replace(
            config, http=dataclasses.replace(config.http, **http_overrides)
        )

    if args.log_level:
        config = dataclasses.replace(
            config, logging=dataclasses.replace(config.logging, level=args.log_level)
        )
    return config


# =============================================================================
# Commands
# =============================================================================


def serve_command(args: argparse.Namespace) -> int:
    """Start the MCP server.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    try:
        config = _load(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    configure_logging(config.logging.level, config.logging.log_dir)

    try:
        asyncio.run(serve(config, args.transport))
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except (ConfigurationError, HttpTransportError) as e:
        logger.exception("Failed to start MCP Quotes Server: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("MCP server error: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        return 1


def config_command(args: argparse.Namespace) -> int:
    """Print the effective configuration as JSON."""
    try:
        config = _load(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    print(json.dumps(config.to_dict(), indent=2))
    return 0


# =============================================================================
# Main CLI
# =============================================================================


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="mcp-quotes-server",
        description="MCP Quotes Server - quotes over stdio or session-managed HTTP",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # stdio transport (default)
  mcp-quotes-server serve

  # HTTP transport
  MCP_HTTP_ENABLED=true MCP_HTTP_PORT=3000 mcp-quotes-server serve

  # HTTPS
  MCP_HTTP_ENABLED=true MCP_HTTPS_ENABLED=true \\
    MCP_HTTPS_CERT_PATH=cert.pem MCP_HTTPS_KEY_PATH=key.pem mcp-quotes-server serve

Environment:
  SERPER_API_KEY is required for the get_quote tool.
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML configuration file (default: $MCP_QUOTES_CONFIG or ./mcp_quotes.yml)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Override the configured logging level",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    serve_parser = subparsers.add_parser("serve", help="Start the MCP server")
    serve_parser.add_argument(
        "--transport",
        choices=TRANSPORTS,
        default="auto",
        help="Transport to use (default: auto, HTTP when MCP_HTTP_ENABLED=true)",
    )
    serve_parser.add_argument("--host", default=None, help="HTTP bind host override")
    serve_parser.add_argument("--port", type=int, default=None, help="HTTP bind port override")
    serve_parser.set_defaults(func=serve_command)

    config_parser = subparsers.add_parser("config", help="Print the effective configuration")
    config_parser.set_defaults(func=config_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # No command: serve with defaults
    if not hasattr(args, "func"):
        args = parser.parse_args([*(argv if argv is not None else sys.argv[1:]), "serve"])

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
