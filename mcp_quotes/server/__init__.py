"""MCP Server Core - transports and protocol wiring.

This package contains:
- mcp_server.py: protocol engine factory (get_quote tool, prompt template resource)
- stdio_transport.py: single-connection stdio transport
- http_transport.py: session-managed streamable HTTP transport service
- router.py / sessions.py / transport_factory.py / sweeper.py: HTTP session machinery
- middleware.py: Host validation, CORS options, request logging
- bootstrap.py: TLS validation and uvicorn configuration
- config.py: server configuration (YAML + MCP_* environment variables)
- errors.py: error taxonomy

Import from the submodules directly; the package itself exports nothing so
that services and server modules can depend on each other's leaves freely.
"""

__all__: list[str] = []
