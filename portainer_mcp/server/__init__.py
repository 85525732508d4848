"""MCP server assembly and transports (stdio, streamable HTTP)."""

__all__ = ["mcp_server", "http_app"]
