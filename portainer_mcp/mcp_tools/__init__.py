"""MCP tool implementations: typed Portainer tools, proxy bridge, dispatcher, schemas."""

__all__ = [
    "executor",
    "tool_schemas",
    "environment_tools",
    "group_tools",
    "stack_tools",
    "team_tools",
    "proxy_tools",
]
