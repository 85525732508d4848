"""Portainer MCP server: Portainer management tools for AI agents over the Model Context Protocol."""

from portainer_mcp.shared.constants import SERVER_VERSION

__version__ = SERVER_VERSION
