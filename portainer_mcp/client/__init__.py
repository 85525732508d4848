"""Portainer API client."""

from portainer_mcp.client.portainer_client import PortainerClient

__all__ = ["PortainerClient"]
