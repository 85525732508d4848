"""Declarative tool catalog: tools.yaml and its loader."""

from portainer_mcp.catalog.loader import load_tools_from_yaml

__all__ = ["load_tools_from_yaml"]
