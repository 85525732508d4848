"""
Shared test fixtures for the Portainer MCP test suite.
"""

import os
import sys
import tempfile
from unittest.mock import AsyncMock

import pytest

# Ensure portainer_mcp is importable without installation
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from portainer_mcp.catalog.loader import load_tools_from_yaml
from portainer_mcp.shared.config import DEFAULT_TOOLS_PATH
from portainer_mcp.shared.constants import MINIMUM_TOOLS_VERSION, SUPPORTED_PORTAINER_VERSION
from portainer_mcp.shared.interfaces import IPortainerClient
from portainer_mcp.shared.models import ToolDefinition
from portainer_mcp.shared.security import AccessGuard


@pytest.fixture
def tmp_dir():
    with tempfile.TemporaryDirectory() as d:
        yield d


@pytest.fixture
def catalog():
    """The packaged tools.yaml, loaded."""
    return load_tools_from_yaml(DEFAULT_TOOLS_PATH, MINIMUM_TOOLS_VERSION)


@pytest.fixture
def small_catalog():
    """One read tool and one mutating tool."""
    return {
        "listThings": ToolDefinition(
            name="listThings",
            description="List things",
            input_schema={"type": "object", "properties": {}},
        ),
        "createThing": ToolDefinition(
            name="createThing",
            description="Create a thing",
            input_schema={
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "tagIds": {"type": "array", "items": {"type": "integer"}},
                },
                "required": ["name"],
            },
            mutating=True,
        ),
    }


@pytest.fixture
def guard():
    return AccessGuard(read_only=False)


@pytest.fixture
def read_only_guard():
    return AccessGuard(read_only=True)


@pytest.fixture
def mock_client():
    """AsyncMock standing in for the Portainer backend."""
    client = AsyncMock(spec=IPortainerClient)
    client.get_version.return_value = SUPPORTED_PORTAINER_VERSION
    return client

