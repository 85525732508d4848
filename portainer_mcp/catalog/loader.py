"""Load the declarative tool catalog (tools.yaml) into ToolDefinitions."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from portainer_mcp.shared.errors import SchemaError
from portainer_mcp.shared.models import ToolDefinition

logger = logging.getLogger(__name__)


def parse_version(value: str) -> tuple[int, ...]:
    """"1.2" -> (1, 2). Raises SchemaError for anything not dotted-numeric."""
    text = str(value).strip()
    try:
        parts = tuple(int(p) for p in text.split("."))
    except ValueError:
        raise SchemaError(f"Invalid tools version: '{value}'") from None
    if not parts or any(p < 0 for p in parts):
        raise SchemaError(f"Invalid tools version: '{value}'")
    return parts


def is_version_supported(version: str, minimum_version: str) -> bool:
    current, minimum = parse_version(version), parse_version(minimum_version)
    width = max(len(current), len(minimum))
    pad = lambda v: v + (0,) * (width - len(v))  # noqa: E731
    return pad(current) >= pad(minimum)


def _parse_tool(entry, index: int) -> ToolDefinition:
    if not isinstance(entry, dict):
        raise SchemaError(f"Tool #{index} must be a mapping")

    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise SchemaError(f"Tool #{index} is missing a name")

    description = entry.get("description")
    if not isinstance(description, str):
        raise SchemaError(f"Tool '{name}' is missing a description")

    schema = entry.get("inputSchema")
    if not isinstance(schema, dict):
        raise SchemaError(f"Tool '{name}' is missing an inputSchema")
    if schema.get("type", "object") != "object":
        raise SchemaError(f"Tool '{name}' inputSchema must be of type 'object'")
    if not isinstance(schema.get("properties", {}), dict):
        raise SchemaError(f"Tool '{name}' inputSchema properties must be a mapping")
    required = schema.get("required", [])
    if not isinstance(required, list) or any(r not in schema.get("properties", {}) for r in required):
        raise SchemaError(f"Tool '{name}' declares required fields that are not properties")

    mutating = entry.get("mutating", False)
    if not isinstance(mutating, bool):
        raise SchemaError(f"Tool '{name}' field 'mutating' must be a boolean")

    normalized = dict(schema)
    normalized.setdefault("type", "object")
    normalized.setdefault("properties", {})
    return ToolDefinition(
        name=name.strip(),
        description=description.strip(),
        input_schema=normalized,
        mutating=mutating,
    )


def load_tools_from_yaml(path: str | Path, minimum_version: str) -> dict[str, ToolDefinition]:
    """
    Load tool definitions from a YAML catalog.

    Raises SchemaError if the file cannot be read, its `version` is older
    than `minimum_version`, or any tool entry is malformed.
    """
    target = Path(path)
    try:
        raw = target.read_text(encoding="utf-8")
    except OSError as e:
        raise SchemaError(f"Cannot read tools file {target}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise SchemaError(f"Invalid YAML in tools file {target}: {e}") from e

    if not isinstance(data, dict):
        raise SchemaError("Tools file must be a mapping with 'version' and 'tools'")

    version = data.get("version")
    if version is None:
        raise SchemaError("Tools file is missing a 'version'")
    if not is_version_supported(str(version), minimum_version):
        raise SchemaError(
            f"Tools file version {version} is older than the minimum supported version {minimum_version}"
        )

    entries = data.get("tools")
    if not isinstance(entries, list):
        raise SchemaError("Tools file must define a top-level 'tools' list")

    tools: dict[str, ToolDefinition] = {}
    for index, entry in enumerate(entries):
        definition = _parse_tool(entry, index)
        if definition.name in tools:
            raise SchemaError(f"Duplicate tool name in catalog: {definition.name}")
        tools[definition.name] = definition

    logger.info(f"Loaded {len(tools)} tools from {target} (version {version})")
    return tools
