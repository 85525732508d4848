"""
Pydantic models for tool argument validation, derived from the catalog.

The catalog's inputSchema is the single source of truth: the same schema is
shown to the agent in tools/list and turned into a Pydantic model here, so
a field added to tools.yaml is validated without code changes.

Usage:
  - build_args_model(definition.name, definition.input_schema) at registration
  - validate_arguments(model, arguments) before every handler call

Model fields are snake_case with the catalog's camelCase names as aliases,
so handlers receive Python-style keyword arguments.
"""

import re
from typing import Any, Literal, Optional, Union

from pydantic import (
    BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr,
    ValidationError, create_model,
)

from portainer_mcp.shared.errors import InvalidArgumentsError

_SCALAR_TYPES = {
    "string": StrictStr,
    "integer": StrictInt,
    "number": Union[StrictInt, StrictFloat],
    "boolean": StrictBool,
}

_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")


class ToolArgs(BaseModel):
    """Base for generated argument models: unknown fields are rejected, scalars are never coerced."""
    model_config = ConfigDict(extra="forbid")


def to_snake(name: str) -> str:
    """tagIds -> tag_ids"""
    return _CAMEL_RE.sub("_", name).lower()


def _model_name(name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in re.split(r"[^0-9a-zA-Z]", name) if part) + "Args"


def _annotation_for(prop: dict, name: str) -> Any:
    if "enum" in prop:
        if not prop["enum"]:
            raise ValueError(f"{name}: enum must list at least one value")
        return Literal[tuple(prop["enum"])]
    json_type = prop.get("type")
    if json_type in _SCALAR_TYPES:
        return _SCALAR_TYPES[json_type]
    if json_type == "array":
        items = prop.get("items")
        if not items:
            return list[Any]
        return list[_annotation_for(items, f"{name}_item")]
    if json_type == "object":
        if prop.get("properties"):
            return build_args_model(name, prop)
        return dict[str, Any]
    return Any


def build_args_model(name: str, schema: dict) -> type[BaseModel]:
    """Create a Pydantic model class from a JSON-schema object definition."""
    properties = schema.get("properties") or {}
    required = set(schema.get("required") or [])
    fields = {}
    for prop_name, prop in properties.items():
        annotation = _annotation_for(prop or {}, f"{name}_{prop_name}")
        description = (prop or {}).get("description")
        if prop_name in required:
            fields[to_snake(prop_name)] = (
                annotation,
                Field(..., alias=prop_name, description=description),
            )
        else:
            fields[to_snake(prop_name)] = (
                Optional[annotation],
                Field(None, alias=prop_name, description=description),
            )
    return create_model(_model_name(name), __base__=ToolArgs, **fields)


def validate_arguments(model: type[BaseModel], arguments: Optional[dict]) -> dict:
    """
    Validate raw call arguments and return snake_case keyword arguments.

    Only fields the agent actually sent are returned, so handler defaults
    apply to omitted optional fields. Raises InvalidArgumentsError naming
    the first offending field.
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, dict):
        raise InvalidArgumentsError("arguments must be an object")
    try:
        validated = model.model_validate(arguments)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first.get("loc", ())) or None
        reason = first.get("msg", "invalid value")
        message = f"{field}: {reason}" if field else reason
        if len(e.errors()) > 1:
            message += f" (and {len(e.errors()) - 1} more error(s))"
        raise InvalidArgumentsError(message, field=field) from None
    return validated.model_dump(exclude_unset=True)
