"""
Tool dispatcher - routes tool calls to the registered handlers.
Implements IToolDispatcher interface (Dependency Inversion).

Call pipeline:
- lookup: names that are not registered (never declared, no handler, or
  filtered by read-only mode) all fail the same way, as UNKNOWN_TOOL
- Pydantic arg validation against the catalog schema before any handler runs
- handler invocation under a timeout (proxy tools get their own, longer one)
- transient failure retry with backoff, for non-mutating typed tools only
- every failure becomes a CallResult; only task cancellation propagates
"""

import asyncio
import json
import logging
from typing import Any, Optional

from portainer_mcp.shared.constants import (
    PROXY_TIMEOUT_SECONDS,
    TOOL_BACKOFF_SECONDS,
    TOOL_MAX_RETRIES,
    TOOL_TIMEOUT_SECONDS,
)
from portainer_mcp.shared.errors import (
    BackendTimeoutError,
    DispatchError,
    InvalidArgumentsError,
    SchemaError,
)
from portainer_mcp.shared.interfaces import IToolDispatcher
from portainer_mcp.shared.log_setup import new_call_id
from portainer_mcp.shared.models import (
    PROXY_TOOLS,
    CallRequest,
    CallResult,
    ErrorKind,
    ToolDefinition,
    to_payload,
)
from portainer_mcp.shared.security import AccessGuard
from portainer_mcp.shared.tool_registry import Handler, ToolRegistry

from .tool_schemas import build_args_model, validate_arguments

logger = logging.getLogger(__name__)

_TOOL_TRANSIENT_KEYWORDS = (
    "timeout", "timed out", "connection", "reset",
    "broken pipe", "eof", "temporarily", "503", "502",
)


async def _run_handler(handler: Handler, args: dict) -> Any:
    """Await the handler, keeping its own timeouts apart from the dispatch timeout."""
    try:
        return await handler(**args)
    except asyncio.TimeoutError as e:
        raise BackendTimeoutError(str(e) or "backend request timed out") from e


def _is_tool_transient(error_str: str) -> bool:
    """Check if a tool error is transient and worth retrying."""
    lower = error_str.lower()
    return any(kw in lower for kw in _TOOL_TRANSIENT_KEYWORDS)


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def serialize_result(value: Any) -> list[str]:
    """
    Turn a handler's return value into ordered text blocks.

    Lists become one JSON block per item, models and dicts one JSON block,
    scalars plain text.
    """
    payload = to_payload(value)
    if payload is None:
        return []
    if isinstance(payload, list):
        if not payload:
            return ["[]"]
        return [_to_text(item) for item in payload]
    return [_to_text(payload)]


class MCPToolDispatcher(IToolDispatcher):
    """Owns the tool registry and executes calls against it."""

    def __init__(
        self,
        catalog: dict[str, ToolDefinition],
        guard: AccessGuard,
        tool_timeout_seconds: float = TOOL_TIMEOUT_SECONDS,
        proxy_timeout_seconds: float = PROXY_TIMEOUT_SECONDS,
    ):
        self._catalog = catalog
        self._guard = guard
        self._tool_timeout = tool_timeout_seconds
        self._proxy_timeout = proxy_timeout_seconds
        self._registry = ToolRegistry()
        self._arg_models: dict[str, type] = {}

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def register_if_present(self, name: str, handler: Handler) -> bool:
        """
        Bind `handler` to the catalog entry `name`.

        Returns False (and registers nothing) when the catalog does not
        declare the tool or the AccessGuard filters it out.
        """
        name = getattr(name, "value", name)
        definition = self._catalog.get(name)
        if definition is None:
            logger.warning(f"Tool {name} not found in catalog, will not be registered for MCP usage")
            return False
        if not self._guard.is_allowed(definition):
            logger.info(f"Skipping mutating tool {name} (read-only mode)")
            return False
        try:
            model = build_args_model(name, definition.input_schema)
        except (TypeError, ValueError) as e:
            raise SchemaError(f"Tool '{name}' has an unusable inputSchema: {e}") from e
        self._registry.register(definition, handler)
        self._arg_models[name] = model
        return True

    def get_tool_definitions(self) -> list[ToolDefinition]:
        return self._registry.definitions()

    async def dispatch(self, request: CallRequest) -> CallResult:
        call_id = new_call_id()
        name = request.tool_name
        entry = self._registry.get(name)
        if entry is None:
            logger.warning(f"BLOCKED: Unknown tool '{name}'")
            return CallResult.fail(name, ErrorKind.UNKNOWN_TOOL, f"Unknown tool: {name}")

        try:
            args = validate_arguments(self._arg_models[name], request.arguments)
        except InvalidArgumentsError as e:
            logger.warning(f"Arg validation failed for {name}: {e.message}")
            return CallResult.fail(name, e.kind, f"Invalid arguments: {e.message}", field=e.field)

        is_proxy = name in PROXY_TOOLS
        timeout = self._proxy_timeout if is_proxy else self._tool_timeout
        retryable = not is_proxy and not entry.definition.mutating
        max_attempts = TOOL_MAX_RETRIES if retryable else 1

        logger.info(f"Executing tool: {name} (call={call_id}, mutating={entry.definition.mutating})")

        last_error: Optional[str] = None
        for attempt in range(1, max_attempts + 1):
            try:
                value = await asyncio.wait_for(_run_handler(entry.handler, args), timeout=timeout)
                return CallResult.ok(name, serialize_result(value))
            except asyncio.TimeoutError:
                if is_proxy:
                    logger.warning(f"Proxy tool {name} timed out after {timeout}s")
                    return CallResult.fail(
                        name, ErrorKind.UPSTREAM_UNREACHABLE,
                        f"Upstream did not complete within {timeout}s",
                    )
                last_error = f"Tool {name} timed out after {timeout}s"
                logger.warning(f"{last_error} (attempt {attempt}/{max_attempts})")
            except DispatchError as e:
                logger.warning(f"Tool {name} failed: {e.kind.value}: {e.message}")
                return CallResult.fail(name, e.kind, e.message, field=e.field)
            except Exception as e:
                err_str = str(e) or e.__class__.__name__
                last_error = err_str
                if not retryable or not _is_tool_transient(err_str):
                    logger.error(f"Tool {name} failed: {err_str}", exc_info=True)
                    return CallResult.fail(name, ErrorKind.HANDLER_FAILURE, err_str)
                logger.warning(
                    f"Tool {name} transient error "
                    f"(attempt {attempt}/{max_attempts}): {e}"
                )

            if attempt < max_attempts:
                await asyncio.sleep(TOOL_BACKOFF_SECONDS * attempt)

        logger.error(f"Tool {name} failed after {max_attempts} attempt(s): {last_error}")
        return CallResult.fail(name, ErrorKind.HANDLER_FAILURE, last_error or "Tool failed")
