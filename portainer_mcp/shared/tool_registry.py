"""
Tool Registry - the set of tools an agent can actually reach.

Built once at server construction, read-only afterwards. A name is in
the registry only if the catalog declares it, a handler exists for it,
and the AccessGuard allowed it. Everything else is an unknown tool.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .errors import DuplicateToolError
from .models import ToolDefinition

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class RegisteredTool:
    """A catalog entry bound to its handler."""
    definition: ToolDefinition
    handler: Handler

    @property
    def name(self) -> str:
        return self.definition.name


class ToolRegistry:
    """
    Mapping of tool name -> (definition, handler).

    Registering the same name twice is a programming error and raises
    DuplicateToolError instead of silently replacing the first handler.
    """

    def __init__(self):
        self._tools: dict[str, RegisteredTool] = {}

    def register(self, definition: ToolDefinition, handler: Handler) -> None:
        """Bind a handler to a catalog definition."""
        if definition.name in self._tools:
            raise DuplicateToolError(f"Tool already registered: {definition.name}")
        self._tools[definition.name] = RegisteredTool(definition=definition, handler=handler)
        logger.info(f"Registered tool: {definition.name} (mutating={definition.mutating})")

    def get(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return sorted(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        """All reachable tool definitions, sorted by name."""
        return [self._tools[name].definition for name in self.names()]
