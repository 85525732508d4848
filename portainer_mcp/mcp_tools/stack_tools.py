"""Stack MCP tools: listStacks, getStackFile, createStack, updateStack"""

import logging

from portainer_mcp.shared.interfaces import IPortainerClient
from portainer_mcp.shared.models import Stack

logger = logging.getLogger(__name__)


class StackTools:
    """Stack handlers. Stacks are deployed to environment groups."""

    def __init__(self, client: IPortainerClient):
        self._client = client

    async def list_stacks(self) -> list[Stack]:
        return await self._client.get_stacks()

    async def get_stack_file(self, id: int) -> str:
        return await self._client.get_stack_file(id)

    async def create_stack(self, name: str, file: str, environment_group_ids: list[int]) -> str:
        stack_id = await self._client.create_stack(name, file, environment_group_ids)
        logger.info(f"Created stack {name!r} (id={stack_id})")
        return f"Stack created successfully with ID: {stack_id}"

    async def update_stack(self, id: int, file: str, environment_group_ids: list[int]) -> str:
        await self._client.update_stack(id, file, environment_group_ids)
        return "Stack updated successfully"
