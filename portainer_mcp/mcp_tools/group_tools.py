"""
Group MCP tools.

Environment groups are Portainer edge groups (targets for stacks);
access groups are Portainer endpoint groups (carry access policies).
"""

import logging

from portainer_mcp.shared.interfaces import IPortainerClient
from portainer_mcp.shared.models import AccessGroup, EnvironmentGroup

from .environment_tools import accesses_to_map

logger = logging.getLogger(__name__)


class EnvironmentGroupTools:
    """Environment group handlers."""

    def __init__(self, client: IPortainerClient):
        self._client = client

    async def list_environment_groups(self) -> list[EnvironmentGroup]:
        return await self._client.get_environment_groups()

    async def create_environment_group(self, name: str, environment_ids: list[int]) -> str:
        group_id = await self._client.create_environment_group(name, environment_ids)
        logger.info(f"Created environment group {name!r} (id={group_id})")
        return f"Environment group created successfully with ID: {group_id}"

    async def update_environment_group_name(self, id: int, name: str) -> str:
        await self._client.update_environment_group_name(id, name)
        return "Environment group name updated successfully"

    async def update_environment_group_environments(self, id: int, environment_ids: list[int]) -> str:
        await self._client.update_environment_group_environments(id, environment_ids)
        return "Environment group environments updated successfully"

    async def update_environment_group_tags(self, id: int, tag_ids: list[int]) -> str:
        await self._client.update_environment_group_tags(id, tag_ids)
        return "Environment group tags updated successfully"


class AccessGroupTools:
    """Access group handlers."""

    def __init__(self, client: IPortainerClient):
        self._client = client

    async def list_access_groups(self) -> list[AccessGroup]:
        return await self._client.get_access_groups()

    async def create_access_group(self, name: str, environment_ids: list[int] = None) -> str:
        group_id = await self._client.create_access_group(name, environment_ids or [])
        logger.info(f"Created access group {name!r} (id={group_id})")
        return f"Access group created successfully with ID: {group_id}"

    async def update_access_group_name(self, id: int, name: str) -> str:
        await self._client.update_access_group_name(id, name)
        return "Access group name updated successfully"

    async def update_access_group_user_accesses(self, id: int, user_accesses: list) -> str:
        await self._client.update_access_group_user_accesses(id, accesses_to_map(user_accesses))
        return "Access group user accesses updated successfully"

    async def update_access_group_team_accesses(self, id: int, team_accesses: list) -> str:
        await self._client.update_access_group_team_accesses(id, accesses_to_map(team_accesses))
        return "Access group team accesses updated successfully"

    async def add_environment_to_access_group(self, id: int, environment_id: int) -> str:
        await self._client.add_environment_to_access_group(id, environment_id)
        return "Environment added to access group successfully"

    async def remove_environment_from_access_group(self, id: int, environment_id: int) -> str:
        await self._client.remove_environment_from_access_group(id, environment_id)
        return "Environment removed from access group successfully"
