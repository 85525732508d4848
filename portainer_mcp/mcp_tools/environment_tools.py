"""
Environment MCP tools - tags and environments.
Implements: listEnvironmentTags, createEnvironmentTag, listEnvironments,
updateEnvironmentTags, updateEnvironmentUserAccesses, updateEnvironmentTeamAccesses
"""

import logging

from portainer_mcp.shared.interfaces import IPortainerClient
from portainer_mcp.shared.models import Environment, EnvironmentTag

logger = logging.getLogger(__name__)


def accesses_to_map(accesses: list) -> dict[int, str]:
    """[{"id": 3, "access": "readonly_user"}] -> {3: "readonly_user"}"""
    return {entry["id"]: entry["access"] for entry in accesses}


class EnvironmentTools:
    """Tag and environment handlers."""

    def __init__(self, client: IPortainerClient):
        self._client = client

    async def list_environment_tags(self) -> list[EnvironmentTag]:
        return await self._client.get_environment_tags()

    async def create_environment_tag(self, name: str) -> str:
        tag_id = await self._client.create_environment_tag(name)
        logger.info(f"Created environment tag {name!r} (id={tag_id})")
        return f"Environment tag created successfully with ID: {tag_id}"

    async def list_environments(self) -> list[Environment]:
        return await self._client.get_environments()

    async def update_environment_tags(self, id: int, tag_ids: list[int]) -> str:
        await self._client.update_environment_tags(id, tag_ids)
        return "Environment tags updated successfully"

    async def update_environment_user_accesses(self, id: int, user_accesses: list) -> str:
        await self._client.update_environment_user_accesses(id, accesses_to_map(user_accesses))
        return "Environment user accesses updated successfully"

    async def update_environment_team_accesses(self, id: int, team_accesses: list) -> str:
        await self._client.update_environment_team_accesses(id, accesses_to_map(team_accesses))
        return "Environment team accesses updated successfully"
