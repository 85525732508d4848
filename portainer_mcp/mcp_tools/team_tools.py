"""
Team, user and settings MCP tools.
Implements: createTeam, listTeams, updateTeamName, updateTeamMembers,
listUsers, updateUserRole, getSettings
"""

import logging

from portainer_mcp.shared.interfaces import IPortainerClient
from portainer_mcp.shared.models import PortainerSettings, Team, User

logger = logging.getLogger(__name__)


class TeamTools:
    def __init__(self, client: IPortainerClient):
        self._client = client

    async def create_team(self, name: str) -> str:
        team_id = await self._client.create_team(name)
        logger.info(f"Created team {name!r} (id={team_id})")
        return f"Team created successfully with ID: {team_id}"

    async def list_teams(self) -> list[Team]:
        return await self._client.get_teams()

    async def update_team_name(self, id: int, name: str) -> str:
        await self._client.update_team_name(id, name)
        return "Team name updated successfully"

    async def update_team_members(self, id: int, user_ids: list[int]) -> str:
        await self._client.update_team_members(id, user_ids)
        return "Team members updated successfully"


class UserTools:
    def __init__(self, client: IPortainerClient):
        self._client = client

    async def list_users(self) -> list[User]:
        return await self._client.get_users()

    async def update_user_role(self, id: int, role: str) -> str:
        await self._client.update_user_role(id, role)
        return "User role updated successfully"


class SettingsTools:
    def __init__(self, client: IPortainerClient):
        self._client = client

    async def get_settings(self) -> PortainerSettings:
        return await self._client.get_settings()
