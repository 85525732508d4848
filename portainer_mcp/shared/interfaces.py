"""
Abstract interfaces (Ports) for the Portainer MCP server.
Following Dependency Inversion Principle - depend on abstractions, not concretions.
"""

from abc import ABC, abstractmethod

from .models import (
    AccessGroup,
    CallRequest,
    CallResult,
    Environment,
    EnvironmentGroup,
    EnvironmentTag,
    PortainerSettings,
    ProxyRequest,
    ProxyResponse,
    Stack,
    Team,
    ToolDefinition,
    User,
)


class IPortainerClient(ABC):
    """Interface for the Portainer backend used by the tool handlers.

    Implementations must be safe for concurrent use by many in-flight calls.
    """

    # Tags
    @abstractmethod
    async def get_environment_tags(self) -> list[EnvironmentTag]:
        """List environment tags."""

    @abstractmethod
    async def create_environment_tag(self, name: str) -> int:
        """Create a tag and return its id."""

    # Environments
    @abstractmethod
    async def get_environments(self) -> list[Environment]:
        """List environments."""

    @abstractmethod
    async def update_environment_tags(self, id: int, tag_ids: list[int]) -> None:
        """Replace the tags of an environment."""

    @abstractmethod
    async def update_environment_user_accesses(self, id: int, user_accesses: dict[int, str]) -> None:
        """Replace the user access policies of an environment."""

    @abstractmethod
    async def update_environment_team_accesses(self, id: int, team_accesses: dict[int, str]) -> None:
        """Replace the team access policies of an environment."""

    # Environment groups
    @abstractmethod
    async def get_environment_groups(self) -> list[EnvironmentGroup]:
        """List environment groups."""

    @abstractmethod
    async def create_environment_group(self, name: str, environment_ids: list[int]) -> int:
        """Create an environment group and return its id."""

    @abstractmethod
    async def update_environment_group_name(self, id: int, name: str) -> None:
        """Rename an environment group."""

    @abstractmethod
    async def update_environment_group_environments(self, id: int, environment_ids: list[int]) -> None:
        """Replace the environments of an environment group."""

    @abstractmethod
    async def update_environment_group_tags(self, id: int, tag_ids: list[int]) -> None:
        """Replace the tags of an environment group."""

    # Access groups
    @abstractmethod
    async def get_access_groups(self) -> list[AccessGroup]:
        """List access groups."""

    @abstractmethod
    async def create_access_group(self, name: str, environment_ids: list[int]) -> int:
        """Create an access group and return its id."""

    @abstractmethod
    async def update_access_group_name(self, id: int, name: str) -> None:
        """Rename an access group."""

    @abstractmethod
    async def update_access_group_user_accesses(self, id: int, user_accesses: dict[int, str]) -> None:
        """Replace the user access policies of an access group."""

    @abstractmethod
    async def update_access_group_team_accesses(self, id: int, team_accesses: dict[int, str]) -> None:
        """Replace the team access policies of an access group."""

    @abstractmethod
    async def add_environment_to_access_group(self, id: int, environment_id: int) -> None:
        """Move an environment into an access group."""

    @abstractmethod
    async def remove_environment_from_access_group(self, id: int, environment_id: int) -> None:
        """Remove an environment from an access group."""

    # Stacks
    @abstractmethod
    async def get_stacks(self) -> list[Stack]:
        """List stacks."""

    @abstractmethod
    async def get_stack_file(self, id: int) -> str:
        """Return the compose file of a stack."""

    @abstractmethod
    async def create_stack(self, name: str, file: str, environment_group_ids: list[int]) -> int:
        """Create a stack and return its id."""

    @abstractmethod
    async def update_stack(self, id: int, file: str, environment_group_ids: list[int]) -> None:
        """Replace the compose file and target groups of a stack."""

    # Teams
    @abstractmethod
    async def create_team(self, name: str) -> int:
        """Create a team and return its id."""

    @abstractmethod
    async def get_teams(self) -> list[Team]:
        """List teams with their members."""

    @abstractmethod
    async def update_team_name(self, id: int, name: str) -> None:
        """Rename a team."""

    @abstractmethod
    async def update_team_members(self, id: int, user_ids: list[int]) -> None:
        """Replace the members of a team."""

    # Users
    @abstractmethod
    async def get_users(self) -> list[User]:
        """List users."""

    @abstractmethod
    async def update_user_role(self, id: int, role: str) -> None:
        """Change the role of a user."""

    # Settings / version
    @abstractmethod
    async def get_settings(self) -> PortainerSettings:
        """Return the Portainer settings."""

    @abstractmethod
    async def get_version(self) -> str:
        """Return the Portainer server version."""

    # Raw proxies
    @abstractmethod
    async def proxy_docker_request(self, request: ProxyRequest, timeout: float) -> ProxyResponse:
        """Forward a request to the Docker API of an environment.

        Returns as soon as the upstream headers arrive; the body streams.
        Raises UpstreamUnreachableError when the engine cannot be reached.
        """

    @abstractmethod
    async def proxy_kubernetes_request(self, request: ProxyRequest, timeout: float) -> ProxyResponse:
        """Forward a request to the Kubernetes API of an environment."""

    @abstractmethod
    async def close(self) -> None:
        """Release the connection pool."""


class IToolDispatcher(ABC):
    """Interface for MCP tool dispatch."""

    @abstractmethod
    async def dispatch(self, request: CallRequest) -> CallResult:
        """Resolve, validate and execute a tool call. Never raises."""

    @abstractmethod
    def get_tool_definitions(self) -> list[ToolDefinition]:
        """Return the definitions of every reachable tool."""
