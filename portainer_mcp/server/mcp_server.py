"""
Portainer MCP server - wires the catalog, access policy, dispatcher and
Portainer client together and exposes them over the MCP protocol.

Construction is the only place that can fail fatally (SchemaError,
IncompatibleBackendError). Once built, the tool registry is frozen and
every call goes through MCPToolDispatcher.dispatch.
"""

import logging
from typing import Optional

from mcp import types
from mcp.server.lowlevel import Server
from mcp.server.stdio import stdio_server

from portainer_mcp.catalog.loader import load_tools_from_yaml
from portainer_mcp.client.portainer_client import PortainerClient
from portainer_mcp.mcp_tools.environment_tools import EnvironmentTools
from portainer_mcp.mcp_tools.executor import MCPToolDispatcher
from portainer_mcp.mcp_tools.group_tools import AccessGroupTools, EnvironmentGroupTools
from portainer_mcp.mcp_tools.proxy_tools import ProxyBridge
from portainer_mcp.mcp_tools.stack_tools import StackTools
from portainer_mcp.mcp_tools.team_tools import SettingsTools, TeamTools, UserTools
from portainer_mcp.shared.config import AppConfig
from portainer_mcp.shared.constants import (
    MINIMUM_TOOLS_VERSION,
    SERVER_NAME,
    SERVER_VERSION,
    SUPPORTED_PORTAINER_VERSION,
)
from portainer_mcp.shared.errors import IncompatibleBackendError
from portainer_mcp.shared.interfaces import IPortainerClient
from portainer_mcp.shared.models import CallRequest, CallResult, ToolDefinition, ToolName
from portainer_mcp.shared.security import AccessGuard
from portainer_mcp.shared.tool_registry import Handler

logger = logging.getLogger(__name__)


class ToolCallError(Exception):
    """Raised to the MCP SDK so the call is answered with isError=true."""


async def check_portainer_version(client: IPortainerClient) -> str:
    """Fail startup unless the Portainer server runs the supported version."""
    try:
        version = await client.get_version()
    except Exception as e:
        raise IncompatibleBackendError(f"Failed to get Portainer server version: {e}") from e
    if version != SUPPORTED_PORTAINER_VERSION:
        raise IncompatibleBackendError(
            f"Unsupported Portainer server version: {version}, "
            f"only version {SUPPORTED_PORTAINER_VERSION} is supported"
        )
    logger.info(f"Connected to Portainer {version}")
    return version


def to_mcp_tool(definition: ToolDefinition) -> types.Tool:
    return types.Tool(
        name=definition.name,
        description=definition.description,
        inputSchema=definition.input_schema,
        annotations=types.ToolAnnotations(
            readOnlyHint=not definition.mutating,
            destructiveHint=definition.mutating,
        ),
    )


def to_mcp_content(result: CallResult) -> list[types.TextContent]:
    """Success payload -> MCP text blocks. Failures raise ToolCallError."""
    if not result.success:
        raise ToolCallError(result.error.to_text())
    return [types.TextContent(type="text", text=block) for block in result.content]


class PortainerMCPServer:
    """The main server: translates MCP tool calls into Portainer API calls."""

    def __init__(self, config: AppConfig, client: IPortainerClient, tools: dict[str, ToolDefinition]):
        self._config = config
        self._client = client
        self._guard = AccessGuard(read_only=config.server.read_only)
        self._dispatcher = MCPToolDispatcher(
            tools,
            self._guard,
            tool_timeout_seconds=config.server.tool_timeout_seconds,
            proxy_timeout_seconds=config.proxy.timeout_seconds,
        )
        self._proxy = ProxyBridge(client, self._guard, config.proxy)
        self._register_tools()
        self._mcp = self._build_mcp_server()

        mode = "read-only" if config.server.read_only else "read-write"
        logger.info(
            f"{SERVER_NAME} {SERVER_VERSION} ready in {mode} mode "
            f"with {len(self._dispatcher.registry)} tools"
        )

    @classmethod
    async def create(
        cls,
        config: AppConfig,
        client: Optional[IPortainerClient] = None,
    ) -> "PortainerMCPServer":
        """
        Load the catalog, build the client and check the Portainer version.

        Raises SchemaError or IncompatibleBackendError; both are fatal.
        `client` is mainly for tests, to inject a mock backend.
        """
        tools = load_tools_from_yaml(config.server.tools_path, MINIMUM_TOOLS_VERSION)
        if client is None:
            client = PortainerClient(config.portainer, chunk_size=config.proxy.chunk_size)
        if not config.server.disable_version_check:
            try:
                await check_portainer_version(client)
            except IncompatibleBackendError:
                await client.close()
                raise
        return cls(config, client, tools)

    @property
    def dispatcher(self) -> MCPToolDispatcher:
        return self._dispatcher

    @property
    def mcp(self) -> Server:
        return self._mcp

    def _handlers(self) -> dict[ToolName, Handler]:
        """Every tool name this binary can serve, bound to its handler."""
        env = EnvironmentTools(self._client)
        env_groups = EnvironmentGroupTools(self._client)
        access_groups = AccessGroupTools(self._client)
        stacks = StackTools(self._client)
        teams = TeamTools(self._client)
        users = UserTools(self._client)
        settings = SettingsTools(self._client)
        return {
            ToolName.LIST_ENVIRONMENT_TAGS: env.list_environment_tags,
            ToolName.CREATE_ENVIRONMENT_TAG: env.create_environment_tag,
            ToolName.LIST_ENVIRONMENTS: env.list_environments,
            ToolName.UPDATE_ENVIRONMENT_TAGS: env.update_environment_tags,
            ToolName.UPDATE_ENVIRONMENT_USER_ACCESSES: env.update_environment_user_accesses,
            ToolName.UPDATE_ENVIRONMENT_TEAM_ACCESSES: env.update_environment_team_accesses,
            ToolName.LIST_ENVIRONMENT_GROUPS: env_groups.list_environment_groups,
            ToolName.CREATE_ENVIRONMENT_GROUP: env_groups.create_environment_group,
            ToolName.UPDATE_ENVIRONMENT_GROUP_NAME: env_groups.update_environment_group_name,
            ToolName.UPDATE_ENVIRONMENT_GROUP_ENVIRONMENTS: env_groups.update_environment_group_environments,
            ToolName.UPDATE_ENVIRONMENT_GROUP_TAGS: env_groups.update_environment_group_tags,
            ToolName.LIST_ACCESS_GROUPS: access_groups.list_access_groups,
            ToolName.CREATE_ACCESS_GROUP: access_groups.create_access_group,
            ToolName.UPDATE_ACCESS_GROUP_NAME: access_groups.update_access_group_name,
            ToolName.UPDATE_ACCESS_GROUP_USER_ACCESSES: access_groups.update_access_group_user_accesses,
            ToolName.UPDATE_ACCESS_GROUP_TEAM_ACCESSES: access_groups.update_access_group_team_accesses,
            ToolName.ADD_ENVIRONMENT_TO_ACCESS_GROUP: access_groups.add_environment_to_access_group,
            ToolName.REMOVE_ENVIRONMENT_FROM_ACCESS_GROUP: access_groups.remove_environment_from_access_group,
            ToolName.LIST_STACKS: stacks.list_stacks,
            ToolName.GET_STACK_FILE: stacks.get_stack_file,
            ToolName.CREATE_STACK: stacks.create_stack,
            ToolName.UPDATE_STACK: stacks.update_stack,
            ToolName.CREATE_TEAM: teams.create_team,
            ToolName.LIST_TEAMS: teams.list_teams,
            ToolName.UPDATE_TEAM_NAME: teams.update_team_name,
            ToolName.UPDATE_TEAM_MEMBERS: teams.update_team_members,
            ToolName.LIST_USERS: users.list_users,
            ToolName.UPDATE_USER_ROLE: users.update_user_role,
            ToolName.GET_SETTINGS: settings.get_settings,
            ToolName.DOCKER_PROXY: self._proxy.docker_proxy,
            ToolName.KUBERNETES_PROXY: self._proxy.kubernetes_proxy,
        }

    def _register_tools(self) -> None:
        for name, handler in self._handlers().items():
            self._dispatcher.register_if_present(name, handler)

    async def call_tool(self, name: str, arguments: Optional[dict]) -> CallResult:
        return await self._dispatcher.dispatch(CallRequest(tool_name=name, arguments=arguments or {}))

    def list_tools(self) -> list[types.Tool]:
        return [to_mcp_tool(d) for d in self._dispatcher.get_tool_definitions()]

    def _build_mcp_server(self) -> Server:
        server = Server(SERVER_NAME, version=SERVER_VERSION)

        @server.list_tools()
        async def _list_tools() -> list[types.Tool]:
            return self.list_tools()

        # Arguments are validated by the dispatcher against the same schema.
        @server.call_tool(validate_input=False)
        async def _call_tool(name: str, arguments: dict) -> list[types.TextContent]:
            result = await self.call_tool(name, arguments)
            return to_mcp_content(result)

        return server

    async def run_stdio(self) -> None:
        """Serve MCP over stdin/stdout until the connection closes."""
        logger.info("Starting MCP server on stdio")
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self._mcp.run(
                    read_stream,
                    write_stream,
                    self._mcp.create_initialization_options(),
                )
        finally:
            await self.close()

    async def close(self) -> None:
        await self._client.close()
