"""
Domain models for the Portainer MCP server.
Pure data classes with no external dependencies (Clean Architecture inner layer).

Two groups live here:
  - dispatch models: ToolDefinition, CallRequest, CallResult, ProxyRequest, ProxyResponse
  - Portainer models: translated from the raw Portainer API payloads
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Optional


class ErrorKind(Enum):
    """Failure kinds reported to the agent."""
    SCHEMA_ERROR = "schema_error"
    UNKNOWN_TOOL = "unknown_tool"
    INVALID_ARGUMENTS = "invalid_arguments"
    HANDLER_FAILURE = "handler_failure"
    UPSTREAM_UNREACHABLE = "upstream_unreachable"
    RESPONSE_TOO_LARGE = "response_too_large"


class ToolName(str, Enum):
    """Closed set of tool names this binary has handlers for."""
    # Tags
    LIST_ENVIRONMENT_TAGS = "listEnvironmentTags"
    CREATE_ENVIRONMENT_TAG = "createEnvironmentTag"
    # Environments
    LIST_ENVIRONMENTS = "listEnvironments"
    UPDATE_ENVIRONMENT_TAGS = "updateEnvironmentTags"
    UPDATE_ENVIRONMENT_USER_ACCESSES = "updateEnvironmentUserAccesses"
    UPDATE_ENVIRONMENT_TEAM_ACCESSES = "updateEnvironmentTeamAccesses"
    # Environment groups
    LIST_ENVIRONMENT_GROUPS = "listEnvironmentGroups"
    CREATE_ENVIRONMENT_GROUP = "createEnvironmentGroup"
    UPDATE_ENVIRONMENT_GROUP_NAME = "updateEnvironmentGroupName"
    UPDATE_ENVIRONMENT_GROUP_ENVIRONMENTS = "updateEnvironmentGroupEnvironments"
    UPDATE_ENVIRONMENT_GROUP_TAGS = "updateEnvironmentGroupTags"
    # Access groups
    LIST_ACCESS_GROUPS = "listAccessGroups"
    CREATE_ACCESS_GROUP = "createAccessGroup"
    UPDATE_ACCESS_GROUP_NAME = "updateAccessGroupName"
    UPDATE_ACCESS_GROUP_USER_ACCESSES = "updateAccessGroupUserAccesses"
    UPDATE_ACCESS_GROUP_TEAM_ACCESSES = "updateAccessGroupTeamAccesses"
    ADD_ENVIRONMENT_TO_ACCESS_GROUP = "addEnvironmentToAccessGroup"
    REMOVE_ENVIRONMENT_FROM_ACCESS_GROUP = "removeEnvironmentFromAccessGroup"
    # Stacks
    LIST_STACKS = "listStacks"
    GET_STACK_FILE = "getStackFile"
    CREATE_STACK = "createStack"
    UPDATE_STACK = "updateStack"
    # Teams
    CREATE_TEAM = "createTeam"
    LIST_TEAMS = "listTeams"
    UPDATE_TEAM_NAME = "updateTeamName"
    UPDATE_TEAM_MEMBERS = "updateTeamMembers"
    # Users
    LIST_USERS = "listUsers"
    UPDATE_USER_ROLE = "updateUserRole"
    # Settings
    GET_SETTINGS = "getSettings"
    # Proxies
    DOCKER_PROXY = "dockerProxy"
    KUBERNETES_PROXY = "kubernetesProxy"


PROXY_TOOLS = frozenset({ToolName.DOCKER_PROXY.value, ToolName.KUBERNETES_PROXY.value})


# ── Dispatch models ──────────────────────────────────────────

@dataclass(frozen=True)
class ToolDefinition:
    """A tool declared in the catalog."""
    name: str
    description: str
    input_schema: dict
    mutating: bool = False


@dataclass
class CallRequest:
    """Represents a tool invocation request from the agent."""
    tool_name: str
    arguments: dict = field(default_factory=dict)


@dataclass(frozen=True)
class CallError:
    kind: ErrorKind
    message: str
    field: Optional[str] = None

    def to_text(self) -> str:
        return f"{self.kind.value}: {self.message}"


@dataclass
class CallResult:
    """Result of a dispatch: exactly one of `content` or `error` is set."""
    tool_name: str
    content: Optional[list] = None
    error: Optional[CallError] = None

    @classmethod
    def ok(cls, tool_name: str, content: list) -> "CallResult":
        return cls(tool_name=tool_name, content=list(content))

    @classmethod
    def fail(
        cls,
        tool_name: str,
        kind: ErrorKind,
        message: str,
        field: Optional[str] = None,
    ) -> "CallResult":
        return cls(tool_name=tool_name, error=CallError(kind, message, field))

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        if self.error:
            return {
                "tool_name": self.tool_name,
                "success": False,
                "error": {
                    "kind": self.error.kind.value,
                    "message": self.error.message,
                    "field": self.error.field,
                },
            }
        return {"tool_name": self.tool_name, "success": True, "content": self.content}


@dataclass
class ProxyRequest:
    """A verbatim HTTP request addressed to an engine behind Portainer."""
    environment_id: int
    method: str
    path: str
    query: list = field(default_factory=list)    # list[tuple[str, str]]
    headers: list = field(default_factory=list)  # list[tuple[str, str]]
    body: bytes = b""


async def _no_body() -> AsyncIterator[bytes]:
    return
    yield  # pragma: no cover


@dataclass
class ProxyResponse:
    """Upstream response with a lazily streamed body.

    The body iterator is bound to a live upstream connection; callers must
    release it (or use ``async with``) once done, even when they stop early.
    """
    status_code: int
    headers: list = field(default_factory=list)  # list[tuple[str, str]]
    body: AsyncIterator[bytes] = field(default_factory=_no_body)
    release_callback: Optional[Callable[[], Awaitable[None]]] = field(default=None, repr=False)

    @classmethod
    def from_bytes(cls, status_code: int, body: bytes = b"", headers: Optional[list] = None) -> "ProxyResponse":
        async def _one_chunk():
            if body:
                yield body
        return cls(status_code=status_code, headers=list(headers or []), body=_one_chunk())

    async def release(self) -> None:
        aclose = getattr(self.body, "aclose", None)
        if aclose is not None:
            await aclose()
        if self.release_callback is not None:
            callback, self.release_callback = self.release_callback, None
            await callback()

    async def __aenter__(self) -> "ProxyResponse":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.release()


# ── Portainer models ─────────────────────────────────────────

ACCESS_LEVELS = {
    1: "environment_administrator",
    2: "helpdesk_user",
    3: "standard_user",
    4: "readonly_user",
    5: "operator_user",
}
ACCESS_LEVEL_IDS = {name: role_id for role_id, name in ACCESS_LEVELS.items()}

USER_ROLES = {1: "admin", 2: "user", 3: "edge_admin"}
USER_ROLE_IDS = {name: role_id for role_id, name in USER_ROLES.items()}

ENVIRONMENT_TYPES = {
    1: "docker-local",
    2: "docker-agent",
    4: "docker-edge-agent",
    5: "kubernetes-local",
    6: "kubernetes-agent",
    7: "kubernetes-edge-agent",
}

ENVIRONMENT_STATUSES = {1: "active", 2: "inactive"}

AUTHENTICATION_METHODS = {1: "internal", 2: "ldap", 3: "oauth"}


def _access_policies(raw: Optional[dict]) -> dict:
    """{"3": {"RoleId": 1}} -> {3: "environment_administrator"}"""
    result = {}
    for key, policy in (raw or {}).items():
        role_id = (policy or {}).get("RoleId", 0)
        result[int(key)] = ACCESS_LEVELS.get(role_id, "unknown")
    return result


def access_policies_to_raw(accesses: dict) -> dict:
    """{3: "environment_administrator"} -> {"3": {"RoleId": 1}}"""
    return {
        str(entity_id): {"RoleId": ACCESS_LEVEL_IDS[level]}
        for entity_id, level in accesses.items()
    }


@dataclass
class EnvironmentTag:
    id: int
    name: str
    environment_ids: list = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: dict) -> "EnvironmentTag":
        endpoints = raw.get("Endpoints") or {}
        return cls(
            id=raw.get("ID", 0),
            name=raw.get("Name", ""),
            environment_ids=sorted(int(k) for k, v in endpoints.items() if v),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "environment_ids": self.environment_ids}


@dataclass
class Environment:
    id: int
    name: str
    type: str = "unknown"
    status: str = "unknown"
    group_id: int = 0
    tag_ids: list = field(default_factory=list)
    user_accesses: dict = field(default_factory=dict)
    team_accesses: dict = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: dict) -> "Environment":
        return cls(
            id=raw.get("Id", 0),
            name=raw.get("Name", ""),
            type=ENVIRONMENT_TYPES.get(raw.get("Type"), "unknown"),
            status=ENVIRONMENT_STATUSES.get(raw.get("Status"), "unknown"),
            group_id=raw.get("GroupId", 0),
            tag_ids=list(raw.get("TagIds") or []),
            user_accesses=_access_policies(raw.get("UserAccessPolicies")),
            team_accesses=_access_policies(raw.get("TeamAccessPolicies")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "status": self.status,
            "tag_ids": self.tag_ids,
            "user_accesses": self.user_accesses,
            "team_accesses": self.team_accesses,
        }


@dataclass
class EnvironmentGroup:
    """Portainer edge group."""
    id: int
    name: str
    environment_ids: list = field(default_factory=list)
    tag_ids: list = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: dict) -> "EnvironmentGroup":
        return cls(
            id=raw.get("Id", 0),
            name=raw.get("Name", ""),
            environment_ids=list(raw.get("Endpoints") or []),
            tag_ids=list(raw.get("TagIds") or []),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "environment_ids": self.environment_ids,
            "tag_ids": self.tag_ids,
        }


@dataclass
class AccessGroup:
    """Portainer endpoint group."""
    id: int
    name: str
    environment_ids: list = field(default_factory=list)
    user_accesses: dict = field(default_factory=dict)
    team_accesses: dict = field(default_factory=dict)

    @classmethod
    def from_raw(cls, raw: dict, environments: Optional[list] = None) -> "AccessGroup":
        group_id = raw.get("Id", 0)
        return cls(
            id=group_id,
            name=raw.get("Name", ""),
            environment_ids=[e.id for e in (environments or []) if e.group_id == group_id],
            user_accesses=_access_policies(raw.get("UserAccessPolicies")),
            team_accesses=_access_policies(raw.get("TeamAccessPolicies")),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "environment_ids": self.environment_ids,
            "user_accesses": self.user_accesses,
            "team_accesses": self.team_accesses,
        }


@dataclass
class Stack:
    """Portainer edge stack."""
    id: int
    name: str
    created_at: str = ""
    environment_group_ids: list = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: dict) -> "Stack":
        created = raw.get("CreationDate") or 0
        return cls(
            id=raw.get("Id", 0),
            name=raw.get("Name", ""),
            created_at=datetime.fromtimestamp(created, tz=timezone.utc).isoformat() if created else "",
            environment_group_ids=list(raw.get("EdgeGroups") or []),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "created_at": self.created_at,
            "environment_group_ids": self.environment_group_ids,
        }


@dataclass
class Team:
    id: int
    name: str
    member_ids: list = field(default_factory=list)

    @classmethod
    def from_raw(cls, raw: dict, memberships: Optional[list] = None) -> "Team":
        team_id = raw.get("Id", 0)
        return cls(
            id=team_id,
            name=raw.get("Name", ""),
            member_ids=[m.get("UserID") for m in (memberships or []) if m.get("TeamID") == team_id],
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "member_ids": self.member_ids}


@dataclass
class User:
    id: int
    username: str
    role: str = "unknown"

    @classmethod
    def from_raw(cls, raw: dict) -> "User":
        return cls(
            id=raw.get("Id", 0),
            username=raw.get("Username", ""),
            role=USER_ROLES.get(raw.get("Role"), "unknown"),
        )

    def to_dict(self) -> dict:
        return {"id": self.id, "username": self.username, "role": self.role}


@dataclass
class PortainerSettings:
    authentication_method: str = "unknown"
    enable_edge_compute: bool = False
    edge_checkin_interval: int = 0

    @classmethod
    def from_raw(cls, raw: dict) -> "PortainerSettings":
        return cls(
            authentication_method=AUTHENTICATION_METHODS.get(raw.get("AuthenticationMethod"), "unknown"),
            enable_edge_compute=bool(raw.get("EnableEdgeComputeFeatures", False)),
            edge_checkin_interval=raw.get("EdgeAgentCheckinInterval", 0),
        )

    def to_dict(self) -> dict:
        return {
            "authentication_method": self.authentication_method,
            "enable_edge_compute": self.enable_edge_compute,
            "edge_checkin_interval": self.edge_checkin_interval,
        }


def to_payload(value: Any) -> Any:
    """Convert a domain value (model, list of models, scalar) to JSON-ready data."""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [to_payload(v) for v in value]
    if isinstance(value, dict):
        return {k: to_payload(v) for k, v in value.items()}
    return value
