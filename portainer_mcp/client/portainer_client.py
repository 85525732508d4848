"""
Portainer API client - aiohttp implementation of IPortainerClient.

One ClientSession (connection pool + API key header) is created lazily and
shared by every in-flight call; the client holds no per-caller state.
Typed methods raise PortainerAPIError on non-2xx answers. The two proxy
methods never interpret the upstream status: any HTTP answer is returned
as a ProxyResponse whose body streams from the live connection.
"""

import asyncio
import json
import logging
from typing import Any, Optional

import aiohttp
from yarl import URL

from portainer_mcp.shared.config import PortainerConfig
from portainer_mcp.shared.constants import API_KEY_HEADER
from portainer_mcp.shared.errors import PortainerAPIError, UpstreamUnreachableError
from portainer_mcp.shared.interfaces import IPortainerClient
from portainer_mcp.shared.models import (
    USER_ROLE_IDS,
    AccessGroup,
    Environment,
    EnvironmentGroup,
    EnvironmentTag,
    PortainerSettings,
    ProxyRequest,
    ProxyResponse,
    Stack,
    Team,
    User,
    access_policies_to_raw,
)

logger = logging.getLogger(__name__)

# Portainer team membership role: 1 = leader, 2 = member
TEAM_MEMBER_ROLE = 2


class PortainerClient(IPortainerClient):
    """Talks to the Portainer REST API with an API key."""

    def __init__(self, config: PortainerConfig, chunk_size: int = 64 * 1024):
        self._config = config
        self._base_url = config.server_url.rstrip("/")
        self._chunk_size = chunk_size
        self._session: Optional[aiohttp.ClientSession] = None
        self._session_lock = asyncio.Lock()

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            async with self._session_lock:
                if self._session is None or self._session.closed:
                    connector = aiohttp.TCPConnector(ssl=False) if self._config.skip_tls_verify else None
                    self._session = aiohttp.ClientSession(
                        headers={API_KEY_HEADER: self._config.token},
                        connector=connector,
                    )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    # ── Typed request plumbing ──────────────────────────────

    async def _request(self, method: str, path: str, json_body: Any = None) -> Any:
        session = await self._get_session()
        url = f"{self._base_url}/api{path}"
        timeout = aiohttp.ClientTimeout(total=self._config.request_timeout_seconds)
        async with session.request(method, url, json=json_body, timeout=timeout) as resp:
            if resp.status >= 400:
                text = await resp.text()
                raise PortainerAPIError(resp.status, _error_message(text) or resp.reason or "")
            if resp.status == 204:
                return None
            text = await resp.text()
            if not text:
                return None
            try:
                return await resp.json(content_type=None)
            except ValueError:
                return text

    async def _get(self, path: str) -> Any:
        return await self._request("GET", path)

    async def _post(self, path: str, body: Any = None) -> Any:
        return await self._request("POST", path, body)

    async def _put(self, path: str, body: Any = None) -> Any:
        return await self._request("PUT", path, body)

    async def _delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    # ── Tags ────────────────────────────────────────────────

    async def get_environment_tags(self) -> list[EnvironmentTag]:
        raw = await self._get("/tags")
        return [EnvironmentTag.from_raw(t) for t in raw or []]

    async def create_environment_tag(self, name: str) -> int:
        raw = await self._post("/tags", {"name": name})
        return raw["ID"]

    # ── Environments ────────────────────────────────────────

    async def get_environments(self) -> list[Environment]:
        raw = await self._get("/endpoints")
        return [Environment.from_raw(e) for e in raw or []]

    async def update_environment_tags(self, id: int, tag_ids: list[int]) -> None:
        await self._put(f"/endpoints/{id}", {"tagIds": tag_ids})

    async def update_environment_user_accesses(self, id: int, user_accesses: dict[int, str]) -> None:
        await self._put(f"/endpoints/{id}", {"userAccessPolicies": access_policies_to_raw(user_accesses)})

    async def update_environment_team_accesses(self, id: int, team_accesses: dict[int, str]) -> None:
        await self._put(f"/endpoints/{id}", {"teamAccessPolicies": access_policies_to_raw(team_accesses)})

    # ── Environment groups (Portainer edge groups) ──────────

    async def get_environment_groups(self) -> list[EnvironmentGroup]:
        raw = await self._get("/edge_groups")
        return [EnvironmentGroup.from_raw(g) for g in raw or []]

    async def create_environment_group(self, name: str, environment_ids: list[int]) -> int:
        raw = await self._post("/edge_groups", {
            "name": name,
            "dynamic": False,
            "endpoints": environment_ids,
        })
        return raw["Id"]

    async def _get_environment_group_raw(self, id: int) -> dict:
        return await self._get(f"/edge_groups/{id}")

    async def _put_environment_group(self, id: int, **changes) -> None:
        current = await self._get_environment_group_raw(id)
        body = {
            "name": current.get("Name", ""),
            "dynamic": current.get("Dynamic", False),
            "endpoints": current.get("Endpoints") or [],
            "tagIds": current.get("TagIds") or [],
            "partialMatch": current.get("PartialMatch", False),
        }
        body.update(changes)
        await self._put(f"/edge_groups/{id}", body)

    async def update_environment_group_name(self, id: int, name: str) -> None:
        await self._put_environment_group(id, name=name)

    async def update_environment_group_environments(self, id: int, environment_ids: list[int]) -> None:
        await self._put_environment_group(id, endpoints=environment_ids)

    async def update_environment_group_tags(self, id: int, tag_ids: list[int]) -> None:
        await self._put_environment_group(id, tagIds=tag_ids)

    # ── Access groups (Portainer endpoint groups) ───────────

    async def get_access_groups(self) -> list[AccessGroup]:
        raw_groups, environments = await asyncio.gather(
            self._get("/endpoint_groups"), self.get_environments(),
        )
        return [AccessGroup.from_raw(g, environments) for g in raw_groups or []]

    async def create_access_group(self, name: str, environment_ids: list[int]) -> int:
        raw = await self._post("/endpoint_groups", {
            "name": name,
            "associatedEndpoints": environment_ids,
        })
        return raw["Id"]

    async def update_access_group_name(self, id: int, name: str) -> None:
        await self._put(f"/endpoint_groups/{id}", {"name": name})

    async def update_access_group_user_accesses(self, id: int, user_accesses: dict[int, str]) -> None:
        await self._put(f"/endpoint_groups/{id}", {"userAccessPolicies": access_policies_to_raw(user_accesses)})

    async def update_access_group_team_accesses(self, id: int, team_accesses: dict[int, str]) -> None:
        await self._put(f"/endpoint_groups/{id}", {"teamAccessPolicies": access_policies_to_raw(team_accesses)})

    async def add_environment_to_access_group(self, id: int, environment_id: int) -> None:
        await self._put(f"/endpoint_groups/{id}/endpoints/{environment_id}")

    async def remove_environment_from_access_group(self, id: int, environment_id: int) -> None:
        await self._delete(f"/endpoint_groups/{id}/endpoints/{environment_id}")

    # ── Stacks (Portainer edge stacks) ──────────────────────

    async def get_stacks(self) -> list[Stack]:
        raw = await self._get("/edge_stacks")
        return [Stack.from_raw(s) for s in raw or []]

    async def get_stack_file(self, id: int) -> str:
        raw = await self._get(f"/edge_stacks/{id}/file")
        return (raw or {}).get("StackFileContent", "")

    async def create_stack(self, name: str, file: str, environment_group_ids: list[int]) -> int:
        raw = await self._post("/edge_stacks/create/string", {
            "name": name,
            "stackFileContent": file,
            "edgeGroups": environment_group_ids,
            "deploymentType": 0,  # compose
        })
        return raw["Id"]

    async def update_stack(self, id: int, file: str, environment_group_ids: list[int]) -> None:
        await self._put(f"/edge_stacks/{id}", {
            "stackFileContent": file,
            "edgeGroups": environment_group_ids,
            "deploymentType": 0,
            "updateVersion": True,
        })

    # ── Teams ───────────────────────────────────────────────

    async def create_team(self, name: str) -> int:
        raw = await self._post("/teams", {"name": name})
        return raw["Id"]

    async def get_teams(self) -> list[Team]:
        raw_teams, memberships = await asyncio.gather(
            self._get("/teams"), self._get("/team_memberships"),
        )
        return [Team.from_raw(t, memberships or []) for t in raw_teams or []]

    async def update_team_name(self, id: int, name: str) -> None:
        await self._put(f"/teams/{id}", {"name": name})

    async def update_team_members(self, id: int, user_ids: list[int]) -> None:
        memberships = await self._get("/team_memberships") or []
        current = {m["UserID"]: m["Id"] for m in memberships if m.get("TeamID") == id}
        wanted = set(user_ids)
        for user_id, membership_id in current.items():
            if user_id not in wanted:
                await self._delete(f"/team_memberships/{membership_id}")
        for user_id in user_ids:
            if user_id not in current:
                await self._post("/team_memberships", {
                    "userID": user_id,
                    "teamID": id,
                    "role": TEAM_MEMBER_ROLE,
                })

    # ── Users ───────────────────────────────────────────────

    async def get_users(self) -> list[User]:
        raw = await self._get("/users")
        return [User.from_raw(u) for u in raw or []]

    async def update_user_role(self, id: int, role: str) -> None:
        role_id = USER_ROLE_IDS.get(role)
        if role_id is None:
            raise ValueError(f"Unknown user role: {role}")
        await self._put(f"/users/{id}", {"role": role_id})

    # ── Settings / version ──────────────────────────────────

    async def get_settings(self) -> PortainerSettings:
        raw = await self._get("/settings")
        return PortainerSettings.from_raw(raw or {})

    async def get_version(self) -> str:
        raw = await self._get("/system/version")
        return (raw or {}).get("ServerVersion", "")

    # ── Raw proxies ─────────────────────────────────────────

    async def proxy_docker_request(self, request: ProxyRequest, timeout: float) -> ProxyResponse:
        return await self._proxy(f"/endpoints/{request.environment_id}/docker", request, timeout)

    async def proxy_kubernetes_request(self, request: ProxyRequest, timeout: float) -> ProxyResponse:
        return await self._proxy(f"/endpoints/{request.environment_id}/kubernetes", request, timeout)

    async def _proxy(self, engine_root: str, request: ProxyRequest, timeout: float) -> ProxyResponse:
        session = await self._get_session()
        # encoded=True keeps the agent's path bytes as sent (no re-quoting)
        url = URL(f"{self._base_url}/api{engine_root}{request.path}", encoded=True)
        if request.query:
            url = url.with_query(request.query)
        try:
            resp = await session.request(
                request.method,
                url,
                headers=request.headers or None,
                data=request.body or None,
                timeout=aiohttp.ClientTimeout(total=timeout),
                allow_redirects=False,
                # body and Content-Encoding reach the agent as the upstream sent them
                auto_decompress=False,
                skip_auto_headers=("Accept-Encoding",),
            )
        except asyncio.TimeoutError as e:
            raise UpstreamUnreachableError(f"Timed out connecting to {engine_root} after {timeout}s") from e
        except aiohttp.ClientError as e:
            raise UpstreamUnreachableError(f"Cannot reach {engine_root}: {e}") from e

        logger.debug(f"Proxy {request.method} {engine_root}{request.path} -> {resp.status}")
        return ProxyResponse(
            status_code=resp.status,
            headers=list(resp.headers.items()),
            body=self._iter_body(resp, engine_root),
            release_callback=_releaser(resp),
        )

    async def _iter_body(self, resp: aiohttp.ClientResponse, engine_root: str):
        try:
            async for chunk in resp.content.iter_chunked(self._chunk_size):
                yield chunk
        except asyncio.TimeoutError as e:
            raise UpstreamUnreachableError(f"Timed out reading response from {engine_root}") from e
        except aiohttp.ClientError as e:
            raise UpstreamUnreachableError(f"Connection to {engine_root} lost: {e}") from e


def _releaser(resp: aiohttp.ClientResponse):
    async def release() -> None:
        resp.release()
    return release


def _error_message(text: str) -> str:
    """Portainer errors look like {"message": "...", "details": "..."}."""
    try:
        payload = json.loads(text)
    except ValueError:
        return text.strip()
    if isinstance(payload, dict):
        message = payload.get("message", "")
        details = payload.get("details", "")
        if message and details and details != message:
            return f"{message}: {details}"
        return message or details or text.strip()
    return text.strip()
