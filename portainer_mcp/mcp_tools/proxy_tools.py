"""
Proxy MCP tools - raw requests to the Docker and Kubernetes APIs of an environment.
Implements: dockerProxy, kubernetesProxy

Unlike the typed tools, these forward a verbatim HTTP request and hand the
upstream answer back as-is. Whether a call may change state depends on its
HTTP method, so the read-only check happens here on every call.
"""

import base64
import logging
from enum import Enum
from typing import Optional

from portainer_mcp.shared.config import ProxyConfig
from portainer_mcp.shared.errors import InvalidArgumentsError, ResponseTooLargeError
from portainer_mcp.shared.interfaces import IPortainerClient
from portainer_mcp.shared.models import ProxyRequest, ProxyResponse
from portainer_mcp.shared.security import (
    AccessGuard,
    normalize_method,
    parse_pairs,
    validate_proxy_headers,
    validate_proxy_path,
)

logger = logging.getLogger(__name__)


class Engine(Enum):
    """Engine APIs reachable through the Portainer environment proxy."""
    DOCKER = "docker"
    KUBERNETES = "kubernetes"


class ProxyBridge:
    """Builds, authorizes and forwards proxy requests; bounds the response read."""

    def __init__(self, client: IPortainerClient, guard: AccessGuard, config: ProxyConfig):
        self._client = client
        self._guard = guard
        self._config = config

    def build_request(
        self,
        environment_id: int,
        method: str,
        path: str,
        query_params: Optional[list] = None,
        headers: Optional[list] = None,
        body: Optional[str] = None,
    ) -> ProxyRequest:
        """Validate proxy arguments. Raises InvalidArgumentsError; no I/O."""
        method = normalize_method(method)
        if not self._guard.is_method_allowed(method):
            logger.warning(f"BLOCKED: {method} proxy request in read-only mode")
            raise InvalidArgumentsError(
                f"method {method} is not allowed in read-only mode, only GET requests can be proxied",
                field="method",
            )
        path = validate_proxy_path(path)
        query = parse_pairs(query_params, "queryParams")
        header_pairs = validate_proxy_headers(parse_pairs(headers, "headers"))
        return ProxyRequest(
            environment_id=environment_id,
            method=method,
            path=path,
            query=query,
            headers=header_pairs,
            body=(body or "").encode("utf-8"),
        )

    async def forward(self, engine: Engine, request: ProxyRequest) -> ProxyResponse:
        """Send the request upstream; the returned body is still streaming."""
        logger.info(
            f"Proxying {request.method} {engine.value}{request.path} "
            f"(environment={request.environment_id})"
        )
        if engine == Engine.DOCKER:
            return await self._client.proxy_docker_request(request, self._config.timeout_seconds)
        return await self._client.proxy_kubernetes_request(request, self._config.timeout_seconds)

    async def collect(self, response: ProxyResponse) -> dict:
        """
        Read the streamed body into a result payload, never holding more than
        max_response_bytes. The upstream connection is released either way.
        """
        limit = self._config.max_response_bytes
        chunks = []
        total = 0
        async with response:
            async for chunk in response.body:
                total += len(chunk)
                if total > limit:
                    logger.warning(f"Proxy response exceeded {limit} bytes, aborting")
                    raise ResponseTooLargeError(
                        f"upstream response exceeds the {limit} byte limit"
                    )
                chunks.append(chunk)
        return build_payload(response, b"".join(chunks))

    async def call(self, engine: Engine, **arguments) -> dict:
        request = self.build_request(**arguments)
        response = await self.forward(engine, request)
        return await self.collect(response)

    async def docker_proxy(self, **arguments) -> dict:
        return await self.call(Engine.DOCKER, **arguments)

    async def kubernetes_proxy(self, **arguments) -> dict:
        return await self.call(Engine.KUBERNETES, **arguments)


def build_payload(response: ProxyResponse, body: bytes) -> dict:
    """Upstream status, headers and body as a JSON-ready dict.

    A header sent more than once maps to the list of its values, in order.
    """
    headers: dict = {}
    for name, value in response.headers:
        if name not in headers:
            headers[name] = value
        elif isinstance(headers[name], list):
            headers[name].append(value)
        else:
            headers[name] = [headers[name], value]

    payload = {"statusCode": response.status_code, "headers": headers}
    try:
        payload["body"] = body.decode("utf-8")
    except UnicodeDecodeError:
        payload["body"] = base64.b64encode(body).decode("ascii")
        payload["bodyEncoding"] = "base64"
    return payload
