"""
HTTP transport - MCP streamable HTTP mounted in a FastAPI app,
plus a /health endpoint independent of tool dispatch.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager

from portainer_mcp.shared.constants import SERVER_NAME, SERVER_VERSION

from .mcp_server import PortainerMCPServer

logger = logging.getLogger(__name__)


class _MCPEndpoint:
    """ASGI endpoint handing every request on the MCP path to the session manager."""

    def __init__(self, session_manager: StreamableHTTPSessionManager):
        self._session_manager = session_manager

    async def __call__(self, scope, receive, send):
        await self._session_manager.handle_request(scope, receive, send)


def create_app(server: PortainerMCPServer, endpoint: str = "/mcp") -> FastAPI:
    session_manager = StreamableHTTPSessionManager(app=server.mcp)

    @asynccontextmanager
    async def lifespan(app: FastAPI):  # pragma: no cover
        async with session_manager.run():
            logger.info(f"MCP streamable HTTP endpoint ready at {endpoint}")
            yield
        await server.close()
        logger.info("HTTP transport shutdown")

    app = FastAPI(title=SERVER_NAME, version=SERVER_VERSION, lifespan=lifespan)
    app.add_route(endpoint, _MCPEndpoint(session_manager), methods=["GET", "POST", "DELETE"])

    @app.get("/health")
    async def health():
        return {"status": "ok"}

    return app


async def run_http(server: PortainerMCPServer, host: str, port: int, endpoint: str, log_level: str = "info") -> None:  # pragma: no cover
    app = create_app(server, endpoint)
    logger.info(f"Starting HTTP server on {host}:{port}{endpoint}")
    config = uvicorn.Config(app, host=host, port=port, log_level=log_level.lower())
    await uvicorn.Server(config).serve()
