"""
Command-line entry point.

    portainer-mcp --server https://portainer:9443 --token ptr_xxx
    portainer-mcp --transport http --port 6972 --read-only

Every flag overrides the matching environment variable (see shared/config.py).
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import Optional

from portainer_mcp.shared.config import AppConfig, TransportType, load_config
from portainer_mcp.shared.constants import SERVER_NAME, SERVER_VERSION
from portainer_mcp.shared.errors import StartupError
from portainer_mcp.shared.log_setup import configure_logging

logger = logging.getLogger("portainer_mcp")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="portainer-mcp", description=SERVER_NAME)
    parser.add_argument("--server", help="Portainer server URL")
    parser.add_argument("--token", help="Portainer API token")
    parser.add_argument("--tools", help="Path to the tools.yaml catalog")
    parser.add_argument("--read-only", action="store_true", default=None,
                        help="Only register tools that do not modify Portainer")
    parser.add_argument("--disable-version-check", action="store_true", default=None,
                        help="Skip the Portainer server version check")
    parser.add_argument("--transport", choices=[t.value for t in TransportType])
    parser.add_argument("--host", help="Bind address for the HTTP transport")
    parser.add_argument("--port", type=int, help="Port for the HTTP transport")
    parser.add_argument("--endpoint", help="MCP path for the HTTP transport")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--version", action="version", version=f"%(prog)s {SERVER_VERSION}")
    return parser


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Return a copy of `config` with every flag the user actually passed."""
    portainer = config.portainer
    if args.server is not None:
        portainer = replace(portainer, server_url=args.server)
    if args.token is not None:
        portainer = replace(portainer, token=args.token)

    server_overrides = {}
    if args.tools is not None:
        server_overrides["tools_path"] = args.tools
    if args.read_only:
        server_overrides["read_only"] = True
    if args.disable_version_check:
        server_overrides["disable_version_check"] = True
    if args.transport is not None:
        server_overrides["transport"] = TransportType(args.transport)
    if args.host is not None:
        server_overrides["host"] = args.host
    if args.port is not None:
        server_overrides["port"] = args.port
    if args.endpoint is not None:
        server_overrides["endpoint"] = args.endpoint

    config = replace(config, portainer=portainer, server=replace(config.server, **server_overrides))
    if args.log_level is not None:
        config = replace(config, log_level=args.log_level)
    return config


async def run(config: AppConfig) -> None:
    from portainer_mcp.server.mcp_server import PortainerMCPServer

    server = await PortainerMCPServer.create(config)
    if config.server.transport == TransportType.HTTP:
        from portainer_mcp.server.http_app import run_http

        await run_http(
            server,
            host=config.server.host,
            port=config.server.port,
            endpoint=config.server.endpoint,
            log_level=config.log_level,
        )
    else:
        await server.run_stdio()


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = apply_overrides(load_config(), args)
    configure_logging(config)

    if not config.portainer.server_url or not config.portainer.token:
        logger.error("Portainer server URL and token are required (--server/--token)")
        return 1

    try:
        asyncio.run(run(config))
    except StartupError as e:
        logger.error(f"Failed to start server: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    sys.exit(main())
