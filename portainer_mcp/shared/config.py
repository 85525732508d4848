"""
Centralized configuration management for the Portainer MCP server.
Uses environment variables with secure defaults following 12-factor app principles.
"""

import os
from dataclasses import dataclass, field
from dotenv import load_dotenv
from enum import Enum
from pathlib import Path

from .constants import (
    PORTAINER_REQUEST_TIMEOUT_SECONDS,
    PROXY_CHUNK_SIZE,
    PROXY_MAX_RESPONSE_BYTES,
    PROXY_TIMEOUT_SECONDS,
    TOOL_TIMEOUT_SECONDS,
)

DEFAULT_TOOLS_PATH = str(Path(__file__).resolve().parent.parent / "catalog" / "tools.yaml")

_TRUE_VALUES = {"1", "true", "yes", "on"}


class TransportType(Enum):
    """How the MCP server talks to agents."""
    STDIO = "stdio"
    HTTP = "http"


@dataclass(frozen=True)
class PortainerConfig:
    """Portainer API connection settings."""
    server_url: str = ""
    token: str = ""
    skip_tls_verify: bool = True
    request_timeout_seconds: float = PORTAINER_REQUEST_TIMEOUT_SECONDS


@dataclass(frozen=True)
class ProxyConfig:
    """Limits for the Docker/Kubernetes proxy tools."""
    timeout_seconds: float = PROXY_TIMEOUT_SECONDS
    max_response_bytes: int = PROXY_MAX_RESPONSE_BYTES
    chunk_size: int = PROXY_CHUNK_SIZE


@dataclass(frozen=True)
class ServerConfig:
    """MCP server behaviour and transport settings."""
    tools_path: str = DEFAULT_TOOLS_PATH
    read_only: bool = False  # True = mutating tools are never registered
    disable_version_check: bool = False
    transport: TransportType = TransportType.STDIO
    host: str = "0.0.0.0"
    port: int = 6972
    endpoint: str = "/mcp"
    tool_timeout_seconds: float = TOOL_TIMEOUT_SECONDS


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration - assembled from environment."""
    portainer: PortainerConfig = field(default_factory=PortainerConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    log_level: str = "INFO"
    log_file_dir: str = ""  # Directory for timestamped log files; empty = no file logging


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def load_config() -> AppConfig:
    """
    Load configuration from environment variables.
    Secure defaults are used when env vars are not set.
    """
    load_dotenv()  # Load .env file if present

    transport_str = os.environ.get("MCP_TRANSPORT", "stdio").lower()
    try:
        transport = TransportType(transport_str)
    except ValueError:
        transport = TransportType.STDIO

    portainer = PortainerConfig(
        server_url=os.environ.get("PORTAINER_SERVER_URL", ""),
        token=os.environ.get("PORTAINER_TOKEN", ""),
        skip_tls_verify=_env_bool("PORTAINER_SKIP_TLS_VERIFY", True),
        request_timeout_seconds=float(
            os.environ.get("PORTAINER_REQUEST_TIMEOUT", str(PORTAINER_REQUEST_TIMEOUT_SECONDS))
        ),
    )

    server = ServerConfig(
        tools_path=os.environ.get("TOOLS_PATH", DEFAULT_TOOLS_PATH),
        read_only=_env_bool("READ_ONLY", False),
        disable_version_check=_env_bool("DISABLE_VERSION_CHECK", False),
        transport=transport,
        host=os.environ.get("MCP_HOST", "0.0.0.0"),
        port=int(os.environ.get("MCP_PORT", "6972")),
        endpoint=os.environ.get("MCP_ENDPOINT", "/mcp"),
        tool_timeout_seconds=float(os.environ.get("TOOL_TIMEOUT", str(TOOL_TIMEOUT_SECONDS))),
    )

    proxy = ProxyConfig(
        timeout_seconds=float(os.environ.get("PROXY_TIMEOUT", str(PROXY_TIMEOUT_SECONDS))),
        max_response_bytes=int(os.environ.get("PROXY_MAX_RESPONSE_BYTES", str(PROXY_MAX_RESPONSE_BYTES))),
        chunk_size=int(os.environ.get("PROXY_CHUNK_SIZE", str(PROXY_CHUNK_SIZE))),
    )

    return AppConfig(
        portainer=portainer,
        server=server,
        proxy=proxy,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        log_file_dir=os.environ.get("LOG_FILE_DIR", ""),
    )
