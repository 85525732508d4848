"""
Tests for shared/config.py - configuration loading and defaults.
"""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from portainer_mcp.shared.config import (
    DEFAULT_TOOLS_PATH, AppConfig, PortainerConfig, ProxyConfig,
    ServerConfig, TransportType, load_config,
)
from portainer_mcp.shared.constants import (
    PROXY_MAX_RESPONSE_BYTES, PROXY_TIMEOUT_SECONDS, TOOL_TIMEOUT_SECONDS,
)
from portainer_mcp.shared.log_setup import (
    LOG_FORMAT, CallIDFilter, current_call_id, new_call_id,
)


class TestTransportType:
    def test_stdio(self):
        assert TransportType("stdio") == TransportType.STDIO

    def test_http(self):
        assert TransportType("http") == TransportType.HTTP


class TestDefaults:
    def test_server_defaults(self):
        cfg = ServerConfig()
        assert cfg.read_only is False
        assert cfg.disable_version_check is False
        assert cfg.transport == TransportType.STDIO
        assert cfg.port == 6972
        assert cfg.endpoint == "/mcp"
        assert cfg.tool_timeout_seconds == TOOL_TIMEOUT_SECONDS

    def test_default_tools_path_is_packaged_catalog(self):
        assert Path(DEFAULT_TOOLS_PATH).name == "tools.yaml"
        assert Path(DEFAULT_TOOLS_PATH).exists()

    def test_proxy_defaults(self):
        cfg = ProxyConfig()
        assert cfg.timeout_seconds == PROXY_TIMEOUT_SECONDS
        assert cfg.max_response_bytes == PROXY_MAX_RESPONSE_BYTES

    def test_portainer_skips_tls_verify_by_default(self):
        assert PortainerConfig().skip_tls_verify is True

    def test_app_defaults(self):
        cfg = AppConfig()
        assert cfg.log_level == "INFO"
        assert cfg.log_file_dir == ""

    def test_configs_are_frozen(self):
        cfg = ServerConfig()
        with pytest.raises(Exception):
            cfg.read_only = True


@patch("portainer_mcp.shared.config.load_dotenv")
class TestLoadConfig:
    @patch.dict(os.environ, {
        "PORTAINER_SERVER_URL": "https://portainer:9443",
        "PORTAINER_TOKEN": "ptr_abc",
        "PORTAINER_SKIP_TLS_VERIFY": "false",
        "READ_ONLY": "true",
        "DISABLE_VERSION_CHECK": "1",
        "MCP_TRANSPORT": "HTTP",
        "MCP_PORT": "8080",
        "MCP_ENDPOINT": "/agent",
        "TOOL_TIMEOUT": "12.5",
        "PROXY_MAX_RESPONSE_BYTES": "2048",
        "LOG_LEVEL": "debug",
    }, clear=True)
    def test_reads_environment(self, _dotenv):
        cfg = load_config()
        assert cfg.portainer.server_url == "https://portainer:9443"
        assert cfg.portainer.token == "ptr_abc"
        assert cfg.portainer.skip_tls_verify is False
        assert cfg.server.read_only is True
        assert cfg.server.disable_version_check is True
        assert cfg.server.transport == TransportType.HTTP
        assert cfg.server.port == 8080
        assert cfg.server.endpoint == "/agent"
        assert cfg.server.tool_timeout_seconds == 12.5
        assert cfg.proxy.max_response_bytes == 2048
        assert cfg.log_level == "DEBUG"

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults_without_environment(self, _dotenv):
        cfg = load_config()
        assert cfg.server.read_only is False
        assert cfg.server.tools_path == DEFAULT_TOOLS_PATH
        assert cfg.server.transport == TransportType.STDIO
        assert cfg.portainer.server_url == ""

    @patch.dict(os.environ, {"MCP_TRANSPORT": "carrier-pigeon"}, clear=True)
    def test_invalid_transport_falls_back_to_stdio(self, _dotenv):
        assert load_config().server.transport == TransportType.STDIO

    @patch.dict(os.environ, {"READ_ONLY": "no"}, clear=True)
    def test_falsey_read_only(self, _dotenv):
        assert load_config().server.read_only is False


class TestCallIDLogging:
    def test_new_call_id_becomes_current(self):
        call_id = new_call_id()
        assert len(call_id) == 12
        assert current_call_id() == call_id

    def test_filter_injects_call_id(self):
        call_id = new_call_id()
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        assert CallIDFilter().filter(record) is True
        assert record.call_id == call_id

    def test_format_includes_call_id(self):
        assert "%(call_id)s" in LOG_FORMAT
