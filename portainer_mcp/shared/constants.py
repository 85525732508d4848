"""
Named constants - replaces magic numbers and strings throughout the codebase.

All tunable limits and version pins are defined here as named constants
with descriptive names, so operational parameters live in one place.
"""

# ── Versions ─────────────────────────────────────────────────

SERVER_NAME = "Portainer MCP Server"
SERVER_VERSION = "0.5.1"

MINIMUM_TOOLS_VERSION = "1.0"
"""Oldest tools.yaml `version` this binary knows how to serve."""

SUPPORTED_PORTAINER_VERSION = "2.31.2"
"""The only Portainer server version accepted when the version check is on."""

# ── Tool Execution ───────────────────────────────────────────

TOOL_TIMEOUT_SECONDS = 60
"""Max time for a single typed (non-proxy) tool call."""

TOOL_MAX_RETRIES = 2
"""1 initial attempt + 1 retry, for non-mutating typed tools only."""

TOOL_BACKOFF_SECONDS = 0.5

# ── Proxy Bridge ─────────────────────────────────────────────

PROXY_TIMEOUT_SECONDS = 300
"""Max in-flight duration of a proxied request, including the body stream."""

PROXY_MAX_RESPONSE_BYTES = 10 * 1024 * 1024
"""Upstream bodies larger than this fail with RESPONSE_TOO_LARGE."""

PROXY_CHUNK_SIZE = 64 * 1024

PROXY_ALLOWED_METHODS = frozenset({
    "GET", "POST", "PUT", "DELETE", "HEAD", "PATCH", "OPTIONS",
})

PROXY_FORBIDDEN_HEADERS = frozenset({
    "x-api-key", "authorization", "host", "content-length",
    "connection", "transfer-encoding",
})
"""Headers an agent may not set on a proxied request (lower-case)."""

# ── Portainer API ────────────────────────────────────────────

API_KEY_HEADER = "X-API-Key"
PORTAINER_REQUEST_TIMEOUT_SECONDS = 30
