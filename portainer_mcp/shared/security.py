"""
Security module - access policy and proxy boundary checks.

AccessGuard is the single place that decides whether the agent may
change anything. It is consulted when tools are registered and, for
the proxy tools, on every call.
"""

import logging
import re
from urllib.parse import unquote

from .constants import PROXY_ALLOWED_METHODS, PROXY_FORBIDDEN_HEADERS
from .errors import InvalidArgumentsError
from .models import ToolDefinition

logger = logging.getLogger(__name__)

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*:")
_HEADER_NAME_RE = re.compile(r"[!#$%&'*+.^_`|~0-9A-Za-z-]+")
_HEADER_VALUE_FORBIDDEN = ("\r", "\n", "\x00")


class AccessGuard:
    """Read-only / read-write policy, fixed at construction."""

    def __init__(self, read_only: bool = False):
        self._read_only = read_only

    @property
    def read_only(self) -> bool:
        return self._read_only

    def is_allowed(self, definition: ToolDefinition) -> bool:
        """False iff read-only mode and the tool can change backend state."""
        return not (self._read_only and definition.mutating)

    def is_method_allowed(self, method: str) -> bool:
        """Per-call check for the proxy tools: only GET is non-mutating."""
        return not self._read_only or method.upper() == "GET"


def normalize_method(method: str) -> str:
    """Validate an HTTP method for forwarding and return it upper-cased."""
    normalized = (method or "").strip().upper()
    if normalized not in PROXY_ALLOWED_METHODS:
        raise InvalidArgumentsError(
            f"unsupported HTTP method '{method}', expected one of "
            f"{', '.join(sorted(PROXY_ALLOWED_METHODS))}",
            field="method",
        )
    return normalized


def validate_proxy_path(path: str) -> str:
    """Validate that `path` stays under the engine API root. No traversal.

    Accepts "/containers/json", rejects absolute URLs, protocol-relative
    paths, ".." segments (raw or percent-encoded), backslashes and NUL.
    """
    if not isinstance(path, str) or not path.strip():
        raise InvalidArgumentsError("path must be a non-empty string", field="path")
    if _SCHEME_RE.match(path) or "://" in path or path.startswith("//"):
        logger.warning(f"Absolute URL blocked in proxy path: {path}")
        raise InvalidArgumentsError("path must be relative to the engine API root, not a URL", field="path")
    if not path.startswith("/"):
        raise InvalidArgumentsError("path must start with '/'", field="path")

    decoded = unquote(path.split("?", 1)[0])
    if "\\" in decoded or "\x00" in decoded:
        raise InvalidArgumentsError("path contains forbidden characters", field="path")
    if ".." in decoded.split("/"):
        logger.warning(f"Path traversal blocked in proxy path: {path}")
        raise InvalidArgumentsError("path traversal ('..') is not allowed", field="path")
    if "?" in path:
        raise InvalidArgumentsError("pass query parameters via queryParams, not in path", field="path")
    return path


def parse_pairs(items, field_name: str) -> list:
    """Parse ["key=value", ...] into an ordered list of (key, value) tuples."""
    pairs = []
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise InvalidArgumentsError(
                f"invalid entry '{item}', expected 'key=value'", field=field_name,
            )
        pairs.append((key.strip(), value))
    return pairs


def validate_proxy_headers(headers: list) -> list:
    """Reject malformed headers and ones that would override the credential or framing.

    Names must be RFC 7230 tokens, so "Authorization:Bearer x=1" cannot
    smuggle a second header name past the deny list. Values may not carry
    CR, LF or NUL.
    """
    for name, value in headers:
        if not _HEADER_NAME_RE.fullmatch(name):
            logger.warning(f"Malformed proxy header name blocked: {name!r}")
            raise InvalidArgumentsError(f"invalid header name '{name}'", field="headers")
        if name.lower() in PROXY_FORBIDDEN_HEADERS:
            logger.warning(f"Proxy header blocked: {name}")
            raise InvalidArgumentsError(f"header '{name}' cannot be set", field="headers")
        if any(ch in value for ch in _HEADER_VALUE_FORBIDDEN):
            logger.warning(f"Control character blocked in proxy header: {name}")
            raise InvalidArgumentsError(
                f"header '{name}' value contains a control character", field="headers",
            )
    return headers
