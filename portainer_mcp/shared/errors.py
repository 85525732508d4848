"""
Error taxonomy for the MCP server.

Two families:
  - StartupError: fatal, raised while the server is being constructed.
  - DispatchError: per-call, always converted into a CallResult failure
    at the dispatch boundary.
"""

from typing import Optional

from .models import ErrorKind


class StartupError(Exception):
    """The server cannot start."""


class SchemaError(StartupError):
    """Tool catalog is malformed or older than this runtime supports."""

    kind = ErrorKind.SCHEMA_ERROR


class IncompatibleBackendError(StartupError):
    """The Portainer server version is not supported."""


class DuplicateToolError(ValueError):
    """A tool name was bound to a second handler."""


class DispatchError(Exception):
    """Base class for recoverable, call-scoped failures."""

    kind = ErrorKind.HANDLER_FAILURE

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field


class UnknownToolError(DispatchError):
    kind = ErrorKind.UNKNOWN_TOOL


class InvalidArgumentsError(DispatchError):
    kind = ErrorKind.INVALID_ARGUMENTS


class HandlerFailureError(DispatchError):
    kind = ErrorKind.HANDLER_FAILURE


class UpstreamUnreachableError(DispatchError):
    kind = ErrorKind.UPSTREAM_UNREACHABLE


class ResponseTooLargeError(DispatchError):
    kind = ErrorKind.RESPONSE_TOO_LARGE


class BackendTimeoutError(Exception):
    """A request made by a handler hit its own timeout, not the dispatch one."""


class PortainerAPIError(Exception):
    """Portainer answered a typed API call with a non-2xx status."""

    def __init__(self, status: int, message: str):
        super().__init__(f"Portainer API error (HTTP {status}): {message}")
        self.status = status
        self.message = message
