"""Shared cross-cutting concerns: config, errors, interfaces, models, security, registry."""

__all__ = [
    "config",
    "constants",
    "errors",
    "interfaces",
    "log_setup",
    "models",
    "security",
    "tool_registry",
]
