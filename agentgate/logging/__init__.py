"""Logging helpers."""

from agentgate.logging.structured import (
    bind_context,
    clear_context,
    configure_structlog,
    get_logger,
)

__all__ = [
    "bind_context",
    "clear_context",
    "configure_structlog",
    "get_logger",
]
