"""Structured logging with structlog.

Invocation context (agent_type, tenant_id, execution_id) lives in
contextvars, so concurrent invocations on one event loop never see each
other's fields. Each asyncio task starts from a copy of its parent's
context.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, merge_contextvars
from structlog.types import EventDict, WrappedLogger

SERVICE_NAME = "agentgate"


def add_service_info(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict["service"] = SERVICE_NAME
    return event_dict


def configure_structlog(json_format: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        json_format: JSON lines when True, colored console output otherwise.
        log_level: Minimum level (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    processors: list = [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_service_info,
        structlog.processors.format_exc_info,
    ]
    if json_format:
        processors += [structlog.processors.UnicodeDecoder(), structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_context(
    agent_type: Optional[str] = None,
    tenant_id: Optional[Any] = None,
    execution_id: Optional[Any] = None,
) -> None:
    """Attach invocation fields to every log entry until clear_context()."""
    fields = {"agent_type": agent_type, "tenant_id": tenant_id, "execution_id": execution_id}
    bind_contextvars(**{k: str(v) for k, v in fields.items() if v not in (None, "")})


def clear_context() -> None:
    clear_contextvars()


# Console output until the embedding application calls configure_structlog()
configure_structlog(json_format=False, log_level="INFO")
