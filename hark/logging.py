"""Structured logging for Hark.

structlog over stdlib logging. The renderer is a configuration concern:
``console`` for development (default) and ``json`` for log shippers.
Request-scoped fields (request id, endpoint) are carried through
``structlog.contextvars`` so every event logged while handling a request
is tagged without threading the values through call signatures.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import structlog

_configured = False

LOG_FORMATS = ("console", "json")


def configure_logging(
    log_format: str | None = None,
    level: str | None = None,
) -> None:
    """Configure structured logging for the gateway.

    Without arguments this is idempotent: once logging is configured, later
    bare calls (such as the one in ``get_logger``) are ignored. Passing
    ``log_format`` or ``level`` always reconfigures, which is how the CLI
    applies its options after modules have already created their loggers.

    Args:
        log_format: "json" or "console". Default via HARK_LOG_FORMAT env or "console".
        level: Log level (DEBUG, INFO, WARNING, ERROR). Default via HARK_LOG_LEVEL env or "INFO".
    """
    global _configured
    if _configured and log_format is None and level is None:
        return

    resolved_format = log_format or os.environ.get("HARK_LOG_FORMAT", "console")
    resolved_level = level or os.environ.get("HARK_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    if resolved_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, resolved_level.upper(), logging.INFO))

    # uvicorn's access log duplicates the request middleware events
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    _configured = True


def bind_request_context(**fields: Any) -> None:
    """Attach fields to every event logged by the current request task."""
    structlog.contextvars.bind_contextvars(**fields)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


def get_logger(component: str) -> structlog.stdlib.BoundLogger:
    """Return a logger with component context.

    Args:
        component: Component name (e.g., "server.routes", "inference.invoker").

    Returns:
        BoundLogger with the component field bound.
    """
    configure_logging()
    return structlog.get_logger().bind(component=component)  # type: ignore[no-any-return]
