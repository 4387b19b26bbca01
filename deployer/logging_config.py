"""Structured logging configuration using structlog.

``configure_logging`` sets up structlog processors and routes everything
through the stdlib root logger, rendering JSON in production and a console
format during development. ``bind_release_context`` attaches the release
being deployed to every log line emitted while the pipeline runs.
"""

from __future__ import annotations

import logging
import sys

import structlog

# Chatty third-party loggers that would otherwise log every download request
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(*, json_logs: bool = True, log_level: str = "INFO") -> None:
    """Configure structlog and the stdlib root logger.

    Args:
        json_logs: Render logs as JSON when *True*, otherwise use the
            console renderer.
        log_level: Root log level name (e.g. ``"INFO"``, ``"DEBUG"``).
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level.upper())

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_release_context(owner: str, repo: str, tag: str) -> None:
    """Attach the release identity to all log lines in the current context."""
    structlog.contextvars.bind_contextvars(owner=owner, repo=repo, tag=tag)


def clear_release_context() -> None:
    """Remove the release identity bound by ``bind_release_context``."""
    structlog.contextvars.unbind_contextvars("owner", "repo", "tag")
