"""
Structured logging configuration using structlog.
"""
import logging
import sys

import structlog


def setup_logging(level: str = "info", fmt: str = "console") -> None:
    """
    Configures structlog for the whole process.

    :param level: Minimum level name, e.g. ``debug`` or ``warning``.
    :param fmt: ``console`` for human readable lines, ``json`` for one JSON object per line.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    renderer = (
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True, key="ts"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str) -> "structlog.stdlib.BoundLogger":
    """
    Gets a logger bound with a component name.
    """
    return structlog.get_logger(component=component)  # type: ignore[return-value]
