"""Structured logging for the service and the client.

Both halves log through structlog with dotted event names and keyword
context. The service logs JSON to stdout; the demo client logs in console
format to stderr so its printed state transitions stay readable.

Examples:
    Configure logging::

        from reliable_submit.observability.logging import configure_logging

        configure_logging(level="INFO", json_output=True)

    Use the logger::

        from reliable_submit.observability.logging import get_logger

        logger = get_logger(__name__)
        logger.info(
            "submission.retry_scheduled",
            identity="a@b.com-1700000000000-k3j9x0q2z",
            attempt=1,
            delay_ms=1000,
        )

    Output (JSON)::

        {
            "event": "submission.retry_scheduled",
            "identity": "a@b.com-1700000000000-k3j9x0q2z",
            "attempt": 1,
            "delay_ms": 1000,
            "level": "info",
            "timestamp": "2024-01-01T00:00:00.000000Z"
        }
"""

import logging
import sys
from typing import Any, TextIO

import structlog

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    stream: TextIO | None = None,
) -> None:
    """Configure structured logging. Call once at startup.

    Args:
        level: Log level name, case-insensitive
        json_output: JSON lines if True, colored console output otherwise
        stream: Destination (stdout if omitted)

    Raises:
        ValueError: If the level name is unknown
    """
    name = level.upper()
    if name not in LOG_LEVELS:
        raise ValueError(f"Unknown log level {level!r}, expected one of {', '.join(LOG_LEVELS)}")
    numeric_level = getattr(logging, name)
    stream = stream or sys.stdout

    logging.basicConfig(format="%(message)s", stream=stream, level=numeric_level)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)
