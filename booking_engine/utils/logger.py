"""Structured logging configuration using structlog."""

import logging
import sys
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Literal

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger


# Libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore")


def render_domain_values(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Render money, dates and enums as plain strings."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, (Decimal, date)):
            event_dict[key] = str(value)
    return event_dict


def setup_logging(
    level: str = "INFO",
    format_type: Literal["json", "console"] = "console",
) -> None:
    """
    Configure structured logging for the booking engine.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        format_type: 'json' for deployed services, 'console' for the CLI and development
    """
    log_level = getattr(logging, level.upper())

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        render_domain_values,
        structlog.processors.StackInfoRenderer(),
    ]

    if format_type == "json":
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=sys.stdout.isatty(),
                exception_formatter=structlog.dev.rich_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # Uvicorn and httpx log through the standard library
    logging.basicConfig(format="%(message)s", level=log_level, stream=sys.stdout)
    if log_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a logger instance, usually named after the calling module."""
    return structlog.get_logger(name)


def bind_draft_context(session_id: str, **extra: Any) -> None:
    """Attach the draft session id to every event logged in the current request."""
    structlog.contextvars.bind_contextvars(session_id=session_id, **extra)


def mask_sensitive(value: str, visible_chars: int = 4) -> str:
    """
    Mask identity numbers and tokens for logging.

    Returns:
        Masked string (e.g., "********789V")
    """
    if len(value) <= visible_chars:
        return "*" * len(value)
    return "*" * (len(value) - visible_chars) + value[-visible_chars:]
