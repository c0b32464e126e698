"""Structured logging configuration.

Purpose: JSON-formatted logs where every event carries the console id and
backend URL, and every backend call its X-Request-ID, so one console session
can be followed across client and server logs.

Pattern: structlog with standard library integration.
"""
import logging
import sys
import uuid

import structlog


def setup_structured_logging(log_level: str = "INFO"):
    """
    Configure structured logging for the console.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper())
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get logger instance with structured logging.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def generate_console_id() -> str:
    """Identifier bound to every log line of one console instance."""
    return f"console-{uuid.uuid4().hex[:8]}"


def bind_console_context(console_id: str, base_url: str) -> None:
    """
    Attach the console identity to all subsequent log events.

    Args:
        console_id: Id from generate_console_id()
        base_url: Backend the console talks to
    """
    structlog.contextvars.bind_contextvars(console_id=console_id, backend=base_url)


def generate_request_id() -> str:
    """Generate unique request ID for an outgoing backend call."""
    return f"req-{uuid.uuid4().hex[:12]}"
