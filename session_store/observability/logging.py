"""
Structured Logging Module

This module provides structured JSON logging with session id context support.

Pattern: Structured logging for observability
Pattern: Singleton configuration (configure once at startup)

Session identifiers are bearer credentials, so they are never logged in
full: redact_session_id() keeps a short prefix, which is enough to correlate
events belonging to the same session.
"""

import contextvars
import logging
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator, Optional, TextIO

import structlog
from structlog.types import EventDict, Processor


# =============================================================================
# Configuration State Flag
# =============================================================================

_configured: bool = False

# Number of leading characters of a session id kept in log output
REDACTED_ID_PREFIX_LENGTH = 8


# =============================================================================
# Session ID Context
# =============================================================================

_session_id_var: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "session_id", default=None
)


def redact_session_id(session_id: Optional[str]) -> Optional[str]:
    """
    Shorten a session id for log output.

    Args:
        session_id: Full session identifier (or None)

    Returns:
        The first few characters followed by an ellipsis, or None
    """
    if session_id is None:
        return None
    if len(session_id) <= REDACTED_ID_PREFIX_LENGTH:
        return session_id
    return session_id[:REDACTED_ID_PREFIX_LENGTH] + "..."


def set_session_id(session_id: str) -> None:
    """
    Set the session ID for the current context.

    Args:
        session_id: Session identifier the current task is working on
    """
    _session_id_var.set(session_id)


def get_session_id() -> Optional[str]:
    """
    Get the current session ID.

    Returns:
        Session ID if set, None otherwise
    """
    return _session_id_var.get()


def clear_session_id() -> None:
    """Clear the session ID for the current context."""
    _session_id_var.set(None)


@contextmanager
def session_id_context(session_id: Optional[str]) -> Generator[None, None, None]:
    """
    Context manager for setting the session ID.

    Args:
        session_id: Session identifier for the enclosed block

    Yields:
        None

    Example:
        >>> with session_id_context(session.get_id()):
        ...     logger.info("handling request")
    """
    token = _session_id_var.set(session_id)
    try:
        yield
    finally:
        _session_id_var.reset(token)


# =============================================================================
# Custom Processors
# =============================================================================


def add_session_id(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add the (redacted) context session ID to the log event if set."""
    if "session_id" in event_dict:
        event_dict["session_id"] = redact_session_id(event_dict["session_id"])
        return event_dict

    session_id = get_session_id()
    if session_id is not None:
        event_dict["session_id"] = redact_session_id(session_id)
    return event_dict


def add_timestamp(
    logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO 8601 timestamp to log event."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def rename_level(
    logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Rename log_level to level for cleaner output."""
    if "log_level" in event_dict:
        event_dict["level"] = event_dict.pop("log_level")
    return event_dict


# =============================================================================
# Singleton Configuration
# =============================================================================


def configure_logging(
    level: str = "INFO",
    stream: Optional[TextIO] = None,
    force: bool = False,
) -> None:
    """
    Configure structlog for the application.

    This should be called once at application startup. Subsequent calls
    are no-ops to avoid reconfiguration overhead, unless force=True.

    Args:
        level: Default log level (DEBUG, INFO, WARNING, ERROR)
        stream: Output stream (default: sys.stdout)
        force: Force reconfiguration (for testing only)
    """
    global _configured

    if _configured and not force:
        return

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        add_timestamp,
        add_session_id,
        rename_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_to_int(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=False,
    )

    _configured = True


def reset_logging() -> None:
    """
    Reset logging configuration state.

    WARNING: This should only be used in tests.
    """
    global _configured
    _configured = False


# =============================================================================
# Logger Factory
# =============================================================================


def get_logger(
    name: str,
    stream: Optional[TextIO] = None,
    level: str = "INFO",
) -> structlog.BoundLogger:
    """
    Get a configured structured logger.

    Args:
        name: Logger name (typically module name)
        stream: Output stream (default: sys.stdout) - used for initial config
        level: Log level - used for initial config

    Returns:
        Configured structlog BoundLogger

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("lock acquired", key="abc")
    """
    configure_logging(level=level, stream=stream)
    return structlog.get_logger().bind(logger=name)


def _level_to_int(level: str) -> int:
    """Convert level string to logging int."""
    levels = {
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
        "CRITICAL": logging.CRITICAL,
    }
    return levels.get(level.upper(), logging.INFO)
