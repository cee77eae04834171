"""
Logging configuration for WsQueue.

Provides centralized structured logging setup with JSON output for production
and human-readable output for development. Supports correlation IDs for
tracing a connection's lifetime across client and transport.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

import structlog
from structlog.types import EventDict, Processor

if TYPE_CHECKING:
    from wsqueue.config.settings import LoggingConfig


# Context variable for correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """
    Add correlation ID to log events if present in context.

    Args:
        logger: Logger instance
        method_name: Name of the logging method
        event_dict: Event dictionary to modify

    Returns:
        Modified event dictionary with correlation_id if available
    """
    correlation_id = correlation_id_var.get()
    if correlation_id:
        # An id bound on the logger takes precedence.
        event_dict.setdefault("correlation_id", correlation_id)
    return event_dict


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Set correlation ID for the current context.

    Args:
        correlation_id: Optional correlation ID. If None, generates a new UUID.

    Returns:
        The correlation ID that was set
    """
    if correlation_id is None:
        correlation_id = str(uuid.uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Clear correlation ID from the current context."""
    correlation_id_var.set(None)


def get_correlation_id() -> Optional[str]:
    """
    Get the current correlation ID from context.

    Returns:
        Current correlation ID or None if not set
    """
    return correlation_id_var.get()


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Configure structured logging for WsQueue.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional path to log file. If None, logs only to stderr.
        json_format: If True, use JSON format. If False, use human-readable format.
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Clear existing handlers to avoid duplicates
    root_logger.handlers.clear()

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(numeric_level)
        stderr_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(stderr_handler)

    processors: list[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def setup_logging_from_config(config: "LoggingConfig") -> None:
    """
    Configure structured logging from the ``logging`` configuration section.

    An empty ``file`` logs to stderr only.

    Args:
        config: Logging section of a loaded WsQueueConfig.
    """
    log_file = Path(config.file) if config.file else None
    setup_logging(
        level=config.level.upper(),
        log_file=log_file,
        json_format=config.json_format,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance for a specific module.

    Args:
        name: Logger name (typically __name__ of the module).

    Returns:
        Structured logger instance.
    """
    return structlog.get_logger(f"wsqueue.{name}")


# Convenience functions for connection lifecycle events

def log_connection_opened(
    logger: structlog.stdlib.BoundLogger,
    url: str,
    protocol: Optional[str] = None,
    **kwargs: Any,
) -> None:
    """
    Log a connection reaching the open state.

    Args:
        logger: Logger instance
        url: URL the connection was opened to
        protocol: Negotiated sub-protocol, if any
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "connection_opened",
        "url": url,
    }

    if protocol is not None:
        log_data["protocol"] = protocol

    log_data.update(kwargs)

    logger.info("connection_opened", **log_data)


def log_connection_failed(
    logger: structlog.stdlib.BoundLogger,
    url: str,
    reason: str = "unknown",
    **kwargs: Any,
) -> None:
    """
    Log a connection attempt that failed before opening.

    Args:
        logger: Logger instance
        url: URL the connection was attempted to
        reason: Reason for failure
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "connection_failed",
        "url": url,
        "reason": reason,
    }

    log_data.update(kwargs)

    logger.warning("connection_failed", **log_data)


def log_connection_closed(
    logger: structlog.stdlib.BoundLogger,
    url: Optional[str],
    code: Optional[int],
    reason: str,
    was_clean: bool,
    pending_receivers: int = 0,
    **kwargs: Any,
) -> None:
    """
    Log a connection reaching its terminal state.

    Unclean closes are logged at warning level.

    Args:
        logger: Logger instance
        url: URL of the closed connection
        code: Close code, None when the connection ended with an error
        reason: Close reason or error description
        was_clean: Whether the close handshake completed cleanly
        pending_receivers: Number of receivers failed by the close
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "connection_closed",
        "url": url,
        "code": code,
        "reason": reason,
        "was_clean": was_clean,
        "pending_receivers": pending_receivers,
    }

    log_data.update(kwargs)

    if was_clean:
        logger.info("connection_closed", **log_data)
    else:
        logger.warning("connection_closed", **log_data)
