"""Structured logging configuration for contactcore."""

import logging
import json
import sys
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional
import threading
from contextlib import contextmanager


# Thread-local storage for context
_context = threading.local()

# Attributes every LogRecord carries; anything else came in through ``extra=``
_RESERVED_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "getMessage", "exc_info", "exc_text",
    "stack_info", "taskName",
}


class StructuredFormatter(logging.Formatter):
    """Custom formatter that outputs structured JSON logs."""

    # Field names whose values are never written out
    SENSITIVE_FIELDS = {
        "password", "token", "secret", "authorization", "csrf", "session_id",
    }

    # Card payloads (embedded photos, raw blocks) can be huge
    MAX_FIELD_LENGTH = 512

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: The log record to format

        Returns:
            JSON-formatted log string
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if hasattr(_context, "data"):
            log_data.update(_context.data)

        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            if self._is_sensitive_field(key):
                log_data[key] = "[REDACTED]"
            else:
                log_data[key] = self._truncate(value)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)

    def _is_sensitive_field(self, field_name: str) -> bool:
        """Check if a field name indicates sensitive data.

        Args:
            field_name: The field name to check

        Returns:
            True if the field should be redacted
        """
        field_lower = field_name.lower()
        return any(sensitive in field_lower for sensitive in self.SENSITIVE_FIELDS)

    def _truncate(self, value: Any) -> Any:
        if isinstance(value, str) and len(value) > self.MAX_FIELD_LENGTH:
            return f"{value[:self.MAX_FIELD_LENGTH]}...[{len(value)} chars]"
        return value


def setup_logging(
    format: str = "json",
    level: str = "INFO",
    log_file: Optional[str] = None
) -> None:
    """Configure structured logging for the application.

    Args:
        format: Log format ("json" or "text")
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path to write logs to
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(log_level)

    if format == "json":
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Logs go to stderr so that CLI output on stdout stays clean
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Imported here to avoid a cycle: audit imports StructuredFormatter from this module
    from .audit import configure_audit_logging

    configure_audit_logging()


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def log_event(logger_name: str, event: str, **kwargs) -> None:
    """Log a structured event.

    Args:
        logger_name: Name of the logger to use
        event: Event name/type
        **kwargs: Additional fields to include in the log
    """
    logger = get_logger(logger_name)
    logger.info(event, extra=kwargs)


def log_error(
    logger_name: str,
    event: str,
    error: Exception,
    **kwargs
) -> None:
    """Log a structured error.

    Args:
        logger_name: Name of the logger to use
        event: Event name/type
        error: The exception that occurred
        **kwargs: Additional fields to include in the log
    """
    logger = get_logger(logger_name)
    kwargs["error_type"] = type(error).__name__
    logger.error(f"{event}: {str(error)}", exc_info=True, extra=kwargs)


def log_performance(
    logger_name: str,
    operation: str,
    duration_ms: float,
    **kwargs
) -> None:
    """Log performance metrics.

    Args:
        logger_name: Name of the logger to use
        operation: Operation name
        duration_ms: Duration in milliseconds
        **kwargs: Additional fields to include in the log
    """
    logger = get_logger(logger_name)
    kwargs["duration_ms"] = duration_ms
    logger.info(f"{operation} completed in {duration_ms:.1f}ms", extra=kwargs)


@contextmanager
def log_context(**kwargs):
    """Context manager to add fields to all logs within the context.

    Example:
        with log_context(source_file="abc123"):
            logger.info("Importing")  # Will include source_file
    """
    if not hasattr(_context, "data"):
        _context.data = {}

    old_context = _context.data.copy()
    _context.data.update(kwargs)

    try:
        yield
    finally:
        _context.data = old_context


class Timer:
    """Context manager for timing operations.

    Example:
        with Timer() as timer:
            contacts = decode(text)
        log_performance(__name__, "decode", timer.duration_ms)
    """

    def __init__(self):
        self.start_time = None
        self.end_time = None
        self.duration_ms = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.end_time = time.perf_counter()
        self.duration_ms = (self.end_time - self.start_time) * 1000
