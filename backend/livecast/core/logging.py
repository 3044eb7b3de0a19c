"""Structured logging with correlation IDs.

Every log line is a JSON document carrying the request correlation ID, the
active trace/span IDs and any ``extra`` fields passed by the caller.
"""

import json
import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Optional

from livecast.core.tracing import get_span_id, get_trace_id

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes present on every LogRecord; anything else came in through ``extra``
_RESERVED_RECORD_FIELDS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "message", "taskName", "correlation_id",
})


def get_correlation_id() -> str:
    """Get the current correlation ID or generate a new one.

    Falls back to the active trace ID so logs and spans can be joined.
    """
    cid = correlation_id_var.get()
    if cid is None:
        trace_id = get_trace_id()
        if trace_id:
            return trace_id
        cid = str(uuid.uuid4())
        correlation_id_var.set(cid)
    return cid


def set_correlation_id(correlation_id: str) -> None:
    correlation_id_var.set(correlation_id)


def clear_correlation_id() -> None:
    correlation_id_var.set(None)


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter with correlation ID support."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON.

        Args:
            record: Log record to format

        Returns:
            JSON formatted log string
        """
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", None) or get_correlation_id(),
        }

        trace_id = get_trace_id()
        span_id = get_span_id()
        if trace_id:
            log_data["trace_id"] = trace_id
        if span_id:
            log_data["span_id"] = span_id

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "stack_trace": self._format_stack_trace(record.exc_info),
            }

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if key not in _RESERVED_RECORD_FIELDS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str)

    def _format_stack_trace(self, exc_info) -> Optional[list[str]]:
        if not exc_info or not exc_info[2]:
            return None
        return traceback.format_exception(*exc_info)


class CorrelationIdFilter(logging.Filter):
    """Logging filter that adds correlation ID to all records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def setup_logging(level: str = "INFO") -> None:
    """Send JSON log lines for the root logger to stdout.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, level.upper()))
    console_handler.addFilter(CorrelationIdFilter())
    console_handler.setFormatter(StructuredFormatter())
    root_logger.addHandler(console_handler)

    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def log_error(
    logger: logging.Logger,
    message: str,
    exception: Optional[Exception] = None,
    **extra: Any,
) -> None:
    """Log an error with correlation ID and optional exception."""
    extra["correlation_id"] = get_correlation_id()
    if exception:
        logger.error(message, exc_info=exception, extra=extra)
    else:
        logger.error(message, extra=extra)


def log_warning(
    logger: logging.Logger,
    message: str,
    **extra: Any,
) -> None:
    """Log a warning with correlation ID."""
    extra["correlation_id"] = get_correlation_id()
    logger.warning(message, extra=extra)


def log_info(
    logger: logging.Logger,
    message: str,
    **extra: Any,
) -> None:
    """Log info with correlation ID."""
    extra["correlation_id"] = get_correlation_id()
    logger.info(message, extra=extra)
