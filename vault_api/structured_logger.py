"""
Structured Logging Utilities for the Vault API
Provides request ID propagation and structured log output
"""

import logging
import json
import sys
from typing import Any, Dict, Optional
from contextvars import ContextVar
from datetime import datetime, UTC

request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")

# Attributes every LogRecord carries; anything else was passed through ``extra``
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class StructuredLogFormatter(logging.Formatter):
    """
    JSON formatter for structured logging with request_id propagation

    Usage:
        handler = logging.StreamHandler()
        handler.setFormatter(StructuredLogFormatter())
        logger.addHandler(handler)
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with request_id"""
        log_obj = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        request_id = request_id_ctx.get()
        if request_id:
            log_obj["request_id"] = request_id

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_obj:
                log_obj[key] = value

        return json.dumps(log_obj, default=str)


class RequestIdFilter(logging.Filter):
    """Attach the current request_id to plain-text records"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get() or "-"
        return True


def configure_logging(level: str = "INFO", structured: bool = False) -> None:
    """
    Configure root logging once for the process

    Args:
        level: Log level name
        structured: If True, emit JSON lines instead of plain text
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    if structured:
        handler.setFormatter(StructuredLogFormatter())
    else:
        handler.addFilter(RequestIdFilter())
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"
        ))

    for existing in list(root.handlers):
        if getattr(existing, "_vault_handler", False):
            root.removeHandler(existing)
    handler._vault_handler = True
    root.addHandler(handler)


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    extra: Optional[Dict[str, Any]] = None
) -> None:
    """
    Log with automatic request_id context inclusion

    Args:
        logger: Logger instance
        level: Log level ('debug', 'info', 'warning', 'error', 'critical')
        message: Log message
        extra: Additional structured fields

    Usage:
        log_with_context(logger, 'info', 'Item renamed', {'item_id': 'abc123'})
    """
    log_data = dict(extra or {})
    request_id = request_id_ctx.get()
    if request_id:
        log_data["request_id"] = request_id

    log_fn = getattr(logger, level.lower())
    log_fn(message, extra=log_data)
