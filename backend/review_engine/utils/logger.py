"""Structured JSON Logging with Correlation ID Support"""
import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, MutableMapping, Optional, Tuple

from ..config.settings import settings


# Context variable for correlation ID
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Extra attributes copied from a LogRecord into the JSON payload
CONTEXT_FIELDS = (
    "workflow_id",
    "item_type",
    "item_id",
    "engagement",
    "actor_id",
    "action",
    "status",
    "revision",
    "error_code",
)

_MAX_LOG_BYTES = 10 * 1024 * 1024


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = getattr(record, "correlation_id", None) or correlation_id_var.get()
        if correlation_id:
            log_obj["correlation_id"] = correlation_id

        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_obj[field] = value

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


def _rotating_handler(path: str, level: int = logging.NOTSET) -> RotatingFileHandler:
    handler = RotatingFileHandler(
        path,
        maxBytes=_MAX_LOG_BYTES,
        backupCount=5,
        encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(JsonFormatter())
    return handler


def setup_logging(log_to_files: bool = True) -> None:
    """
    Configure the root logger.

    Console output is always JSON on stdout. When ``log_to_files`` is set,
    ``app.log`` and an error-only ``error.log`` rotate under ``settings.logs_path``.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(JsonFormatter())
    root_logger.addHandler(console_handler)

    if log_to_files:
        os.makedirs(settings.logs_path, exist_ok=True)
        root_logger.addHandler(_rotating_handler(os.path.join(settings.logs_path, "app.log")))
        root_logger.addHandler(
            _rotating_handler(os.path.join(settings.logs_path, "error.log"), logging.ERROR)
        )

    # Third-party loggers are noisy at INFO
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name"""
    return logging.getLogger(name)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Adapter that merges bound context and the current correlation ID into ``extra``"""

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> Tuple[str, MutableMapping[str, Any]]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        correlation_id = correlation_id_var.get()
        if correlation_id:
            extra.setdefault("correlation_id", correlation_id)
        kwargs["extra"] = extra
        return msg, kwargs


def get_context_logger(name: str, **context: Any) -> ContextLoggerAdapter:
    """Get a logger bound to workflow context (workflow_id, actor_id, ...)"""
    return ContextLoggerAdapter(logging.getLogger(name), context)


def set_correlation_id(correlation_id: Optional[str]) -> None:
    """Set correlation ID in context"""
    correlation_id_var.set(correlation_id)


def get_correlation_id() -> Optional[str]:
    """Get correlation ID from context"""
    return correlation_id_var.get()
