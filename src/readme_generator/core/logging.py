"""Structured logging configuration with JSON output and request IDs.

Uses python-json-logger for structured JSON logging so serverless
function logs can be searched by request ID.
"""

import logging
import secrets
import sys
import time
from contextvars import ContextVar
from typing import Any

from pythonjsonlogger import jsonlogger

from readme_generator.config import get_settings

# Context variable for the request ID (request-scoped)
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)


def new_request_id(prefix: str = "req") -> str:
    """Generate a request ID of the form ``<prefix>_<epoch ms>_<random>``."""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(4)}"


class RequestIdFilter(logging.Filter):
    """Log filter that adds request_id to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with additional fields."""

    def add_fields(
        self,
        log_record: dict[str, Any],
        record: logging.LogRecord,
        message_dict: dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = self.formatTime(record)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name

        if getattr(record, "request_id", None):
            log_record["request_id"] = record.request_id

        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno


def setup_logging() -> None:
    """Configure structured logging for the application."""
    settings = get_settings()

    handler = logging.StreamHandler(sys.stdout)

    # JSON in deployed environments, text when developing locally
    if settings.log_format == "json":
        formatter: logging.Formatter = CustomJsonFormatter(
            fmt="%(timestamp)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | [%(request_id)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    handler.addFilter(RequestIdFilter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(settings.log_level)

    # Reduce verbosity of third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.info(
        "Logging configured",
        extra={
            "environment": settings.environment,
            "log_level": settings.log_level,
            "log_format": settings.log_format,
        },
    )
