"""
Structured logging configuration for Tubely.

Provides JSON log lines for production and a readable text format for local
development, routes Uvicorn's loggers through the same formatter, and quiets
chatty third-party libraries.

Usage:
    from app.utils.logger import add_log_context, setup_logging

    # Once, at application startup
    setup_logging(log_level="INFO", json_logs=True)

    logger = logging.getLogger(__name__)
    ctx_logger = add_log_context(logger, video_id=str(video_id), user_id=str(user_id))
    ctx_logger.info("Upload started")

Anything passed through `extra=` (or carried by `add_log_context`) ends up in
the JSON record's `extra` object.
"""

import json
import logging
import sys
import traceback

from datetime import UTC, datetime
from typing import Any


# =============================================================================
# Constants
# =============================================================================

LOG_LEVEL_MAP: dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

# Libraries whose INFO/DEBUG output drowns the pipeline logs
THIRD_PARTY_LOGGERS: list[str] = [
    "asyncio",
    "boto3",
    "botocore",
    "s3transfer",
    "urllib3",
    "motor",
    "pymongo",
    "multipart",
    "python_multipart",
    "httpx",
    "httpcore",
]

UVICORN_LOGGERS: dict[str, Any] = {
    "uvicorn": sys.stdout,
    "uvicorn.access": sys.stdout,
    "uvicorn.error": sys.stderr,
}


# =============================================================================
# Formatters
# =============================================================================


class LogJSONEncoder(json.JSONEncoder):
    """Falls back to `str()` for values the stdlib encoder rejects (UUID, Path, enums)."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, bytes):
            return obj.decode("utf-8", errors="replace")
        if isinstance(obj, set | frozenset):
            return sorted(obj, key=str)
        return str(obj)


class JSONFormatter(logging.Formatter):
    """
    Render each LogRecord as a single compact JSON object.

    Example output:
        {"timestamp":"2026-01-15T10:30:45.123456+00:00","level":"INFO",
         "logger":"app.services.storage_service","message":"Uploaded video to S3",
         "extra":{"bucket":"tubely-videos","key":"landscape/9c1e...mp4","attempts":1}}
    """

    # Standard LogRecord attributes; everything else on the record is an extra field
    RESERVED_ATTRS: frozenset[str] = frozenset(
        {
            "args",
            "asctime",
            "created",
            "exc_info",
            "exc_text",
            "filename",
            "funcName",
            "levelname",
            "levelno",
            "lineno",
            "message",
            "module",
            "msecs",
            "msg",
            "name",
            "pathname",
            "process",
            "processName",
            "relativeCreated",
            "stack_info",
            "thread",
            "threadName",
            "taskName",
        }
    )

    def __init__(self, include_source_location: bool = False) -> None:
        super().__init__()
        self.include_source_location = include_source_location

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(
                timespec="microseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_source_location:
            log_entry["source"] = {
                "filename": record.filename,
                "lineno": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_entry["exception"] = {
                "type": exc_type.__name__ if exc_type else "Unknown",
                "message": str(exc_value) if exc_value else "",
                "traceback": "".join(traceback.format_exception(*record.exc_info)),
            }

        if record.stack_info:
            log_entry["stack_info"] = record.stack_info

        extra_fields = {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in self.RESERVED_ATTRS
        }
        if extra_fields:
            log_entry["extra"] = extra_fields

        return json.dumps(log_entry, cls=LogJSONEncoder, ensure_ascii=False, separators=(",", ":"))


class StandardFormatter(logging.Formatter):
    """Human-readable console output: `[TIMESTAMP] LEVEL logger: message`."""

    DEFAULT_FORMAT: str = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
    DEFAULT_DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    def __init__(self) -> None:
        super().__init__(fmt=self.DEFAULT_FORMAT, datefmt=self.DEFAULT_DATE_FORMAT)


# =============================================================================
# Setup
# =============================================================================


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    third_party_level: str = "WARNING",
) -> None:
    """
    Configure the root logger, Uvicorn's loggers and third-party log levels.

    Safe to call more than once; existing root handlers are replaced.

    Args:
        log_level: Application log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: JSON lines if True, plain text otherwise
        third_party_level: Level applied to THIRD_PARTY_LOGGERS
    """
    level_name = log_level.upper()
    level = LOG_LEVEL_MAP.get(level_name, logging.INFO)

    formatter: logging.Formatter
    if json_logs:
        formatter = JSONFormatter(include_source_location=level <= logging.DEBUG)
    else:
        formatter = StandardFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name, stream in UVICORN_LOGGERS.items():
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False
        uvicorn_logger.handlers.clear()
        handler = logging.StreamHandler(stream)
        handler.setFormatter(formatter)
        uvicorn_logger.addHandler(handler)

    third_party_log_level = LOG_LEVEL_MAP.get(third_party_level.upper(), logging.WARNING)
    for name in THIRD_PARTY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_log_level)

    logging.getLogger(__name__).info(
        "Logging configured: level=%s, json=%s", level_name, json_logs
    )


# =============================================================================
# Context Enrichment
# =============================================================================


class ContextLoggerAdapter(logging.LoggerAdapter):
    """
    LoggerAdapter that merges its context into each call's `extra` instead of
    replacing it. Values passed at the call site win.
    """

    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def add_log_context(logger: logging.Logger, **kwargs: Any) -> logging.LoggerAdapter:
    """
    Wrap `logger` so every record carries the given context fields.

    Example:
        ctx_logger = add_log_context(logger, video_id="0f3e...", user_id="5d7b...")
        ctx_logger.error("PUT failed", extra={"attempt": 3})
        # extra: {"video_id": "0f3e...", "user_id": "5d7b...", "attempt": 3}
    """
    return ContextLoggerAdapter(logger, kwargs)


__all__ = [
    "ContextLoggerAdapter",
    "JSONFormatter",
    "StandardFormatter",
    "add_log_context",
    "setup_logging",
]
