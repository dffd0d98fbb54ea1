from __future__ import annotations

import datetime as dt
import json
import logging
import os
import sys
import uuid
from typing import Any

from loguru import logger as loguru_logger

UTC = dt.UTC

# Attributes present on every LogRecord; anything else came in through ``extra``
_STANDARD_FIELDS = frozenset(
    {
        "args",
        "msg",
        "name",
        "levelno",
        "levelname",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "message",
    }
)

_SYNC_FIELDS = frozenset(
    {
        "identity",
        "bookmark_id",
        "event_kind",
        "subscription_status",
        "sequence",
        "topic",
    }
)


class EnhancedJsonFormatter(logging.Formatter):
    """JSON formatter that groups sync context apart from other extra fields."""

    def __init__(self, include_location: bool = True, include_process_info: bool = True):
        super().__init__()
        self.include_location = include_location
        self.include_process_info = include_process_info
        self.hostname = os.uname().nodename if hasattr(os, "uname") else "unknown"

    def format(self, record: logging.LogRecord) -> str:
        base: dict[str, Any] = {
            "timestamp": dt.datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self.hostname,
        }

        if self.include_location:
            base.update(
                {
                    "module": record.module,
                    "function": record.funcName,
                    "line": record.lineno,
                }
            )

        if self.include_process_info:
            base.update(
                {
                    "process": record.process,
                    "thread": record.thread,
                }
            )

        if record.exc_info:
            base["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        if record.stack_info:
            base["stack_trace"] = record.stack_info

        sync_fields: dict[str, Any] = {}
        extra_fields: dict[str, Any] = {}
        for key, value in record.__dict__.items():
            if key.startswith("_") or key in _STANDARD_FIELDS or key in base:
                continue
            if key in _SYNC_FIELDS:
                sync_fields[key] = value
            elif key == "correlation_id":
                base["correlation_id"] = value
            else:
                extra_fields[key] = value

        if sync_fields:
            base["sync"] = sync_fields
        if extra_fields:
            base["extra"] = extra_fields

        return json.dumps(
            base, ensure_ascii=False, default=self._json_serializer, separators=(",", ":")
        )

    def _json_serializer(self, obj: Any) -> str:
        """Custom JSON serializer for non-standard types."""
        if isinstance(obj, set | frozenset):
            return ",".join(sorted(str(item) for item in obj))
        if hasattr(obj, "__dict__"):
            return f"<{obj.__class__.__name__}>"
        return str(obj)


class _InterceptHandler(logging.Handler):
    """Bridge stdlib records into loguru, keeping ``extra`` fields bound."""

    def emit(self, record: logging.LogRecord) -> None:
        level_to_use: int | str
        try:
            level_to_use = loguru_logger.level(record.levelname).name
        except ValueError:
            level_to_use = record.levelno

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if not key.startswith("_") and key not in _STANDARD_FIELDS
        }
        loguru_logger.bind(**extra).opt(depth=6, exception=record.exc_info).log(
            level_to_use, record.getMessage()
        )


def setup_json_logging(
    level: str = "INFO",
    include_location: bool = True,
    include_process_info: bool = True,
    use_loguru: bool = True,
    log_file: str | None = None,
    max_file_size: str = "50 MB",
    retention: str = "14 days",
) -> None:
    """Configure JSON logging with optional file output.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        include_location: Include file/line information in logs
        include_process_info: Include process/thread information
        use_loguru: Route stdlib logging through loguru sinks
        log_file: Optional log file path for persistent logging
        max_file_size: Maximum size per log file (loguru format)
        retention: Log retention period (loguru format)

    """
    lvl = getattr(logging, level.upper(), logging.INFO)
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(lvl)

    if use_loguru:
        loguru_logger.remove()
        loguru_logger.add(
            sys.stdout,
            level=level.upper(),
            serialize=True,
            enqueue=True,
            backtrace=True,
            diagnose=False,
        )
        if log_file:
            loguru_logger.add(
                log_file,
                level=level.upper(),
                serialize=True,
                rotation=max_file_size,
                retention=retention,
                compression="gz",
                enqueue=True,
            )
        root.addHandler(_InterceptHandler())
        loguru_logger.info(
            "JSON logging initialized with loguru",
            setup_config={"level": level, "log_file": log_file},
        )
        return

    formatter = EnhancedJsonFormatter(
        include_location=include_location, include_process_info=include_process_info
    )
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root.addHandler(console_handler)

    if log_file:
        from logging.handlers import RotatingFileHandler

        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=50 * 1024 * 1024,  # 50MB
            backupCount=5,
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    logging.info(
        "JSON logging initialized with stdlib",
        extra={"setup_config": {"level": level, "log_file": log_file}},
    )


def generate_correlation_id() -> str:
    """Generate a short correlation ID for tracing one engine operation across logs."""
    return uuid.uuid4().hex[:12]


__all__ = [
    "EnhancedJsonFormatter",
    "generate_correlation_id",
    "setup_json_logging",
]
