"""Structured logging configuration (JSON and text formatters)."""

from __future__ import annotations

import json
import logging
import re
import sys
import traceback
from datetime import datetime, timezone

from routecache.services.request_context import get_request_id

# Attributes present on every LogRecord, used by JSONFormatter to filter extras.
_STANDARD_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "args",
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
        "taskName",
        "thread",
        "threadName",
    }
)

# Provider credentials travel as query parameters.
_SECRET_PARAM_RE = re.compile(r"((?:access_token|key)=)[^&\s\"']+")

# Third-party loggers that log full request URLs at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore")


def redact(text: str) -> str:
    """Mask ``access_token=`` and ``key=`` query values in *text*."""
    return _SECRET_PARAM_RE.sub(r"\1***", text)


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


def _format_exception(record: logging.LogRecord) -> str | None:
    if record.exc_info and record.exc_info[0] is not None:
        return redact("".join(traceback.format_exception(*record.exc_info)))
    return None


class JSONFormatter(logging.Formatter):
    """Single-line JSON log output for log aggregators."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = redact(record.getMessage())
        entry: dict = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.message,
        }

        request_id = get_request_id()
        if request_id:
            entry["request_id"] = request_id

        # Include extra fields
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value

        exception = _format_exception(record)
        if exception:
            entry["exception"] = exception

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text format with optional request ID prefix."""

    def format(self, record: logging.LogRecord) -> str:
        record.message = redact(record.getMessage())
        ts = _timestamp(record).strftime("%Y-%m-%d %H:%M:%S")

        request_id = get_request_id()
        rid_prefix = f"[{request_id[:12]}] " if request_id else ""

        line = f"{ts} {record.levelname:<8} {rid_prefix}{record.name} - {record.message}"

        exception = _format_exception(record)
        if exception:
            line += "\n" + exception

        return line


def setup_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """Configure the root logger. Call once at startup."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Remove existing handlers to avoid duplicate output on reload
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    if log_format.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(TextFormatter())

    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
