# src/logging/logger.py - v3
"""Logging setup for the promptlift package.

A filter stamps the request context (request_id, fingerprint, phase)
onto every record at emit time; the formatters only read record
attributes. JSON is one object per line for log shippers, text is for
terminals. Logs always go to stderr because stdout carries CLI output.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Iterable

from promptlift.logging.context import CONTEXT_FIELDS, current_log_context

ROOT_LOGGER = "promptlift"

# Chatty third-party loggers capped at WARNING.
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "openai")


class RequestContextFilter(logging.Filter):
    """Copy the current request context onto the record."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = current_log_context()
        for field in CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, getattr(ctx, field))
        return True


def _context_of(record: logging.LogRecord) -> dict[str, Any]:
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JsonFormatter(logging.Formatter):
    """{"timestamp", "level", "logger", "message", "context"?, "data"?, "exception"?}"""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = _context_of(record)
        if context:
            entry["context"] = context
        # logger.info(..., extra={"data": {...}})
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """`2026-03-02 09:00:00 INFO    promptlift.cache [req] (enrich) message`"""

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
        line = f"{stamp} {record.levelname:<7} {record.name}"
        context = _context_of(record)
        if "request_id" in context:
            line += f" [{context['request_id']}]"
        if "phase" in context:
            line += f" ({context['phase']})"
        line += f" {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """(Re)configure the promptlift logger; safe to call more than once.

    Args:
        level: DEBUG, INFO, WARNING or ERROR.
        log_format: "json" or "text".
        log_file: Also write to this file, rotated per `rotation`.
        rotation: Size ("10MB") or interval ("daily") of file rotation.
        retention: Rotated files to keep.
        quiet: Third-party loggers lowered to WARNING.
    """
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        from promptlift.logging.handlers import create_file_handler

        handlers.append(create_file_handler(log_file, rotation=rotation, retention=retention))

    context_filter = RequestContextFilter()
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context_filter)
        root.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
    return root
