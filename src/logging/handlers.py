# src/logging/handlers.py - v3
"""File handlers for the log_file setting.

log_rotation is either a size ("10MB", "512KB") or an interval
("hourly", "daily", "midnight", "weekly"). log_retention is the number
of rotated files kept in both cases.
"""

from __future__ import annotations

import logging
import re
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path

_SIZE_RE = re.compile(r"^(\d+)\s*(B|KB|MB|GB)$", re.IGNORECASE)
_MULTIPLIERS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}

# rotation keyword -> TimedRotatingFileHandler "when"
_INTERVALS = {"hourly": "H", "daily": "D", "midnight": "midnight", "weekly": "W0"}


def parse_size(size_str: str) -> int:
    """Bytes of a size string such as '10MB' (B, KB, MB, GB; any case)."""
    match = _SIZE_RE.match(size_str.strip())
    if not match:
        raise ValueError(f"Invalid size format: {size_str!r}. Use e.g. '10MB'.")
    return int(match.group(1)) * _MULTIPLIERS[match.group(2).upper()]


def is_valid_rotation(rotation: str) -> bool:
    if rotation.strip().lower() in _INTERVALS:
        return True
    return _SIZE_RE.match(rotation.strip()) is not None


def create_file_handler(
    log_file: str | Path,
    rotation: str = "10MB",
    retention: int = 30,
) -> logging.FileHandler:
    """Rotating handler for log_file, creating its parent directories.

    Raises:
        ValueError: rotation is neither a size nor a known interval.
    """
    path = Path(log_file).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    when = _INTERVALS.get(rotation.strip().lower())
    if when is not None:
        return TimedRotatingFileHandler(
            filename=str(path), when=when, backupCount=retention, encoding="utf-8", utc=True
        )
    return RotatingFileHandler(
        filename=str(path),
        maxBytes=parse_size(rotation),
        backupCount=retention,
        encoding="utf-8",
    )
