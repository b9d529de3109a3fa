"""Structured JSON logging for azdo-mcp.

Writes JSONL to stderr (stdout belongs to the stdio transport) and,
optionally, to a rotating log file (5MB, 3 backups).
"""

from __future__ import annotations

import json
import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from typing import Any

LOGGER_NAME = "azdo_mcp"
_setup_lock = threading.Lock()
_MAX_BYTES = 5 * 1024 * 1024  # 5MB
_BACKUP_COUNT = 3

_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}


class _JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if hasattr(record, "tool"):
            entry["tool"] = record.tool
        if hasattr(record, "args_data"):
            entry["args"] = record.args_data
        if hasattr(record, "duration_ms"):
            entry["duration_ms"] = record.duration_ms
        if hasattr(record, "error"):
            entry["error"] = record.error
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


class _StderrHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Marker subclass so repeated setup can find its own stderr handler."""


def setup_logging(level: str = "info", log_file: str | os.PathLike[str] | None = None) -> logging.Logger:
    """Configure the ``azdo_mcp`` logger. Safe to call repeatedly.

    Returns the package logger with one stderr handler and, when *log_file*
    is given, one rotating file handler for that path.
    """
    logger = logging.getLogger(LOGGER_NAME)

    with _setup_lock:
        logger.setLevel(_LEVELS.get(level.lower(), logging.INFO))
        # Records go only to the package handlers.
        logger.propagate = False

        if not any(isinstance(h, _StderrHandler) for h in logger.handlers):
            stream = _StderrHandler(sys.stderr)
            stream.setFormatter(_JsonFormatter())
            logger.addHandler(stream)

        if log_file is not None:
            target_filename = os.path.abspath(str(log_file))
            for h in logger.handlers[:]:
                if not isinstance(h, RotatingFileHandler):
                    continue
                if h.baseFilename == target_filename:
                    return logger
                # Different path: replace the stale handler.
                logger.removeHandler(h)
                h.close()

            handler = RotatingFileHandler(
                target_filename,
                maxBytes=_MAX_BYTES,
                backupCount=_BACKUP_COUNT,
            )
            handler.setFormatter(_JsonFormatter())
            logger.addHandler(handler)
    return logger
