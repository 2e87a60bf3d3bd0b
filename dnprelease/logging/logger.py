# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Structured JSON logger for dnprelease.

Release builds mostly run unattended in CI, so every log entry is a single
JSON line that a log collector can index: timestamped, leveled, and tagged
with the module that emitted it. Library code never calls print().

How this works:
  - Python's standard `logging` module does the routing; JsonFormatter turns
    each record into one JSON object.
  - One handler writes to stdout, a second one is attached when a log file is
    configured.
  - `get_logger` is the single factory. Pipeline stages call it once at import
    time and attach context through `extra={...}`.

The JSON structure looks like:
  {"ts": "2026-...", "level": "INFO", "module": "dnprelease.build.orchestrator",
   "msg": "Architecture archived", "architecture": "linux/arm64", ...}
"""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# LogRecord attributes that are plumbing, not caller context.
_RESERVED_RECORD_ATTRS: frozenset[str] = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "relativeCreated",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "pathname",
        "filename",
        "module",
        "levelno",
        "levelname",
        "processName",
        "process",
        "threadName",
        "thread",
        "message",
        "msecs",
        "taskName",
    }
)


class JsonFormatter(logging.Formatter):
    """
    Formats log records as single-line JSON objects.

    Mandatory fields:
      ts      ISO 8601 UTC timestamp
      level   log level name
      module  the logger name
      msg     the formatted message

    Anything passed through `extra` is merged in as additional keys, which is
    how stages attach architectures, paths, hashes and progress fractions.
    Exceptions logged with exc_info end up under "exc".
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "ts": datetime.now(tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "msg": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


_VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _resolve_log_level(level_name: str) -> int:
    """Turn a level name string into the corresponding logging constant."""
    upper = level_name.upper()
    if upper not in _VALID_LOG_LEVELS:
        raise ValueError(
            f"Invalid log level '{level_name}'. Must be one of: {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )
    return getattr(logging, upper)


def get_logger(
    name: str,
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Create (or fetch) a structured JSON logger.

    Calling this twice for the same name returns the same logger; the level is
    updated but handlers are not stacked.

    Args:
        name: Logger name, typically __name__ of the calling module.
        log_level: One of DEBUG, INFO, WARNING, ERROR, CRITICAL.
        log_file: Optional path to a log file. If provided, logs go to both
                  stdout and the file.

    Returns:
        A configured logging.Logger that outputs structured JSON.
    """
    logger = logging.getLogger(name)
    level = _resolve_log_level(log_level)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    formatter = JsonFormatter()

    stdout_handler = logging.StreamHandler(stream=sys.stdout)
    stdout_handler.setLevel(level)
    stdout_handler.setFormatter(formatter)
    logger.addHandler(stdout_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger


def configure_package_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Apply a level (and optional file) to every dnprelease logger created so far.

    The CLI calls this after reading --log-level so stage loggers, which are
    created at import time with the default level, follow the user's choice.
    """
    level = _resolve_log_level(log_level)
    for name in list(logging.Logger.manager.loggerDict):
        if name == "dnprelease" or name.startswith("dnprelease."):
            existing = logging.getLogger(name)
            if not existing.handlers:
                continue
            existing.setLevel(level)
            for handler in existing.handlers:
                handler.setLevel(level)
            if log_file is not None and not any(
                isinstance(h, logging.FileHandler) for h in existing.handlers
            ):
                log_file.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(str(log_file), encoding="utf-8")
                file_handler.setLevel(level)
                file_handler.setFormatter(JsonFormatter())
                existing.addHandler(file_handler)
