"""Logging for hostzone.

Loggers take structured keyword fields alongside the message:

    logger = get_logger(__name__)
    logger.debug("Comparing candidate", path=path, size=size)

Fields are rendered as ``key=value`` on stderr and as top-level keys in the
JSON log file.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from .paths import LOG_FILE

ROOT_LOGGER = "hostzone"

# Keyword arguments understood by logging.Logger._log itself
_LOG_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel", "extra"})


class HostzoneError(Exception):
    """Error with a message suitable for showing to the user."""


class StructuredLogger(logging.LoggerAdapter):
    """Logger adapter that moves keyword fields into the log record."""

    def process(self, msg, kwargs):
        fields = {k: kwargs.pop(k) for k in list(kwargs) if k not in _LOG_KWARGS}
        extra = dict(kwargs.get("extra") or {})
        extra["fields"] = fields
        kwargs["extra"] = extra
        return msg, kwargs


class ConsoleFormatter(logging.Formatter):
    """Human-readable format: ``level: message key=value ...``."""

    def format(self, record: logging.LogRecord) -> str:
        text = f"{record.levelname.lower()}: {record.getMessage()}"
        fields = getattr(record, "fields", None) or {}
        if fields:
            text += " " + " ".join(f"{k}={v}" for k, v in fields.items())
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(getattr(record, "fields", None) or {})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def get_logger(name: str) -> StructuredLogger:
    return StructuredLogger(logging.getLogger(name), {})


def configure_logging(verbose: bool = False, json_log: str | None = None) -> None:
    """Install stderr and (optionally) JSON log handlers.

    Args:
        verbose: Log DEBUG and above to stderr (default: WARNING and above)
        json_log: JSON log destination. "auto" uses the cache directory,
            "-" writes to stdout, None disables the JSON log.
    """
    root = logging.getLogger(ROOT_LOGGER)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(logging.DEBUG)
    root.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(ConsoleFormatter())
    root.addHandler(console)

    if json_log is None:
        return
    if json_log == "-":
        json_handler: logging.Handler = logging.StreamHandler(sys.stdout)
    else:
        path = LOG_FILE if json_log == "auto" else Path(json_log)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            json_handler = logging.FileHandler(path, encoding="utf-8")
        except OSError as e:
            root.warning("Could not open JSON log %s: %s", path, e)
            return
    json_handler.setLevel(logging.DEBUG)
    json_handler.setFormatter(JsonFormatter())
    root.addHandler(json_handler)
