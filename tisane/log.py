"""
Logging helpers.

The library only ever logs through the ``tisane`` logger hierarchy, which
carries a NullHandler so nothing is emitted until the application
configures logging (or calls :func:`configure_logging`).
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO, Union

from .errors import InvalidLogFormatError, InvalidLogLevelError

LOGGER_NAME = "tisane"

LOG_LEVELS: dict[str, int] = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

LOG_FORMATS = ("text", "json")

TEXT_FORMAT = "%(asctime)s\t%(levelname)s\t%(name)s\t%(message)s"

LoggerLike = Union[logging.Logger, logging.LoggerAdapter]

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())


def get_logger(name: str | None = None) -> logging.Logger:
    """Return the package logger or one of its children."""
    if not name:
        return logging.getLogger(LOGGER_NAME)
    if name == LOGGER_NAME or name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


class _FieldsAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        extra = dict(self.extra or {})
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def with_fields(log: LoggerLike, **fields: Any) -> logging.LoggerAdapter:
    """
    Return an adapter that attaches ``fields`` to every record.

    Nested calls accumulate: fields from an outer adapter are kept unless a
    later call overrides the same key.
    """
    if isinstance(log, logging.LoggerAdapter):
        merged = dict(log.extra or {})
        merged.update(fields)
        return _FieldsAdapter(log.logger, merged)
    return _FieldsAdapter(log, fields)


def parse_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    key = str(level).strip().lower()
    if key not in LOG_LEVELS:
        raise InvalidLogLevelError(str(level), tuple(LOG_LEVELS))
    return LOG_LEVELS[key]


def parse_format(fmt: str) -> str:
    key = str(fmt).strip().lower()
    if key not in LOG_FORMATS:
        raise InvalidLogFormatError(str(fmt), LOG_FORMATS)
    return key


# Attributes present on every LogRecord; anything else came in via ``extra``.
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per record, extra fields included."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in vars(record).items():
            if key not in _RESERVED and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(
    level: str | int = "info",
    fmt: str = "text",
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    Args:
        level: One of debug/info/warn/warning/error/critical, or a logging int
        fmt: "text" or "json"
        stream: Output stream (default: stderr)

    Raises:
        InvalidLogLevelError: Unknown level name
        InvalidLogFormatError: Unknown format name
    """
    levelno = parse_level(level)
    fmt = parse_format(fmt)

    logger = get_logger()
    logger.setLevel(levelno)
    for handler in list(logger.handlers):
        if getattr(handler, "_tisane_managed", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if fmt == "json" else logging.Formatter(TEXT_FORMAT))
    handler._tisane_managed = True  # type: ignore[attr-defined]
    logger.addHandler(handler)
    return logger
