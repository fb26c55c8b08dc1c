"""Structured logging configuration for the itembase SDK.

- JSON structured logging with StructuredFormatter
- Logger hierarchy under the ``itembase`` namespace
- Environment variable control (ITEMBASE_LOG_LEVEL, ITEMBASE_LOG_FORMAT)
"""

import json
import logging
import os
from datetime import datetime, timezone
from typing import Optional

ROOT_LOGGER = "itembase"

# Keys redacted from structured output. OAuth payloads carry several of these.
SENSITIVE_KEYS = {
    "password", "token", "secret", "apikey", "api_key",
    "authorization", "credential", "auth", "bearer",
    "access_token", "refresh_token", "client_secret", "code", "authcode",
}

_STANDARD_FIELDS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
}


class StructuredFormatter(logging.Formatter):
    """JSON log formatter.

    Outputs one JSON object per record with:
    - timestamp: UTC ISO 8601 format with 'Z' suffix
    - level: Log level name (INFO, ERROR, etc.)
    - logger: Logger name (itembase hierarchy)
    - message: Log message (a snake_case event name by convention)
    - context: Extras dict merged from LogRecord attributes

    Sensitive keys (tokens, secrets, authorization codes) are replaced with
    ``[REDACTED]``.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        extras = {
            k: ("[REDACTED]" if k.lower() in SENSITIVE_KEYS else v)
            for k, v in record.__dict__.items()
            if k not in _STANDARD_FIELDS and not k.startswith("_")
        }

        if extras:
            log_data["context"] = extras

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable text formatter, used when ITEMBASE_LOG_FORMAT=text."""

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


class ItembaseStreamHandler(logging.StreamHandler):
    """Stream handler installed by configure_logging.

    Handlers added by the host application or a test runner are left alone.
    """


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure logging for all ``itembase.*`` loggers.

    Args:
        level: Optional log level override. Falls back to ITEMBASE_LOG_LEVEL
               (default: INFO).
        log_format: Optional format override (json or text). Falls back to
               ITEMBASE_LOG_FORMAT (default: json).
    """
    if level is None:
        level = os.getenv("ITEMBASE_LOG_LEVEL", "INFO")

    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format is None:
        log_format = os.getenv("ITEMBASE_LOG_FORMAT", "json")

    if log_format.lower() == "text":
        formatter = TextFormatter()
    else:
        formatter = StructuredFormatter()

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(log_level)

    # Idempotent: only add our handler once
    owned = [h for h in logger.handlers if isinstance(h, ItembaseStreamHandler)]
    if not owned:
        handler = ItembaseStreamHandler()
        logger.addHandler(handler)
        owned = [handler]
    for handler in owned:
        handler.setFormatter(formatter)

    logger.propagate = False
