"""Structured logging for kb-assist.

Records are rendered as one JSON object per line. Any ``ctx_*`` extra passed
to a log call is copied into the payload, and the id of the HTTP request being
served (see ``bind_request_id``) is attached to every record logged while
handling it.
"""

from __future__ import annotations

import logging
import os
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from typing import Any

import orjson

LOG_LEVEL_ENV = "KBA_LOG_LEVEL"
LOG_FORMAT_ENV = "KBA_LOG_FORMAT"

# httpx logs every request at INFO, which drowns the pipeline logs
_NOISY_LOGGERS = ("httpx", "httpcore")

_REQUEST_ID: ContextVar[str | None] = ContextVar("kba_request_id", default=None)


def bind_request_id(request_id: str) -> Token:
    """Attach ``request_id`` to records logged from the current context."""
    return _REQUEST_ID.set(request_id)


def reset_request_id(token: Token) -> None:
    _REQUEST_ID.reset(token)


def current_request_id() -> str | None:
    return _REQUEST_ID.get()


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = current_request_id()
        if request_id:
            payload["request_id"] = request_id
        for key, value in record.__dict__.items():
            if key.startswith("ctx_"):
                payload[key[len("ctx_") :]] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(payload, default=str).decode("utf-8")


def configure_logging(level: str | int | None = None, use_json: bool | None = None) -> None:
    """Install a single stdout handler on the root logger.

    ``level`` and ``use_json`` default to ``KBA_LOG_LEVEL`` (INFO) and
    ``KBA_LOG_FORMAT`` (``json`` unless set to ``text``).
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    if use_json is None:
        use_json = os.environ.get(LOG_FORMAT_ENV, "json").lower() != "text"

    handler = logging.StreamHandler(sys.stdout)
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))

    logging.captureWarnings(True)
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str = "kb_assist") -> logging.Logger:
    if not logging.getLogger().handlers:
        configure_logging()
    return logging.getLogger(name)


__all__ = [
    "JsonFormatter",
    "bind_request_id",
    "configure_logging",
    "current_request_id",
    "get_logger",
    "reset_request_id",
]
