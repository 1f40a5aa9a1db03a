"""JSON logging configuration for the cicero-wa user menu service."""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any


class JSONFormatter(logging.Formatter):
    """Render each record as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        context = getattr(record, "context", None)
        if context:
            payload["context"] = context

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Install the JSON handler on the root logger."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    if is_wa_debug_logging_enabled():
        logging.getLogger("cicero").setLevel(logging.DEBUG)

    for noisy in ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def is_wa_debug_logging_enabled() -> bool:
    return os.environ.get("WA_DEBUG_LOGGING", "").strip().lower() == "true"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"cicero.{name}")


class ChatLoggerAdapter(logging.LoggerAdapter):
    """Attach the chat id (and any per-call context) to every record."""

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = kwargs.pop("context", None)
        combined = {**(self.extra or {}), **(context or {})}
        if combined:
            kwargs["extra"] = {"context": combined}
        return msg, kwargs
