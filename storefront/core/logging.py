from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any

from storefront.core.config import settings

_STANDARD_ATTRS = set(logging.makeLogRecord({}).__dict__.keys())

# Cart identifiers sit at the top level of each line, not under ``extra``.
_PROMOTED_KEYS = ("cart_id", "session_id")


class JsonFormatter(logging.Formatter):
    """JSON lines for cart API and client logs."""

    def format(self, record: logging.LogRecord) -> str:
        message: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            message["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            message["stack_info"] = record.stack_info

        extra = {key: value for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS}
        for key in _PROMOTED_KEYS:
            value = extra.pop(key, None)
            if value is not None:
                message[key] = value
        if extra:
            message["extra"] = extra

        return json.dumps(message, default=str, ensure_ascii=False)


def setup_logging(level: str | None = None) -> None:
    """Apply centralized logging configuration.

    The API calls this at import; processes that only embed the cart client
    call it with their own level.
    """
    resolved = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    logging_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": JsonFormatter,
            }
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "json",
            }
        },
        "root": {
            "handlers": ["default"],
            "level": resolved,
        },
        "loggers": {
            "storefront": {"level": resolved},
            "uvicorn.error": {"level": resolved},
            "uvicorn.access": {"handlers": ["default"], "level": resolved, "propagate": False},
            # CartService logs its own request failures.
            "httpx": {"level": logging.WARNING},
            "sqlalchemy.engine": {"level": logging.WARNING},
        },
    }

    logging.config.dictConfig(logging_config)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
