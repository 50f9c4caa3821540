from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any

from shop_engagement.core.config import settings

_STANDARD_ATTRS = set(logging.makeLogRecord({}).__dict__.keys())

# Identifiers lifted out of ``extra`` so log queries can filter on them directly.
_PROMOTED_FIELDS = ("user_id", "session_id", "event_type", "activity_type", "key")

_PACKAGE = "shop_engagement."


def _component(logger_name: str) -> str:
    if logger_name.startswith(_PACKAGE):
        return logger_name[len(_PACKAGE):].rsplit(".", 1)[-1]
    return logger_name


class JsonFormatter(logging.Formatter):
    """One JSON object per record, with engagement identifiers at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        message: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": _component(record.name),
            "message": record.getMessage(),
        }

        extra = {key: value for key, value in record.__dict__.items() if key not in _STANDARD_ATTRS}
        for field in _PROMOTED_FIELDS:
            if field in extra:
                message[field] = extra.pop(field)
        if extra:
            message["extra"] = extra

        if record.exc_info:
            message["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            message["stack_info"] = record.stack_info

        return json.dumps(message, default=str, ensure_ascii=False)


def setup_logging(level_name: str | None = None) -> None:
    """Route every engine logger through the JSON formatter on stderr."""
    level = getattr(logging, (level_name or settings.LOG_LEVEL).upper(), logging.INFO)
    logging_config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"json": {"()": JsonFormatter}},
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stderr",
            }
        },
        "root": {"handlers": ["stderr"], "level": level},
        "loggers": {
            # Backend client chatter stays out of engine logs unless it is a problem.
            "sqlalchemy.engine": {"level": logging.WARNING},
            "redis": {"level": logging.WARNING},
        },
    }

    logging.config.dictConfig(logging_config)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
