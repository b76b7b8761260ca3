import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Optional

from app.core.context import get_actor_id, get_request_id
from app.core.settings import settings

LIFECYCLE_LOGGER = "app.lifecycle"
ACCESS_LOGGER = "app.access"

_TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] req=%(request_id)s actor=%(actor_id)s %(message)s"


class RequestContextFilter(logging.Filter):
    """Stamp the bound request and actor ids onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        record.actor_id = get_actor_id()
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self, stream_label: str = "app") -> None:
        super().__init__()
        self.stream_label = stream_label

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "stream": self.stream_label,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "actor_id": getattr(record, "actor_id", "-"),
            "message": record.getMessage(),
        }
        # Lifecycle records carry a structured event alongside the summary line.
        event = getattr(record, "event", None)
        if isinstance(event, dict):
            payload["event"] = event
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _formatter(stream_label: str, log_format: str) -> dict[str, Any]:
    if log_format == "text":
        return {"format": _TEXT_FORMAT}
    return {"()": JsonFormatter, "stream_label": stream_label}


def _handler(formatter: str, level: str) -> dict[str, Any]:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": formatter,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def build_logging_config(level: str, log_format: str = "json") -> dict[str, Any]:
    """dictConfig with three streams: application, lifecycle events and access lines."""
    streams = {"app": "app", "lifecycle": "lifecycle", "access": "access"}
    own = {"handlers": ["app"], "level": level, "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_context": {"()": RequestContextFilter}},
        "formatters": {name: _formatter(label, log_format) for name, label in streams.items()},
        "handlers": {name: _handler(name, level) for name in streams},
        "loggers": {
            "": own,
            LIFECYCLE_LOGGER: {"handlers": ["lifecycle"], "level": level, "propagate": False},
            ACCESS_LOGGER: {"handlers": ["access"], "level": level, "propagate": False},
            "uvicorn": own,
            "uvicorn.error": own,
            # Replaced by the request context middleware's access line.
            "uvicorn.access": {"handlers": [], "level": "WARNING", "propagate": False},
            "sqlalchemy.engine": {
                "handlers": ["app"],
                "level": "INFO" if settings.db_echo else "WARNING",
                "propagate": False,
            },
        },
    }


def configure_logging(level: Optional[str] = None) -> None:
    log_level = (level or settings.log_level).upper()
    logging.config.dictConfig(build_logging_config(log_level, settings.log_format))
    logging.getLogger(__name__).info(
        "Logging configured environment=%s level=%s format=%s",
        settings.environment,
        log_level,
        settings.log_format,
    )


def get_lifecycle_logger() -> logging.Logger:
    return logging.getLogger(LIFECYCLE_LOGGER)
