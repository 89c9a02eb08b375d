import json
import logging
from datetime import datetime, timezone
from logging.config import dictConfig

LOG_FORMATS = ("json", "plain")

# Loggers emitting structured events; their ``extra`` payload is merged into
# the JSON line.
EVENT_LOGGERS = ("storage", "http")


def setup_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Configure root, event and startup loggers.

    ``log_format`` selects the console formatter for every logger except
    ``blobdriver.startup``, which always prints plain lines.
    """
    if log_format not in LOG_FORMATS:
        raise ValueError(f"Unsupported log format: {log_format}")
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {
                    "()": JsonFormatter,
                },
                "plain": {
                    "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": log_format,
                },
                "startup_console": {
                    "class": "logging.StreamHandler",
                    "formatter": "plain",
                },
            },
            "root": {
                "level": level,
                "handlers": ["console"],
            },
            "loggers": {
                **{name: {"level": level} for name in EVENT_LOGGERS},
                "blobdriver.startup": {
                    "handlers": ["startup_console"],
                    "level": "INFO",
                    "propagate": False,
                },
            },
        }
    )


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra") and isinstance(record.extra, dict):
            payload.update(record.extra)
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)
