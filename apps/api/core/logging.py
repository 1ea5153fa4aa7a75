"""
Structured logging configuration.

JSON lines in production (one object per record, extra_fields merged in),
readable text with key=value extras in development.

Usage:
    logger.info("Sprint completed", extra={"extra_fields": {"sprint_id": str(sprint.id)}})
"""
import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict
from core.config import settings

SERVICE_NAME = "sprint-coach-api"

# Third-party loggers that drown out application logs at INFO
NOISY_LOGGERS = ("sqlalchemy.engine", "httpx", "httpcore", "google_genai", "alembic.runtime.migration")


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    fields = getattr(record, "extra_fields", None)
    return fields if isinstance(fields, dict) else {}


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "service": SERVICE_NAME,
            "environment": settings.ENVIRONMENT,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Structured context never overwrites the envelope keys
        for key, value in _extra_fields(record).items():
            log_data.setdefault(key, value)

        # UUIDs, dates and enums show up in extra_fields
        return json.dumps(log_data, default=str)


class TextFormatter(logging.Formatter):
    """Development format: classic line plus key=value extras."""

    def __init__(self):
        super().__init__("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        extras = _extra_fields(record)
        if extras:
            line += " | " + " ".join(f"{k}={v}" for k, v in extras.items())
        return line


def setup_logging() -> logging.Logger:
    """
    Configure the root logger once per process.

    JSON when LOG_FORMAT=json or in production, text otherwise.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    if settings.LOG_FORMAT == "json" or settings.ENVIRONMENT == "production":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = TextFormatter()

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return root_logger


# Initialize logging on import
setup_logging()
