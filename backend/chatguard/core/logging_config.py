"""
Centralized logging configuration for the moderation service.

Structured JSON in production, human-readable in development.
Call setup_logging() once at app startup (in lifespan) and in Celery workers.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from chatguard.core.config import get_settings


class CorrelationIDFilter(logging.Filter):
    """Injects the request correlation ID into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        from chatguard.core.middleware import get_correlation_id

        record.correlation_id = get_correlation_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """
    Structured JSON log formatter for production.

    Moderation fields passed through `extra=` become top-level keys so
    decisions can be queried by rule, verdict or user without parsing the
    message text.
    """

    EXTRA_FIELDS = (
        "user_id",
        "context",
        "rule_id",
        "matched_rules",
        "action",
        "severity_score",
        "moderator_id",
        "path",
        "method",
    )

    def format(self, record: logging.LogRecord) -> str:
        log_entry: dict = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id and correlation_id != "-":
            log_entry["correlation_id"] = correlation_id
        for key in self.EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_entry[key] = _plain(value)
        return json.dumps(log_entry, default=str)


def _plain(value: Any) -> Any:
    """Enum members are logged by value, lists element-wise."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    return value


def setup_logging(level: Optional[str] = None) -> None:
    """Configure application-wide logging."""
    settings = get_settings()
    log_level = level or ("DEBUG" if settings.debug else "INFO")

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.addFilter(CorrelationIDFilter())

    if settings.debug:
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s [%(correlation_id)s]: %(message)s",
            datefmt="%H:%M:%S",
        )
    else:
        formatter = JSONFormatter()

    handler.setFormatter(formatter)
    root.addHandler(handler)

    # Supabase client chatter (one line per PostgREST call) drowns out decisions
    noisy_loggers = [
        "uvicorn.access",
        "httpx",
        "httpcore",
        "hpack",
        "h2",
        "h11",
        "celery.redirected",
    ]
    for name in noisy_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)
