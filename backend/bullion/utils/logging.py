# backend/bullion/utils/logging.py
"""
Logging configuration.

- Log level and output format come from settings (LOG_LEVEL, LOG_FORMAT)
- Every record carries the current correlation id
- Text format for development, one JSON object per line for production
- HTTP client and SQL engine chatter is raised to WARNING

Usage:
    from bullion.utils import setup_logging

    setup_logging()                                  # from settings
    setup_logging(level="DEBUG", log_format="text")  # explicit

Levels used by the application:
    DEBUG   - Per-asset prices, raw request targets
    INFO    - Sync cycle start/summary, asset created/deleted, backups
    WARNING - Source failures, missing quotes, retries, cancelled cycles
    ERROR   - Commit failures, unexpected exceptions
"""

import json
import logging
import sys
from datetime import datetime, timezone

from bullion.config import settings
from bullion.utils.context import get_correlation_id

TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(correlation_id)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NO_CORRELATION_ID = "-"

QUIET_LOGGERS = (
    "httpx",
    "httpcore",
    "urllib3",
    "sqlalchemy.engine",
    "asyncio",
)

# LogRecord attributes that are not user "extra" fields
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "correlation_id"}


class CorrelationIdFilter(logging.Filter):
    """Adds `correlation_id` to every record passing through the handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id() or NO_CORRELATION_ID
        return True


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    {"timestamp": "...", "level": "INFO", "logger": "bullion.services...",
     "thread": "price-sync_0", "correlation_id": "sync-...", "message": "...",
     "extra": {...}}

    Values json cannot encode (Decimal, datetime, enums) are written with str().
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "correlation_id": getattr(record, "correlation_id", NO_CORRELATION_ID),
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extra = {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}
        if extra:
            entry["extra"] = extra

        return json.dumps(entry, default=str)


def setup_logging(
        level: str | None = None,
        log_format: str | None = None,
        quiet_third_party: bool = True,
) -> None:
    """
    Install a single stdout handler on the root logger.

    Safe to call more than once; earlier handlers are replaced.

    Raises:
        ValueError: Unknown level name
    """
    level_name = (level or settings.log_level).upper().strip()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: '{level_name}'")

    format_type = (log_format or settings.log_format).lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())
    if format_type == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(fmt=TEXT_FORMAT, datefmt=DATE_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    if quiet_third_party:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level_name}, format={format_type}")
