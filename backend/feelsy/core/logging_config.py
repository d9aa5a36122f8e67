"""
Logging setup shared by the API process and Celery workers.

setup_logging() installs one stdout handler on the root logger: JSON lines
when debug is off, a short human-readable format when it is on. Every record
carries the request's correlation ID, or "-" outside a request.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from feelsy.core.config import get_settings

DEV_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(correlation_id)s] %(message)s"

QUIET_LOGGERS = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "hpack",
    "h2",
    "h11",
    "websockets",
    "watchfiles",
    "multipart",
    "celery.redirected",
)


class CorrelationIDFilter(logging.Filter):
    """Stamp record.correlation_id from the current request context."""

    def filter(self, record: logging.LogRecord) -> bool:
        # middleware imports auth, which imports config; import lazily
        from feelsy.core.middleware import get_correlation_id

        record.correlation_id = get_correlation_id() or "-"
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record. Known `extra=` keys are lifted to the top level."""

    EXTRA_FIELDS = ("user_id", "check_date", "task_id", "method", "path", "status_code")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id and correlation_id != "-":
            entry["correlation_id"] = correlation_id

        entry.update(
            (key, getattr(record, key))
            for key in self.EXTRA_FIELDS
            if getattr(record, key, None) is not None
        )

        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def setup_logging(level: Optional[str] = None) -> None:
    """Replace the root handlers with Feelsy's stdout handler."""
    debug = get_settings().debug
    log_level = level or ("DEBUG" if debug else "INFO")

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIDFilter())
    if debug:
        handler.setFormatter(logging.Formatter(DEV_FORMAT, datefmt="%H:%M:%S"))
    else:
        handler.setFormatter(JSONFormatter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
