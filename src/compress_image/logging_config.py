"""Logging setup for the service and the CLI.

Environment variables:
    LOG_LEVEL  - DEBUG, INFO, WARNING, ERROR.  Default: INFO
    LOG_FORMAT - ``text`` (rich console output) or ``json`` (one object per
                 line, for log shippers).  Default: text
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional

from rich.console import Console
from rich.logging import RichHandler


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with known ``extra=`` fields lifted to the top level."""

    EXTRA_FIELDS = frozenset({
        "method",
        "path",
        "status_code",
        "duration_ms",
        "original_size",
        "final_size",
        "label",
    })

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in self.EXTRA_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                log_data[name] = value
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, ensure_ascii=False, default=str)


def get_log_level(level: Optional[str] = None) -> int:
    level_str = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_format(fmt: Optional[str] = None) -> str:
    return (fmt or os.getenv("LOG_FORMAT", "text")).lower()


_logging_initialized = False


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Configure the root logger once; later calls are no-ops."""
    global _logging_initialized
    if _logging_initialized:
        return

    log_level = get_log_level(level)
    if get_log_format(fmt) == "json":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = RichHandler(console=Console(stderr=True), show_path=False)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    handler.setLevel(log_level)
    root_logger.addHandler(handler)

    # Requests are logged by our own middleware.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)

    _logging_initialized = True
