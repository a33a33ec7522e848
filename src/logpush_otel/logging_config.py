"""
Logging setup for the Logpush OTel bridge.

Configures the root logger from settings: a console handler with either a
human-readable or a JSON formatter, plus an optional rotating file handler.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Optional

from logpush_otel.config import Settings, settings as default_settings

STANDARD_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__.keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def __init__(self, context: str):
        super().__init__()
        self.context = context

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "context": self.context,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(context: str = "api", config: Optional[Settings] = None) -> None:
    """
    Configure root logging for a process.

    Args:
        context: Name of the running component ("api", "cli"); used in the
            JSON output and as the log file name.
        config: Settings to read from (defaults to the global settings).

    Raises:
        PermissionError: If file logging is enabled and the log directory
            cannot be created.
    """
    config = config or default_settings
    level = logging.getLevelName(config.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    if config.log_format == "json":
        formatter: logging.Formatter = JsonFormatter(context)
    else:
        formatter = logging.Formatter(STANDARD_FORMAT)

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
    root.setLevel(level)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    root.addHandler(console)

    if config.log_file_enabled:
        log_dir = config.log_directory
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_dir / f"{context}.log",
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
