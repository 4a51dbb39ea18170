"""
Structured Logging Configuration Module

JSON log lines for ledger, credential and session operations. Each line
carries who acted (``user_id``), what they did (``action``) and on what
(``resource``), plus free-form ``extra`` details. Secrets never go in.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Optional

from .config import get_config


TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Attributes log_action attaches to a record; JSONFormatter emits the ones present
STRUCTURED_FIELDS = ("correlation_id", "user_id", "action", "resource", "extra")


class JSONFormatter(logging.Formatter):
    """One JSON object per log record"""

    def format(self, record):
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                entry[name] = value
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def setup_logging(level: Optional[str] = None, logger_name: str = "zenith",
                  log_format: Optional[str] = None,
                  log_file: Optional[str] = None) -> logging.Logger:
    """
    Attach a single handler to the application logger.

    Arguments left unset come from the ZENITH_LOG_* settings; calling it
    again replaces the previous handler.

    Args:
        level: Log level name, e.g. INFO
        logger_name: Application root logger
        log_format: "json" or "text"
        log_file: Append to this file instead of writing to stderr
    """
    config = get_config()
    level = level or config.log_level
    log_format = log_format or config.log_format
    log_file = log_file or config.log_file

    logger = logging.getLogger(logger_name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    if log_format == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JSONFormatter())

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


def get_logger(name: str = "zenith") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               user_id: Optional[str] = None, action: Optional[str] = None,
               resource: Optional[str] = None, correlation_id: Optional[str] = None,
               extra: Optional[dict] = None):
    """
    Log one structured event.

    Args:
        logger: Logger to write to
        level: Level name (info, warning, error, ...)
        message: Human-readable summary
        user_id: Acting user
        action: Operation name, e.g. "transfer"
        resource: Kind of thing acted on
        correlation_id: Request tracing ID
        extra: Additional key/value details
    """
    fields = {
        "user_id": user_id,
        "action": action,
        "resource": resource,
        "correlation_id": correlation_id,
        "extra": extra or None,
    }
    logger.log(getattr(logging, level.upper()), message,
               extra={k: v for k, v in fields.items() if v is not None})
