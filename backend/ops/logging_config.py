"""
Structured logging configuration.

Development gets readable console lines; everything else gets one JSON
object per line on stdout, carrying any `extra={...}` passed to the
logger (event_id, reaction, payload, ...).

Environment variables:
- LOG_FORMAT: "json" or "console" (default: console when DEBUG, else json)
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: DEBUG when DEBUG, else INFO)
"""
import json
import logging
import os
from datetime import datetime, timezone

# Loggers of the project's own packages.
APP_LOGGERS = ("accounts", "events", "store", "common", "ops", "celery")

# Attributes every LogRecord has; anything else came in through `extra`.
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


def _formatters(log_format: str) -> dict:
    if log_format == "json":
        return {"default": {"()": "ops.logging_config.JsonFormatter"}}
    return {
        "default": {
            "format": "[{asctime}] {levelname} {name} {message}",
            "style": "{",
        },
    }


def get_logging_config(debug: bool = False) -> dict:
    """
    Build Django's LOGGING dict.

    Args:
        debug: Whether running in debug mode
    """
    log_level = os.environ.get("LOG_LEVEL", "DEBUG" if debug else "INFO")
    log_format = os.environ.get("LOG_FORMAT", "console" if debug else "json")

    def console(level=log_level):
        return {"handlers": ["console"], "level": level, "propagate": False}

    loggers = {
        "": {"handlers": ["console"], "level": log_level},
        "django": console(),
        "django.request": console(log_level if debug else "ERROR"),
        "django.db.backends": {
            "handlers": ["console"] if debug else ["null"],
            "level": "DEBUG" if debug else "INFO",
            "propagate": False,
        },
    }
    for name in APP_LOGGERS:
        loggers[name] = console()

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": _formatters(log_format),
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "null": {"class": "logging.NullHandler"},
        },
        "loggers": loggers,
    }


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record:
    timestamp, level, logger, message, location, exception?, extra?
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extras = {
            key: value for key, value in record.__dict__.items()
            if key not in _RECORD_ATTRS
        }
        if extras:
            entry["extra"] = extras

        return json.dumps(entry, default=str)
