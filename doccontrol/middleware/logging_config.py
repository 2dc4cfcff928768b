"""
Structured logging for the approval engine.

Services log workflow events with ``extra={"document_id": ..., "workflow_id": ...,
"step_order": ...}``; the formatters below surface those fields:

- production:            one JSON object per line
- development / testing: coloured single line with a [key=value] context suffix

Level comes from ``app.config["LOG_LEVEL"]`` (env LOG_LEVEL), falling back to
INFO in production and DEBUG elsewhere.
"""

import json
import logging
import sys
from datetime import datetime, timezone

# Attributes lifted from ``extra={...}`` into the output, in this order
CONTEXT_FIELDS = (
    "document_id",
    "workflow_id",
    "step_order",
    "total_steps",
    "user_id",
    "action",
    "overall_status",
    "event_type",
    "method",
    "path",
    "status",
)

# Shown by the readable formatter; the JSON formatter emits all CONTEXT_FIELDS
_SHORT_CONTEXT = ("document_id", "workflow_id", "step_order", "user_id")

_QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "alembic.runtime.migration")


def record_context(record: logging.LogRecord, fields=CONTEXT_FIELDS) -> dict:
    return {
        key: getattr(record, key)
        for key in fields
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """Line-delimited JSON for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(record_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Coloured one-liners for a terminal."""

    COLORS = {
        "DEBUG": "\033[36m",      # cyan
        "INFO": "\033[32m",       # green
        "WARNING": "\033[33m",    # yellow
        "ERROR": "\033[31m",      # red
        "CRITICAL": "\033[35m",   # magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        context = record_context(record, _SHORT_CONTEXT)
        suffix = (
            " [" + " ".join(f"{k}={v}" for k, v in context.items()) + "]"
            if context else ""
        )
        line = (
            f"{color}{stamp} {record.levelname:<8}{self.RESET} "
            f"{record.name}: {record.getMessage()}{suffix}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install a single stderr handler on the root logger for ``app``."""
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = (app.config.get("LOG_LEVEL") or ("INFO" if production else "DEBUG")).upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if production else ReadableFormatter())
    handler.setLevel(level)

    root = logging.getLogger()
    # create_app() runs more than once per process under pytest
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not testing:
        app.logger.info(
            "Logging configured: level=%s format=%s",
            level_name, "json" if production else "readable",
        )
