"""
Structured logging configuration.

- Development: human-readable colored format with the workflow scope
- Production: JSON format (log aggregator compatible)
- Log level: controlled via LOG_LEVEL env variable

Engine records pass ``extra={"project_id": ..., "step_id": ...}``; the
RequestContextFilter fills in ``request_id`` (and ``project_id`` from the
route) for anything logged while a request is being served.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Request fields written by the timing middleware.
REQUEST_FIELDS = ("method", "path", "status", "duration_ms", "remote_addr", "request_id")

# Workflow scope attached by services.
WORKFLOW_FIELDS = ("project_id", "workflow_id", "step_id", "actor_id")


class RequestContextFilter(logging.Filter):
    """Copy request-scoped identifiers onto records that lack them."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = getattr(g, "request_id", None)
        if getattr(record, "project_id", None) is None:
            record.project_id = (request.view_args or {}).get("project_id")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record; context fields only when set."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for key in REQUEST_FIELDS + WORKFLOW_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                entry[key] = val
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Colored single-line format for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    @staticmethod
    def _scope(record: logging.LogRecord) -> str:
        parts = []
        for key, label in (("project_id", "project"), ("step_id", "step"), ("actor_id", "actor")):
            val = getattr(record, key, None)
            if val:
                parts.append(f"{label}={val}")
        return f" [{' '.join(parts)}]" if parts else ""

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        duration = getattr(record, "duration_ms", None)
        dur_str = f" ({duration:.0f}ms)" if duration is not None else ""
        line = (
            f"{color}{ts} {record.levelname:<8}{self.RESET} "
            f"{record.name}:{self._scope(record)} {record.getMessage()}{dur_str}"
        )
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """
    Install one stderr handler on the root logger.

    LOG_LEVEL overrides the default (INFO in production, DEBUG otherwise).
    Production gets JSONFormatter, everything else ReadableFormatter.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # SQL echo is controlled by SQLALCHEMY_ECHO, not the root level
    for noisy in ("werkzeug", "sqlalchemy.engine", "alembic.runtime.migration"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
