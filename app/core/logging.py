"""Logging for import runs.

Every record logged while an import is running carries that run's import id,
so one run's lines can be pulled out of interleaved output. Records are JSON
by default; LOG_FORMAT=text gives one readable line per record for local work.
"""
import logging
import json
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

from app.config import settings

import_id_var: ContextVar[str] = ContextVar("import_id", default="")

# Passed through from `extra={...}` when present on the record.
_EXTRA_KEYS = ("reference", "url", "status", "duration", "total", "processed", "errors")


def set_import_id(import_id: Optional[str] = None) -> str:
    """Bind an import id to the current context. Returns the id."""
    iid = import_id or uuid.uuid4().hex[:12]
    import_id_var.set(iid)
    return iid


class ImportContextFilter(logging.Filter):
    """Stamp the current import id onto every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "import_id", None):
            record.import_id = import_id_var.get("")
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if getattr(record, "import_id", ""):
            entry["import_id"] = record.import_id

        for key in _EXTRA_KEYS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


TEXT_FORMAT = "%(asctime)s %(levelname)-7s [%(import_id)s] %(name)s: %(message)s"


def setup_logging() -> None:
    """Install the stdout handler on the root logger."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ImportContextFilter())
    if settings.log_format == "text":
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))
    else:
        handler.setFormatter(JSONFormatter())
    root_logger.addHandler(handler)

    for noisy in ("sqlalchemy.engine", "urllib3", "aiosqlite", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
