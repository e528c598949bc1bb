"""
Structured logging.

JSON log lines with per-run session context.
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Optional

# Session ID of the pipeline run executing in the current task
_session_id: ContextVar[Optional[str]] = ContextVar("session_id", default=None)

# Attributes every LogRecord carries; anything else came in through `extra=`
_RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_configured = False


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        session_id = _session_id.get()
        if session_id:
            entry["session_id"] = session_id

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def configure_logging(level: str = "INFO") -> None:
    """
    Install the JSON handler on the root logger.

    Safe to call more than once; only the level changes on later calls.

    Args:
        level: Log level name
    """
    global _configured

    root = logging.getLogger()
    root.setLevel(level)

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter())
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a named logger.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def set_session_id(session_id: Optional[str]) -> None:
    """
    Attach a session ID to all log lines emitted from the current context.

    Args:
        session_id: Session ID, or None to clear
    """
    _session_id.set(str(session_id) if session_id else None)


def get_session_id() -> Optional[str]:
    """Return the session ID bound to the current context, if any."""
    return _session_id.get()
