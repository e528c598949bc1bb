"""
Tests for structured logging.
"""

import json
import logging

from shared.logging import JSONFormatter, get_session_id, set_session_id


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("test", logging.INFO, __file__, 1, message, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    line = JSONFormatter().format(_record("Run scheduled", active_runs=2))
    entry = json.loads(line)

    assert entry["message"] == "Run scheduled"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "test"
    assert entry["active_runs"] == 2


def test_session_id_context():
    set_session_id("session-123")
    try:
        assert get_session_id() == "session-123"
        entry = json.loads(JSONFormatter().format(_record("inside run")))
        assert entry["session_id"] == "session-123"
    finally:
        set_session_id(None)

    entry = json.loads(JSONFormatter().format(_record("outside run")))
    assert "session_id" not in entry
