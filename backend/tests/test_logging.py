"""
Test log formatting
"""

import json
import logging
import sys

from estatecrm.logging_setup import JSONFormatter


def make_record(**extra):
    record = logging.LogRecord(
        name="estatecrm.services.dispatcher",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg="Reminder processed: %s",
        args=("reminder_1",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_context_fields():
    line = JSONFormatter().format(make_record(reminder_id="reminder_1", employee_id="emp_1"))

    data = json.loads(line)
    assert data["message"] == "Reminder processed: reminder_1"
    assert data["logger"] == "estatecrm.services.dispatcher"
    assert data["level"] == "INFO"
    assert data["reminder_id"] == "reminder_1"
    assert data["employee_id"] == "emp_1"
    assert "request_id" not in data
    assert data["timestamp"].endswith("+00:00")


def test_json_formatter_includes_exception():
    try:
        raise RuntimeError("store unavailable")
    except RuntimeError:
        record = make_record()
        record.exc_info = sys.exc_info()

    data = json.loads(JSONFormatter().format(record))

    assert "RuntimeError: store unavailable" in data["exception"]
