"""
Tests for the structured log formatters.
"""
import json
import logging
from uuid import uuid4

from core.logging import SERVICE_NAME, JSONFormatter, TextFormatter


def _record(message="Sprint completed", extra_fields=None):
    record = logging.LogRecord("services.task_workflow", logging.INFO, __file__, 10, message, None, None)
    if extra_fields is not None:
        record.extra_fields = extra_fields
    return record


def test_json_formatter_merges_extra_fields():
    user_id = uuid4()
    line = JSONFormatter().format(_record(extra_fields={"user_id": user_id, "badges": ["night-owl"]}))

    data = json.loads(line)
    assert data["message"] == "Sprint completed"
    assert data["service"] == SERVICE_NAME
    assert data["user_id"] == str(user_id)
    assert data["badges"] == ["night-owl"]


def test_extra_fields_cannot_overwrite_envelope():
    data = json.loads(JSONFormatter().format(_record(extra_fields={"level": "DEBUG"})))
    assert data["level"] == "INFO"


def test_text_formatter_appends_extras():
    line = TextFormatter().format(_record(extra_fields={"sprint": 3}))
    assert line.endswith("Sprint completed | sprint=3")


def test_text_formatter_without_extras():
    assert "|" not in TextFormatter().format(_record())
