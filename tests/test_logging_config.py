import json
import logging
import sys

from site_wizard.logging_config import StructuredFormatter, set_session_id, set_trace_id


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("site_wizard.test", logging.INFO, __file__, 10, "Saved %s", ("session",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_structured_formatter_emits_json_with_extra_fields():
    set_trace_id("trace-123")
    set_session_id("wiz_abc")
    try:
        payload = json.loads(StructuredFormatter().format(make_record(stage="quick-form", attempt=2)))
    finally:
        set_trace_id(None)
        set_session_id(None)

    assert payload["message"] == "Saved session"
    assert payload["severity"] == "INFO"
    assert payload["logger"] == "site_wizard.test"
    assert payload["logging.googleapis.com/trace"] == "trace-123"
    assert payload["session_id"] == "wiz_abc"
    assert payload["stage"] == "quick-form"
    assert payload["attempt"] == 2
    assert "args" not in payload


def test_structured_formatter_includes_exceptions():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = logging.LogRecord("site_wizard.test", logging.ERROR, __file__, 1, "failed", (), sys.exc_info())

    payload = json.loads(StructuredFormatter().format(record))

    assert "RuntimeError: boom" in payload["exception"]
    assert "logging.googleapis.com/trace" not in payload
