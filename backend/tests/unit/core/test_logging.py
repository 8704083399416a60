"""Unit tests for the contextual logger and JSON formatter."""

import json
import logging

from tollgate.core.logging import ContextualLogger, JSONFormatter


class TestContextualLogger:
    def test_with_context_merges_dimensions(self):
        base = ContextualLogger(logging.getLogger("tollgate.test"), {"component": "webhook"})

        log = base.with_context(tenant_id="t1").with_context(provider="stripe")
        _, kwargs = log.process("Applied", {})

        assert kwargs["extra"]["custom_dimensions"] == {
            "component": "webhook",
            "tenant_id": "t1",
            "provider": "stripe",
        }
        assert base.dimensions == {"component": "webhook"}

    def test_later_context_wins(self):
        log = ContextualLogger(logging.getLogger("tollgate.test")).with_context(outcome="failed")

        _, kwargs = log.with_context(outcome="processed").process("done", {})

        assert kwargs["extra"]["custom_dimensions"] == {"outcome": "processed"}

    def test_no_dimensions_leaves_extra_empty(self):
        msg, kwargs = ContextualLogger(logging.getLogger("tollgate.test")).process("hi", {})

        assert msg == "hi"
        assert kwargs["extra"] == {}


def test_json_formatter_emits_dimensions():
    record = logging.LogRecord(
        name="tollgate.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Activated plan %s",
        args=("monthly",),
        exc_info=None,
    )
    record.custom_dimensions = {"tenant_id": "t1"}

    entry = json.loads(JSONFormatter().format(record))

    assert entry["message"] == "Activated plan monthly"
    assert entry["level"] == "INFO"
    assert entry["custom_dimensions"] == {"tenant_id": "t1"}
