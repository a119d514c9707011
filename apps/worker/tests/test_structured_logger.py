"""
Tests for utils/structured_logger.py
"""

import json
import logging

from utils.structured_logger import (
    ColoredFormatter,
    LogContext,
    StructuredFormatter,
    configure_logging,
    log_context,
)


def make_record(message="[WorkflowEngine] Starting auto", **extra):
    record = logging.LogRecord("orchestrator.workflow_engine", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogContext:

    def test_to_dict_drops_none(self):
        ctx = LogContext(request_id="r1", username="fitcoach")
        assert ctx.to_dict() == {"request_id": "r1", "username": "fitcoach"}

    def test_child_overrides_and_merges_extra(self):
        parent = LogContext(request_id="r1", extra={"a": 1})
        child = parent.child(stage="triage", extra={"b": 2})
        assert child.stage == "triage"
        assert child.to_dict() == {"request_id": "r1", "stage": "triage", "a": 1, "b": 2}
        assert parent.stage is None

    def test_log_context_helper(self):
        extra = log_context(LogContext(request_id="r1"), stage="triage", ignored=None)
        assert extra == {"context": {"request_id": "r1", "stage": "triage"}}


class TestFormatters:

    def test_structured_formatter_emits_json(self):
        record = make_record(context={"request_id": "r1"})
        data = json.loads(StructuredFormatter().format(record))
        assert data["level"] == "info"
        assert data["message"] == "[WorkflowEngine] Starting auto"
        assert data["context"] == {"request_id": "r1"}

    def test_colored_formatter_appends_context(self):
        output = ColoredFormatter().format(make_record(context={"stage": "triage"}))
        assert "[WorkflowEngine] Starting auto" in output
        assert "stage=triage" in output


class TestConfigureLogging:

    def test_single_handler(self):
        configure_logging("DEBUG", json_output=True)
        configure_logging("INFO", json_output=True)

        root = logging.getLogger()
        handlers = [h for h in root.handlers if getattr(h, "_worker_handler", False)]
        assert len(handlers) == 1
        assert isinstance(handlers[0].formatter, StructuredFormatter)
        assert root.level == logging.INFO
        assert logging.getLogger("httpx").level == logging.WARNING

        root.removeHandler(handlers[0])
