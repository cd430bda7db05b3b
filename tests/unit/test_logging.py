"""Unit tests for structured logging."""

import json
import logging
import sys

from agent_workflow_runner.orchestrator.logging import JsonFormatter, configure_logging


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        "agent_workflow_runner.test", logging.WARNING, __file__, 1, "step %s failed", ("2",), None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_emits_message_and_extra() -> None:
    payload = json.loads(JsonFormatter().format(_record(run_id="r1", step_index=1)))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "agent_workflow_runner.test"
    assert payload["message"] == "step 2 failed"
    assert payload["extra"] == {"run_id": "r1", "step_index": 1}
    assert "exception" not in payload


def test_json_formatter_includes_exception() -> None:
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record()
        record.exc_info = sys.exc_info()

    payload = json.loads(JsonFormatter().format(record))

    assert "RuntimeError: boom" in payload["exception"]
    assert "extra" not in payload


def test_configure_logging_replaces_handlers() -> None:
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    try:
        configure_logging("debug")
        configure_logging("warning")

        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)
        assert root.level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
