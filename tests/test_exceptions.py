"""
Tests for the assistant exception hierarchy.
"""

import logging

from oja.assistant.exceptions import (
    AlreadyActive,
    AssistantError,
    CaptureError,
    ExecutionFailure,
    InferenceFailure,
    PendingActionConflict,
    RateLimited,
)


class TestAssistantError:
    """Tests for the base error."""

    def test_message_and_context(self):
        err = AssistantError("bad thing", phase="listening", trigger="stop_listening", extra=1)
        assert err.message == "bad thing"
        assert err.context == {"phase": "listening", "trigger": "stop_listening", "extra": 1}
        assert str(err) == "[listening] bad thing"

    def test_without_phase(self):
        assert str(AssistantError("plain")) == "plain"

    def test_log(self, caplog):
        err = CaptureError("mic busy", phase="listening")
        with caplog.at_level(logging.WARNING, logger="oja.assistant.exceptions"):
            err.log()
        assert "CaptureError: mic busy" in caplog.text


class TestSubclasses:
    """Tests for the concrete errors."""

    def test_hierarchy(self):
        for cls in (AlreadyActive, CaptureError, InferenceFailure, ExecutionFailure,
                    RateLimited, PendingActionConflict):
            assert issubclass(cls, AssistantError)

    def test_already_active(self):
        err = AlreadyActive("processing", "start_listening")
        assert err.message == "cannot start_listening while processing"
        assert err.kind == "protocol"

    def test_inference_failure(self):
        err = InferenceFailure("slow", timed_out=True)
        assert err.timed_out
        assert err.context["timed_out"] is True
        assert err.kind == "inference"

    def test_execution_failure(self):
        err = ExecutionFailure("List not found", action="add_items_to_list")
        assert err.reason == "List not found"
        assert err.action == "add_items_to_list"
        assert err.kind == "execution"

    def test_rate_limited(self):
        err = RateLimited("wait", retry_after=2.5)
        assert err.retry_after == 2.5
        assert not err.daily
        assert err.kind == "rate_limit"
