"""
Tests for assistant value types and the session snapshot.
"""

import pytest

from oja.assistant.fsm import Phase
from oja.assistant.state import SessionState
from oja.assistant.types import (
    AssistantResponse,
    ConversationMessage,
    PendingAction,
    ResponseKind,
    Role,
)


class TestConversationMessage:
    """Tests for ConversationMessage."""

    def test_constructors(self):
        """Test user/assistant helpers set the role."""
        assert ConversationMessage.user("hi").role is Role.USER
        assert ConversationMessage.assistant("hello").role is Role.ASSISTANT

    def test_to_dict(self):
        msg = ConversationMessage.user("add milk")
        assert msg.to_dict() == {"role": "user", "text": "add milk"}

    def test_frozen(self):
        msg = ConversationMessage.user("x")
        with pytest.raises(AttributeError):
            msg.text = "y"

    def test_role_string(self):
        assert str(Role.ASSISTANT) == "assistant"


class TestPendingAction:
    """Tests for PendingAction."""

    def test_requires_action_name(self):
        """Test empty action names are rejected."""
        with pytest.raises(ValueError):
            PendingAction(action="")
        with pytest.raises(ValueError):
            PendingAction(action="   ")

    def test_params_read_only(self):
        """Test params cannot be edited after construction."""
        action = PendingAction(action="add_item", params={"name": "milk"})
        with pytest.raises(TypeError):
            action.params["name"] = "bread"

    def test_params_copied(self):
        """Test mutating the source dict does not leak into the action."""
        source = {"name": "milk"}
        action = PendingAction(action="add_item", params=source)
        source["name"] = "bread"
        assert action.params["name"] == "milk"

    def test_to_dict(self):
        action = PendingAction(
            action="add_items_to_list",
            params={"items": [{"name": "eggs"}]},
            confirm_label="Add eggs?",
        )
        assert action.to_dict() == {
            "action": "add_items_to_list",
            "params": {"items": [{"name": "eggs"}]},
            "confirmLabel": "Add eggs?",
        }


class TestAssistantResponse:
    """Tests for the answer / confirm_action / error variant."""

    def test_answer(self):
        r = AssistantResponse.answer("Milk is on your list.")
        assert r.kind is ResponseKind.ANSWER
        assert r.is_answer
        assert not r.needs_confirmation
        assert r.pending_action is None

    def test_confirm(self):
        action = PendingAction(action="add_item", params={"name": "milk"})
        r = AssistantResponse.confirm("Add milk?", action)
        assert r.needs_confirmation
        assert r.pending_action is action

    def test_error(self):
        r = AssistantResponse.error("I can only help with shopping.")
        assert r.is_error
        assert str(r.kind) == "error"

    def test_confirm_without_action_rejected(self):
        """Test confirm_action must carry a pending action."""
        with pytest.raises(ValueError):
            AssistantResponse(kind=ResponseKind.CONFIRM_ACTION, text="Add milk?")

    def test_answer_with_action_rejected(self):
        """Test only confirm_action may carry a pending action."""
        action = PendingAction(action="add_item")
        with pytest.raises(ValueError):
            AssistantResponse(kind=ResponseKind.ANSWER, text="ok", pending_action=action)
        with pytest.raises(ValueError):
            AssistantResponse(kind=ResponseKind.ERROR, text="no", pending_action=action)

    def test_kind_must_be_enum(self):
        with pytest.raises(TypeError):
            AssistantResponse(kind="answer", text="ok")

    def test_to_dict(self):
        action = PendingAction(action="add_item", confirm_label="Add it?")
        assert AssistantResponse.confirm("Add it?", action).to_dict() == {
            "type": "confirm_action",
            "text": "Add it?",
            "pendingAction": {"action": "add_item", "params": {}, "confirmLabel": "Add it?"},
        }
        assert AssistantResponse.answer("hi").to_dict()["pendingAction"] is None


class TestSessionState:
    """Tests for the read-only SessionState snapshot."""

    def test_defaults(self):
        state = SessionState()
        assert state.is_idle
        assert not state.awaiting_confirmation
        assert not state.has_error
        assert state.history == ()
        assert state.pending_action is None

    def test_phase_properties(self):
        assert SessionState(phase=Phase.AWAITING_CONFIRMATION).awaiting_confirmation
        assert SessionState(phase=Phase.ERROR).has_error

    def test_to_dict(self):
        state = SessionState(
            phase=Phase.ERROR,
            last_error="Something went wrong. Try again?",
            last_error_kind="inference",
            history=(ConversationMessage.user("hi"),),
            is_panel_open=True,
        )
        d = state.to_dict()
        assert d["phase"] == "error"
        assert d["error"] == "Something went wrong. Try again?"
        assert d["errorKind"] == "inference"
        assert d["conversationHistory"] == [{"role": "user", "text": "hi"}]
        assert d["isSheetOpen"] is True
        assert d["pendingAction"] is None

    def test_frozen(self):
        state = SessionState()
        with pytest.raises(AttributeError):
            state.phase = Phase.LISTENING
