"""
Tests for session phases and the transition table.
"""

import pytest

from oja.assistant.exceptions import AlreadyActive
from oja.assistant.fsm import (
    DEFAULT_TABLE,
    Phase,
    StateTransition,
    TransitionTable,
    TRIGGER_ANSWER,
    TRIGGER_CANCEL,
    TRIGGER_CLOSE_PANEL,
    TRIGGER_CONFIRM,
    TRIGGER_DISMISS,
    TRIGGER_PROPOSE,
    TRIGGER_REJECT,
    TRIGGER_RESET,
    TRIGGER_START_LISTENING,
    TRIGGER_STOP_LISTENING,
)


class TestPhase:
    """Tests for Phase enum."""

    def test_values(self):
        assert Phase.IDLE.value == "idle"
        assert Phase.AWAITING_CONFIRMATION.value == "awaiting_confirmation"

    def test_string(self):
        assert str(Phase.PROCESSING) == "processing"


class TestTransitionTable:
    """Tests for the default table."""

    @pytest.mark.parametrize(
        "phase,trigger,expected",
        [
            (Phase.IDLE, TRIGGER_START_LISTENING, Phase.LISTENING),
            (Phase.LISTENING, TRIGGER_STOP_LISTENING, Phase.PROCESSING),
            (Phase.LISTENING, TRIGGER_CANCEL, Phase.IDLE),
            (Phase.PROCESSING, TRIGGER_ANSWER, Phase.IDLE),
            (Phase.PROCESSING, TRIGGER_PROPOSE, Phase.AWAITING_CONFIRMATION),
            (Phase.AWAITING_CONFIRMATION, TRIGGER_CONFIRM, Phase.PROCESSING),
            (Phase.AWAITING_CONFIRMATION, TRIGGER_REJECT, Phase.IDLE),
            (Phase.AWAITING_CONFIRMATION, TRIGGER_START_LISTENING, Phase.LISTENING),
            (Phase.ERROR, TRIGGER_DISMISS, Phase.IDLE),
            (Phase.ERROR, TRIGGER_START_LISTENING, Phase.LISTENING),
        ],
    )
    def test_legal_moves(self, phase, trigger, expected):
        assert DEFAULT_TABLE.target(phase, trigger) is expected
        assert DEFAULT_TABLE.require(phase, trigger) is expected

    @pytest.mark.parametrize(
        "phase,trigger",
        [
            (Phase.PROCESSING, TRIGGER_START_LISTENING),
            (Phase.LISTENING, TRIGGER_START_LISTENING),
            (Phase.IDLE, TRIGGER_STOP_LISTENING),
            (Phase.IDLE, TRIGGER_CONFIRM),
            (Phase.PROCESSING, TRIGGER_CONFIRM),
            (Phase.PROCESSING, TRIGGER_CANCEL),
            (Phase.PROCESSING, TRIGGER_CLOSE_PANEL),
            (Phase.IDLE, TRIGGER_REJECT),
        ],
    )
    def test_illegal_moves(self, phase, trigger):
        """Test illegal moves raise AlreadyActive naming phase and trigger."""
        assert not DEFAULT_TABLE.can_transition(phase, trigger)
        with pytest.raises(AlreadyActive) as exc:
            DEFAULT_TABLE.require(phase, trigger)
        assert exc.value.phase == phase.value
        assert exc.value.trigger == trigger

    def test_reset_from_every_phase(self):
        for phase in Phase:
            assert DEFAULT_TABLE.target(phase, TRIGGER_RESET) is Phase.IDLE

    def test_unknown_trigger(self):
        assert DEFAULT_TABLE.target(Phase.IDLE, "teleport") is None

    def test_valid_triggers(self):
        triggers = DEFAULT_TABLE.valid_triggers(Phase.IDLE)
        assert TRIGGER_START_LISTENING in triggers
        assert TRIGGER_RESET in triggers
        assert TRIGGER_STOP_LISTENING not in triggers
        assert triggers == sorted(triggers)

    def test_processing_only_takes_completions(self):
        """Test nothing the user can press is accepted while processing."""
        triggers = set(DEFAULT_TABLE.valid_triggers(Phase.PROCESSING))
        user_triggers = {
            TRIGGER_START_LISTENING,
            TRIGGER_STOP_LISTENING,
            TRIGGER_CANCEL,
            TRIGGER_CONFIRM,
            TRIGGER_REJECT,
            TRIGGER_DISMISS,
        }
        assert not triggers & user_triggers

    def test_custom_table(self):
        table = TransitionTable([StateTransition(Phase.IDLE, Phase.ERROR, "boom")])
        assert table.target(Phase.IDLE, "boom") is Phase.ERROR
        assert table.target(Phase.IDLE, TRIGGER_START_LISTENING) is None
