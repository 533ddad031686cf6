"""
Phases and transition table of the voice session.

Phases:
- IDLE: nothing in progress
- LISTENING: capturing speech, partial transcripts arriving
- PROCESSING: inference or a confirmed action is in flight
- AWAITING_CONFIRMATION: an action was proposed, waiting for confirm/reject
- ERROR: last attempt failed, waiting for dismiss

The table only answers "where does this trigger lead from here"; side
effects live in ``oja.assistant.session``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

from oja.assistant.exceptions import AlreadyActive


# =============================================================================
# Trigger Constants
# =============================================================================

TRIGGER_START_LISTENING = "start_listening"
TRIGGER_STOP_LISTENING = "stop_listening"
TRIGGER_CANCEL = "cancel"
TRIGGER_CAPTURE_ERROR = "capture_error"
TRIGGER_CAPTURE_ENDED = "capture_ended"
TRIGGER_RATE_LIMITED = "rate_limited"
TRIGGER_ANSWER = "answer"
TRIGGER_PROPOSE = "confirm_action"
TRIGGER_RESPONSE_ERROR = "response_error"
TRIGGER_INFERENCE_FAILURE = "inference_failure"
TRIGGER_CONFIRM = "confirm"
TRIGGER_EXECUTED = "executed"
TRIGGER_EXECUTION_FAILED = "execution_failed"
TRIGGER_REJECT = "reject"
TRIGGER_DISMISS = "dismiss"
TRIGGER_CLOSE_PANEL = "close_panel"
TRIGGER_RESET = "reset"


# =============================================================================
# Phase
# =============================================================================


class Phase(Enum):
    """Session phases."""

    IDLE = "idle"
    LISTENING = "listening"
    PROCESSING = "processing"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# State Transition
# =============================================================================


@dataclass(frozen=True)
class StateTransition:
    """Definition of a state transition."""

    from_phase: Phase
    to_phase: Phase
    trigger: str


def _build_transitions() -> List[StateTransition]:
    t = StateTransition
    return [
        # From IDLE
        t(Phase.IDLE, Phase.LISTENING, TRIGGER_START_LISTENING),
        t(Phase.IDLE, Phase.IDLE, TRIGGER_CLOSE_PANEL),

        # From LISTENING
        t(Phase.LISTENING, Phase.PROCESSING, TRIGGER_STOP_LISTENING),
        t(Phase.LISTENING, Phase.IDLE, TRIGGER_CANCEL),
        t(Phase.LISTENING, Phase.IDLE, TRIGGER_CAPTURE_ENDED),
        t(Phase.LISTENING, Phase.ERROR, TRIGGER_CAPTURE_ERROR),
        t(Phase.LISTENING, Phase.ERROR, TRIGGER_RATE_LIMITED),
        t(Phase.LISTENING, Phase.IDLE, TRIGGER_CLOSE_PANEL),

        # From PROCESSING (inference)
        t(Phase.PROCESSING, Phase.IDLE, TRIGGER_ANSWER),
        t(Phase.PROCESSING, Phase.AWAITING_CONFIRMATION, TRIGGER_PROPOSE),
        t(Phase.PROCESSING, Phase.ERROR, TRIGGER_RESPONSE_ERROR),
        t(Phase.PROCESSING, Phase.ERROR, TRIGGER_INFERENCE_FAILURE),

        # From PROCESSING (confirmed action)
        t(Phase.PROCESSING, Phase.IDLE, TRIGGER_EXECUTED),
        t(Phase.PROCESSING, Phase.ERROR, TRIGGER_EXECUTION_FAILED),

        # From AWAITING_CONFIRMATION
        t(Phase.AWAITING_CONFIRMATION, Phase.PROCESSING, TRIGGER_CONFIRM),
        t(Phase.AWAITING_CONFIRMATION, Phase.IDLE, TRIGGER_REJECT),
        t(Phase.AWAITING_CONFIRMATION, Phase.LISTENING, TRIGGER_START_LISTENING),
        t(Phase.AWAITING_CONFIRMATION, Phase.IDLE, TRIGGER_CLOSE_PANEL),

        # From ERROR
        t(Phase.ERROR, Phase.LISTENING, TRIGGER_START_LISTENING),
        t(Phase.ERROR, Phase.IDLE, TRIGGER_DISMISS),
        t(Phase.ERROR, Phase.IDLE, TRIGGER_CLOSE_PANEL),
    ] + [t(phase, Phase.IDLE, TRIGGER_RESET) for phase in Phase]


# =============================================================================
# Transition Table
# =============================================================================


class TransitionTable:
    """Lookup of legal transitions, grouped by trigger."""

    def __init__(self, transitions: Optional[Iterable[StateTransition]] = None):
        self._by_trigger: Dict[str, Dict[Phase, Phase]] = {}
        for tr in transitions if transitions is not None else _build_transitions():
            self._by_trigger.setdefault(tr.trigger, {})[tr.from_phase] = tr.to_phase

    def target(self, phase: Phase, trigger: str) -> Optional[Phase]:
        """Phase reached by ``trigger`` from ``phase``, or None if illegal."""
        return self._by_trigger.get(trigger, {}).get(phase)

    def can_transition(self, phase: Phase, trigger: str) -> bool:
        return self.target(phase, trigger) is not None

    def require(self, phase: Phase, trigger: str) -> Phase:
        """Like ``target`` but raises ``AlreadyActive`` for illegal moves."""
        to_phase = self.target(phase, trigger)
        if to_phase is None:
            raise AlreadyActive(phase.value, trigger)
        return to_phase

    def valid_triggers(self, phase: Phase) -> List[str]:
        """Triggers accepted from ``phase``."""
        return sorted(
            trigger for trigger, moves in self._by_trigger.items() if phase in moves
        )


DEFAULT_TABLE = TransitionTable()
