"""
Oja Voice Assistant core.

Session state machine, transcript, confirm-before-execute protocol:
- Session: idle → listening → processing → {idle | awaiting_confirmation | error}
- Transcript: append-only conversation history
- Pending action: single slot, set / discard / dispatch
"""

from oja.assistant.types import (
    AssistantResponse,
    ConversationMessage,
    PendingAction,
    ResponseKind,
    Role,
)
from oja.assistant.exceptions import (
    AlreadyActive,
    AssistantError,
    CaptureError,
    ExecutionFailure,
    InferenceFailure,
    PendingActionConflict,
    RateLimited,
)
from oja.assistant.fsm import (
    Phase,
    StateTransition,
    TransitionTable,
)
from oja.assistant.state import SessionState
from oja.assistant.transcript import TranscriptStore
from oja.assistant.pending import PendingActionSlot
from oja.assistant.adapters import (
    ActionExecutor,
    CaptureEvent,
    ExecutionResult,
    InferenceAdapter,
    InputAdapter,
    QueueInputAdapter,
    Speaker,
)
from oja.assistant.actions import ActionRegistry
from oja.assistant.config import AssistantConfig
from oja.assistant.feedback import FeedbackRegistry, FeedbackType
from oja.assistant.rate_limit import RequestLimiter
from oja.assistant.session import VoiceSession

__all__ = [
    # Types
    "AssistantResponse",
    "ConversationMessage",
    "PendingAction",
    "ResponseKind",
    "Role",
    # Errors
    "AlreadyActive",
    "AssistantError",
    "CaptureError",
    "ExecutionFailure",
    "InferenceFailure",
    "PendingActionConflict",
    "RateLimited",
    # State machine
    "Phase",
    "StateTransition",
    "TransitionTable",
    "SessionState",
    "VoiceSession",
    # Stores
    "TranscriptStore",
    "PendingActionSlot",
    # Adapters
    "ActionExecutor",
    "ActionRegistry",
    "CaptureEvent",
    "ExecutionResult",
    "InferenceAdapter",
    "InputAdapter",
    "QueueInputAdapter",
    "Speaker",
    # Support
    "AssistantConfig",
    "FeedbackRegistry",
    "FeedbackType",
    "RequestLimiter",
]
