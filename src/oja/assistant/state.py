"""Read-only session snapshot handed to the UI layer."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from oja.assistant.fsm import Phase
from oja.assistant.types import ConversationMessage, PendingAction


@dataclass(frozen=True)
class SessionState:
    """Single source of truth for what the assistant sheet shows.

    Produced by ``VoiceSession.state`` after every transition. Nothing
    outside the session mutates it; a fresh instance replaces the old one.
    """

    phase: Phase = Phase.IDLE
    is_listening: bool = False
    is_processing: bool = False
    live_transcript: str = ""
    partial_transcript: str = ""
    last_response_text: str = ""
    pending_action: Optional[PendingAction] = None
    last_error: Optional[str] = None
    last_error_kind: Optional[str] = None
    history: Tuple[ConversationMessage, ...] = ()
    is_panel_open: bool = False
    request_seq: int = 0

    @property
    def is_idle(self) -> bool:
        return self.phase is Phase.IDLE

    @property
    def awaiting_confirmation(self) -> bool:
        return self.phase is Phase.AWAITING_CONFIRMATION

    @property
    def has_error(self) -> bool:
        return self.phase is Phase.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase.value,
            "isListening": self.is_listening,
            "isProcessing": self.is_processing,
            "transcript": self.live_transcript,
            "partialTranscript": self.partial_transcript,
            "response": self.last_response_text,
            "pendingAction": self.pending_action.to_dict() if self.pending_action else None,
            "error": self.last_error,
            "errorKind": self.last_error_kind,
            "conversationHistory": [m.to_dict() for m in self.history],
            "isSheetOpen": self.is_panel_open,
        }
