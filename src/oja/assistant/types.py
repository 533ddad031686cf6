"""
Value types for the Oja voice assistant.

- ConversationMessage: one line of the dialogue (user or assistant)
- PendingAction: an action proposed by inference, awaiting confirmation
- AssistantResponse: closed tagged variant over answer / confirm_action / error
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


# =============================================================================
# Enums
# =============================================================================


class Role(Enum):
    """Speaker of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"

    def __str__(self) -> str:
        return self.value


class ResponseKind(Enum):
    """Kinds of inference response."""

    ANSWER = "answer"
    CONFIRM_ACTION = "confirm_action"
    ERROR = "error"

    def __str__(self) -> str:
        return self.value


# =============================================================================
# Conversation Message
# =============================================================================


@dataclass(frozen=True)
class ConversationMessage:
    """A single message in the conversation history."""

    role: Role
    text: str

    @classmethod
    def user(cls, text: str) -> "ConversationMessage":
        return cls(role=Role.USER, text=text)

    @classmethod
    def assistant(cls, text: str) -> "ConversationMessage":
        return cls(role=Role.ASSISTANT, text=text)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "text": self.text}


# =============================================================================
# Pending Action
# =============================================================================


@dataclass(frozen=True)
class PendingAction:
    """An action proposed by the assistant that needs explicit confirmation.

    ``params`` is stored as a read-only copy.
    """

    action: str
    params: Mapping[str, Any] = field(default_factory=dict)
    confirm_label: str = ""

    def __post_init__(self) -> None:
        if not self.action or not self.action.strip():
            raise ValueError("PendingAction requires an action name")
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "params": dict(self.params),
            "confirmLabel": self.confirm_label,
        }


# =============================================================================
# Assistant Response
# =============================================================================


@dataclass(frozen=True)
class AssistantResponse:
    """Structured result of one inference call.

    ``pending_action`` is set if and only if ``kind`` is CONFIRM_ACTION.
    """

    kind: ResponseKind
    text: str
    pending_action: Optional[PendingAction] = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ResponseKind):
            raise TypeError(f"kind must be a ResponseKind, got {self.kind!r}")
        if self.kind is ResponseKind.CONFIRM_ACTION and self.pending_action is None:
            raise ValueError("confirm_action response requires a pending action")
        if self.kind is not ResponseKind.CONFIRM_ACTION and self.pending_action is not None:
            raise ValueError(f"{self.kind.value} response cannot carry a pending action")

    @classmethod
    def answer(cls, text: str) -> "AssistantResponse":
        return cls(kind=ResponseKind.ANSWER, text=text)

    @classmethod
    def confirm(cls, text: str, action: PendingAction) -> "AssistantResponse":
        return cls(kind=ResponseKind.CONFIRM_ACTION, text=text, pending_action=action)

    @classmethod
    def error(cls, text: str) -> "AssistantResponse":
        return cls(kind=ResponseKind.ERROR, text=text)

    @property
    def is_answer(self) -> bool:
        return self.kind is ResponseKind.ANSWER

    @property
    def needs_confirmation(self) -> bool:
        return self.kind is ResponseKind.CONFIRM_ACTION

    @property
    def is_error(self) -> bool:
        return self.kind is ResponseKind.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind.value,
            "text": self.text,
            "pendingAction": self.pending_action.to_dict() if self.pending_action else None,
        }
