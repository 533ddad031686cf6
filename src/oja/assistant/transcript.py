"""
Conversation transcript for the voice assistant.

Append-only, ordered log of user/assistant messages:
- the only mutators are append_user / append_assistant
- clear() exists for whole-session reset only
- readers get immutable snapshots (single writer, many readers)
"""

from __future__ import annotations

import threading
from typing import List, Optional, Tuple

from oja.assistant.types import ConversationMessage, Role


class TranscriptStore:
    """
    Append-only conversation history.

    The full history is kept for display; ``window()`` returns the tail
    that is sent back to inference as context.
    """

    def __init__(self) -> None:
        self._messages: List[ConversationMessage] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return not self._messages

    def append_user(self, text: str) -> ConversationMessage:
        """Append a user message."""
        return self._append(ConversationMessage.user(text))

    def append_assistant(self, text: str) -> ConversationMessage:
        """Append an assistant message."""
        return self._append(ConversationMessage.assistant(text))

    def _append(self, message: ConversationMessage) -> ConversationMessage:
        with self._lock:
            self._messages.append(message)
        return message

    def snapshot(self) -> Tuple[ConversationMessage, ...]:
        """All messages, oldest first (thread-safe)."""
        with self._lock:
            return tuple(self._messages)

    def window(self, n: int) -> Tuple[ConversationMessage, ...]:
        """The last ``n`` messages (thread-safe). ``n <= 0`` means none."""
        if n <= 0:
            return ()
        with self._lock:
            return tuple(self._messages[-n:])

    def last(self, role: Optional[Role] = None) -> Optional[ConversationMessage]:
        """Most recent message, optionally restricted to one role."""
        with self._lock:
            for message in reversed(self._messages):
                if role is None or message.role is role:
                    return message
            return None

    def clear(self) -> int:
        """Drop the whole history; returns how many messages were removed."""
        with self._lock:
            count = len(self._messages)
            self._messages.clear()
            return count

    def to_dicts(self) -> List[dict]:
        with self._lock:
            return [m.to_dict() for m in self._messages]
