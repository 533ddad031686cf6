"""
Contracts for the collaborators around the voice session.

- InputAdapter: streaming speech capture (partial/final transcripts)
- InferenceAdapter: utterance + history → AssistantResponse
- ActionExecutor: performs a confirmed action
- Speaker: optional TTS output

Also provides QueueInputAdapter, a channel-backed input adapter that other
code (a native speech bridge, the CLI, tests) feeds with events.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Mapping, Protocol, Sequence, Union, runtime_checkable

from oja.assistant.exceptions import CaptureError
from oja.assistant.types import AssistantResponse, ConversationMessage

logger = logging.getLogger(__name__)


# =============================================================================
# Capture Events
# =============================================================================


@dataclass(frozen=True)
class CaptureEvent:
    """One event of a capture stream. ``is_final`` events end the stream."""

    text: str
    is_final: bool = False

    @classmethod
    def partial(cls, text: str) -> "CaptureEvent":
        return cls(text=text, is_final=False)

    @classmethod
    def final(cls, text: str) -> "CaptureEvent":
        return cls(text=text, is_final=True)


# =============================================================================
# Execution Result
# =============================================================================


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome reported by an ActionExecutor."""

    success: bool
    message: str = ""
    reason: str = ""

    @classmethod
    def ok(cls, message: str = "") -> "ExecutionResult":
        return cls(success=True, message=message)

    @classmethod
    def failed(cls, reason: str) -> "ExecutionResult":
        return cls(success=False, reason=reason)


# =============================================================================
# Protocol Interfaces
# =============================================================================


@runtime_checkable
class InputAdapter(Protocol):
    """Protocol for speech capture.

    ``start_capture`` yields partial events and at most one final event,
    which is always the last one. Errors are raised from the iterator.
    """

    def start_capture(self) -> AsyncIterator[CaptureEvent]:
        ...

    async def stop_capture(self) -> None:
        ...


@runtime_checkable
class InferenceAdapter(Protocol):
    """Protocol for the remote assistant model."""

    async def infer(
        self,
        utterance: str,
        history: Sequence[ConversationMessage],
    ) -> AssistantResponse:
        ...


@runtime_checkable
class ActionExecutor(Protocol):
    """Protocol for applying a confirmed action."""

    async def execute(self, action: str, params: Mapping[str, Any]) -> ExecutionResult:
        ...


@runtime_checkable
class Speaker(Protocol):
    """Protocol for TTS output."""

    async def speak(self, text: str) -> None:
        ...

    async def stop(self) -> None:
        ...


# =============================================================================
# Queue Input Adapter
# =============================================================================


_QueueItem = Union[CaptureEvent, BaseException]


class QueueInputAdapter:
    """
    Input adapter fed through an asyncio queue.

    A speech bridge pushes events with ``push_partial`` / ``push_final`` /
    ``push_error``; the session consumes them through ``start_capture``.
    """

    def __init__(self) -> None:
        self._queue: "asyncio.Queue[_QueueItem]" = asyncio.Queue()
        self._capturing = False
        self.captures_started = 0
        self.captures_stopped = 0

    @property
    def is_capturing(self) -> bool:
        return self._capturing

    def push_partial(self, text: str) -> None:
        self._queue.put_nowait(CaptureEvent.partial(text))

    def push_final(self, text: str) -> None:
        self._queue.put_nowait(CaptureEvent.final(text))

    def push_error(self, error: Union[str, BaseException]) -> None:
        if isinstance(error, str):
            error = CaptureError(error)
        self._queue.put_nowait(error)

    async def start_capture(self) -> AsyncIterator[CaptureEvent]:
        self._capturing = True
        self.captures_started += 1
        try:
            while True:
                item = await self._queue.get()
                if isinstance(item, BaseException):
                    raise item
                yield item
                if item.is_final:
                    return
        finally:
            self._capturing = False

    async def stop_capture(self) -> None:
        self.captures_stopped += 1
        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            dropped += 1
        if dropped:
            logger.debug("[capture] dropped %d queued events on stop", dropped)
