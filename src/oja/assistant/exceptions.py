"""Typed exceptions for the voice assistant core.

Exception hierarchy::

    AssistantError
    ├── AlreadyActive          : transition illegal for the current phase
    ├── CaptureError           : speech input failed
    ├── InferenceFailure       : inference unreachable / timed out / malformed
    ├── ExecutionFailure       : confirmed action could not be applied
    ├── RateLimited            : request throttled or daily cap reached
    └── PendingActionConflict  : pending slot misuse

``AlreadyActive`` is a caller contract violation and is raised straight to
the caller. The other user-facing failures are caught by the session, stored
in ``last_error`` and move it to the error phase.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

__all__ = [
    "AssistantError",
    "AlreadyActive",
    "CaptureError",
    "InferenceFailure",
    "ExecutionFailure",
    "RateLimited",
    "PendingActionConflict",
]


class AssistantError(Exception):
    """Base exception for voice assistant errors.

    ``message`` is the text shown to the user; ``context`` carries the
    phase/trigger and any extra fields for structured logging.
    """

    #: value stored in ``SessionState.last_error_kind``
    kind = "assistant"

    def __init__(
        self,
        message: str = "",
        *,
        phase: str = "",
        trigger: str = "",
        **metadata: Any,
    ) -> None:
        self.message = message
        self.context: Dict[str, Any] = {"phase": phase, "trigger": trigger}
        self.context.update(metadata)
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = []
        if self.context.get("phase"):
            parts.append(f"[{self.context['phase']}]")
        parts.append(self.message)
        return " ".join(parts)

    def log(self, level: int = logging.WARNING) -> None:
        """Emit a structured log line for this error."""
        logger.log(
            level,
            "%s: %s | context=%s",
            type(self).__name__,
            self.message,
            self.context,
            exc_info=(level >= logging.ERROR),
        )


class AlreadyActive(AssistantError):
    """A transition was requested that the current phase does not allow."""

    kind = "protocol"

    def __init__(self, phase: str, trigger: str, message: str = "") -> None:
        self.phase = phase
        self.trigger = trigger
        super().__init__(
            message or f"cannot {trigger} while {phase}",
            phase=phase,
            trigger=trigger,
        )


class CaptureError(AssistantError):
    """Speech capture failed."""

    kind = "capture"


class InferenceFailure(AssistantError):
    """Inference could not produce a well-formed response."""

    kind = "inference"

    def __init__(self, message: str = "", *, timed_out: bool = False, **kwargs: Any) -> None:
        self.timed_out = timed_out
        super().__init__(message, timed_out=timed_out, **kwargs)


class ExecutionFailure(AssistantError):
    """A confirmed action could not be applied."""

    kind = "execution"

    def __init__(self, reason: str, *, action: Optional[str] = None, **kwargs: Any) -> None:
        self.reason = reason
        self.action = action
        super().__init__(reason, action=action, **kwargs)


class RateLimited(AssistantError):
    """A request was refused by the request limiter."""

    kind = "rate_limit"

    def __init__(self, message: str, *, daily: bool = False, retry_after: float = 0.0) -> None:
        self.daily = daily
        self.retry_after = retry_after
        super().__init__(message, daily=daily, retry_after=retry_after)


class PendingActionConflict(AssistantError):
    """The pending action slot was mutated out of protocol."""

    kind = "protocol"
