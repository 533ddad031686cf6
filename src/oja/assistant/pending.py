"""Single-slot holder for the action awaiting user confirmation.

Exactly three mutations are allowed:

    set(action)        : a confirm_action response proposed something
    discard(reason)    : reject, panel close, or supersession by a new turn
    dispatch()         : user confirmed; ownership goes to the executor call

Overwriting an occupied slot is refused, so replacing an unconfirmed
proposal always shows up as an explicit ``discard`` in the log.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from oja.assistant.exceptions import PendingActionConflict
from oja.assistant.types import PendingAction

logger = logging.getLogger(__name__)

__all__ = ["PendingActionSlot"]


class PendingActionSlot:
    """Holds at most one ``PendingAction``."""

    def __init__(self) -> None:
        self._action: Optional[PendingAction] = None
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[PendingAction]:
        with self._lock:
            return self._action

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return self._action is None

    def set(self, action: PendingAction) -> None:
        """Store a new proposal. The slot must be empty."""
        with self._lock:
            if self._action is not None:
                raise PendingActionConflict(
                    f"slot already holds {self._action.action!r}; discard it first"
                )
            self._action = action
        logger.debug("[pending] set %s params=%s", action.action, dict(action.params))

    def discard(self, reason: str) -> Optional[PendingAction]:
        """Drop the proposal without executing it. Returns what was dropped."""
        with self._lock:
            action, self._action = self._action, None
        if action is not None:
            logger.info("[pending] discarded %s (%s)", action.action, reason)
        return action

    def dispatch(self) -> PendingAction:
        """Clear the slot and hand its value to the caller for execution."""
        with self._lock:
            if self._action is None:
                raise PendingActionConflict("no pending action to dispatch")
            action, self._action = self._action, None
        logger.debug("[pending] dispatched %s", action.action)
        return action
