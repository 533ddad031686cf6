"""In-process action executor.

The host app registers one handler per action name (``add_items_to_list``,
``create_shopping_list``, ...). A handler receives the action params as
keyword arguments and returns either a message string or an
``ExecutionResult``; it may be sync or async. Raised exceptions and unknown
action names are reported as failures, never propagated.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from oja.assistant.adapters import ExecutionResult

logger = logging.getLogger(__name__)

__all__ = ["ActionHandler", "ActionRegistry"]


@dataclass(frozen=True)
class ActionHandler:
    """A registered action."""

    name: str
    function: Callable[..., Any]
    description: str = ""


class ActionRegistry:
    """Maps action names to handlers; implements ``ActionExecutor``."""

    def __init__(self) -> None:
        self._handlers: Dict[str, ActionHandler] = {}

    def register(self, name: str, function: Callable[..., Any], description: str = "") -> None:
        self._handlers[name] = ActionHandler(name=name, function=function, description=description)

    def action(self, name: str, description: str = "") -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of ``register``."""
        def decorator(function: Callable[..., Any]) -> Callable[..., Any]:
            self.register(name, function, description)
            return function
        return decorator

    def get(self, name: str) -> Optional[ActionHandler]:
        return self._handlers.get(name)

    def names(self) -> List[str]:
        return sorted(self._handlers.keys())

    async def execute(self, action: str, params: Mapping[str, Any]) -> ExecutionResult:
        handler = self._handlers.get(action)
        if handler is None:
            logger.warning("[actions] unknown action %r", action)
            return ExecutionResult.failed(f"Unknown action: {action}")

        logger.info("[actions] executing %s params=%s", action, dict(params))
        try:
            result = handler.function(**dict(params))
            if asyncio.iscoroutine(result):
                result = await result
        except Exception as e:
            logger.warning("[actions] %s failed: %s", action, e)
            return ExecutionResult.failed(str(e) or type(e).__name__)

        if isinstance(result, ExecutionResult):
            return result
        return ExecutionResult.ok(str(result) if result else "")
