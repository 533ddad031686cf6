"""Voice assistant response parsing.

Validates and normalizes the payload returned by the assistant backend into
an ``AssistantResponse``. Handles markdown-fenced JSON, missing fields and
the camelCase/snake_case variants the backend has used.

Accepted shape::

    {
      "type": "answer" | "confirm_action" | "error" | "limit_reached",
      "text": "...",
      "pendingAction": {"action": "...", "params": {...}, "confirmLabel": "..."} | null
    }
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional, Union

from oja.assistant.exceptions import InferenceFailure
from oja.assistant.types import AssistantResponse, PendingAction, ResponseKind

logger = logging.getLogger(__name__)

__all__ = [
    "strip_code_fences",
    "parse_pending_action",
    "parse_assistant_response",
    "FALLBACK_ANSWER",
]

FALLBACK_ANSWER = "Sorry, I couldn't process that."

# Backend kinds that are reported to the user as errors.
_ERROR_ALIASES = {"error", "limit_reached"}


def strip_code_fences(text: str) -> str:
    """Strip markdown code fences from model output."""
    text = text.strip()
    if text.startswith("```json"):
        text = text[len("```json"):]
    elif text.startswith("```"):
        text = text[3:]
    else:
        return text
    if text.rstrip().endswith("```"):
        text = text.rstrip()[:-3]
    return text.strip()


def _get(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def parse_pending_action(data: Any) -> Optional[PendingAction]:
    """Build a ``PendingAction`` from a backend mapping (None passes through)."""
    if data is None:
        return None
    if not isinstance(data, Mapping):
        raise InferenceFailure(f"pendingAction must be an object, got {type(data).__name__}")

    action = _get(data, "action", "actionName", "action_name")
    if not isinstance(action, str) or not action.strip():
        raise InferenceFailure("pendingAction is missing its action name")

    params = _get(data, "params", "parameters")
    if params is None:
        params = {}
    if not isinstance(params, Mapping):
        raise InferenceFailure("pendingAction params must be an object")

    label = _get(data, "confirmLabel", "confirm_label", "description")
    return PendingAction(
        action=action.strip(),
        params=dict(params),
        confirm_label=str(label) if label else "",
    )


def parse_assistant_response(payload: Union[str, bytes, Mapping[str, Any]]) -> AssistantResponse:
    """Parse backend output into a validated ``AssistantResponse``.

    The kind comes from ``type`` (or ``kind``); when absent it is inferred
    from whether a pending action is present. ``limit_reached`` is reported
    as an error. Raises ``InferenceFailure`` for anything malformed.
    """
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        cleaned = strip_code_fences(payload)
        if not cleaned:
            raise InferenceFailure("empty inference payload")
        try:
            payload = json.loads(cleaned)
        except json.JSONDecodeError as e:
            logger.debug("Unparseable inference payload: %s", cleaned[:200])
            raise InferenceFailure(f"inference payload is not JSON: {e.msg}") from e

    if not isinstance(payload, Mapping):
        raise InferenceFailure(f"inference payload must be an object, got {type(payload).__name__}")

    pending = parse_pending_action(_get(payload, "pendingAction", "pending_action"))

    raw_kind = _get(payload, "type", "kind")
    if raw_kind is None:
        kind = ResponseKind.CONFIRM_ACTION if pending else ResponseKind.ANSWER
    elif not isinstance(raw_kind, str):
        raise InferenceFailure(f"response type must be a string, got {raw_kind!r}")
    elif raw_kind in _ERROR_ALIASES:
        kind = ResponseKind.ERROR
    else:
        try:
            kind = ResponseKind(raw_kind)
        except ValueError:
            raise InferenceFailure(f"unknown response type {raw_kind!r}") from None

    text = _get(payload, "text", "message")
    text = str(text).strip() if text is not None else ""

    if kind is ResponseKind.CONFIRM_ACTION:
        if pending is None:
            raise InferenceFailure("confirm_action response without a pending action")
        return AssistantResponse.confirm(text or pending.confirm_label, pending)

    if pending is not None:
        raise InferenceFailure(f"{kind.value} response must not carry a pending action")

    if kind is ResponseKind.ERROR:
        return AssistantResponse.error(text)
    return AssistantResponse.answer(text or FALLBACK_ANSWER)
