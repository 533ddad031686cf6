"""HTTP adapters for the Oja app backend.

- HttpInferenceAdapter: POST {base_url}/voice/assistant
- HttpActionExecutor:   POST {base_url}/voice/execute

Both use ``requests`` in a worker thread so the event loop stays free.
Neither retries: a failed call is reported once and the session decides
what the user sees.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

import requests

from oja.assistant.adapters import ExecutionResult
from oja.assistant.exceptions import InferenceFailure
from oja.assistant.types import AssistantResponse, ConversationMessage, Role
from oja.llm.response_parser import parse_assistant_response

logger = logging.getLogger(__name__)

__all__ = [
    "ScreenContext",
    "HttpInferenceAdapter",
    "HttpActionExecutor",
]

ASSISTANT_PATH = "/voice/assistant"
EXECUTE_PATH = "/voice/execute"


@dataclass
class ScreenContext:
    """What the user is looking at; sent with every inference request."""

    current_screen: str = "home"
    active_list_id: Optional[str] = None
    active_list_name: Optional[str] = None
    user_name: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"currentScreen": self.current_screen}
        if self.active_list_id:
            payload["activeListId"] = self.active_list_id
        if self.active_list_name:
            payload["activeListName"] = self.active_list_name
        if self.user_name:
            payload["userName"] = self.user_name
        return payload


def _wire_history(history: Sequence[ConversationMessage]) -> list[Dict[str, str]]:
    # The backend speaks the model's role vocabulary: user / model.
    return [
        {"role": "user" if m.role is Role.USER else "model", "text": m.text}
        for m in history
    ]


class _BackendClient:
    """Shared request plumbing for the two adapters."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout_seconds: float = 20.0,
        session: Optional[requests.Session] = None,
    ):
        self._base_url = (base_url or "").strip().rstrip("/")
        if not self._base_url:
            raise ValueError("backend base_url is required")
        self._api_key = (api_key or "").strip()
        self._timeout_seconds = float(timeout_seconds)
        self._http = session or requests

    @property
    def base_url(self) -> str:
        return self._base_url

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def _post(self, path: str, payload: Mapping[str, Any]) -> requests.Response:
        return self._http.post(
            f"{self._base_url}{path}",
            headers=self._headers(),
            data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            timeout=self._timeout_seconds,
        )


class HttpInferenceAdapter(_BackendClient):
    """Inference adapter backed by the app's voice assistant endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout_seconds: float = 20.0,
        screen: Optional[ScreenContext] = None,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(base_url, api_key=api_key, timeout_seconds=timeout_seconds, session=session)
        self.screen = screen or ScreenContext()

    async def infer(
        self,
        utterance: str,
        history: Sequence[ConversationMessage],
    ) -> AssistantResponse:
        payload = {"transcript": utterance, **self.screen.to_payload()}
        payload["conversationHistory"] = _wire_history(history)
        return await asyncio.to_thread(self._infer_sync, payload)

    def _infer_sync(self, payload: Dict[str, Any]) -> AssistantResponse:
        t0 = time.perf_counter()
        try:
            r = self._post(ASSISTANT_PATH, payload)
        except requests.Timeout as e:
            raise InferenceFailure(
                f"assistant timeout timeout_s={self._timeout_seconds}", timed_out=True
            ) from e
        except requests.RequestException as e:
            raise InferenceFailure(f"assistant connection_error: {e}") from e

        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        logger.debug("[backend] assistant status=%d latency_ms=%d", r.status_code, elapsed_ms)

        if r.status_code in {401, 403}:
            raise InferenceFailure(f"assistant auth_error status={r.status_code}")
        if r.status_code == 429:
            raise InferenceFailure("assistant rate_limited status=429")
        if r.status_code >= 400:
            raise InferenceFailure(f"assistant http_error status={r.status_code}")

        try:
            data = r.json()
        except ValueError:
            # Some deployments return the model text verbatim.
            data = r.text
        return parse_assistant_response(data)


class HttpActionExecutor(_BackendClient):
    """Action executor backed by the app's execute endpoint."""

    async def execute(self, action: str, params: Mapping[str, Any]) -> ExecutionResult:
        payload = {"actionName": action, "params": dict(params)}
        return await asyncio.to_thread(self._execute_sync, payload)

    def _execute_sync(self, payload: Dict[str, Any]) -> ExecutionResult:
        action = payload["actionName"]
        try:
            r = self._post(EXECUTE_PATH, payload)
        except requests.Timeout:
            logger.warning("[backend] execute %s timed out", action)
            return ExecutionResult.failed("The app took too long to respond.")
        except requests.RequestException as e:
            logger.warning("[backend] execute %s connection error: %s", action, e)
            return ExecutionResult.failed("Couldn't reach the app. Try again?")

        if r.status_code >= 400:
            logger.warning("[backend] execute %s status=%d", action, r.status_code)
            return ExecutionResult.failed(f"The app refused that request ({r.status_code}).")

        try:
            data = r.json() or {}
        except ValueError:
            return ExecutionResult.failed("The app sent an unreadable reply.")
        if not isinstance(data, Mapping):
            return ExecutionResult.failed("The app sent an unreadable reply.")

        if data.get("success"):
            return ExecutionResult.ok(str(data.get("message") or ""))
        reason = data.get("error") or data.get("message") or f"{action} failed"
        return ExecutionResult.failed(str(reason))
