from __future__ import annotations

import asyncio
import json
import socket
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Optional

import pytest

from oja.assistant.adapters import ExecutionResult
from oja.assistant.config import AssistantConfig
from oja.assistant.session import VoiceSession
from oja.assistant.types import AssistantResponse, PendingAction


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests marked with @pytest.mark.integration.",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-integration"):
        return

    deselected = [item for item in items if item.get_closest_marker("integration")]
    if deselected:
        config.hook.pytest_deselected(items=deselected)
        items[:] = [item for item in items if not item.get_closest_marker("integration")]


# ─────────────────────────────────────────────────────────────────
# Fake collaborators
# ─────────────────────────────────────────────────────────────────


class FakeInference:
    """Scripted inference adapter.

    Returns queued responses in order (raising queued exceptions); falls back
    to an answer. ``gate`` holds every call until it is set.
    """

    def __init__(self, *responses: Any, delay: float = 0.0):
        self.responses = list(responses)
        self.delay = delay
        self.calls: list[tuple[str, tuple]] = []
        self.gate: Optional[asyncio.Event] = None
        self.finished = 0

    def hold(self) -> asyncio.Event:
        self.gate = asyncio.Event()
        return self.gate

    async def infer(self, utterance, history):
        self.calls.append((utterance, tuple(history)))
        try:
            if self.gate is not None:
                await self.gate.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            item = self.responses.pop(0) if self.responses else AssistantResponse.answer("ok")
            if isinstance(item, BaseException):
                raise item
            return item
        finally:
            self.finished += 1


class FakeExecutor:
    """Records calls; returns (or raises) ``result``."""

    def __init__(self, result: Any = None, delay: float = 0.0):
        self.result = result if result is not None else ExecutionResult.ok()
        self.delay = delay
        self.calls: list[tuple[str, dict]] = []

    async def execute(self, action, params):
        self.calls.append((action, dict(params)))
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.result, BaseException):
            raise self.result
        return self.result


@pytest.fixture
def milk_proposal() -> AssistantResponse:
    action = PendingAction(
        action="add_item",
        params={"name": "milk"},
        confirm_label="Add milk to your list?",
    )
    return AssistantResponse.confirm("Add milk to your list?", action)


@pytest.fixture
def test_config() -> AssistantConfig:
    return AssistantConfig(
        inference_timeout_s=2.0,
        execution_timeout_s=2.0,
        min_request_interval_s=0.0,
        daily_request_limit=0,
        speak_responses=True,
    )


@pytest.fixture
def inference() -> FakeInference:
    return FakeInference()


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def make_session(inference, executor, test_config) -> Callable[..., VoiceSession]:
    def factory(**kwargs: Any) -> VoiceSession:
        kwargs.setdefault("config", test_config)
        return VoiceSession(
            kwargs.pop("inference", inference),
            kwargs.pop("executor", executor),
            **kwargs,
        )

    return factory


@pytest.fixture
def session(make_session) -> VoiceSession:
    return make_session()


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def until() -> Callable[..., Any]:
    """``await until(lambda: ...)`` polls the event loop until true."""
    return wait_until


# ─────────────────────────────────────────────────────────────────
# Mock app backend
# ─────────────────────────────────────────────────────────────────


class _OjaBackendMockHandler(BaseHTTPRequestHandler):
    server_version = "oja-backend-mock/1.0"

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A003
        # Keep pytest output clean.
        return

    def _send_json(self, status: int, payload: dict[str, Any]) -> None:
        data = json.dumps(payload).encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def do_POST(self) -> None:  # noqa: N802
        length = int(self.headers.get("Content-Length", "0") or "0")
        raw = self.rfile.read(length) if length > 0 else b"{}"

        try:
            req = json.loads(raw.decode("utf-8"))
        except Exception:
            self._send_json(400, {"error": "invalid json"})
            return

        self.server.requests.append((self.path, req, dict(self.headers)))  # type: ignore[attr-defined]

        path = self.path.rstrip("/")
        if path == "/voice/assistant":
            transcript = str(req.get("transcript") or "").strip()
            if "boom" in transcript:
                self._send_json(500, {"error": "internal"})
            elif transcript.startswith("add "):
                item = transcript[len("add "):].split(" to ")[0]
                label = f"Add {item} to your list?"
                self._send_json(200, {
                    "type": "confirm_action",
                    "text": label,
                    "pendingAction": {
                        "action": "add_items_to_list",
                        "params": {"items": [{"name": item, "quantity": 1}]},
                        "confirmLabel": label,
                    },
                })
            else:
                self._send_json(200, {
                    "type": "answer",
                    "text": f"Mock response: {transcript}",
                    "pendingAction": None,
                })
            return

        if path == "/voice/execute":
            if req.get("actionName") == "add_items_to_list":
                names = ", ".join(i["name"] for i in req.get("params", {}).get("items", []))
                self._send_json(200, {"success": True, "message": f"Added {names}"})
            else:
                self._send_json(200, {"success": False, "error": f"Unknown action: {req.get('actionName')}"})
            return

        self._send_json(404, {"error": "not found"})


@pytest.fixture(scope="session")
def backend_server() -> Any:
    """Start a tiny mock of the app's voice endpoints."""
    server = ThreadingHTTPServer(("127.0.0.1", 0), _OjaBackendMockHandler)
    server.requests = []  # type: ignore[attr-defined]

    host, port = server.server_address
    server.url = f"http://{host}:{port}"  # type: ignore[attr-defined]

    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    # Basic readiness check
    deadline = time.time() + 5.0
    while time.time() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.2):
                break
        except OSError:
            time.sleep(0.05)
    else:
        server.shutdown()
        raise RuntimeError("Failed to start backend mock server")

    yield server

    server.shutdown()
    server.server_close()
