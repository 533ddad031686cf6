"""Text-mode driver for the Oja voice assistant.

Each typed line is treated as one final transcript. While an action is
waiting for confirmation, answer ``y`` to run it; anything else cancels it.

Usage::

    oja-voice --backend-url https://app.example/api
    oja-voice                      # offline: echo answers, local actions
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from typing import Any, Optional, Sequence, TextIO

from oja.assistant.actions import ActionRegistry
from oja.assistant.adapters import ExecutionResult, QueueInputAdapter
from oja.assistant.config import AssistantConfig
from oja.assistant.session import VoiceSession
from oja.assistant.state import SessionState
from oja.assistant.types import AssistantResponse, ConversationMessage

logger = logging.getLogger(__name__)

_YES = {"y", "yes", "ok", "sure", "confirm"}


class EchoInference:
    """Offline inference: repeats what it heard."""

    async def infer(self, utterance: str, history: Sequence[ConversationMessage]) -> AssistantResponse:
        return AssistantResponse.answer(f"I heard: {utterance}")


def build_offline_registry() -> ActionRegistry:
    """Local stand-ins for the app's write actions; they only log."""
    registry = ActionRegistry()

    @registry.action("create_shopping_list", "Create a new shopping list")
    def create_shopping_list(name: str = "New list", **_: Any) -> str:
        logger.info("offline create_shopping_list name=%s", name)
        return f'Created "{name}"'

    @registry.action("add_items_to_list", "Add items to a shopping list")
    def add_items_to_list(items: Optional[list] = None, listName: str = "", **_: Any) -> ExecutionResult:
        items = items or []
        if not items:
            return ExecutionResult.failed("No items to add")
        names = ", ".join(str(i.get("name", i)) if isinstance(i, dict) else str(i) for i in items)
        logger.info("offline add_items_to_list list=%s items=%s", listName, names)
        return ExecutionResult.ok(f"Added {names}")

    @registry.action("add_pantry_item", "Add an item to the pantry")
    def add_pantry_item(name: str, **_: Any) -> str:
        logger.info("offline add_pantry_item name=%s", name)
        return f"Added {name} to your pantry"

    return registry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="oja-voice",
        description="Oja voice assistant (text mode)",
    )
    parser.add_argument("--backend-url", default=None, help="App backend base URL (default: $OJA_VOICE_BACKEND_URL)")
    parser.add_argument("--api-key", default=os.getenv("OJA_VOICE_API_KEY", ""), help="Bearer token for the backend")
    parser.add_argument("--screen", default="home", help="Screen the user is on")
    parser.add_argument("--list-id", default=None, help="Active shopping list id")
    parser.add_argument("--list-name", default=None, help="Active shopping list name")
    parser.add_argument("--user-name", default=None, help="User's first name")
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    return parser


def build_session(
    args: argparse.Namespace,
    config: AssistantConfig,
    input_adapter: Optional[QueueInputAdapter] = None,
) -> VoiceSession:
    backend_url = args.backend_url or config.backend_url
    if backend_url:
        from oja.llm.http_backend import HttpActionExecutor, HttpInferenceAdapter, ScreenContext

        screen = ScreenContext(
            current_screen=args.screen,
            active_list_id=args.list_id,
            active_list_name=args.list_name,
            user_name=args.user_name,
        )
        inference = HttpInferenceAdapter(
            backend_url,
            api_key=args.api_key,
            timeout_seconds=config.inference_timeout_s,
            screen=screen,
        )
        executor = HttpActionExecutor(
            backend_url,
            api_key=args.api_key,
            timeout_seconds=config.execution_timeout_s,
        )
        return VoiceSession(inference, executor, input_adapter=input_adapter, config=config)

    return VoiceSession(
        EchoInference(), build_offline_registry(), input_adapter=input_adapter, config=config
    )


def render(state: SessionState, out: TextIO) -> None:
    if state.has_error:
        print(f"error> {state.last_error}", file=out)
    elif state.last_response_text:
        print(f"assistant> {state.last_response_text}", file=out)
    if state.awaiting_confirmation:
        print("  confirm? [y/N]", file=out)


async def _say(session: VoiceSession, microphone: QueueInputAdapter, text: str) -> None:
    """Speak one utterance through the capture stream and wait for the outcome."""
    left_listening = asyncio.Event()

    def on_state(state: SessionState) -> None:
        if not state.is_listening:
            left_listening.set()

    unsubscribe = session.subscribe(on_state)
    try:
        await session.start_listening()
        microphone.push_final(text)
        if session.state.is_listening:
            await left_listening.wait()
    finally:
        unsubscribe()
    await session.join()


async def run_chat(args: argparse.Namespace, *, stdin: TextIO = sys.stdin, stdout: TextIO = sys.stdout) -> int:
    config = AssistantConfig.from_env()
    config.speak_responses = False
    microphone = QueueInputAdapter()
    session = build_session(args, config, microphone)
    await session.open_panel()

    try:
        while True:
            print("you> ", end="", file=stdout, flush=True)
            line = await asyncio.to_thread(stdin.readline)
            if not line:
                break
            text = line.strip()
            if text == "/quit":
                break
            if text == "/reset":
                await session.reset()
                print("(conversation cleared)", file=stdout)
                continue
            if not text:
                continue

            state = session.state
            if state.awaiting_confirmation:
                if text.lower() in _YES:
                    await session.confirm()
                else:
                    await session.reject()
            else:
                if state.has_error:
                    await session.dismiss()
                await _say(session, microphone, text)
            await session.join()
            render(session.state, stdout)
    finally:
        await session.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(run_chat(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
