"""
Voice session controller.

Owns the phase, the transcript and the pending action slot, and turns UI
calls and adapter completions into validated transitions:

    idle → listening → processing → idle
                                  → awaiting_confirmation → processing → idle
                                  → error → idle

Every transition runs under one asyncio lock. Capture, inference and
execution run as background tasks whose completions come back through the
``on_*`` handlers; inference/execution completions carry the request
sequence number they were started with and are dropped when it is no longer
current.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from oja.assistant.adapters import (
    ActionExecutor,
    CaptureEvent,
    ExecutionResult,
    InferenceAdapter,
    InputAdapter,
    Speaker,
)
from oja.assistant.config import AssistantConfig
from oja.assistant.exceptions import (
    AssistantError,
    CaptureError,
    ExecutionFailure,
    InferenceFailure,
    RateLimited,
)
from oja.assistant.feedback import FeedbackRegistry, FeedbackType
from oja.assistant.fsm import (
    DEFAULT_TABLE,
    Phase,
    TransitionTable,
    TRIGGER_ANSWER,
    TRIGGER_CANCEL,
    TRIGGER_CAPTURE_ENDED,
    TRIGGER_CAPTURE_ERROR,
    TRIGGER_CLOSE_PANEL,
    TRIGGER_CONFIRM,
    TRIGGER_DISMISS,
    TRIGGER_EXECUTED,
    TRIGGER_EXECUTION_FAILED,
    TRIGGER_INFERENCE_FAILURE,
    TRIGGER_PROPOSE,
    TRIGGER_RATE_LIMITED,
    TRIGGER_REJECT,
    TRIGGER_RESET,
    TRIGGER_RESPONSE_ERROR,
    TRIGGER_START_LISTENING,
    TRIGGER_STOP_LISTENING,
)
from oja.assistant.pending import PendingActionSlot
from oja.assistant.rate_limit import RequestLimiter
from oja.assistant.state import SessionState
from oja.assistant.transcript import TranscriptStore
from oja.assistant.types import AssistantResponse, ConversationMessage, PendingAction

logger = logging.getLogger(__name__)

__all__ = ["VoiceSession", "StateListener"]

StateListener = Callable[[SessionState], Union[None, Awaitable[None]]]

_INFERENCE = "inference"
_EXECUTION = "execution"


class VoiceSession:
    """
    State machine for one assistant panel session.

    Construct one per panel lifetime and pass it to whatever drives the UI.
    The UI reads ``state`` and calls ``start_listening``, ``stop_listening``,
    ``cancel``, ``confirm``, ``reject``, ``dismiss``, ``open_panel``,
    ``close_panel`` and ``reset``. Illegal calls raise ``AlreadyActive``.
    """

    def __init__(
        self,
        inference: InferenceAdapter,
        executor: ActionExecutor,
        *,
        input_adapter: Optional[InputAdapter] = None,
        speaker: Optional[Speaker] = None,
        config: Optional[AssistantConfig] = None,
        limiter: Optional[RequestLimiter] = None,
        feedback: Optional[FeedbackRegistry] = None,
        table: Optional[TransitionTable] = None,
    ):
        self._config = config or AssistantConfig()
        self._inference = inference
        self._executor = executor
        self._input = input_adapter
        self._speaker = speaker
        self._limiter = limiter or RequestLimiter(
            min_interval_s=self._config.min_request_interval_s,
            daily_limit=self._config.daily_request_limit,
            usage_path=self._config.usage_path,
        )
        self._feedback = feedback or FeedbackRegistry(language=self._config.language)
        self._table = table or DEFAULT_TABLE

        self._transcript = TranscriptStore()
        self._pending = PendingActionSlot()
        self._lock = asyncio.Lock()

        self._phase = Phase.IDLE
        self._live_transcript = ""
        self._partial = ""
        self._last_response = ""
        self._last_error: Optional[str] = None
        self._last_error_kind: Optional[str] = None
        self._panel_open = False
        self._background_result = False

        self._request_seq = 0
        self._inflight: Optional[str] = None
        self._capture_task: Optional[asyncio.Task] = None
        self._work_task: Optional[asyncio.Task] = None

        self._listeners: List[StateListener] = []
        self._transitions: List[Dict[str, Any]] = []
        self._stats = {
            "utterances": 0,
            "answers": 0,
            "proposals": 0,
            "confirmed": 0,
            "rejected": 0,
            "superseded": 0,
            "errors": 0,
        }

        self._state = self._snapshot()

    # ── read side ─────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        """Latest published snapshot."""
        return self._state

    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def config(self) -> AssistantConfig:
        return self._config

    @property
    def history(self) -> Tuple[ConversationMessage, ...]:
        return self._transcript.snapshot()

    @property
    def request_seq(self) -> int:
        return self._request_seq

    @property
    def pending_action(self) -> Optional[PendingAction]:
        return self._pending.current

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every new state. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def transition_history(self, n: int = 10) -> List[Dict[str, Any]]:
        """Recent transitions, oldest first."""
        return list(self._transitions[-n:])

    def valid_triggers(self) -> List[str]:
        return self._table.valid_triggers(self._phase)

    def get_stats(self) -> Dict[str, Any]:
        stats: Dict[str, Any] = dict(self._stats)
        stats["phase"] = self._phase.value
        stats["messages"] = len(self._transcript)
        stats["request_seq"] = self._request_seq
        return stats

    # ── listening ─────────────────────────────────────────────────

    async def start_listening(self) -> None:
        """Begin a new utterance.

        Allowed from idle and error. From awaiting_confirmation the pending
        action is discarded first (a new turn supersedes it).
        """
        async with self._lock:
            self._table.require(self._phase, TRIGGER_START_LISTENING)

            if self._phase is Phase.AWAITING_CONFIRMATION:
                self._pending.discard("superseded by a new utterance")
                self._stats["superseded"] += 1

            await self._stop_capture_locked()
            self._last_error = None
            self._last_error_kind = None
            self._partial = ""
            self._live_transcript = ""
            self._move(TRIGGER_START_LISTENING)

            if self._input is not None:
                self._capture_task = asyncio.create_task(
                    self._consume_capture(), name="oja-voice-capture"
                )
            state = self._commit()
        await self._notify(state)

    async def on_partial_transcript(self, text: str) -> bool:
        """Replace the partial transcript. Ignored unless listening."""
        async with self._lock:
            if self._phase is not Phase.LISTENING:
                logger.debug("[session] partial transcript ignored in %s", self._phase)
                return False
            self._partial = text
            state = self._commit()
        await self._notify(state)
        return True

    async def stop_listening(self, final_text: Optional[str] = None) -> None:
        """Finish the utterance and send it to inference.

        ``final_text`` defaults to the current partial transcript.
        """
        async with self._lock:
            self._table.require(self._phase, TRIGGER_STOP_LISTENING)

            text = self._partial if final_text is None else final_text
            await self._stop_capture_locked()
            self._partial = ""
            self._live_transcript = text

            if not text.strip():
                self._fail(
                    TRIGGER_CAPTURE_ERROR,
                    CaptureError(self._phrase(FeedbackType.NOT_HEARD), phase=self._phase.value),
                )
            else:
                try:
                    self._limiter.check()
                except RateLimited as e:
                    self._fail(TRIGGER_RATE_LIMITED, e)
                else:
                    self._begin_inference(text)
            state = self._commit()
        await self._notify(state)

    async def cancel(self) -> None:
        """Abandon the current utterance. No-op when already idle."""
        async with self._lock:
            if self._phase is Phase.IDLE:
                return
            self._table.require(self._phase, TRIGGER_CANCEL)
            await self._stop_capture_locked()
            self._partial = ""
            self._move(TRIGGER_CANCEL)
            state = self._commit()
        await self._notify(state)

    # ── inference completions ─────────────────────────────────────

    async def on_inference_result(self, seq: int, response: AssistantResponse) -> bool:
        """Apply an inference response. Returns False if it was stale."""
        async with self._lock:
            if not self._is_current(seq, _INFERENCE):
                logger.debug(
                    "[session] stale inference result #%d dropped (current #%d, %s)",
                    seq, self._request_seq, self._phase,
                )
                return False
            self._finish_work()

            speak = ""
            if response.needs_confirmation:
                self._pending.set(response.pending_action)
                self._transcript.append_assistant(response.text)
                self._last_response = response.text
                self._stats["proposals"] += 1
                self._move(TRIGGER_PROPOSE)
                speak = response.text
            elif response.is_answer:
                self._transcript.append_assistant(response.text)
                self._last_response = response.text
                self._stats["answers"] += 1
                self._move(TRIGGER_ANSWER)
                speak = response.text
            else:
                self._last_error = response.text or self._phrase(FeedbackType.INFERENCE_FAILED)
                self._last_error_kind = "response"
                self._stats["errors"] += 1
                self._move(TRIGGER_RESPONSE_ERROR)
            state = self._commit()
        await self._notify(state)
        await self._speak(speak)
        return True

    async def on_inference_failure(self, seq: int, error: BaseException) -> bool:
        """Apply a transport/timeout failure. Returns False if it was stale."""
        async with self._lock:
            if not self._is_current(seq, _INFERENCE):
                logger.debug("[session] stale inference failure #%d dropped", seq)
                return False
            self._finish_work()

            if not isinstance(error, InferenceFailure):
                error = InferenceFailure(str(error) or type(error).__name__)
            phrase = FeedbackType.INFERENCE_TIMEOUT if error.timed_out else FeedbackType.INFERENCE_FAILED
            error.log()
            self._fail(TRIGGER_INFERENCE_FAILURE, error, message=self._phrase(phrase), log=False)
            state = self._commit()
        await self._notify(state)
        return True

    # ── confirmation ──────────────────────────────────────────────

    async def confirm(self) -> None:
        """Execute the pending action (exactly once)."""
        async with self._lock:
            self._table.require(self._phase, TRIGGER_CONFIRM)
            action = self._pending.dispatch()
            self._request_seq += 1
            seq = self._request_seq
            self._inflight = _EXECUTION
            self._stats["confirmed"] += 1
            self._move(TRIGGER_CONFIRM)
            self._work_task = asyncio.create_task(
                self._run_execution(seq, action), name=f"oja-voice-execute-{seq}"
            )
            state = self._commit()
        await self._notify(state)

    async def reject(self) -> None:
        """Drop the pending action without executing it."""
        async with self._lock:
            self._table.require(self._phase, TRIGGER_REJECT)
            self._discard_pending("rejected by user")
            self._stats["rejected"] += 1
            self._move(TRIGGER_REJECT)
            state = self._commit()
        await self._notify(state)

    async def on_execution_result(self, seq: int, action: PendingAction, result: ExecutionResult) -> bool:
        """Apply the executor outcome. Returns False if it was stale."""
        async with self._lock:
            if not self._is_current(seq, _EXECUTION):
                logger.debug("[session] stale execution result #%d dropped", seq)
                return False
            self._finish_work()

            speak = ""
            if result.success:
                message = result.message or self._phrase(FeedbackType.ACTION_DONE)
                self._transcript.append_assistant(message)
                self._last_response = message
                self._move(TRIGGER_EXECUTED)
                speak = message
            else:
                reason = result.reason or self._phrase(FeedbackType.EXECUTION_FAILED)
                self._fail(
                    TRIGGER_EXECUTION_FAILED,
                    ExecutionFailure(reason, action=action.action, phase=self._phase.value),
                )
            state = self._commit()
        await self._notify(state)
        await self._speak(speak)
        return True

    # ── error / panel / reset ─────────────────────────────────────

    async def dismiss(self) -> None:
        """Acknowledge the error. No-op when already idle."""
        async with self._lock:
            if self._phase is Phase.IDLE:
                return
            self._table.require(self._phase, TRIGGER_DISMISS)
            self._last_error = None
            self._last_error_kind = None
            self._move(TRIGGER_DISMISS)
            state = self._commit()
        await self._notify(state)

    async def open_panel(self) -> None:
        """Show the assistant sheet.

        A session with nothing happening in the background starts fresh;
        an in-flight call or an outcome that arrived while the panel was
        closed is kept so it can be shown.
        """
        async with self._lock:
            if self._panel_open:
                return
            self._panel_open = True
            if self._phase is Phase.PROCESSING or self._background_result:
                logger.debug("[session] reopening with background outcome (%s)", self._phase)
                self._background_result = False
            else:
                await self._reset_locked()
            state = self._commit()
        await self._notify(state)

    async def close_panel(self) -> None:
        """Hide the assistant sheet.

        Listening is cancelled, errors are cleared and an unconfirmed action
        is dropped. A call already in flight keeps running; its outcome is
        applied and shown on the next ``open_panel``.
        """
        async with self._lock:
            self._panel_open = False
            if self._phase is Phase.PROCESSING:
                logger.debug("[session] panel closed while processing; continuing in background")
            else:
                if self._phase is Phase.LISTENING:
                    await self._stop_capture_locked()
                    self._partial = ""
                elif self._phase is Phase.AWAITING_CONFIRMATION:
                    self._discard_pending("panel closed")
                elif self._phase is Phase.ERROR:
                    self._last_error = None
                    self._last_error_kind = None
                self._move(TRIGGER_CLOSE_PANEL)
            state = self._commit()
        await self._notify(state)
        if self._speaker is not None:
            try:
                await self._speaker.stop()
            except Exception as e:
                logger.warning("[session] speaker stop failed: %s", e)

    async def reset(self) -> None:
        """Clear the conversation. Any in-flight result will be dropped."""
        async with self._lock:
            await self._reset_locked()
            state = self._commit()
        await self._notify(state)

    async def join(self, timeout: Optional[float] = None) -> None:
        """Wait for the in-flight inference/execution task, if any."""
        task = self._work_task
        if task is None or task.done():
            return
        if timeout is None:
            await asyncio.shield(task)
        else:
            await asyncio.wait_for(asyncio.shield(task), timeout=timeout)

    async def close(self) -> None:
        """Cancel background tasks. The session is unusable afterwards."""
        async with self._lock:
            await self._stop_capture_locked()
            task, self._work_task = self._work_task, None
            self._inflight = None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── background tasks ──────────────────────────────────────────

    async def _consume_capture(self) -> None:
        stream = None
        try:
            stream = self._input.start_capture()
            async for event in stream:
                if not isinstance(event, CaptureEvent):
                    raise TypeError(f"unexpected capture event {event!r}")
                if event.is_final:
                    await self.stop_listening(event.text)
                    return
                await self.on_partial_transcript(event.text)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._on_capture_error(e)
            return
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
        await self._on_capture_ended()

    async def _on_capture_error(self, error: Exception) -> None:
        async with self._lock:
            if self._phase is not Phase.LISTENING or self._capture_task is not asyncio.current_task():
                return
            logger.warning("[session] capture failed: %s", error)
            await self._stop_capture_locked()
            self._partial = ""
            # Adapter errors carry their own user-facing text.
            if isinstance(error, AssistantError) and error.message:
                message = error.message
            else:
                message = self._phrase(FeedbackType.CAPTURE_FAILED)
            self._fail(
                TRIGGER_CAPTURE_ERROR,
                CaptureError(message, cause=str(error)),
                log=False,
            )
            state = self._commit()
        await self._notify(state)

    async def _on_capture_ended(self) -> None:
        async with self._lock:
            if self._phase is not Phase.LISTENING or self._capture_task is not asyncio.current_task():
                return
            logger.warning("[session] capture ended without a final transcript")
            await self._stop_capture_locked()
            self._partial = ""
            self._move(TRIGGER_CAPTURE_ENDED)
            state = self._commit()
        await self._notify(state)

    async def _run_inference(self, seq: int, utterance: str, context: Sequence[ConversationMessage]) -> None:
        try:
            response = await asyncio.wait_for(
                self._inference.infer(utterance, context),
                timeout=self._config.inference_timeout_s,
            )
        except (asyncio.TimeoutError, TimeoutError):
            failure = InferenceFailure(
                f"inference timed out after {self._config.inference_timeout_s}s", timed_out=True
            )
        except InferenceFailure as e:
            failure = e
        except Exception as e:
            failure = InferenceFailure(str(e) or type(e).__name__, cause=type(e).__name__)
        else:
            if isinstance(response, AssistantResponse):
                await self.on_inference_result(seq, response)
                return
            failure = InferenceFailure(f"malformed inference result {type(response).__name__}")
        await self.on_inference_failure(seq, failure)

    async def _run_execution(self, seq: int, action: PendingAction) -> None:
        try:
            result = await asyncio.wait_for(
                self._executor.execute(action.action, action.params),
                timeout=self._config.execution_timeout_s,
            )
        except (asyncio.TimeoutError, TimeoutError):
            logger.warning("[session] %s timed out after %ss", action.action, self._config.execution_timeout_s)
            result = ExecutionResult.failed(self._phrase(FeedbackType.EXECUTION_FAILED))
        except ExecutionFailure as e:
            result = ExecutionResult.failed(e.reason)
        except Exception as e:
            logger.warning("[session] executor raised for %s: %s", action.action, e)
            result = ExecutionResult.failed(str(e) or self._phrase(FeedbackType.EXECUTION_FAILED))
        if not isinstance(result, ExecutionResult):
            result = ExecutionResult.failed(self._phrase(FeedbackType.EXECUTION_FAILED))
        await self.on_execution_result(seq, action, result)

    # ── internals (caller holds _lock) ────────────────────────────

    def _begin_inference(self, text: str) -> None:
        context = self._transcript.window(self._config.max_context_messages)
        self._transcript.append_user(text)
        self._request_seq += 1
        seq = self._request_seq
        self._inflight = _INFERENCE
        self._stats["utterances"] += 1
        self._move(TRIGGER_STOP_LISTENING)
        self._work_task = asyncio.create_task(
            self._run_inference(seq, text, context), name=f"oja-voice-infer-{seq}"
        )

    def _is_current(self, seq: int, kind: str) -> bool:
        return (
            seq == self._request_seq
            and self._inflight == kind
            and self._phase is Phase.PROCESSING
        )

    def _finish_work(self) -> None:
        self._inflight = None
        if self._work_task is asyncio.current_task():
            self._work_task = None
        if not self._panel_open:
            self._background_result = True

    def _discard_pending(self, reason: str) -> None:
        self._pending.discard(reason)
        message = self._phrase(FeedbackType.ACTION_CANCELLED)
        self._transcript.append_assistant(message)
        self._last_response = message

    async def _stop_capture_locked(self) -> None:
        task, self._capture_task = self._capture_task, None
        if task is None:
            return
        if task is not asyncio.current_task() and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self._input is not None:
            await self._input.stop_capture()

    async def _reset_locked(self) -> None:
        await self._stop_capture_locked()
        self._pending.discard("conversation reset")
        self._transcript.clear()
        self._live_transcript = ""
        self._partial = ""
        self._last_response = ""
        self._last_error = None
        self._last_error_kind = None
        self._background_result = False
        # In-flight work keeps running but its result no longer matches.
        self._request_seq += 1
        self._inflight = None
        self._work_task = None
        self._move(TRIGGER_RESET)

    def _fail(
        self,
        trigger: str,
        error: AssistantError,
        *,
        message: Optional[str] = None,
        log: bool = True,
    ) -> None:
        if log:
            error.log()
        self._last_error = message or error.message
        self._last_error_kind = error.kind
        self._stats["errors"] += 1
        self._move(trigger)

    def _move(self, trigger: str) -> None:
        old = self._phase
        new = self._table.require(old, trigger)
        if new is old:
            return
        self._phase = new
        self._transitions.append({
            "from": old.value,
            "to": new.value,
            "trigger": trigger,
            "timestamp": datetime.now().isoformat(),
        })
        if len(self._transitions) > self._config.max_transition_history:
            self._transitions = self._transitions[-self._config.max_transition_history:]
        logger.debug("[session] %s → %s (trigger: %s)", old.value, new.value, trigger)

    def _phrase(self, feedback_type: FeedbackType) -> str:
        if self._config.vary_feedback:
            return self._feedback.get_random(feedback_type)
        return self._feedback.get(feedback_type)

    def _snapshot(self) -> SessionState:
        return SessionState(
            phase=self._phase,
            is_listening=self._phase is Phase.LISTENING,
            is_processing=self._phase is Phase.PROCESSING,
            live_transcript=self._live_transcript,
            partial_transcript=self._partial,
            last_response_text=self._last_response,
            pending_action=self._pending.current,
            last_error=self._last_error,
            last_error_kind=self._last_error_kind,
            history=self._transcript.snapshot(),
            is_panel_open=self._panel_open,
            request_seq=self._request_seq,
        )

    def _commit(self) -> SessionState:
        self._state = self._snapshot()
        return self._state

    # ── outside the lock ──────────────────────────────────────────

    async def _notify(self, state: SessionState) -> None:
        for listener in list(self._listeners):
            try:
                result = listener(state)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error("Error in state listener: %s", e)

    async def _speak(self, text: str) -> None:
        if not text or self._speaker is None or not self._config.speak_responses:
            return
        if not self._panel_open:
            return
        try:
            await self._speaker.speak(text)
        except Exception as e:
            logger.warning("[session] speaker failed: %s", e)
