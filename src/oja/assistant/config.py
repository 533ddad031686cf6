"""Voice assistant configuration.

Config env vars::

    OJA_VOICE_INFERENCE_TIMEOUT_S=30
    OJA_VOICE_EXECUTION_TIMEOUT_S=15
    OJA_VOICE_MAX_CONTEXT_MESSAGES=12
    OJA_VOICE_MIN_REQUEST_INTERVAL_S=6
    OJA_VOICE_DAILY_LIMIT=200
    OJA_VOICE_TTS=true
    OJA_VOICE_LANGUAGE=en-GB
    OJA_VOICE_USAGE_PATH=~/.cache/oja/voice_usage.json
    OJA_VOICE_BACKEND_URL=https://...
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

__all__ = ["AssistantConfig"]


@dataclass
class AssistantConfig:
    """Session configuration.

    Attributes
    ----------
    inference_timeout_s:
        Upper bound on one inference call; expiry is an inference failure.
    execution_timeout_s:
        Upper bound on one confirmed-action execution.
    max_context_messages:
        History messages sent with each inference call (12 = 6 turns).
    min_request_interval_s:
        Minimum spacing between accepted inference requests. 0 disables.
    daily_request_limit:
        Accepted inference requests per calendar day. 0 disables.
    speak_responses:
        Hand assistant replies to the Speaker when one is configured.
    vary_feedback:
        Pick acknowledgment phrases at random instead of the primary one.
    """

    inference_timeout_s: float = 30.0
    execution_timeout_s: float = 15.0
    max_context_messages: int = 12
    min_request_interval_s: float = 6.0
    daily_request_limit: int = 200
    speak_responses: bool = True
    vary_feedback: bool = False
    language: str = "en-GB"
    usage_path: Optional[str] = None
    backend_url: Optional[str] = None
    max_transition_history: int = 100

    @classmethod
    def from_env(cls) -> "AssistantConfig":
        """Load config from environment variables."""
        def _float(name: str, default: float) -> float:
            raw = os.getenv(name, "").strip()
            if not raw:
                return default
            try:
                return float(raw)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", name, raw)
                return default

        def _int(name: str, default: int) -> int:
            raw = os.getenv(name, "").strip()
            if not raw:
                return default
            try:
                return int(raw)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", name, raw)
                return default

        def _bool(name: str, default: bool) -> bool:
            raw = os.getenv(name, "").strip().lower()
            if not raw:
                return default
            return raw in {"1", "true", "yes", "on"}

        def _str(name: str) -> Optional[str]:
            raw = os.getenv(name, "").strip()
            return raw or None

        usage_path = _str("OJA_VOICE_USAGE_PATH")
        return cls(
            inference_timeout_s=_float("OJA_VOICE_INFERENCE_TIMEOUT_S", 30.0),
            execution_timeout_s=_float("OJA_VOICE_EXECUTION_TIMEOUT_S", 15.0),
            max_context_messages=_int("OJA_VOICE_MAX_CONTEXT_MESSAGES", 12),
            min_request_interval_s=_float("OJA_VOICE_MIN_REQUEST_INTERVAL_S", 6.0),
            daily_request_limit=_int("OJA_VOICE_DAILY_LIMIT", 200),
            speak_responses=_bool("OJA_VOICE_TTS", True),
            vary_feedback=_bool("OJA_VOICE_VARY_FEEDBACK", False),
            language=_str("OJA_VOICE_LANGUAGE") or "en-GB",
            usage_path=os.path.expanduser(usage_path) if usage_path else None,
            backend_url=_str("OJA_VOICE_BACKEND_URL"),
        )
