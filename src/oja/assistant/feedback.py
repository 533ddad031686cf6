"""
Feedback phrases for the voice assistant.

Fixed user-facing wording the core produces itself (everything else comes
from inference):
- Action done: "Done!"
- Action cancelled: "Okay, I won't do that."
- Not heard / capture failed
- Inference failed / timed out
- Execution failed
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


# =============================================================================
# Feedback Type
# =============================================================================


class FeedbackType(Enum):
    """Types of feedback phrases."""

    ACTION_DONE = "action_done"
    ACTION_CANCELLED = "action_cancelled"
    NOT_HEARD = "not_heard"
    CAPTURE_FAILED = "capture_failed"
    INFERENCE_FAILED = "inference_failed"
    INFERENCE_TIMEOUT = "inference_timeout"
    EXECUTION_FAILED = "execution_failed"


# =============================================================================
# Feedback Phrase
# =============================================================================


@dataclass
class FeedbackPhrase:
    """A feedback phrase with metadata."""

    phrase: str
    feedback_type: FeedbackType
    language: str = "en"
    weight: float = 1.0  # for random selection

    def __post_init__(self):
        if self.weight <= 0:
            self.weight = 1.0


# =============================================================================
# Default Phrases
# =============================================================================

# First entry of each list is the primary phrase returned by get().
DEFAULT_PHRASES_EN: Dict[FeedbackType, List[str]] = {
    FeedbackType.ACTION_DONE: [
        "Done!",
        "All sorted.",
        "That's done.",
    ],
    FeedbackType.ACTION_CANCELLED: [
        "Okay, I won't do that.",
        "No problem, I've left it.",
        "Cancelled.",
    ],
    FeedbackType.NOT_HEARD: [
        "I didn't catch that. Try again?",
    ],
    FeedbackType.CAPTURE_FAILED: [
        "Couldn't hear you clearly. Tap the mic and try again?",
    ],
    FeedbackType.INFERENCE_FAILED: [
        "Something went wrong. Try again?",
        "I'm having trouble right now. You can still use the app normally!",
    ],
    FeedbackType.INFERENCE_TIMEOUT: [
        "That took too long. Try again in a moment?",
    ],
    FeedbackType.EXECUTION_FAILED: [
        "Couldn't complete that. Try again?",
    ],
}


def _base_language(language: str) -> str:
    """``en-GB`` → ``en``."""
    return language.split("-", 1)[0].split("_", 1)[0].lower()


# =============================================================================
# Feedback Registry
# =============================================================================


class FeedbackRegistry:
    """
    Registry for feedback phrases.

    ``get()`` is deterministic (primary phrase); ``get_random()`` does a
    weighted pick for variety.
    """

    def __init__(
        self,
        language: str = "en",
        load_defaults: bool = True,
        rng: Optional[random.Random] = None,
    ):
        self._language = _base_language(language)
        self._rng = rng or random.Random()
        self._phrases: Dict[FeedbackType, List[FeedbackPhrase]] = {
            ft: [] for ft in FeedbackType
        }

        if load_defaults:
            for feedback_type, phrases in DEFAULT_PHRASES_EN.items():
                for phrase in phrases:
                    self._phrases[feedback_type].append(
                        FeedbackPhrase(phrase=phrase, feedback_type=feedback_type, language="en")
                    )

    @property
    def language(self) -> str:
        return self._language

    def register(self, phrase: FeedbackPhrase) -> None:
        """Register a new phrase."""
        phrase.language = _base_language(phrase.language)
        self._phrases[phrase.feedback_type].append(phrase)

    def _candidates(self, feedback_type: FeedbackType, language: Optional[str]) -> List[FeedbackPhrase]:
        lang = _base_language(language) if language else self._language
        candidates = [p for p in self._phrases[feedback_type] if p.language == lang]
        # Fallback to any language
        return candidates or list(self._phrases[feedback_type])

    def get(self, feedback_type: FeedbackType, language: Optional[str] = None) -> str:
        """Primary phrase of the given type ("" when none is registered)."""
        candidates = self._candidates(feedback_type, language)
        return candidates[0].phrase if candidates else ""

    def get_random(self, feedback_type: FeedbackType, language: Optional[str] = None) -> str:
        """Weighted random phrase of the given type."""
        candidates = self._candidates(feedback_type, language)
        if not candidates:
            return ""

        weights = [p.weight for p in candidates]
        r = self._rng.uniform(0, sum(weights))
        cumulative = 0.0
        for phrase, weight in zip(candidates, weights):
            cumulative += weight
            if r <= cumulative:
                return phrase.phrase

        return candidates[-1].phrase

    def get_all(self, feedback_type: FeedbackType, language: Optional[str] = None) -> List[str]:
        if language:
            lang = _base_language(language)
            return [p.phrase for p in self._phrases[feedback_type] if p.language == lang]
        return [p.phrase for p in self._phrases[feedback_type]]

    def count(self, feedback_type: Optional[FeedbackType] = None) -> int:
        if feedback_type:
            return len(self._phrases[feedback_type])
        return sum(len(phrases) for phrases in self._phrases.values())
