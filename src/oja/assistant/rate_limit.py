"""Voice request limiter.

Two gates in front of every inference call:

- throttle: at most one accepted request per ``min_interval_s``
- daily cap: at most ``daily_limit`` accepted requests per calendar day

The daily count can be persisted to a small JSON file so it survives app
restarts. Storage problems never block a request.
"""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import date
from pathlib import Path
from typing import Callable, Optional

from oja.assistant.exceptions import RateLimited

logger = logging.getLogger(__name__)

__all__ = [
    "RequestLimiter",
    "THROTTLE_MESSAGE",
    "DAILY_LIMIT_MESSAGE",
]

THROTTLE_MESSAGE = "Give me a moment before your next question."
DAILY_LIMIT_MESSAGE = "I've reached my daily limit. I'll be back tomorrow, check the app for now!"


class RequestLimiter:
    """Throttle plus daily cap for inference requests. Thread-safe.

    Args:
        min_interval_s: Minimum seconds between accepted requests (0 = off).
        daily_limit: Accepted requests per day (0 = unlimited).
        clock: Monotonic clock, injectable for tests.
        today: Date provider, injectable for tests.
        usage_path: Optional JSON file for the daily counter.
    """

    def __init__(
        self,
        *,
        min_interval_s: float = 6.0,
        daily_limit: int = 200,
        clock: Optional[Callable[[], float]] = None,
        today: Optional[Callable[[], date]] = None,
        usage_path: Optional[str] = None,
    ):
        self._min_interval_s = max(0.0, float(min_interval_s))
        self._daily_limit = max(0, int(daily_limit))
        self._clock = clock or time.monotonic
        self._today = today or date.today
        self._usage_path = Path(usage_path) if usage_path else None
        self._lock = threading.Lock()

        self._last_accepted: Optional[float] = None
        self._current_date = self._today().isoformat()
        self._daily_count = 0
        self._load()

    @property
    def daily_count(self) -> int:
        with self._lock:
            self._maybe_reset()
            return self._daily_count

    @property
    def daily_remaining(self) -> Optional[int]:
        """Requests left today, or None when there is no daily cap."""
        if not self._daily_limit:
            return None
        return max(0, self._daily_limit - self.daily_count)

    def check(self) -> None:
        """Accept one request or raise ``RateLimited``.

        Only accepted requests move the throttle window and the daily count.
        """
        with self._lock:
            now = self._clock()
            if self._min_interval_s and self._last_accepted is not None:
                elapsed = now - self._last_accepted
                if elapsed < self._min_interval_s:
                    retry_after = self._min_interval_s - elapsed
                    logger.debug("[limit] throttled, retry in %.1fs", retry_after)
                    raise RateLimited(THROTTLE_MESSAGE, retry_after=retry_after)

            self._maybe_reset()
            if self._daily_limit and self._daily_count >= self._daily_limit:
                logger.info("[limit] daily limit of %d reached", self._daily_limit)
                raise RateLimited(DAILY_LIMIT_MESSAGE, daily=True)

            self._daily_count += 1
            self._last_accepted = now
            self._save()

    def reset(self) -> None:
        """Forget the throttle window and today's count."""
        with self._lock:
            self._last_accepted = None
            self._daily_count = 0
            self._save()

    # ── internals (caller holds _lock, except _load in __init__) ─────

    def _maybe_reset(self) -> None:
        today = self._today().isoformat()
        if today != self._current_date:
            self._current_date = today
            self._daily_count = 0
            logger.info("[limit] daily counter reset for %s", today)

    def _load(self) -> None:
        if self._usage_path is None or not self._usage_path.exists():
            return
        try:
            data = json.loads(self._usage_path.read_text(encoding="utf-8"))
            if data.get("date") == self._current_date:
                self._daily_count = int(data.get("count", 0))
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.warning("[limit] could not read usage file %s: %s", self._usage_path, e)

    def _save(self) -> None:
        if self._usage_path is None:
            return
        try:
            self._usage_path.parent.mkdir(parents=True, exist_ok=True)
            self._usage_path.write_text(
                json.dumps({"date": self._current_date, "count": self._daily_count}),
                encoding="utf-8",
            )
        except OSError as e:
            logger.warning("[limit] could not write usage file %s: %s", self._usage_path, e)
