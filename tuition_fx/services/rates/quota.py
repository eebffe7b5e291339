"""API quota tracking.

Counts live calls inside a fixed window (default 24h). ``try_reserve`` is the
only way to spend budget and is a single check-and-increment under a lock, so
concurrent callers can never jointly overshoot ``limit``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
import logging
import threading

from tuition_fx.models.rates import QuotaState
from .base import Clock, utcnow

logger = logging.getLogger("tuition_fx.rates.quota")


class QuotaTracker:
    def __init__(
        self,
        limit: int = 100,
        window: timedelta = timedelta(hours=24),
        *,
        clock: Clock = utcnow,
    ):
        if limit <= 0:
            raise ValueError("quota limit must be positive")
        if window <= timedelta(0):
            raise ValueError("quota window must be positive")
        self._limit = limit
        self._window = window
        self._clock = clock
        self._used = 0
        self._window_reset_at: datetime = clock() + window
        self._lock = threading.Lock()

    def _reset_locked(self, now: datetime) -> None:
        if now < self._window_reset_at:
            return
        elapsed_windows = (now - self._window_reset_at) // self._window + 1
        self._window_reset_at += self._window * elapsed_windows
        if self._used:
            logger.info("quota window elapsed; %d calls released", self._used)
        self._used = 0

    def reset_if_window_elapsed(self) -> None:
        with self._lock:
            self._reset_locked(self._clock())

    def try_reserve(self) -> bool:
        with self._lock:
            self._reset_locked(self._clock())
            if self._used >= self._limit:
                return False
            self._used += 1
            return True

    def remaining(self) -> int:
        with self._lock:
            self._reset_locked(self._clock())
            return max(0, self._limit - self._used)

    def snapshot(self) -> QuotaState:
        with self._lock:
            self._reset_locked(self._clock())
            return QuotaState(
                used=self._used, limit=self._limit, window_reset_at=self._window_reset_at
            )
