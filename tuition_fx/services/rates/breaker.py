"""Circuit breaker for the live rate provider.

CLOSED counts consecutive fetch failures; at ``failure_threshold`` it turns
OPEN and every live lookup is skipped without touching quota until
``reset_timeout`` has passed. Then it goes HALF_OPEN: the next fetch decides,
success closes it and failure re-opens it for another ``reset_timeout``.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
import logging
import threading
from typing import Optional

from .base import Clock, utcnow

logger = logging.getLogger("tuition_fx.rates.breaker")


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __str__(self) -> str:
        return self.value


class CircuitBreaker:
    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: timedelta = timedelta(seconds=60),
        *,
        clock: Clock = utcnow,
    ):
        if failure_threshold <= 0:
            raise ValueError("breaker failure_threshold must be positive")
        if reset_timeout <= timedelta(0):
            raise ValueError("breaker reset_timeout must be positive")
        self._threshold = failure_threshold
        self._reset_timeout = reset_timeout
        self._clock = clock
        self._state = BreakerState.CLOSED
        self._failures = 0
        self._opened_at: Optional[datetime] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> BreakerState:
        with self._lock:
            self._maybe_half_open_locked()
            return self._state

    def _maybe_half_open_locked(self) -> None:
        if self._state is not BreakerState.OPEN or self._opened_at is None:
            return
        if self._clock() - self._opened_at >= self._reset_timeout:
            self._state = BreakerState.HALF_OPEN
            logger.info("rate provider breaker half-open", extra={"breaker": "half_open"})

    def allow(self) -> bool:
        return self.state is not BreakerState.OPEN

    def record_success(self) -> None:
        with self._lock:
            if self._state is not BreakerState.CLOSED:
                logger.info("rate provider breaker closed", extra={"breaker": "closed"})
            self._state = BreakerState.CLOSED
            self._failures = 0
            self._opened_at = None

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._state is BreakerState.HALF_OPEN or self._failures >= self._threshold:
                if self._state is not BreakerState.OPEN:
                    logger.warning(
                        "rate provider breaker open after %d consecutive failures",
                        self._failures,
                        extra={"breaker": "open"},
                    )
                self._state = BreakerState.OPEN
                self._opened_at = self._clock()
