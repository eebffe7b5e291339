from __future__ import annotations

"""Time-boxed rate cache.

Purpose:
    Remember rates per ordered currency pair for a configurable TTL so repeated
    renders of the same pair do not re-spend API quota.

Design:
    - Key is the ordered pair (from, to); A->B and B->A are independent entries
      because each may come from a different source.
    - Staleness is checked at read time; there is no sweeper. ``purge_expired``
      exists for callers that want to reclaim memory explicitly.
    - Size is bounded; the oldest entry is evicted once ``max_entries`` is hit.
    - A plain mutex guards the map. get/put never suspend, so this is safe from
      both asyncio tasks and threads.
"""
from dataclasses import dataclass
from datetime import timedelta
import logging
import threading
from typing import Dict, Optional, Tuple

from tuition_fx.models.constants import RateSource
from tuition_fx.models.rates import CacheStats, RateEntry
from .base import Clock, utcnow

logger = logging.getLogger("tuition_fx.rates.cache")

CacheKey = Tuple[str, str]

DEFAULT_TTL_MS = 300_000
DEFAULT_MAX_ENTRIES = 100


def cache_key(from_currency: str, to_currency: str) -> CacheKey:
    return (str(from_currency).upper(), str(to_currency).upper())


@dataclass
class _Counters:
    hits: int = 0
    misses: int = 0


class RateCache:
    """TTL-bound map of (from, to) -> RateEntry."""

    def __init__(
        self,
        ttl_ms: int = DEFAULT_TTL_MS,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Clock = utcnow,
    ):
        if ttl_ms <= 0:
            raise ValueError("cache ttl must be positive milliseconds")
        if max_entries <= 0:
            raise ValueError("cache max_entries must be positive")
        self._ttl_ms = ttl_ms
        self._ttl = timedelta(milliseconds=ttl_ms)
        self._max_entries = max_entries
        self._clock = clock
        self._entries: Dict[CacheKey, RateEntry] = {}
        self._counters = _Counters()
        self._lock = threading.Lock()

    @property
    def ttl_ms(self) -> int:
        return self._ttl_ms

    # Internal --------------------------------------------------
    def _is_entry_valid(self, entry: RateEntry) -> bool:
        return self._clock() - entry.obtained_at < self._ttl

    def _evict_oldest(self) -> None:
        oldest = min(self._entries, key=lambda k: self._entries[k].obtained_at)
        self._entries.pop(oldest, None)
        logger.debug("evicted oldest cache entry %s->%s", *oldest)

    # Public API -----------------------------------------------
    def get(self, from_currency: str, to_currency: str) -> Optional[RateEntry]:
        key = cache_key(from_currency, to_currency)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._is_entry_valid(entry):
                self._counters.hits += 1
                return entry
            self._counters.misses += 1
            return None

    def put(
        self,
        from_currency: str,
        to_currency: str,
        rate: float,
        source: RateSource = RateSource.API,
    ) -> RateEntry:
        key = cache_key(from_currency, to_currency)
        with self._lock:
            now = self._clock()
            previous = self._entries.get(key)
            if previous is not None and previous.obtained_at > now:
                # keep obtained_at non-decreasing per key even if the clock steps back
                now = previous.obtained_at
            entry = RateEntry(
                from_currency=key[0],
                to_currency=key[1],
                rate=rate,
                source=source,
                obtained_at=now,
            )
            if previous is None and len(self._entries) >= self._max_entries:
                self._evict_oldest()
            self._entries[key] = entry
            return entry

    def purge_expired(self) -> int:
        with self._lock:
            expired = [k for k, v in self._entries.items() if not self._is_entry_valid(v)]
            for k in expired:
                self._entries.pop(k, None)
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._counters = _Counters()

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                entries=len(self._entries),
                hits=self._counters.hits,
                misses=self._counters.misses,
                ttl_ms=self._ttl_ms,
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
