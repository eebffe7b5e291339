from __future__ import annotations

"""Resilient rate resolution.

Order of attempts for a pair (short-circuits on the first success):

    1. same currency        -> rate 1 (fallback)
    2. circuit breaker      -> open: skip to 6
    3. quota reservation    -> denied: skip to 6
    4. connection probe     -> unhealthy: skip to 6
    5. provider call        -> retried with backoff inside the provider;
                               success is written to the cache as 'api'
    6. fresh cache entry    -> returned as 'cache'
    7. static table         -> always succeeds ('fallback')

``resolve_rate`` never raises. Identical pairs requested while a resolution is
already running share that task; cancelling one waiter leaves the shared task
running so its result still lands in the cache.

``resolve_many`` prices several targets against one base with a single
upstream call (one quota unit). Targets the bulk call did not price go
through ``resolve_rate`` individually.
"""
import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from tuition_fx.models.constants import RateSource, parse_currency
from tuition_fx.models.rates import RateEntry
from tuition_fx.services.http_client import HttpError
from .base import Clock, RateProvider, utcnow
from .breaker import CircuitBreaker
from .cache_service import CacheKey, RateCache, cache_key
from .quota import QuotaTracker
from .static_table import static_rate

logger = logging.getLogger("tuition_fx.rates.client")


def _normalize_code(code: object) -> str:
    """Enum members collapse to their value; unknown strings pass through upper-cased."""
    parsed = parse_currency(code)
    if parsed is not None:
        return parsed.value
    return str(code or "").strip().upper()


def _pair(src: str, dst: str, source: RateSource) -> Dict[str, str]:
    return {"from_currency": src, "to_currency": dst, "rate_source": source.value}


class ResilientRateClient:
    def __init__(
        self,
        provider: RateProvider,
        cache: RateCache,
        quota: QuotaTracker,
        *,
        breaker: Optional[CircuitBreaker] = None,
        prefer_cache: bool = False,
        clock: Clock = utcnow,
    ):
        self._provider = provider
        self._cache = cache
        self._quota = quota
        self._breaker = breaker or CircuitBreaker(clock=clock)
        self._prefer_cache = prefer_cache
        self._clock = clock
        self._inflight: Dict[CacheKey, asyncio.Task[RateEntry]] = {}

    @property
    def cache(self) -> RateCache:
        return self._cache

    @property
    def quota(self) -> QuotaTracker:
        return self._quota

    @property
    def breaker(self) -> CircuitBreaker:
        return self._breaker

    # Public API -----------------------------------------------
    async def resolve_rate(self, from_currency: object, to_currency: object) -> RateEntry:
        src = _normalize_code(from_currency)
        dst = _normalize_code(to_currency)
        if src == dst:
            return self._synthetic(src, dst, 1.0)

        key = cache_key(src, dst)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._resolve_guarded(src, dst))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._forget(k, t))
        else:
            logger.debug("joining in-flight resolution %s->%s", src, dst)
        return await asyncio.shield(task)

    async def resolve_many(
        self, from_currency: object, targets: Iterable[object]
    ) -> Dict[str, RateEntry]:
        src = _normalize_code(from_currency)
        codes = list(dict.fromkeys(_normalize_code(t) for t in targets))
        found: Dict[str, RateEntry] = {}

        bulk = [c for c in codes if c != src and parse_currency(c) is not None]
        if parse_currency(src) is not None and len(bulk) > 1:
            if self._prefer_cache:
                for code in bulk:
                    cached = self._from_cache(src, code)
                    if cached is not None:
                        found[code] = cached
                bulk = [c for c in bulk if c not in found]
            if len(bulk) > 1:
                try:
                    found.update(await self._try_live_bulk(src, bulk))
                except Exception:
                    logger.exception("bulk rate lookup failed for %s; resolving per pair", src)

        rest = [c for c in codes if c not in found]
        entries = await asyncio.gather(*(self.resolve_rate(src, c) for c in rest))
        found.update(zip(rest, entries))
        return {c: found[c] for c in codes}

    def resolve_static(self, from_currency: object, to_currency: object) -> RateEntry:
        src = _normalize_code(from_currency)
        dst = _normalize_code(to_currency)
        return self._synthetic(src, dst, static_rate(src, dst))

    async def aclose(self) -> None:
        pending = [t for t in self._inflight.values() if not t.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        await self._provider.aclose()

    # Internal --------------------------------------------------
    def _forget(self, key: CacheKey, task: "asyncio.Task[RateEntry]") -> None:
        if self._inflight.get(key) is task:
            self._inflight.pop(key, None)

    def _synthetic(self, src: str, dst: str, rate: float) -> RateEntry:
        return RateEntry(
            from_currency=src,
            to_currency=dst,
            rate=rate,
            source=RateSource.FALLBACK,
            obtained_at=self._clock(),
        )

    def _from_cache(self, src: str, dst: str) -> Optional[RateEntry]:
        hit = self._cache.get(src, dst)
        if hit is None:
            return None
        return hit.model_copy(update={"source": RateSource.CACHE})

    async def _resolve_guarded(self, src: str, dst: str) -> RateEntry:
        try:
            return await self._resolve(src, dst)
        except Exception:
            logger.exception("rate pipeline failed for %s->%s; using static table", src, dst)
            return self.resolve_static(src, dst)

    async def _resolve(self, src: str, dst: str) -> RateEntry:
        cached = self._from_cache(src, dst) if self._prefer_cache else None
        if cached is not None:
            return cached

        live = await self._try_live(src, dst)
        if live is not None:
            return live

        if not self._prefer_cache:
            cached = self._from_cache(src, dst)
        if cached is not None:
            logger.info("serving cached rate %s->%s", src, dst, extra=_pair(src, dst, RateSource.CACHE))
            return cached

        logger.info(
            "serving static fallback rate %s->%s", src, dst, extra=_pair(src, dst, RateSource.FALLBACK)
        )
        return self.resolve_static(src, dst)

    async def _live_allowed(self, label: str) -> bool:
        """Breaker, quota and probe gates shared by single and bulk lookups."""
        if not self._breaker.allow():
            logger.info("rate provider breaker open; %s demoted", label)
            return False
        if not self._quota.try_reserve():
            logger.info("api quota exhausted; %s demoted", label)
            return False
        health = await self._provider.probe()
        if not health.is_healthy:
            logger.warning("rate provider unreachable (%s); %s demoted", health.error, label)
            return False
        return True

    async def _try_live(self, src: str, dst: str) -> Optional[RateEntry]:
        if parse_currency(src) is None or parse_currency(dst) is None:
            logger.warning("unsupported currency pair %s->%s; skipping live lookup", src, dst)
            return None
        if not await self._live_allowed(f"{src}->{dst}"):
            return None
        try:
            quote = await self._provider.fetch_rate(src, dst)
        except HttpError as e:
            self._breaker.record_failure()
            logger.warning("live rate lookup failed for %s->%s: %s", src, dst, e)
            return None
        self._breaker.record_success()
        logger.info("live rate %s->%s", src, dst, extra=_pair(src, dst, RateSource.API))
        return self._cache.put(src, dst, quote.rate, RateSource.API)

    async def _try_live_bulk(self, src: str, targets: List[str]) -> Dict[str, RateEntry]:
        if not await self._live_allowed(f"{src}->{','.join(targets)}"):
            return {}
        try:
            quotes = await self._provider.fetch_rates(src, targets)
        except HttpError as e:
            self._breaker.record_failure()
            logger.warning("bulk rate lookup failed for %s: %s", src, e)
            return {}
        self._breaker.record_success()
        return {
            code: self._cache.put(src, code, quote.rate, RateSource.API)
            for code, quote in quotes.items()
            if code in targets
        }
