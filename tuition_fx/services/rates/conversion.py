from __future__ import annotations

"""Conversion / formatting facade.

The only surface the rest of the application uses. Two flavours of every
operation:

    - sync (``convert``, ``format``, ``display_tuition_static``): static table
      only, no I/O, safe inside sorting keys or template filters;
    - async (``convert_async``, ``format_async``, ``display_tuition``): full
      resolver pipeline (live -> cache -> static).

Every method returns something renderable. Network trouble, spent quota and
unknown countries/currencies degrade the answer, never raise.
"""
from datetime import timedelta
import logging
from typing import Dict, Iterable, Optional

import httpx

from tuition_fx.core.config import Settings
from tuition_fx.models.constants import CurrencyCode, RateSource, coerce_currency
from tuition_fx.models.rates import CacheStats, QuotaState, RateEntry
from tuition_fx.models.tuition import ConversionResult, TuitionDisplay
from tuition_fx.services.http_client import Sleep
from tuition_fx.services.money import is_positive_amount, round2, round_whole
from .base import Clock, utcnow
from .breaker import BreakerState, CircuitBreaker
from .cache_service import RateCache
from .client import ResilientRateClient
from .countries import currency_for
from .providers import make_rate_provider
from .quota import QuotaTracker
from .static_table import CurrencyLike, format_amount, format_compact, static_rate

logger = logging.getLogger("tuition_fx.rates.conversion")

FEE_NOT_SPECIFIED = "Fee not specified"
APPROX_PREFIX = "≈ "


def _display_code(currency: CurrencyLike) -> CurrencyLike:
    """Known codes become enum members; unknown strings are kept for passthrough formatting."""
    try:
        return CurrencyCode(str(getattr(currency, "value", currency)).strip().upper())
    except ValueError:
        return currency


class CurrencyFacade:
    def __init__(
        self,
        client: ResilientRateClient,
        *,
        home_currency: CurrencyLike = CurrencyCode.NGN,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._client = client
        self._home = coerce_currency(home_currency)
        # closed on aclose when the facade created it
        self._http_client = http_client

    @property
    def home_currency(self) -> CurrencyCode:
        return self._home

    # Conversion ------------------------------------------------
    def convert(self, amount: float, from_currency: CurrencyLike, to_currency: CurrencyLike) -> float:
        if not is_positive_amount(amount):
            return 0.0
        return round2(amount * static_rate(from_currency, to_currency))

    async def convert_async(
        self, amount: float, from_currency: CurrencyLike, to_currency: CurrencyLike
    ) -> float:
        result = await self.convert_detailed(amount, from_currency, to_currency)
        return result.converted_amount

    async def convert_detailed(
        self, amount: float, from_currency: CurrencyLike, to_currency: CurrencyLike
    ) -> ConversionResult:
        if not is_positive_amount(amount):
            return self.convert_static(amount, from_currency, to_currency)
        entry = await self._client.resolve_rate(from_currency, to_currency)
        return self._result(float(amount), entry, round2(amount * entry.rate))

    def convert_static(
        self, amount: float, from_currency: CurrencyLike, to_currency: CurrencyLike
    ) -> ConversionResult:
        """Static-table ``ConversionResult`` with the same normalized codes as the live path."""
        entry = self._client.resolve_static(from_currency, to_currency)
        if not is_positive_amount(amount):
            return self._result(0.0, entry, 0.0)
        return self._result(float(amount), entry, round2(amount * entry.rate))

    async def convert_to_multiple(
        self, amount: float, from_currency: CurrencyLike, targets: Iterable[CurrencyLike]
    ) -> Dict[str, ConversionResult]:
        """One bulk rate lookup for all targets, keyed by normalized target code."""
        if not is_positive_amount(amount):
            static = (self.convert_static(amount, from_currency, t) for t in targets)
            return {r.to_currency: r for r in static}
        entries = await self._client.resolve_many(from_currency, targets)
        return {
            code: self._result(float(amount), entry, round2(amount * entry.rate))
            for code, entry in entries.items()
        }

    @staticmethod
    def _result(amount: float, entry: RateEntry, converted: float) -> ConversionResult:
        return ConversionResult(
            original_amount=amount,
            from_currency=entry.from_currency,
            to_currency=entry.to_currency,
            rate=entry.rate,
            converted_amount=converted,
            source=str(entry.source),
        )

    # Formatting ------------------------------------------------
    def format(self, amount: float, currency: CurrencyLike) -> str:
        try:
            return format_amount(_display_code(currency), amount)
        except Exception:
            logger.exception("formatting failed for %r %r", amount, currency)
            return f"{amount} {currency}"

    async def format_async(
        self,
        amount: float,
        currency: CurrencyLike,
        convert_to: Optional[CurrencyLike] = None,
    ) -> str:
        """With ``convert_to`` renders ``<converted> (<original, compact>)``."""
        if convert_to is None or coerce_currency(convert_to) == coerce_currency(currency):
            return self.format(amount, currency)
        converted = await self.convert_async(amount, currency, convert_to)
        return f"{self.format(converted, convert_to)} ({format_compact(_display_code(currency), amount)})"

    # Tuition display -------------------------------------------
    def display_tuition_static(
        self, amount: float, country_name: Optional[str], show_conversion: bool = True
    ) -> TuitionDisplay:
        native = currency_for(country_name)
        if not is_positive_amount(amount):
            return self._no_fee(native)
        secondary = None
        if show_conversion and native != self._home:
            converted = round_whole(amount * static_rate(native, self._home))
            secondary = APPROX_PREFIX + self.format(converted, self._home)
        return TuitionDisplay(
            primary=self.format(amount, native),
            secondary=secondary,
            is_real_time=False,
            currency=native.value,
            is_home_currency=native == self._home,
        )

    async def display_tuition(
        self, amount: float, country_name: Optional[str], show_conversion: bool = True
    ) -> TuitionDisplay:
        try:
            return await self._display_tuition(amount, country_name, show_conversion)
        except Exception:
            logger.exception("tuition display failed for %r in %r", amount, country_name)
            try:
                return self.display_tuition_static(amount, country_name, show_conversion)
            except Exception:
                logger.exception("static tuition display failed for %r in %r", amount, country_name)
                return TuitionDisplay(
                    primary=f"{amount} ({country_name})", currency=CurrencyCode.USD.value
                )

    async def _display_tuition(
        self, amount: float, country_name: Optional[str], show_conversion: bool
    ) -> TuitionDisplay:
        native = currency_for(country_name)
        if not is_positive_amount(amount):
            return self._no_fee(native)
        primary = self.format(amount, native)
        if not show_conversion or native == self._home:
            return TuitionDisplay(
                primary=primary,
                currency=native.value,
                is_home_currency=native == self._home,
            )
        entry = await self._client.resolve_rate(native, self._home)
        converted = round_whole(amount * entry.rate)
        return TuitionDisplay(
            primary=primary,
            secondary=APPROX_PREFIX + self.format(converted, self._home),
            is_real_time=entry.source is RateSource.API,
            currency=native.value,
        )

    @staticmethod
    def _no_fee(native: CurrencyCode) -> TuitionDisplay:
        return TuitionDisplay(primary=FEE_NOT_SPECIFIED, currency=native.value)

    # Diagnostics -----------------------------------------------
    def quota_status(self) -> QuotaState:
        return self._client.quota.snapshot()

    def breaker_state(self) -> BreakerState:
        return self._client.breaker.state

    def cache_stats(self) -> CacheStats:
        return self._client.cache.stats()

    def clear_cache(self) -> None:
        self._client.cache.clear()
        logger.info("rate cache cleared")

    async def aclose(self) -> None:
        await self._client.aclose()
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()


def build_facade(
    settings: Settings,
    *,
    http_client: Optional[httpx.AsyncClient] = None,
    clock: Clock = utcnow,
    sleep: Optional[Sleep] = None,
) -> CurrencyFacade:
    """Wire provider, cache, quota and resolver into the single shared facade.

    When ``http_client`` is omitted one is created here and closed by
    ``CurrencyFacade.aclose``.
    """
    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(headers={"Accept": "application/json"})
    provider = make_rate_provider(settings.exchange_rate_provider, settings, client, sleep)
    cache = RateCache(settings.cache_ttl_ms, max_entries=settings.cache_max_entries, clock=clock)
    quota = QuotaTracker(
        settings.quota_limit, timedelta(seconds=settings.quota_window_seconds), clock=clock
    )
    breaker = CircuitBreaker(
        settings.breaker_failure_threshold,
        timedelta(seconds=settings.breaker_reset_seconds),
        clock=clock,
    )
    resolver = ResilientRateClient(
        provider,
        cache,
        quota,
        breaker=breaker,
        prefer_cache=settings.prefer_cache,
        clock=clock,
    )
    return CurrencyFacade(
        resolver,
        home_currency=settings.home_currency,
        http_client=client if owns_client else None,
    )
