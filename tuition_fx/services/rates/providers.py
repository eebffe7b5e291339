from __future__ import annotations

"""Concrete rate providers and factory.

'external-http' calls an exchangerate.host style endpoint
(``GET {base}/latest?base=FROM&symbols=TO[,TO2...]``). 'disabled' never touches
the network, which leaves the resolver running on cache + static fallback only.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Sequence

import httpx

from tuition_fx.core.config import Settings
from tuition_fx.models.rates import ConnectionHealth
from tuition_fx.services.http_client import HttpError, Sleep, get_json, probe
from .base import ProviderQuote, RateProvider

logger = logging.getLogger("tuition_fx.rates.providers")


class ExternalHTTPRateProvider(RateProvider):
    name = "external-http"

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        health_timeout: float = 1.5,
        attempts: int = 3,
        backoff: float = 1.0,
        sleep: Optional[Sleep] = None,
    ):
        self._client = client
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._health_timeout = health_timeout
        self._attempts = attempts
        self._backoff = backoff
        self._sleep = sleep

    @property
    def latest_url(self) -> str:
        return f"{self._base_url}/latest"

    async def _latest(
        self, base: str, symbols: Sequence[str], validate: Callable[[Dict[str, Any]], Any]
    ) -> Any:
        params: Dict[str, Any] = {"base": base, "symbols": ",".join(symbols)}
        if self._api_key:
            params["access_key"] = self._api_key
        kwargs: Dict[str, Any] = {}
        if self._sleep is not None:
            kwargs["sleep"] = self._sleep
        return await get_json(
            self._client,
            self.latest_url,
            params=params,
            timeout=self._timeout,
            attempts=self._attempts,
            backoff=self._backoff,
            validate=validate,
            **kwargs,
        )

    async def fetch_rate(self, from_currency: str, to_currency: str) -> ProviderQuote:  # type: ignore[override]
        return await self._latest(
            from_currency, [to_currency], lambda data: parse_quote(data, to_currency)
        )

    async def fetch_rates(self, base: str, targets: Sequence[str]) -> Dict[str, ProviderQuote]:  # type: ignore[override]
        return await self._latest(base, targets, lambda data: parse_quotes(data, targets))

    async def probe(self) -> ConnectionHealth:  # type: ignore[override]
        return await probe(self._client, self._base_url, timeout=self._health_timeout)


class DisabledRateProvider(RateProvider):
    name = "disabled"

    async def fetch_rate(self, from_currency: str, to_currency: str) -> ProviderQuote:  # type: ignore[override]
        raise HttpError("live rates disabled")

    async def fetch_rates(self, base: str, targets: Sequence[str]) -> Dict[str, ProviderQuote]:  # type: ignore[override]
        raise HttpError("live rates disabled")

    async def probe(self) -> ConnectionHealth:  # type: ignore[override]
        return ConnectionHealth(is_healthy=False, error="live rates disabled")


def _rates_object(data: Dict[str, Any]) -> Dict[str, Any]:
    if data.get("success") is False:
        err = data.get("error")
        info = err.get("info") if isinstance(err, dict) else err
        raise HttpError(f"provider rejected request: {info or 'unknown error'}")
    rates = data.get("rates")
    if not isinstance(rates, dict):
        raise HttpError("payload has no 'rates' object")
    return rates


def _usable_rate(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return float(value)


def parse_quote(data: Dict[str, Any], to_currency: str) -> ProviderQuote:
    """Extract ``rates[to_currency]`` from a provider payload.

    A payload that reports ``success: false`` or lacks a finite positive
    numeric rate is malformed and therefore retryable.
    """
    value = _rates_object(data).get(to_currency)
    rate = _usable_rate(value)
    if rate is None:
        raise HttpError(f"no usable rate for {to_currency}: {value!r}")
    return ProviderQuote(rate=rate, provider_timestamp=_parse_timestamp(data.get("timestamp")))


def parse_quotes(data: Dict[str, Any], targets: Sequence[str]) -> Dict[str, ProviderQuote]:
    """Bulk variant of ``parse_quote``: unusable entries are dropped, none usable is an error."""
    rates = _rates_object(data)
    stamp = _parse_timestamp(data.get("timestamp"))
    quotes: Dict[str, ProviderQuote] = {}
    for target in targets:
        rate = _usable_rate(rates.get(target))
        if rate is None:
            logger.warning("bulk payload has no usable rate for %s: %r", target, rates.get(target))
            continue
        quotes[target] = ProviderQuote(rate=rate, provider_timestamp=stamp)
    if not quotes:
        raise HttpError(f"no usable rates for {','.join(targets)}")
    return quotes


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        return datetime.fromtimestamp(value, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def _make_external_http(
    settings: Settings, client: httpx.AsyncClient, sleep: Optional[Sleep]
) -> RateProvider:
    return ExternalHTTPRateProvider(
        client,
        str(settings.exchange_api_base_url),
        api_key=settings.exchange_api_key,
        timeout=settings.request_timeout_ms / 1000,
        health_timeout=settings.health_timeout_ms / 1000,
        attempts=settings.retry_attempts,
        backoff=settings.retry_base_delay_ms / 1000,
        sleep=sleep,
    )


def _make_disabled(
    settings: Settings, client: httpx.AsyncClient, sleep: Optional[Sleep]
) -> RateProvider:
    return DisabledRateProvider()


_PROVIDER_REGISTRY: Dict[
    str, Callable[[Settings, httpx.AsyncClient, Optional[Sleep]], RateProvider]
] = {
    "external-http": _make_external_http,
    "disabled": _make_disabled,
}


def make_rate_provider(
    kind: str,
    settings: Settings,
    client: httpx.AsyncClient,
    sleep: Optional[Sleep] = None,
) -> RateProvider:
    factory = _PROVIDER_REGISTRY.get(kind)
    if not factory:
        raise ValueError(f"Unknown rate provider kind '{kind}'")
    provider = factory(settings, client, sleep)
    logger.debug("rate provider selected: %s", provider.name)
    return provider
