"""Shared fixtures: a controllable clock, a fake rate API and stack builders."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from tuition_fx.core.config import Settings
from tuition_fx.services.rates.breaker import CircuitBreaker
from tuition_fx.services.rates.cache_service import RateCache
from tuition_fx.services.rates.client import ResilientRateClient
from tuition_fx.services.rates.conversion import CurrencyFacade
from tuition_fx.services.rates.providers import ExternalHTTPRateProvider
from tuition_fx.services.rates.quota import QuotaTracker

BASE_URL = "https://rates.test"


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeRateAPI:
    """MockTransport handler standing in for the exchange-rate provider.

    ``GET /latest`` answers with ``rates`` (default 1.5 for unknown pairs);
    anything else is treated as the health probe.
    """

    def __init__(
        self,
        rates: Optional[Dict[Tuple[str, str], float]] = None,
        *,
        fail_times: int = 0,
        fail_status: int = 503,
        healthy: bool = True,
        down: bool = False,
        latency: float = 0.0,
        unpriced: Tuple[str, ...] = (),
    ):
        self.rates = rates or {}
        self.fail_times = fail_times
        self.fail_status = fail_status
        self.healthy = healthy
        self.down = down
        self.latency = latency
        self.unpriced = set(unpriced)
        self.rate_calls = 0
        self.probe_calls = 0
        self.requests: List[httpx.Request] = []

    @property
    def total_calls(self) -> int:
        return self.rate_calls + self.probe_calls

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.down:
            raise httpx.ConnectError("network unreachable", request=request)
        if request.url.path != "/latest":
            self.probe_calls += 1
            return httpx.Response(200 if self.healthy else 503, json={"ok": self.healthy})
        self.rate_calls += 1
        if self.latency:
            await asyncio.sleep(self.latency)
        if self.fail_times > 0:
            self.fail_times -= 1
            return httpx.Response(self.fail_status, json={"success": False})
        base = request.url.params["base"]
        symbols = request.url.params["symbols"].split(",")
        payload = {
            "success": True,
            "base": base,
            "timestamp": 1735732800,
            "rates": {s: self.rates.get((base, s), 1.5) for s in symbols if s not in self.unpriced},
        }
        # json.dumps writes Infinity/NaN tokens, like a misbehaving upstream
        return httpx.Response(
            200, content=json.dumps(payload).encode(), headers={"Content-Type": "application/json"}
        )


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleeper() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def api() -> FakeRateAPI:
    return FakeRateAPI()


@pytest_asyncio.fixture
async def http_client(api: FakeRateAPI):
    client = httpx.AsyncClient(transport=httpx.MockTransport(api))
    yield client
    await client.aclose()


def make_settings(**overrides) -> Settings:
    values = {
        "exchange_api_base_url": BASE_URL,
        "retry_base_delay_ms": 1000,
        "quota_limit": 100,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_resolver(
    http_client: httpx.AsyncClient,
    clock: FakeClock,
    sleeper: SleepRecorder,
    *,
    quota_limit: int = 100,
    ttl_ms: int = 300_000,
    attempts: int = 3,
    prefer_cache: bool = False,
    breaker_threshold: int = 5,
) -> ResilientRateClient:
    provider = ExternalHTTPRateProvider(
        http_client,
        BASE_URL,
        timeout=2.0,
        health_timeout=1.0,
        attempts=attempts,
        backoff=1.0,
        sleep=sleeper,
    )
    return ResilientRateClient(
        provider,
        RateCache(ttl_ms, clock=clock),
        QuotaTracker(quota_limit, timedelta(hours=24), clock=clock),
        breaker=CircuitBreaker(breaker_threshold, timedelta(seconds=60), clock=clock),
        prefer_cache=prefer_cache,
        clock=clock,
    )


@pytest.fixture
def resolver(http_client, clock, sleeper) -> ResilientRateClient:
    return make_resolver(http_client, clock, sleeper)


@pytest.fixture
def facade(resolver) -> CurrencyFacade:
    return CurrencyFacade(resolver, home_currency="NGN")
