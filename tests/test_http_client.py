"""HTTP helpers and the external provider: retries, backoff, payload checks."""

import asyncio
import math

import httpx
import pytest

from conftest import BASE_URL, FakeRateAPI
from tuition_fx.services.http_client import HttpError, backoff_delays, get_json, probe
from tuition_fx.services.rates.providers import (
    DisabledRateProvider,
    ExternalHTTPRateProvider,
    parse_quote,
    parse_quotes,
)


def test_backoff_delays_double() -> None:
    assert backoff_delays(3, 1.0) == [1.0, 2.0]
    assert backoff_delays(4, 0.5) == [0.5, 1.0, 2.0]
    assert backoff_delays(1, 1.0) == []


@pytest.mark.asyncio
async def test_get_json_retries_then_succeeds(sleeper) -> None:
    api = FakeRateAPI({("USD", "NGN"): 1600.0}, fail_times=2)
    async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
        data = await get_json(
            client,
            f"{BASE_URL}/latest",
            params={"base": "USD", "symbols": "NGN"},
            attempts=3,
            backoff=1.0,
            sleep=sleeper,
        )

    assert data["rates"]["NGN"] == 1600.0
    assert api.rate_calls == 3
    assert sleeper.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_get_json_gives_up_after_attempts(sleeper) -> None:
    api = FakeRateAPI(fail_times=10, fail_status=429)
    async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
        with pytest.raises(HttpError, match="HTTP 429"):
            await get_json(
                client,
                f"{BASE_URL}/latest",
                params={"base": "USD", "symbols": "NGN"},
                attempts=3,
                sleep=sleeper,
            )

    assert api.rate_calls == 3
    assert len(sleeper.delays) == 2


@pytest.mark.asyncio
async def test_get_json_treats_malformed_body_as_failure(sleeper) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"<html>maintenance</html>")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(HttpError, match="malformed JSON"):
            await get_json(client, f"{BASE_URL}/latest", attempts=2, sleep=sleeper)
    assert sleeper.delays == [1.0]


@pytest.mark.asyncio
async def test_get_json_enforces_timeout(sleeper) -> None:
    async def slow(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(200, json={})

    async with httpx.AsyncClient(transport=httpx.MockTransport(slow)) as client:
        with pytest.raises(HttpError, match="timeout"):
            await get_json(client, f"{BASE_URL}/latest", timeout=0.01, attempts=1, sleep=sleeper)


@pytest.mark.asyncio
async def test_probe_reports_health() -> None:
    healthy = FakeRateAPI()
    async with httpx.AsyncClient(transport=httpx.MockTransport(healthy)) as client:
        result = await probe(client, BASE_URL, timeout=1.0)
    assert result.is_healthy is True
    assert result.latency_ms is not None

    broken = FakeRateAPI(healthy=False)
    async with httpx.AsyncClient(transport=httpx.MockTransport(broken)) as client:
        result = await probe(client, BASE_URL, timeout=1.0)
    assert result.is_healthy is False
    assert result.error == "HTTP 503"

    offline = FakeRateAPI(down=True)
    async with httpx.AsyncClient(transport=httpx.MockTransport(offline)) as client:
        result = await probe(client, BASE_URL, timeout=1.0)
    assert result.is_healthy is False


@pytest.mark.asyncio
async def test_external_provider_sends_base_and_symbols(sleeper) -> None:
    api = FakeRateAPI({("SEK", "NGN"): 140.0})
    async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
        provider = ExternalHTTPRateProvider(client, BASE_URL + "/", api_key="k3y", sleep=sleeper)
        quote = await provider.fetch_rate("SEK", "NGN")

    assert quote.rate == 140.0
    assert quote.provider_timestamp is not None
    params = api.requests[-1].url.params
    assert (params["base"], params["symbols"], params["access_key"]) == ("SEK", "NGN", "k3y")


@pytest.mark.parametrize(
    "payload",
    [
        {"success": False, "error": {"info": "quota reached"}},
        {"rates": {}},
        {"rates": {"NGN": 0}},
        {"rates": {"NGN": "1500"}},
        {"rates": {"NGN": math.inf}},
        {"rates": {"NGN": math.nan}},
        {"rates": {"NGN": -math.inf}},
        {"base": "USD"},
    ],
)
def test_parse_quote_rejects_unusable_payloads(payload) -> None:
    with pytest.raises(HttpError):
        parse_quote(payload, "NGN")


@pytest.mark.asyncio
async def test_disabled_provider_never_healthy() -> None:
    provider = DisabledRateProvider()
    assert (await provider.probe()).is_healthy is False
    with pytest.raises(HttpError):
        await provider.fetch_rate("USD", "NGN")
    with pytest.raises(HttpError):
        await provider.fetch_rates("USD", ["NGN", "GBP"])


@pytest.mark.asyncio
async def test_non_finite_rate_is_retried(sleeper) -> None:
    api = FakeRateAPI({("USD", "NGN"): math.inf})
    async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
        provider = ExternalHTTPRateProvider(client, BASE_URL, sleep=sleeper)
        with pytest.raises(HttpError, match="no usable rate"):
            await provider.fetch_rate("USD", "NGN")

    assert api.rate_calls == 3
    assert sleeper.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_fetch_rates_asks_for_all_symbols_at_once(sleeper) -> None:
    api = FakeRateAPI({("USD", "GBP"): 0.8, ("USD", "JPY"): 150.0})
    async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
        provider = ExternalHTTPRateProvider(client, BASE_URL, sleep=sleeper)
        quotes = await provider.fetch_rates("USD", ["GBP", "JPY"])

    assert {code: q.rate for code, q in quotes.items()} == {"GBP": 0.8, "JPY": 150.0}
    assert api.rate_calls == 1
    assert api.requests[-1].url.params["symbols"] == "GBP,JPY"


def test_parse_quotes_keeps_usable_entries() -> None:
    data = {"rates": {"GBP": 0.8, "EUR": math.nan, "JPY": 0}}
    assert set(parse_quotes(data, ["GBP", "EUR", "JPY", "CAD"])) == {"GBP"}

    with pytest.raises(HttpError):
        parse_quotes({"rates": {"EUR": math.inf}}, ["EUR"])
