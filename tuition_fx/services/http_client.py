from __future__ import annotations

"""Async HTTP helpers with retry and a connection probe.

Focus: GET JSON with bounded attempts, exponential backoff and a hard
per-attempt timeout. Any non-2xx status, transport error, timeout or
undecodable body is a retryable ``HttpError``.
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from tuition_fx.models.rates import ConnectionHealth

logger = logging.getLogger("tuition_fx.http")

Sleep = Callable[[float], Awaitable[None]]


class HttpError(Exception):
    pass


def backoff_delays(attempts: int, base_delay: float) -> list[float]:
    """Delays slept between attempts: D, 2D, 4D, ... (one fewer than attempts)."""
    return [base_delay * (2**i) for i in range(max(0, attempts - 1))]


async def _get_once(
    client: httpx.AsyncClient,
    url: str,
    params: Optional[Mapping[str, Any]],
    timeout: float,
) -> Dict[str, Any]:
    try:
        resp = await asyncio.wait_for(
            client.get(url, params=params, timeout=timeout), timeout=timeout
        )
    except asyncio.TimeoutError as e:
        raise HttpError(f"timeout after {timeout:.1f}s for {url}") from e
    except httpx.HTTPError as e:
        raise HttpError(f"transport error for {url}: {e}") from e
    if not resp.is_success:
        raise HttpError(f"HTTP {resp.status_code} for {url}")
    try:
        data = resp.json()
    except ValueError as e:  # JSON decode
        raise HttpError(f"malformed JSON from {url}") from e
    if not isinstance(data, dict):
        raise HttpError(f"unexpected payload type {type(data).__name__} from {url}")
    return data


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[Mapping[str, Any]] = None,
    timeout: float = 5.0,
    attempts: int = 3,
    backoff: float = 1.0,
    sleep: Sleep = asyncio.sleep,
    validate: Optional[Callable[[Dict[str, Any]], Any]] = None,
) -> Any:
    """GET ``url`` and return the decoded body, or ``validate(body)`` when given.

    An ``HttpError`` raised by ``validate`` counts as a failed attempt.
    """
    last_err: Optional[Exception] = None
    delays = backoff_delays(attempts, backoff)
    for attempt in range(max(1, attempts)):
        try:
            data = await _get_once(client, url, params, timeout)
            return validate(data) if validate is not None else data
        except HttpError as e:
            last_err = e
            if attempt >= len(delays):
                break
            delay = delays[attempt]
            logger.info(
                "retry %d/%d in %.2fs: %s", attempt + 2, attempts, delay, e
            )
            await sleep(delay)
    raise HttpError(f"Failed to fetch JSON from {url}: {last_err}")


async def probe(
    client: httpx.AsyncClient, url: str, *, timeout: float = 1.5
) -> ConnectionHealth:
    """Reachability check: any response below 500 within ``timeout`` is healthy."""
    started = time.perf_counter()
    try:
        resp = await asyncio.wait_for(client.get(url, timeout=timeout), timeout=timeout)
    except asyncio.TimeoutError:
        return ConnectionHealth(is_healthy=False, error=f"probe timed out after {timeout:.1f}s")
    except httpx.HTTPError as e:
        return ConnectionHealth(is_healthy=False, error=str(e) or type(e).__name__)
    latency_ms = (time.perf_counter() - started) * 1000
    if resp.status_code >= 500:
        return ConnectionHealth(
            is_healthy=False, latency_ms=latency_ms, error=f"HTTP {resp.status_code}"
        )
    return ConnectionHealth(is_healthy=True, latency_ms=latency_ms)
