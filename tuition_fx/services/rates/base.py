from __future__ import annotations

"""Rate provider abstraction.

A provider is the only thing that talks to an external exchange-rate service.
Everything above it (cache, quota, breaker, fallback) is provider-agnostic.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Sequence

from tuition_fx.models.rates import ConnectionHealth

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProviderQuote:
    rate: float
    provider_timestamp: Optional[datetime] = None


class RateProvider(ABC):
    name: str = "abstract"

    @abstractmethod
    async def fetch_rate(self, from_currency: str, to_currency: str) -> ProviderQuote:
        """Return units of ``to_currency`` per 1 unit of ``from_currency``.

        Implementations raise ``HttpError`` for anything retryable.
        """
        raise NotImplementedError

    @abstractmethod
    async def fetch_rates(self, base: str, targets: Sequence[str]) -> Dict[str, ProviderQuote]:
        """Quotes for several targets in one upstream call.

        Targets the provider could not price are absent from the result.
        """
        raise NotImplementedError

    @abstractmethod
    async def probe(self) -> ConnectionHealth:
        """Cheap, short-timeout reachability check."""
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
