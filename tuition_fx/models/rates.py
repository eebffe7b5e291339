from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .constants import RateSource


class RateEntry(BaseModel):
    """A resolved exchange rate for one ordered currency pair.

    ``source`` says how this particular caller obtained the value; ``origin``
    keeps where the value was first produced (a cache hit of a live rate is
    ``source=cache, origin=api``).
    """

    model_config = ConfigDict(frozen=True)

    from_currency: str
    to_currency: str
    rate: float = Field(..., gt=0)
    source: RateSource
    obtained_at: datetime
    origin: Optional[RateSource] = None

    @model_validator(mode="before")
    @classmethod
    def default_origin(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("origin") is None:
            data = {**data, "origin": data.get("source")}
        return data

    @property
    def key(self) -> tuple[str, str]:
        return (self.from_currency, self.to_currency)

    @property
    def is_live(self) -> bool:
        return self.source is RateSource.API


class QuotaState(BaseModel):
    used: int = Field(..., ge=0)
    limit: int = Field(..., gt=0)
    window_reset_at: datetime

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)


class ConnectionHealth(BaseModel):
    is_healthy: bool
    latency_ms: Optional[float] = None
    error: Optional[str] = None


class CacheStats(BaseModel):
    entries: int
    hits: int
    misses: int
    ttl_ms: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
