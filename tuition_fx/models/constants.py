"""Domain constants and enumerations for validation.

The currency set is closed: anything outside ``CurrencyCode`` is coerced to USD
at the boundary instead of flowing further into the service.
"""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Optional


class CurrencyCode(str, Enum):
    USD = "USD"
    NGN = "NGN"
    GBP = "GBP"
    EUR = "EUR"
    CAD = "CAD"
    AUD = "AUD"
    CHF = "CHF"
    SEK = "SEK"
    NOK = "NOK"
    DKK = "DKK"
    JPY = "JPY"
    SGD = "SGD"
    NZD = "NZD"
    HKD = "HKD"

    def __str__(self) -> str:
        return self.value


class RateSource(str, Enum):
    API = "api"
    CACHE = "cache"
    FALLBACK = "fallback"

    def __str__(self) -> str:
        return self.value


CURRENCY_CODES: FrozenSet[str] = frozenset(c.value for c in CurrencyCode)


def parse_currency(value: object) -> Optional[CurrencyCode]:
    """Return the matching CurrencyCode, or None for anything unknown."""
    if isinstance(value, CurrencyCode):
        return value
    if not isinstance(value, str):
        return None
    code = value.strip().upper()
    if code in CURRENCY_CODES:
        return CurrencyCode(code)
    return None


def coerce_currency(value: object) -> CurrencyCode:
    return parse_currency(value) or CurrencyCode.USD
