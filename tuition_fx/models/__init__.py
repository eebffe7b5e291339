"""Pydantic domain models for the tuition currency service."""

from .constants import (
    CURRENCY_CODES,
    CurrencyCode,
    RateSource,
    coerce_currency,
    parse_currency,
)  # re-export
from .rates import CacheStats, ConnectionHealth, QuotaState, RateEntry
from .tuition import ConversionResult, TuitionDisplay

__all__ = [
    "CURRENCY_CODES",
    "CurrencyCode",
    "RateSource",
    "coerce_currency",
    "parse_currency",
    "CacheStats",
    "ConnectionHealth",
    "QuotaState",
    "RateEntry",
    "ConversionResult",
    "TuitionDisplay",
]
