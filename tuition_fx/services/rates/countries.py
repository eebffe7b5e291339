"""Country -> currency resolution for program listings.

Programs are stored with a free-text destination country. Lookups are trimmed
and case-insensitive; anything unmapped resolves to USD.
"""

from __future__ import annotations

from typing import Dict, Optional

from tuition_fx.models.constants import CurrencyCode

_COUNTRY_CURRENCY: Dict[str, CurrencyCode] = {
    "usa": CurrencyCode.USD,
    "us": CurrencyCode.USD,
    "united states": CurrencyCode.USD,
    "united states of america": CurrencyCode.USD,
    "uk": CurrencyCode.GBP,
    "united kingdom": CurrencyCode.GBP,
    "great britain": CurrencyCode.GBP,
    "england": CurrencyCode.GBP,
    "scotland": CurrencyCode.GBP,
    "canada": CurrencyCode.CAD,
    "australia": CurrencyCode.AUD,
    "germany": CurrencyCode.EUR,
    "france": CurrencyCode.EUR,
    "ireland": CurrencyCode.EUR,
    "netherlands": CurrencyCode.EUR,
    "italy": CurrencyCode.EUR,
    "spain": CurrencyCode.EUR,
    "austria": CurrencyCode.EUR,
    "belgium": CurrencyCode.EUR,
    "portugal": CurrencyCode.EUR,
    "finland": CurrencyCode.EUR,
    "sweden": CurrencyCode.SEK,
    "switzerland": CurrencyCode.CHF,
    "norway": CurrencyCode.NOK,
    "denmark": CurrencyCode.DKK,
    "japan": CurrencyCode.JPY,
    "singapore": CurrencyCode.SGD,
    "new zealand": CurrencyCode.NZD,
    "hong kong": CurrencyCode.HKD,
    "nigeria": CurrencyCode.NGN,
}

# ISO 3166 alpha-2
_COUNTRY_CODE_CURRENCY: Dict[str, CurrencyCode] = {
    "NG": CurrencyCode.NGN,
    "US": CurrencyCode.USD,
    "GB": CurrencyCode.GBP,
    "CA": CurrencyCode.CAD,
    "AU": CurrencyCode.AUD,
    "DE": CurrencyCode.EUR,
    "FR": CurrencyCode.EUR,
    "NL": CurrencyCode.EUR,
    "IT": CurrencyCode.EUR,
    "ES": CurrencyCode.EUR,
    "AT": CurrencyCode.EUR,
    "BE": CurrencyCode.EUR,
    "IE": CurrencyCode.EUR,
    "PT": CurrencyCode.EUR,
    "FI": CurrencyCode.EUR,
    "SE": CurrencyCode.SEK,
    "NO": CurrencyCode.NOK,
    "DK": CurrencyCode.DKK,
    "CH": CurrencyCode.CHF,
    "JP": CurrencyCode.JPY,
    "SG": CurrencyCode.SGD,
    "NZ": CurrencyCode.NZD,
    "HK": CurrencyCode.HKD,
}


def _normalize(name: object) -> str:
    if not isinstance(name, str):
        return ""
    return " ".join(name.split()).lower()


def currency_for(country_name: Optional[str]) -> CurrencyCode:
    return _COUNTRY_CURRENCY.get(_normalize(country_name), CurrencyCode.USD)


def currency_for_country_code(country_code: Optional[str]) -> CurrencyCode:
    code = country_code.strip().upper() if isinstance(country_code, str) else ""
    return _COUNTRY_CODE_CURRENCY.get(code, CurrencyCode.USD)


__all__ = ["currency_for", "currency_for_country_code"]
