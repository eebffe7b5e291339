from __future__ import annotations

"""Static rate table: the offline backstop for every conversion.

Rates are expressed as units of the currency per 1 USD, so any pair is derived
by pivoting through USD: ``rate(from -> to) = rate_to_usd(to) / rate_to_usd(from)``.

Imports nothing from the package beyond ``models.constants``.
"""
from dataclasses import dataclass
from typing import Dict, List, Union

from babel.numbers import format_decimal

from tuition_fx.models.constants import CurrencyCode, parse_currency

CurrencyLike = Union[CurrencyCode, str]

_DEFAULT_PATTERN = "#,##0.##"
_WHOLE_PATTERN = "#,##0"
_PASSTHROUGH_LOCALE = "en_US"


@dataclass(frozen=True)
class CurrencySpec:
    code: CurrencyCode
    rate_to_usd: float
    symbol: str
    name: str
    locale: str
    template: str  # "{symbol}" and "{amount}" placeholders
    pattern: str = _DEFAULT_PATTERN


_TABLE: Dict[CurrencyCode, CurrencySpec] = {
    spec.code: spec
    for spec in (
        CurrencySpec(CurrencyCode.USD, 1.0, "$", "US Dollar", "en_US", "{symbol}{amount}"),
        CurrencySpec(CurrencyCode.NGN, 1500.0, "₦", "Nigerian Naira", "en_NG", "{symbol}{amount}"),
        CurrencySpec(CurrencyCode.GBP, 0.78, "£", "British Pound", "en_GB", "{symbol}{amount}"),
        CurrencySpec(CurrencyCode.EUR, 0.94, "€", "Euro", "en_US", "{symbol}{amount}"),
        CurrencySpec(CurrencyCode.CAD, 1.38, "C$", "Canadian Dollar", "en_CA", "{symbol}{amount}"),
        CurrencySpec(CurrencyCode.AUD, 1.55, "A$", "Australian Dollar", "en_AU", "{symbol}{amount}"),
        CurrencySpec(CurrencyCode.CHF, 0.92, "CHF", "Swiss Franc", "en_US", "{symbol} {amount}"),
        CurrencySpec(CurrencyCode.SEK, 11.25, "kr", "Swedish Krona", "sv_SE", "{amount} {symbol}"),
        CurrencySpec(CurrencyCode.NOK, 11.85, "kr", "Norwegian Krone", "nb_NO", "{amount} {symbol}"),
        CurrencySpec(CurrencyCode.DKK, 7.02, "kr", "Danish Krone", "da_DK", "{amount} {symbol}"),
        CurrencySpec(
            CurrencyCode.JPY, 154.50, "¥", "Japanese Yen", "ja_JP", "{symbol}{amount}", _WHOLE_PATTERN
        ),
        CurrencySpec(CurrencyCode.SGD, 1.36, "S$", "Singapore Dollar", "en_SG", "{symbol}{amount}"),
        CurrencySpec(CurrencyCode.NZD, 1.73, "NZ$", "New Zealand Dollar", "en_NZ", "{symbol}{amount}"),
        CurrencySpec(CurrencyCode.HKD, 7.78, "HK$", "Hong Kong Dollar", "en_HK", "{symbol}{amount}"),
    )
}


def spec_for(code: CurrencyLike) -> CurrencySpec | None:
    parsed = parse_currency(code)
    return _TABLE[parsed] if parsed is not None else None


def supported_currencies() -> List[CurrencyCode]:
    return list(_TABLE)


def rate_to_usd(code: CurrencyLike) -> float:
    """Units of ``code`` per 1 USD. Unknown codes are treated as USD (1.0)."""
    spec = spec_for(code)
    return spec.rate_to_usd if spec else 1.0


def static_rate(from_currency: CurrencyLike, to_currency: CurrencyLike) -> float:
    return rate_to_usd(to_currency) / rate_to_usd(from_currency)


def symbol_of(code: CurrencyLike) -> str:
    spec = spec_for(code)
    return spec.symbol if spec else _raw(code)


def name_of(code: CurrencyLike) -> str:
    spec = spec_for(code)
    return spec.name if spec else _raw(code)


def format_amount(code: CurrencyLike, amount: float) -> str:
    """Locale-grouped display string, e.g. ``35 000 kr`` or ``₦4,666,667``.

    Codes outside the table render as ``<amount> <RAW CODE>``.
    """
    spec = spec_for(code)
    if spec is None:
        return _passthrough(code, amount)
    number = format_decimal(amount, format=spec.pattern, locale=spec.locale)
    return spec.template.format(symbol=spec.symbol, amount=number)


def format_compact(code: CurrencyLike, amount: float) -> str:
    """Short form for tight layouts: ``$1.5M``, ``35K kr``."""
    spec = spec_for(code)
    if spec is None:
        return _passthrough(code, amount)
    if abs(amount) >= 1_000_000:
        number = f"{amount / 1_000_000:.1f}M"
    elif abs(amount) >= 1_000:
        number = f"{amount / 1_000:.0f}K"
    else:
        return format_amount(spec.code, amount)
    return spec.template.format(symbol=spec.symbol, amount=number)


def _raw(code: object) -> str:
    return str(getattr(code, "value", code) or "").strip()


def _passthrough(code: object, amount: float) -> str:
    number = format_decimal(amount, format=_DEFAULT_PATTERN, locale=_PASSTHROUGH_LOCALE)
    raw = _raw(code)
    return f"{number} {raw}" if raw else number


__all__ = [
    "CurrencySpec",
    "spec_for",
    "supported_currencies",
    "rate_to_usd",
    "static_rate",
    "symbol_of",
    "name_of",
    "format_amount",
    "format_compact",
]
