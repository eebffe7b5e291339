import pytest

from tuition_fx.models.constants import CurrencyCode
from tuition_fx.services.rates.countries import currency_for, currency_for_country_code


@pytest.mark.parametrize(
    "country, expected",
    [
        ("Sweden", CurrencyCode.SEK),
        ("USA", CurrencyCode.USD),
        ("United States", CurrencyCode.USD),
        ("UK", CurrencyCode.GBP),
        ("  united   kingdom ", CurrencyCode.GBP),
        ("Germany", CurrencyCode.EUR),
        ("Nigeria", CurrencyCode.NGN),
        ("Hong Kong", CurrencyCode.HKD),
    ],
)
def test_known_countries(country: str, expected: CurrencyCode) -> None:
    assert currency_for(country) is expected


@pytest.mark.parametrize("country", ["Atlantis", "", None, 42])
def test_unmapped_countries_default_to_usd(country) -> None:
    assert currency_for(country) is CurrencyCode.USD


def test_iso_country_codes() -> None:
    assert currency_for_country_code("se") is CurrencyCode.SEK
    assert currency_for_country_code("NG") is CurrencyCode.NGN
    assert currency_for_country_code("ZZ") is CurrencyCode.USD
