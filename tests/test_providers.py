import json
from datetime import timedelta

import pytest

from conftest import NOW
from stockfetch.errors import FieldExtractionError, NotFound
from stockfetch.models import Currency, MSCIESGRating, Size, Stock, Style
from stockfetch.providers import PROVIDERS, get_provider, lseg, marketscreener, morningstar, msci


def test_registry_contains_browser_providers():
    assert sorted(PROVIDERS) == ["lseg", "marketscreener", "morningstar", "msci", "sp"]
    assert get_provider("MSCI").name == "msci"
    with pytest.raises(NotFound):
        get_provider("sustainalytics")


def test_every_provider_field_is_a_stock_attribute():
    for provider in PROVIDERS.values():
        assert provider.last_fetch_field in Stock.model_fields
        assert provider.id_field in Stock.model_fields
        for name in provider.attribute_names:
            assert name in Stock.model_fields


def test_staleness_windows():
    stock = Stock(ticker="X", msci_last_fetch=NOW - timedelta(days=6), morningstar_last_fetch=NOW - timedelta(hours=13))

    assert not get_provider("msci").is_stale(stock, NOW)
    assert get_provider("morningstar").is_stale(stock, NOW)
    assert get_provider("sp").is_stale(stock, NOW)


def test_naive_last_fetch_is_treated_as_utc():
    stock = Stock(ticker="X", sp_last_fetch=(NOW - timedelta(days=1)).replace(tzinfo=None))

    assert not get_provider("sp").is_stale(stock, NOW)


def test_morningstar_parsers():
    stock = Stock(ticker="X")

    assert morningstar.parse_size("Stock Style\nLarge-Blend", stock) == Size.LARGE
    assert morningstar.parse_style("Stock Style\nLarge-Blend", stock) == Style.BLEND
    assert morningstar.parse_star_rating("4 stars", stock) == 4
    assert morningstar.parse_currency("17:35:38 CET | EUR  Minimum 15 Minutes Delay.", stock) == Currency.EUR
    assert morningstar.parse_fair_value("1,000.00 USD", stock) == 1000.0
    assert morningstar.parse_fair_value("- USD", stock) is None
    assert morningstar.parse_low_52w("1,000.00 - 2,000.00", stock) == 1000.0
    assert morningstar.parse_high_52w("1,000.00 - 2,000.00", stock) == 2000.0
    assert morningstar.parse_high_52w("-", stock) is None
    with pytest.raises(FieldExtractionError):
        morningstar.parse_size("Stock Style\nHuge-Blend", stock)


def test_morningstar_dash_means_no_value():
    spec = {field.name: field for field in get_provider("morningstar").fields}["price_earning_ratio"]

    assert spec.parse("-", Stock(ticker="X")) is None
    assert spec.parse("1,020.5", Stock(ticker="X")) == 1020.5


def test_marketscreener_target_price_uses_last_close():
    assert marketscreener.parse_target_price("12,5%", Stock(ticker="X", last_close=100.0)) == pytest.approx(112.5)
    assert marketscreener.parse_consensus(" Note : 9.1 / 10", Stock(ticker="X")) == 9.1
    assert marketscreener.parse_analyst_count("N/A", Stock(ticker="X")) == 0
    with pytest.raises(FieldExtractionError):
        marketscreener.parse_target_price("12,5%", Stock(ticker="X"))


def test_msci_parsers():
    stock = Stock(ticker="X")

    assert msci.parse_esg_rating("ratingdata-company-rating esg-rating-circle-bbb", stock) == MSCIESGRating.BBB
    assert msci.parse_temperature("2.5°C", stock) == 2.5
    with pytest.raises(FieldExtractionError):
        msci.parse_esg_rating("ratingdata-company-rating esg-rating-circle-none", stock)


def test_lseg_parsers():
    body = json.dumps({"esgScore": {"TR.TRESG": {"score": 71}, "TR.TRESGEmissions": {"score": "N/A"}}})
    stock = Stock(ticker="X")

    assert lseg.parse_esg_score(body, stock) == 71.0
    assert lseg.parse_emissions(body, stock) == 0.0
    with pytest.raises(FieldExtractionError):
        lseg.parse_esg_score("{}", stock)
    with pytest.raises(FieldExtractionError):
        lseg.parse_esg_score("<html>", stock)


def test_urls():
    stock = Stock(ticker="X", morningstar_id="0P000000GY", marketscreener_id="APPLE-INC-4849", ric="AAPL.O", sp_id="4004205")

    assert "id=0P000000GY" in get_provider("morningstar").url_for(stock)
    assert get_provider("marketscreener").url_for(stock) == "https://www.marketscreener.com/quote/stock/APPLE-INC-4849/"
    assert get_provider("lseg").url_for(stock).endswith("ricCode=AAPL.O")
    assert get_provider("sp").url_for(stock).endswith("cid=4004205")
