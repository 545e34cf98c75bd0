"""Morningstar stock report: rating, style and price data."""
from __future__ import annotations

import re
from datetime import timedelta
from typing import Optional

from ..browser import PageLoadStrategy
from ..errors import FieldExtractionError
from ..extract import Locator, parse_enum
from ..models import Currency, Size, Stock, Style
from .base import FieldSpec, Provider, no_dash

STOCK_STYLE = Locator("#CompanyProfile div:has(> h3:has-text('Stock Style'))")
WEEK_RANGE = Locator("#Col0WeekRange")
CURRENCY_RE = re.compile(r"\s+\|\s+([A-Z]{3})\s+")


def _number(raw: str) -> float:
    text = raw.strip().replace(",", "")
    try:
        return float(text)
    except ValueError:
        raise FieldExtractionError(f"Extracted text “{raw.strip()}” is no valid number") from None


def _size_and_style(raw: str):
    # Example: "Stock Style\nLarge-Blend"
    parts = re.sub(r"Stock Style\n?", "", raw).strip().split("-")
    if len(parts) != 2:
        raise FieldExtractionError("No valid size and style available")
    return parts


def parse_size(raw: str, stock: Stock) -> Size:
    return parse_enum(Size, _size_and_style(raw)[0])


def parse_style(raw: str, stock: Stock) -> Style:
    return parse_enum(Style, _size_and_style(raw)[1])


def parse_star_rating(raw: str, stock: Stock) -> int:
    # Example alt text: "4 stars"
    digits = re.sub(r"\D", "", raw)
    if not digits:
        raise FieldExtractionError("Extracted star rating is no valid number")
    rating = int(digits)
    if not 0 <= rating <= 5:
        raise FieldExtractionError(f"Extracted star rating {rating} is out of range")
    return rating


def parse_currency(raw: str, stock: Stock) -> Currency:
    # Example: "17:35:38 CET | EUR  Minimum 15 Minutes Delay."
    match = CURRENCY_RE.search(raw)
    if match is None:
        raise FieldExtractionError("No currency code found")
    return parse_enum(Currency, match.group(1))


def parse_plain(raw: str, stock: Stock) -> float:
    return _number(raw)


def parse_fair_value(raw: str, stock: Stock) -> Optional[float]:
    # Example: "1,000.00 USD", or "- USD" without an estimate
    tokens = raw.split()
    if tokens and tokens[0] == "-":
        return None
    return _number(tokens[0] if tokens else "")


def _week_range(raw: str, index: int) -> Optional[float]:
    # Example: "1,000.00 - 2,000.00"
    parts = raw.replace(",", "").split(" - ")
    if parts[0].strip() == "-":
        return None
    if len(parts) != 2:
        raise FieldExtractionError("Extracted 52 week low or high is no valid number")
    return _number(parts[index])


def parse_low_52w(raw: str, stock: Stock) -> Optional[float]:
    return _week_range(raw, 0)


def parse_high_52w(raw: str, stock: Stock) -> Optional[float]:
    return _week_range(raw, 1)


class MorningstarProvider(Provider):
    name = "morningstar"
    display_name = "Morningstar"
    id_field = "morningstar_id"
    last_fetch_field = "morningstar_last_fetch"
    staleness = timedelta(hours=12)
    page_load_strategy = PageLoadStrategy.EAGER
    ready_selector = "#SnapshotBodyContent #IntradayPriceSummary"
    fields = (
        FieldSpec("size", STOCK_STYLE, parse_size),
        FieldSpec("style", STOCK_STYLE, parse_style),
        FieldSpec("star_rating", Locator(".starsImg", attribute="alt"), parse_star_rating),
        FieldSpec("dividend_yield_percent", Locator("#Col0Yield"), no_dash(parse_plain)),
        FieldSpec("price_earning_ratio", Locator("#Col0PE"), no_dash(parse_plain)),
        FieldSpec("currency", Locator("#Col0PriceTime"), parse_currency),
        FieldSpec("last_close", Locator("#Col0LastClose"), no_dash(parse_plain)),
        FieldSpec("morningstar_fair_value", Locator("#FairValueEstimate span datapoint"), parse_fair_value),
        FieldSpec("low_52w", WEEK_RANGE, parse_low_52w),
        FieldSpec("high_52w", WEEK_RANGE, parse_high_52w),
    )

    def url_for(self, stock: Stock) -> str:
        morningstar_id = self.provider_id(stock)
        return (
            "https://tools.morningstar.it/it/stockreport/default.aspx"
            f"?Site=us&id={morningstar_id}&LanguageId=en-US"
            f"&SecurityToken={morningstar_id}]3]0]E0WWE$$ALL"
        )
