"""MSCI ESG rating and implied temperature rise."""
from __future__ import annotations

from datetime import timedelta

from ..browser import PageLoadStrategy
from ..extract import Locator, parse_enum, single_number
from ..models import MSCIESGRating, Stock
from .base import FieldSpec, Provider


def parse_esg_rating(raw: str, stock: Stock) -> MSCIESGRating:
    # Example class list: "ratingdata-company-rating esg-rating-circle-bbb"
    rating = raw.split()[-1] if raw.split() else ""
    return parse_enum(MSCIESGRating, rating[rating.rfind("-") + 1:].upper())


def parse_temperature(raw: str, stock: Stock) -> float:
    # Example: "2.5°C"
    return single_number(raw)


class MSCIProvider(Provider):
    """MSCI allows only a few page views per browser session, so cookies are
    cleared before every stock and the run is kept at low concurrency."""

    name = "msci"
    display_name = "MSCI"
    id_field = "msci_id"
    last_fetch_field = "msci_last_fetch"
    staleness = timedelta(days=7)
    page_load_strategy = PageLoadStrategy.EAGER
    ready_selector = ".esg-ratings-profile-header"
    clear_cookies_each_stock = True
    fields = (
        FieldSpec("msci_esg_rating", Locator(".ratingdata-company-rating", attribute="class"), parse_esg_rating),
        FieldSpec("msci_temperature", Locator(".implied-temp-rise-value"), parse_temperature),
    )

    def url_for(self, stock: Stock) -> str:
        return (
            "https://www.msci.com/our-solutions/esg-investing/esg-ratings-climate-search-tool/issuer/"
            f"{self.provider_id(stock)}"
        )
