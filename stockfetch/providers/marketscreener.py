"""MarketScreener analyst consensus."""
from __future__ import annotations

from datetime import timedelta

from ..browser import PageLoadStrategy
from ..errors import FieldExtractionError
from ..extract import Locator, first_number, parse_number, single_number
from ..models import Stock
from .base import FieldSpec, Provider

CONSENSUS_DIV = "xpath=//div[@class='tabTitleLeftWhite']/b[contains(text(), 'Consensus')]/../../../.."


def parse_consensus(raw: str, stock: Stock) -> float:
    # Example title: " Note : 9.1 / 10"
    return first_number(raw)


def parse_analyst_count(raw: str, stock: Stock) -> int:
    return int(parse_number(raw))


def parse_target_price(raw: str, stock: Stock) -> float:
    """Derive the target price from the spread to the stored last close.

    Example: "12,5%" means the average target is 12.5 % above the last close.
    """
    if not stock.last_close:
        raise FieldExtractionError("No Last Close price available to compare spread against")
    spread = single_number(raw, decimal_comma=True)
    return stock.last_close * (spread / 100 + 1)


class MarketScreenerProvider(Provider):
    name = "marketscreener"
    display_name = "MarketScreener"
    id_field = "marketscreener_id"
    last_fetch_field = "marketscreener_last_fetch"
    staleness = timedelta(hours=12)
    page_load_strategy = PageLoadStrategy.NONE
    ready_selector = "#zbCenter"
    ready_timeout = 20.0
    fields = (
        FieldSpec(
            "analyst_consensus",
            Locator(f"{CONSENSUS_DIV}//div[starts-with(@title, 'Note : ')]", attribute="title", timeout=10.0),
            parse_consensus,
        ),
        FieldSpec(
            "analyst_count",
            Locator(
                f"{CONSENSUS_DIV}//td[contains(text(), 'Number of Analysts')]/following-sibling::td",
                timeout=10.0,
            ),
            parse_analyst_count,
        ),
        FieldSpec(
            "analyst_target_price",
            Locator(
                f"{CONSENSUS_DIV}//td[contains(text(), 'Spread / Average Target')]/following-sibling::td",
                timeout=10.0,
            ),
            parse_target_price,
        ),
    )

    def url_for(self, stock: Stock) -> str:
        return f"https://www.marketscreener.com/quote/stock/{self.provider_id(stock)}/"
