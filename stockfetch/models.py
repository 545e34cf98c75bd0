"""Pydantic models shared across fetch components."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class Size(str, Enum):
    SMALL = "Small"
    MID = "Mid"
    LARGE = "Large"


class Style(str, Enum):
    VALUE = "Value"
    BLEND = "Blend"
    GROWTH = "Growth"


class Currency(str, Enum):
    AUD = "AUD"
    BRL = "BRL"
    CAD = "CAD"
    CHF = "CHF"
    CLP = "CLP"
    CNY = "CNY"
    CZK = "CZK"
    DKK = "DKK"
    EUR = "EUR"
    GBP = "GBP"
    GBX = "GBX"
    HKD = "HKD"
    HUF = "HUF"
    IDR = "IDR"
    ILS = "ILS"
    INR = "INR"
    JPY = "JPY"
    KRW = "KRW"
    MXN = "MXN"
    MYR = "MYR"
    NOK = "NOK"
    NZD = "NZD"
    PLN = "PLN"
    SEK = "SEK"
    SGD = "SGD"
    THB = "THB"
    TRY = "TRY"
    TWD = "TWD"
    USD = "USD"
    ZAR = "ZAR"


class MSCIESGRating(str, Enum):
    """MSCI ESG ratings, best first."""

    AAA = "AAA"
    AA = "AA"
    A = "A"
    BBB = "BBB"
    BB = "BB"
    B = "B"
    CCC = "CCC"


MSCI_ESG_RATING_ORDER = [rating.value for rating in MSCIESGRating]


class Stock(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    ticker: str
    name: str = ""
    # Morningstar
    morningstar_id: Optional[str] = None
    morningstar_last_fetch: Optional[datetime] = None
    star_rating: Optional[int] = None
    size: Optional[Size] = None
    style: Optional[Style] = None
    currency: Optional[Currency] = None
    last_close: Optional[float] = None
    morningstar_fair_value: Optional[float] = None
    dividend_yield_percent: Optional[float] = None
    price_earning_ratio: Optional[float] = None
    low_52w: Optional[float] = None
    high_52w: Optional[float] = None
    # MarketScreener
    marketscreener_id: Optional[str] = None
    marketscreener_last_fetch: Optional[datetime] = None
    analyst_consensus: Optional[float] = None
    analyst_count: Optional[int] = None
    analyst_target_price: Optional[float] = None
    # MSCI
    msci_id: Optional[str] = None
    msci_last_fetch: Optional[datetime] = None
    msci_esg_rating: Optional[MSCIESGRating] = None
    msci_temperature: Optional[float] = None
    # LSEG
    ric: Optional[str] = None
    lseg_last_fetch: Optional[datetime] = None
    lseg_esg_score: Optional[float] = None
    lseg_emissions: Optional[float] = None
    # S&P
    sp_id: Optional[str] = None
    sp_last_fetch: Optional[datetime] = None
    sp_esg_score: Optional[float] = None

    def get(self, attribute: str) -> Any:
        return getattr(self, attribute)

    def with_values(self, values: Dict[str, Any]) -> Stock:
        """Return a validated copy with ``values`` applied."""
        data = self.model_dump()
        data.update(values)
        return Stock.model_validate(data)


STOCK_FIELDS = frozenset(Stock.model_fields)
