"""Declarative description of every attribute the fetchers write."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Tuple

from .models import MSCI_ESG_RATING_ORDER, Stock


class Direction(str, Enum):
    """Which way an attribute has to move to count as an improvement."""

    HIGHER = "higher"
    LOWER = "lower"
    ORDERED = "ordered"
    NEUTRAL = "neutral"


class Directionality(str, Enum):
    IMPROVED = "improved"
    WORSENED = "worsened"
    NEUTRAL = "neutral"

    @property
    def indicator(self) -> str:
        return {
            Directionality.IMPROVED: "🟢",
            Directionality.WORSENED: "🔴",
            Directionality.NEUTRAL: "⚪",
        }[self]


Formatter = Callable[[Any, Stock], str]


def _plain(value: Any) -> str:
    if value is None:
        return "n/a"
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, float):
        return f"{value:.2f}".rstrip("0").rstrip(".")
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    return str(value)


def format_plain(value: Any, stock: Stock) -> str:
    return _plain(value)


def format_stars(value: Any, stock: Stock) -> str:
    if value is None:
        return "n/a"
    return "★" * int(value) + "☆" * (5 - int(value))


def format_price(value: Any, stock: Stock) -> str:
    if value is None:
        return "n/a"
    currency = _plain(stock.currency) if stock.currency else ""
    return f"{currency} {_plain(float(value))}".strip()


def format_fair_value(value: Any, stock: Stock) -> str:
    text = format_price(value, stock)
    if value is not None and stock.last_close:
        text += f" (last close {format_price(stock.last_close, stock)})"
    return text


def format_percent(value: Any, stock: Stock) -> str:
    return "n/a" if value is None else f"{_plain(float(value))} %"


def format_temperature(value: Any, stock: Stock) -> str:
    return "n/a" if value is None else f"{_plain(float(value))}°C"


@dataclass(frozen=True)
class AttributeDescriptor:
    """How one stock attribute is labelled, formatted and compared."""

    name: str
    label: str
    direction: Direction = Direction.HIGHER
    formatter: Formatter = format_plain
    ordering: Tuple[str, ...] = ()
    notify: bool = True

    def directionality(self, old: Any, new: Any) -> Directionality:
        if self.direction == Direction.NEUTRAL or old is None or new is None:
            return Directionality.NEUTRAL
        if self.direction == Direction.ORDERED:
            old_rank = self.ordering.index(_plain(old))
            new_rank = self.ordering.index(_plain(new))
            if new_rank == old_rank:
                return Directionality.NEUTRAL
            return Directionality.IMPROVED if new_rank < old_rank else Directionality.WORSENED
        if new == old:
            return Directionality.NEUTRAL
        better = new > old if self.direction == Direction.HIGHER else new < old
        return Directionality.IMPROVED if better else Directionality.WORSENED

    def format(self, value: Any, stock: Stock) -> str:
        return self.formatter(value, stock)


def _last_fetch(name: str, provider: str) -> AttributeDescriptor:
    return AttributeDescriptor(name, f"{provider} last fetch", Direction.NEUTRAL, notify=False)


ATTRIBUTES: Dict[str, AttributeDescriptor] = {
    descriptor.name: descriptor
    for descriptor in (
        # Morningstar
        _last_fetch("morningstar_last_fetch", "Morningstar"),
        AttributeDescriptor("star_rating", "Star Rating", formatter=format_stars),
        AttributeDescriptor("size", "Size", Direction.NEUTRAL),
        AttributeDescriptor("style", "Style", Direction.NEUTRAL),
        AttributeDescriptor("currency", "Currency", Direction.NEUTRAL),
        AttributeDescriptor("last_close", "Last Close", formatter=format_price),
        AttributeDescriptor("morningstar_fair_value", "Morningstar Fair Value", formatter=format_fair_value),
        AttributeDescriptor("dividend_yield_percent", "Dividend Yield", formatter=format_percent),
        AttributeDescriptor("price_earning_ratio", "P/E Ratio", Direction.LOWER),
        AttributeDescriptor("low_52w", "52 Week Low", formatter=format_price),
        AttributeDescriptor("high_52w", "52 Week High", formatter=format_price),
        # MarketScreener
        _last_fetch("marketscreener_last_fetch", "MarketScreener"),
        AttributeDescriptor("analyst_consensus", "Analyst Consensus"),
        AttributeDescriptor("analyst_count", "Analyst Count"),
        AttributeDescriptor("analyst_target_price", "Analyst Target Price", formatter=format_price),
        # MSCI
        _last_fetch("msci_last_fetch", "MSCI"),
        AttributeDescriptor(
            "msci_esg_rating",
            "MSCI ESG Rating",
            Direction.ORDERED,
            ordering=tuple(MSCI_ESG_RATING_ORDER),
        ),
        AttributeDescriptor("msci_temperature", "MSCI Implied Temperature Rise", Direction.LOWER, format_temperature),
        # LSEG
        _last_fetch("lseg_last_fetch", "LSEG"),
        AttributeDescriptor("lseg_esg_score", "LSEG ESG Score"),
        AttributeDescriptor("lseg_emissions", "LSEG Emissions Score"),
        # S&P
        _last_fetch("sp_last_fetch", "S&P"),
        AttributeDescriptor("sp_esg_score", "S&P ESG Score"),
    )
}
