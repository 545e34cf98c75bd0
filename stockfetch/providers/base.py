"""Base provider definition shared by all browser-driven data sources."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Tuple

from ..browser import PageLoadStrategy, Session, SessionManager
from ..extract import Locator
from ..models import Stock

LOGGER = logging.getLogger(__name__)

FieldParser = Callable[[str, Stock], Any]


@dataclass(frozen=True)
class FieldSpec:
    """One attribute a provider extracts from its stock page.

    ``parse`` receives the raw text and the stored stock, so derived values
    (e.g. a target price computed from the last close) can use stored data.
    Returning ``None`` means the provider legitimately has no value.
    """

    name: str
    locator: Locator
    parse: FieldParser


def no_dash(parse: FieldParser) -> FieldParser:
    """Treat a lone dash, which providers render for "no data", as ``None``."""

    def wrapper(raw: str, stock: Stock) -> Any:
        if raw.strip() in {"-", "–", "—"}:
            return None
        return parse(raw, stock)

    return wrapper


class Provider:
    """A financial data or ESG rating web site reached through a browser.

    Subclasses set the class attributes and implement ``url_for``.
    """

    name: str = ""
    display_name: str = ""
    id_field: str = ""
    last_fetch_field: str = ""
    staleness: timedelta = timedelta(hours=12)
    page_load_strategy: PageLoadStrategy = PageLoadStrategy.NONE
    ready_selector: Optional[str] = None
    ready_timeout: float = 15.0
    failure_threshold: int = 5
    clear_cookies_each_stock: bool = False
    fields: Tuple[FieldSpec, ...] = ()

    def url_for(self, stock: Stock) -> str:
        raise NotImplementedError

    def check_page(self, sessions: SessionManager, session: Session) -> None:
        """Raise if the loaded page cannot yield data at all."""

    def provider_id(self, stock: Stock) -> Optional[str]:
        return stock.get(self.id_field)

    def last_fetch(self, stock: Stock) -> Optional[datetime]:
        value = stock.get(self.last_fetch_field)
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    def is_stale(self, stock: Stock, now: datetime) -> bool:
        """Whether the stock is due for another fetch."""
        last = self.last_fetch(stock)
        return last is None or now - last >= self.staleness

    @property
    def attribute_names(self) -> Tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
