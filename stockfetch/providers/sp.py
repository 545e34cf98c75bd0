"""S&P Global ESG score."""
from __future__ import annotations

from datetime import timedelta

from ..browser import PageLoadStrategy, Session, SessionManager
from ..errors import PageNotReady
from ..extract import Locator, parse_number
from ..models import Stock
from .base import FieldSpec, Provider

LOCKED_CONTENT = ".lock__content"
PREMIUM_NOTICE = "This company's ESG Score and underlying data are available via our premium channels"


def parse_esg_score(raw: str, stock: Stock) -> float:
    return parse_number(raw)


class SPProvider(Provider):
    name = "sp"
    display_name = "S&P"
    id_field = "sp_id"
    last_fetch_field = "sp_last_fetch"
    staleness = timedelta(days=7)
    page_load_strategy = PageLoadStrategy.NONE
    ready_selector = "div.panel-set__first-column:has(h1#company-name)"
    fields = (FieldSpec("sp_esg_score", Locator("#esg-score"), parse_esg_score),)

    def url_for(self, stock: Stock) -> str:
        return f"https://www.spglobal.com/esg/scores/results?cid={self.provider_id(stock)}"

    def check_page(self, sessions: SessionManager, session: Session) -> None:
        locked = session.page.locator(LOCKED_CONTENT)
        if locked.count() > 0 and PREMIUM_NOTICE in locked.first.inner_text():
            raise PageNotReady("This stock’s ESG Score is available for S&P Premium subscribers only")
