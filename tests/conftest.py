from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import pytest
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from stockfetch.browser import PageLoadStrategy, Session, SessionManager
from stockfetch.config import BrowserSettings, Settings
from stockfetch.errors import NotFound
from stockfetch.models import STOCK_FIELDS, Stock
from stockfetch.notify import MessageType
from stockfetch.resources import Resource

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

MSCI_URL = "https://www.msci.com/our-solutions/esg-investing/esg-ratings-climate-search-tool/issuer/{}"


@dataclass
class FakeElement:
    text: str = ""
    attrs: Dict[str, str] = field(default_factory=dict)


class FakeWeb:
    """Pages served to every fake browser, keyed by URL."""

    def __init__(self) -> None:
        self.pages: Dict[str, Dict[str, FakeElement]] = {}
        self.navigations: List[str] = []
        self.broken_sessions = 0
        # Stock pages one session serves before its navigations time out.
        self.pages_per_session: Optional[int] = None

    def add_page(self, url: str, elements: Dict[str, FakeElement]) -> None:
        self.pages[url] = elements

    def stock_navigations(self) -> List[str]:
        return [url for url in self.navigations if url != "about:blank"]


class FakeLocator:
    def __init__(self, page: FakePage, selector: str) -> None:
        self.page = page
        self.selector = selector

    @property
    def first(self) -> FakeLocator:
        return self

    def _element(self, timeout: Optional[float]) -> FakeElement:
        element = self.page.elements().get(self.selector)
        if element is None:
            raise PlaywrightTimeoutError(f"Locator.inner_text: Timeout {timeout or 0:.0f}ms exceeded.\nCall log")
        return element

    def count(self) -> int:
        return 1 if self.selector in self.page.elements() else 0

    def inner_text(self, timeout: Optional[float] = None) -> str:
        return self._element(timeout).text

    def get_attribute(self, name: str, timeout: Optional[float] = None) -> Optional[str]:
        return self._element(timeout).attrs.get(name)


class FakePage:
    def __init__(self, web: FakeWeb, broken: bool = False) -> None:
        self.web = web
        self.broken = broken
        self.url = "about:blank"
        self.default_timeout: Optional[float] = None
        self.served = 0

    def elements(self) -> Dict[str, FakeElement]:
        return self.web.pages.get(self.url, {})

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout

    def goto(self, url: str, wait_until: str = "load", timeout: Optional[float] = None) -> None:
        self.web.navigations.append(url)
        if self.broken or self._exhausted(url):
            raise PlaywrightTimeoutError(f"Page.goto: Timeout {timeout or 0:.0f}ms exceeded.")
        if url != "about:blank":
            self.served += 1
        self.url = url

    def _exhausted(self, url: str) -> bool:
        limit = self.web.pages_per_session
        return limit is not None and url != "about:blank" and self.served >= limit

    def wait_for_url(self, url: Any, timeout: Optional[float] = None) -> None:
        matched = url(self.url) if callable(url) else url == self.url
        if not matched:
            raise PlaywrightTimeoutError("Page.wait_for_url: Timeout exceeded.")

    def wait_for_selector(self, selector: str, state: str = "visible", timeout: Optional[float] = None) -> None:
        if not any(part.strip() in self.elements() for part in selector.split(",")):
            raise PlaywrightTimeoutError(f"Page.wait_for_selector: Timeout {timeout or 0:.0f}ms exceeded.")

    def locator(self, selector: str) -> FakeLocator:
        return FakeLocator(self, selector)

    def screenshot(self, full_page: bool = False, type: str = "png") -> bytes:
        return b"\x89PNG fake"


class FakeContext:
    def __init__(self) -> None:
        self.closed = False
        self.cookies_cleared = 0

    def clear_cookies(self) -> None:
        self.cookies_cleared += 1

    def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, fail_close: bool = False) -> None:
        self.fail_close = fail_close
        self.closed = False

    def close(self) -> None:
        if self.fail_close:
            raise PlaywrightError("Browser.close: Target page, context or browser has been closed")
        self.closed = True


class FakePlaywright:
    def __init__(self) -> None:
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class FakeSessionManager(SessionManager):
    """Real session logic on top of fake Playwright handles."""

    def __init__(self, web: FakeWeb, settings: Optional[BrowserSettings] = None, fail_close: bool = False) -> None:
        super().__init__(settings or BrowserSettings(acquire_jitter=0), sleep=lambda _: None)
        self.web = web
        self.fail_close = fail_close
        self.created: List[Session] = []

    def _start_session(self, session_id: str, headless: bool, page_load_strategy: PageLoadStrategy) -> Session:
        broken = len(self.created) < self.web.broken_sessions
        session = Session(
            session_id=session_id,
            page=FakePage(self.web, broken=broken),
            context=FakeContext(),
            browser=FakeBrowser(fail_close=self.fail_close),
            playwright=FakePlaywright(),
            page_load_strategy=page_load_strategy,
        )
        self.created.append(session)
        return session


class MemoryCatalogue:
    def __init__(self, stocks: List[Stock]) -> None:
        self.stocks: Dict[str, Stock] = {stock.ticker: stock for stock in stocks}
        self.patches: List[Tuple[str, Dict[str, Any]]] = []

    def read_one(self, ticker: str) -> Stock:
        if ticker not in self.stocks:
            raise NotFound(f"Stock {ticker} not found.")
        return self.stocks[ticker].model_copy()

    def read_all(self) -> List[Stock]:
        return [stock.model_copy() for stock in self.stocks.values()]

    def patch(self, ticker: str, fields: Dict[str, Any]) -> None:
        unknown = set(fields) - STOCK_FIELDS
        if unknown:
            raise ValueError(f"Unknown stock attributes: {unknown}")
        if ticker not in self.stocks:
            raise NotFound(f"Stock {ticker} not found.")
        self.patches.append((ticker, dict(fields)))
        self.stocks[ticker] = self.stocks[ticker].with_values(fields)


class RecordingNotifier:
    def __init__(self) -> None:
        self.messages: List[Tuple[str, MessageType]] = []

    def send(self, message: str, message_type: MessageType = MessageType.FETCH_ERROR) -> None:
        self.messages.append((message, message_type))

    def of_type(self, message_type: MessageType) -> List[str]:
        return [message for message, kind in self.messages if kind == message_type]


class MemoryResources:
    def __init__(self) -> None:
        self.resources: Dict[str, Resource] = {}

    def save(self, resource_id: str, content: bytes, ttl: float, content_type: str = "image/png") -> None:
        self.resources[resource_id] = Resource(resource_id, content, content_type, NOW + timedelta(seconds=ttl))

    def read(self, resource_id: str) -> Resource:
        if resource_id not in self.resources:
            raise NotFound(f"Resource {resource_id} not found.")
        return self.resources[resource_id]

    def purge_expired(self) -> int:
        return 0


def msci_stock(index: int, **values: Any) -> Stock:
    data = {
        "ticker": f"T{index}",
        "name": f"Company {index}",
        "msci_id": f"issuer-{index}",
        "msci_esg_rating": "A",
        "msci_temperature": 2.0,
    }
    data.update(values)
    return Stock(**data)


def msci_page(rating: Optional[str] = "a", temperature: Optional[str] = "2.0°C") -> Dict[str, FakeElement]:
    elements: Dict[str, FakeElement] = {".esg-ratings-profile-header": FakeElement(text="ESG Ratings")}
    if rating is not None:
        elements[".ratingdata-company-rating"] = FakeElement(
            attrs={"class": f"ratingdata-company-rating esg-rating-circle-{rating}"}
        )
    if temperature is not None:
        elements[".implied-temp-rise-value"] = FakeElement(text=temperature)
    return elements


@pytest.fixture
def web() -> FakeWeb:
    return FakeWeb()


@pytest.fixture
def sessions(web) -> FakeSessionManager:
    return FakeSessionManager(web)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def resources() -> MemoryResources:
    return MemoryResources()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        browser=BrowserSettings(acquire_jitter=0),
        max_fetch_concurrency=4,
        public_base_url="http://stockfetch.test",
    )
