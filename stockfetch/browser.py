"""Browser session lifecycle on top of Playwright's sync API."""
from __future__ import annotations

import logging
import random
import threading
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
from urllib.parse import unquote

import requests
from playwright.sync_api import Browser, BrowserContext, Page, Playwright, Route, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from .config import BrowserSettings
from .errors import PageNotReady, SessionUnavailable

LOGGER = logging.getLogger(__name__)

VIEWPORT = {"width": 1080, "height": 3840}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
LAUNCH_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
    "--disable-gpu",
]


class PageLoadStrategy(str, Enum):
    """How long ``goto`` blocks before returning."""

    NORMAL = "normal"
    EAGER = "eager"
    NONE = "none"

    @property
    def wait_until(self) -> str:
        return {
            PageLoadStrategy.NORMAL: "load",
            PageLoadStrategy.EAGER: "domcontentloaded",
            PageLoadStrategy.NONE: "commit",
        }[self]


@dataclass
class Session:
    """One browser instance owned by a single worker thread."""

    session_id: str
    page: Page
    context: BrowserContext
    browser: Browser
    playwright: Playwright
    page_load_strategy: PageLoadStrategy = PageLoadStrategy.NONE


def _block_images(route: Route) -> None:
    if route.request.resource_type == "image":
        route.abort()
    else:
        route.continue_()


class SessionManager:
    """Creates, checks and tears down browser sessions."""

    def __init__(
        self,
        settings: Optional[BrowserSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or BrowserSettings()
        self._sleep = sleep

    def acquire(
        self,
        headless: Optional[bool] = None,
        page_load_strategy: PageLoadStrategy = PageLoadStrategy.NONE,
    ) -> Session:
        """Create a new session.

        Parameters
        ----------
        headless : bool, optional
            Overrides ``BrowserSettings.headless`` for local browsers.
        page_load_strategy : PageLoadStrategy
            Strategy used by every navigation of this session.

        Raises
        ------
        SessionUnavailable
            If the browser endpoint cannot be reached.
        """
        delay = random.uniform(0, self.settings.acquire_jitter) if self.settings.acquire_jitter > 0 else 0.0
        if delay:
            self._sleep(delay)

        session_id = uuid.uuid4().hex
        if headless is None:
            headless = self.settings.headless
        try:
            session = self._start_session(session_id, headless, page_load_strategy)
        except PlaywrightError as exc:
            LOGGER.error("Unable to create browser session: %s", exc)
            raise SessionUnavailable(f"Unable to create browser session: {exc}") from exc

        LOGGER.debug("Acquired session %s (%s)", session_id, page_load_strategy.value)
        return session

    def _start_session(
        self,
        session_id: str,
        headless: bool,
        page_load_strategy: PageLoadStrategy,
    ) -> Session:
        playwright = sync_playwright().start()
        try:
            if self.settings.ws_endpoint:
                browser = playwright.chromium.connect(
                    self.settings.ws_endpoint,
                    headers={"X-Session-Id": session_id},
                    timeout=self.settings.default_timeout * 1000,
                )
            else:
                launch_kwargs = {"headless": headless, "args": LAUNCH_ARGS}
                if self.settings.proxy:
                    launch_kwargs["proxy"] = self.settings.proxy.to_playwright_dict()
                browser = playwright.chromium.launch(**launch_kwargs)

            context = browser.new_context(viewport=VIEWPORT, user_agent=USER_AGENT)
            context.route("**/*", _block_images)
            page = context.new_page()
            page.set_default_timeout(self.settings.default_timeout * 1000)
        except Exception:
            playwright.stop()
            raise

        return Session(
            session_id=session_id,
            page=page,
            context=context,
            browser=browser,
            playwright=playwright,
            page_load_strategy=page_load_strategy,
        )

    def navigate_and_confirm(self, session: Session, url: str, timeout: Optional[float] = None) -> bool:
        """Open ``url`` and wait until the page reports it as its location.

        Returns ``False`` instead of raising when the navigation fails, which
        callers treat as an unhealthy session.
        """
        if timeout is None:
            timeout = self.settings.navigation_timeout
        target = unquote(url)
        try:
            session.page.goto(
                url,
                wait_until=session.page_load_strategy.wait_until,
                timeout=self.settings.default_timeout * 1000,
            )
            session.page.wait_for_url(lambda current: unquote(current) == target, timeout=timeout * 1000)
        except PlaywrightError as exc:
            LOGGER.warning(
                "Session %s did not reach %s (%s). The session may be unhealthy.",
                session.session_id,
                url,
                str(exc).split("\n")[0],
            )
            return False
        return True

    def check_health(self, session: Session) -> bool:
        return self.navigate_and_confirm(session, "about:blank")

    def wait_for_marker(self, session: Session, selector: str, timeout: float) -> None:
        """Wait for an element proving that the page content has rendered."""
        try:
            session.page.wait_for_selector(selector, state="attached", timeout=timeout * 1000)
        except PlaywrightError as exc:
            raise PageNotReady(f"Page element {selector} did not appear within {timeout:.0f}s") from exc

    def clear_cookies(self, session: Session) -> None:
        session.context.clear_cookies()

    def screenshot(self, session: Session) -> bytes:
        return session.page.screenshot(full_page=True, type="png")

    def release(self, session: Session) -> None:
        """Close the session, force-terminating it if a graceful close fails."""
        try:
            session.context.close()
            session.browser.close()
        except Exception as exc:
            LOGGER.error("Unable to close session %s gracefully: %s", session.session_id, exc)
            self._force_terminate(session.session_id)
        finally:
            try:
                session.playwright.stop()
            except Exception as exc:
                LOGGER.warning("Unable to stop Playwright driver of session %s: %s", session.session_id, exc)

    def _force_terminate(self, session_id: str) -> None:
        if not self.settings.kill_url:
            LOGGER.warning("No BROWSER_KILL_URL configured, session %s may leak", session_id)
            return
        url = f"{self.settings.kill_url.rstrip('/')}/{session_id}"
        threading.Thread(target=_send_kill_request, args=(url,), daemon=True).start()


def _send_kill_request(url: str) -> None:
    try:
        response = requests.delete(url, timeout=10)
        if response.status_code >= 400:
            LOGGER.warning("Forceful session termination %s returned %s", url, response.status_code)
    except requests.RequestException as exc:
        LOGGER.warning("Forceful session termination %s failed: %s", url, exc)
