"""Provider fetch runs: drain a workspace with one or more browser sessions."""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

import psycopg2
from playwright.sync_api import Error as PlaywrightError

from .attributes import ATTRIBUTES
from .breaker import CircuitBreaker, CircuitBreakerConfig
from .browser import Session, SessionManager
from .changes import ChangeDetector, is_regression
from .config import Settings
from .errors import (
    CircuitBreakerTripped,
    ExtractionRegression,
    FatalFetchError,
    NavigationTimeout,
    NotFound,
    SessionUnavailable,
)
from .extract import extract, summarize_error
from .models import Stock
from .notify import MessageType, Notifier
from .providers import Provider
from .resources import ResourceStore, store_screenshot
from .workspace import FetchWorkspace

LOGGER = logging.getLogger(__name__)


class Catalogue(Protocol):
    def read_one(self, ticker: str) -> Stock:
        ...

    def read_all(self) -> List[Stock]:
        ...

    def patch(self, ticker: str, fields: Dict[str, Any]) -> None:
        ...


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FetchOptions:
    """Caller options for one provider run.

    Parameters
    ----------
    ticker : str, optional
        Fetch only this stock. Failures are raised instead of alerted.
    no_skip : bool, optional
        Fetch stocks even if they are within the staleness window. Defaults
        to True for single-stock requests and False otherwise.
    clear : bool
        Write ``None`` for fields that could not be extracted.
    concurrency : int
        Number of parallel browser sessions.
    """

    ticker: Optional[str] = None
    no_skip: Optional[bool] = None
    clear: bool = False
    concurrency: int = 1

    @property
    def single(self) -> bool:
        return self.ticker is not None

    @property
    def skip_fresh(self) -> bool:
        if self.no_skip is None:
            return not self.single
        return not self.no_skip


def determine_concurrency(requested: Any, maximum: int) -> int:
    """Validate a requested number of sessions."""
    try:
        value = int(requested)
    except (TypeError, ValueError):
        value = 0
    if value < 1:
        LOGGER.warning("Invalid concurrency %r requested, using 1", requested)
        return 1
    if value > maximum:
        LOGGER.warning("Concurrency %d exceeds the maximum, using %d", value, maximum)
        return maximum
    return value


@dataclass
class RunResult:
    provider: str
    workspace: FetchWorkspace
    aborted: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def successful(self) -> List[Stock]:
        return self.workspace.successful

    @property
    def failed(self) -> List[Stock]:
        return self.workspace.failed

    @property
    def skipped(self) -> List[Stock]:
        return self.workspace.skipped

    def summary(self) -> str:
        stats = self.workspace.stats()
        return (
            f"{self.provider}: {stats['successful']} successful, {stats['failed']} failed, "
            f"{stats['skipped']} skipped{' (aborted)' if self.aborted else ''}"
        )


class ProviderRun:
    """One run of one provider over a list of stocks.

    Owns its workspace, circuit breaker and sessions. Each worker thread
    acquires its own session lazily, so stocks that are skipped never cause a
    navigation.
    """

    def __init__(
        self,
        provider: Provider,
        stocks: Iterable[Stock],
        options: Optional[FetchOptions] = None,
        *,
        catalogue: Catalogue,
        sessions: SessionManager,
        notifier: Notifier,
        resources: Optional[ResourceStore] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.provider = provider
        self.options = options or FetchOptions()
        self.catalogue = catalogue
        self.sessions = sessions
        self.notifier = notifier
        self.resources = resources
        self.settings = settings or Settings()
        self.clock = clock

        self.workspace = FetchWorkspace(stocks)
        self.breaker = CircuitBreaker(
            CircuitBreakerConfig(failure_threshold=provider.failure_threshold),
            name=provider.name,
        )
        self.detector = ChangeDetector(catalogue, notifier)
        self.concurrency = (
            1
            if self.options.single
            else determine_concurrency(self.options.concurrency, self.settings.max_fetch_concurrency)
        )
        self._aborted = False
        self._errors: List[str] = []
        self._errors_lock = threading.Lock()

    def execute(self) -> RunResult:
        """Process every queued stock.

        Raises
        ------
        FatalFetchError
            Single-stock requests only, if the stock could not be fetched.
        SessionUnavailable
            Single-stock requests only, if no browser session could be created.
        """
        total = self.workspace.remaining_count()
        LOGGER.info(
            "Starting %s run for %d stocks with %d session(s)",
            self.provider.name,
            total,
            self.concurrency,
        )

        with ThreadPoolExecutor(
            max_workers=self.concurrency,
            thread_name_prefix=f"fetch-{self.provider.name}",
        ) as pool:
            futures = [pool.submit(self._work, index) for index in range(self.concurrency)]
            for future in futures:
                try:
                    future.result()
                except (FatalFetchError, SessionUnavailable) as exc:
                    if self.options.single:
                        raise
                    LOGGER.error("%s worker stopped: %s", self.provider.name, exc)
                    self._record_error(summarize_error(exc))
                except Exception as exc:
                    if self.options.single:
                        raise FatalFetchError(
                            f"Stock {self.options.ticker}: Unable to fetch {self.provider.display_name} data: "
                            f"{summarize_error(exc)}"
                        ) from exc
                    LOGGER.error("%s worker ended with an error: %s", self.provider.name, exc, exc_info=True)
                    self._record_error(summarize_error(exc))

        self._drain_leftovers()

        result = RunResult(self.provider.name, self.workspace, self._aborted, list(self._errors))
        LOGGER.info("Finished %s", result.summary())
        return result

    def _work(self, index: int) -> None:
        session: Optional[Session] = None
        replacements = 0
        max_replacements = self.settings.max_session_replacements
        try:
            while True:
                try:
                    self.breaker.check()
                except CircuitBreakerTripped as exc:
                    self._abort(exc)
                    break

                stock = self.workspace.dequeue_next()
                if stock is None:
                    break

                if self.options.skip_fresh and not self.provider.is_stale(stock, self.clock()):
                    LOGGER.info(
                        "Stock %s: skipping %s fetch, last fetched %s",
                        stock.ticker,
                        self.provider.display_name,
                        self.provider.last_fetch(stock),
                    )
                    self.workspace.mark_skipped(stock)
                    continue

                if session is None:
                    try:
                        session = self._acquire()
                    except SessionUnavailable:
                        self.workspace.requeue_front(stock)
                        raise

                if not self._open_page(session, stock):
                    # The session is unhealthy, not the stock.
                    self.workspace.requeue_front(stock)
                    self.sessions.release(session)
                    session = None
                    while session is None and replacements < max_replacements:
                        replacements += 1
                        candidate = self._acquire()
                        if self.sessions.check_health(candidate):
                            session = candidate
                        else:
                            LOGGER.warning("Replacement session %s is unhealthy", candidate.session_id)
                            self.sessions.release(candidate)
                    if session is None:
                        error = NavigationTimeout(
                            f"{self.provider.display_name} worker {index} gave up after "
                            f"{replacements} session replacements"
                        )
                        LOGGER.error("%s", error)
                        self._record_error(str(error))
                        break
                    continue

                # Only consecutive unhealthy sessions count towards the cap.
                replacements = 0
                self._process(session, stock)
        finally:
            if session is not None:
                self.sessions.release(session)

    def _acquire(self) -> Session:
        return self.sessions.acquire(page_load_strategy=self.provider.page_load_strategy)

    def _open_page(self, session: Session, stock: Stock) -> bool:
        if self.provider.clear_cookies_each_stock:
            try:
                self.sessions.clear_cookies(session)
            except PlaywrightError as exc:
                LOGGER.warning("Unable to clear cookies of session %s: %s", session.session_id, exc)
                return False
        return self.sessions.navigate_and_confirm(session, self.provider.url_for(stock))

    def _process(self, session: Session, stock: Stock) -> None:
        try:
            self._fetch_stock(session, stock)
        except FatalFetchError:
            raise
        except Exception as exc:
            if self.options.single:
                self.workspace.mark_failed(stock)
                raise FatalFetchError(
                    f"Stock {stock.ticker}: Unable to fetch {self.provider.display_name} data: "
                    f"{summarize_error(exc)}"
                ) from exc
            LOGGER.warning(
                "Stock %s: Unable to fetch %s data: %s",
                stock.ticker,
                self.provider.display_name,
                exc,
            )
            message = (
                f"Stock {stock.ticker}: Unable to fetch {self.provider.display_name} data: "
                f"{summarize_error(exc)}\n{self._screenshot(session, stock)}"
            )
            self.notifier.send(message, MessageType.FETCH_ERROR)
            self.workspace.mark_failed(self._reread(stock))
            self.breaker.record_failure()

    def _fetch_stock(self, session: Session, stock: Stock) -> None:
        provider = self.provider
        if provider.ready_selector:
            self.sessions.wait_for_marker(session, provider.ready_selector, provider.ready_timeout)
        provider.check_page(self.sessions, session)

        values: Dict[str, Any] = {}
        regressions: List[ExtractionRegression] = []
        for spec in provider.fields:
            result = extract(session, spec.locator, lambda raw, spec=spec: spec.parse(raw, stock))
            if result.ok:
                values[spec.name] = result.value
                continue

            label = ATTRIBUTES[spec.name].label
            LOGGER.warning("Stock %s: Unable to extract %s: %s", stock.ticker, label, result.error)
            if is_regression(stock.get(spec.name), result):
                LOGGER.error(
                    "Stock %s: Extraction of %s failed unexpectedly. This incident will be reported.",
                    stock.ticker,
                    label,
                )
                regressions.append(
                    ExtractionRegression(f"Unable to extract {label}: {result.error}", field=spec.name)
                )
            if self.options.clear:
                values[spec.name] = None

        if not regressions:
            values[provider.last_fetch_field] = self.clock()

        # Fields that did extract are kept even if others regressed.
        self.detector.diff_and_persist(stock, values)
        updated = self._reread(stock)

        if not regressions:
            self.workspace.mark_successful(updated)
            return

        message = f"Error while fetching {provider.display_name} data for {stock.name} ({stock.ticker}):"
        message += "".join(f"\n\t{regression}" for regression in regressions)
        message += f"\n{self._screenshot(session, stock)}"
        self.workspace.mark_failed(updated)
        if self.options.single:
            raise FatalFetchError(message) from regressions[0]
        self.notifier.send(message, MessageType.FETCH_ERROR)
        self.breaker.record_failure()

    def _reread(self, stock: Stock) -> Stock:
        try:
            return self.catalogue.read_one(stock.ticker)
        except (NotFound, psycopg2.Error) as exc:
            LOGGER.warning("Unable to re-read stock %s: %s", stock.ticker, exc)
            return stock

    def _screenshot(self, session: Session, stock: Stock) -> str:
        if self.resources is None:
            return "No screenshot is available."
        try:
            png = self.sessions.screenshot(session)
        except Exception as exc:
            LOGGER.warning("Unable to capture a screenshot of %s: %s", stock.ticker, exc)
            return f"Unable to capture a screenshot: {summarize_error(exc)}"
        return store_screenshot(
            self.resources,
            png,
            self.provider.name,
            stock.ticker,
            self.settings.public_base_url,
            self.settings.screenshot_ttl,
        )

    def _abort(self, exc: CircuitBreakerTripped) -> None:
        drained = self.workspace.drain_remaining_to_skipped()
        self._aborted = True
        if not drained:
            # Another worker already drained the queue and sent the alert.
            return
        message = (
            f"Aborting fetching information from {self.provider.display_name} after "
            f"{exc.failures} unsuccessful fetch attempts. Skipping {len(drained)} stocks: "
            f"{', '.join(stock.ticker for stock in drained)}"
        )
        LOGGER.error("%s", message)
        self._record_error(str(exc))
        self.notifier.send(message, MessageType.FETCH_ERROR)

    def _drain_leftovers(self) -> None:
        leftover = self.workspace.drain_remaining_to_skipped()
        if not leftover:
            return
        tickers = ", ".join(stock.ticker for stock in leftover)
        if self.options.single:
            raise FatalFetchError(
                f"Stock {self.options.ticker}: Unable to open the {self.provider.display_name} page, "
                "no healthy browser session available"
            )
        message = (
            f"{self.provider.display_name}: {len(leftover)} stocks were left in the queue after all sessions "
            f"ended and were skipped: {tickers}"
        )
        LOGGER.error("%s", message)
        self._record_error(message)
        self.notifier.send(message, MessageType.FETCH_ERROR)

    def _record_error(self, message: str) -> None:
        with self._errors_lock:
            self._errors.append(message)
