"""Wires catalogue, sessions, notifier and resources into provider runs."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from .browser import SessionManager
from .catalogue import CatalogueStore
from .config import Settings
from .errors import NotFound
from .models import Stock
from .notify import Notifier, TelegramNotifier
from .providers import Provider, get_provider
from .resources import ResourceStore
from .runner import Catalogue, FetchOptions, ProviderRun, RunResult, utcnow
from .scheduler import DEFAULT_CYCLE, CycleEntry, RunScheduler
from .workspace import FetchWorkspace

LOGGER = logging.getLogger(__name__)

NEVER = datetime.min.replace(tzinfo=timezone.utc)


class FetchService:
    """Entry point used by the CLI, the API and the scheduled flow."""

    def __init__(
        self,
        catalogue: Catalogue,
        sessions: SessionManager,
        notifier: Notifier,
        resources: Optional[ResourceStore] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.catalogue = catalogue
        self.sessions = sessions
        self.notifier = notifier
        self.resources = resources
        self.settings = settings or Settings()
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> FetchService:
        settings = settings or Settings.from_env()
        dsn = settings.require_dsn()
        return cls(
            catalogue=CatalogueStore(dsn),
            sessions=SessionManager(settings.browser),
            notifier=TelegramNotifier(
                settings.telegram_bot_token,
                settings.telegram_chat_id,
                settings.telegram_error_chat_id,
            ),
            resources=ResourceStore(dsn),
            settings=settings,
        )

    def select_stocks(self, provider: Provider, ticker: Optional[str] = None) -> List[Stock]:
        """Stocks eligible for a provider run, least recently fetched first.

        Raises
        ------
        NotFound
            If ``ticker`` is unknown or has no identifier for the provider.
        """
        if ticker:
            stock = self.catalogue.read_one(ticker)
            if not provider.provider_id(stock):
                raise NotFound(f"Stock {ticker} does not have a {provider.display_name} ID.")
            return [stock]

        stocks = [stock for stock in self.catalogue.read_all() if provider.provider_id(stock)]
        stocks.sort(key=lambda stock: provider.last_fetch(stock) or NEVER)
        return stocks

    def run(self, provider: Provider, stocks: Sequence[Stock], options: Optional[FetchOptions] = None) -> RunResult:
        return ProviderRun(
            provider,
            stocks,
            options,
            catalogue=self.catalogue,
            sessions=self.sessions,
            notifier=self.notifier,
            resources=self.resources,
            settings=self.settings,
            clock=self.clock,
        ).execute()

    def fetch(self, provider_name: str, options: Optional[FetchOptions] = None) -> RunResult:
        options = options or FetchOptions()
        provider = get_provider(provider_name)
        stocks = self.select_stocks(provider, options.ticker)
        if not stocks:
            LOGGER.info("No stocks to fetch from %s", provider.display_name)
            return RunResult(provider.name, FetchWorkspace())
        return self.run(provider, stocks, options)

    def purge_resources(self) -> int:
        if self.resources is None:
            return 0
        return self.resources.purge_expired()

    def concurrency_for(self, entry: CycleEntry) -> int:
        return entry.concurrency or self.settings.max_fetch_concurrency

    def run_entry(self, entry: CycleEntry) -> RunResult:
        return self.fetch(entry.provider, FetchOptions(concurrency=self.concurrency_for(entry)))

    def scheduler(self, entries: Sequence[CycleEntry] = DEFAULT_CYCLE) -> RunScheduler:
        return RunScheduler(entries, self.run_entry, self.notifier, before_cycle=self.purge_resources)
