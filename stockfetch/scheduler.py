"""Sequential provider runs in dependency order."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence

from .extract import summarize_error
from .notify import MessageType, Notifier

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CycleEntry:
    """One provider run of a cycle; ``concurrency=None`` uses the maximum."""

    provider: str
    concurrency: Optional[int] = None


# MSCI blocks parallel sessions quickly. MarketScreener derives the target
# price from the last close, so it runs after Morningstar.
DEFAULT_CYCLE = (
    CycleEntry("msci", concurrency=2),
    CycleEntry("lseg"),
    CycleEntry("sp"),
    CycleEntry("morningstar"),
    CycleEntry("marketscreener"),
)


class RunScheduler:
    def __init__(
        self,
        entries: Sequence[CycleEntry],
        run_provider: Callable[[CycleEntry], Any],
        notifier: Notifier,
        before_cycle: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.entries = tuple(entries)
        self.run_provider = run_provider
        self.notifier = notifier
        self.before_cycle = before_cycle

    def run_cycle(self) -> Dict[str, Any]:
        """Run every entry one after another.

        A failing run is logged and alerted; the next one still starts.
        Returns the result or exception of each run keyed by provider.
        """
        if self.before_cycle is not None:
            try:
                self.before_cycle()
            except Exception as exc:
                LOGGER.error("Pre-cycle cleanup failed: %s", exc, exc_info=True)

        results: Dict[str, Any] = {}
        for entry in self.entries:
            LOGGER.info("Starting scheduled %s run", entry.provider)
            try:
                results[entry.provider] = self.run_provider(entry)
            except Exception as exc:
                LOGGER.error("Scheduled %s run failed: %s", entry.provider, exc, exc_info=True)
                self.notifier.send(
                    f"Scheduled fetch from {entry.provider} failed: {summarize_error(exc)}",
                    MessageType.FETCH_ERROR,
                )
                results[entry.provider] = exc
        LOGGER.info("Fetch cycle finished")
        return results
