"""Per-run work queue with outcome buckets."""
from __future__ import annotations

import logging
import threading
from collections import deque
from enum import Enum
from typing import Deque, Dict, Iterable, List, Optional

from .models import Stock

LOGGER = logging.getLogger(__name__)


class Bucket(str, Enum):
    """Where a stock sits during a provider run."""

    QUEUED = "queued"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    SKIPPED = "skipped"


class FetchWorkspace:
    """Stocks of one provider run, partitioned into four disjoint buckets.

    Every stock enters ``queued`` and leaves it for exactly one of
    ``successful``, ``failed`` or ``skipped``. All operations take the same
    lock, so workers on different threads may share one workspace. Marking a
    stock replaces any entry with the same ticker in the other buckets, which
    lets callers pass a freshly re-read copy of the stock.
    """

    def __init__(self, stocks: Optional[Iterable[Stock]] = None) -> None:
        self._lock = threading.Lock()
        self._queued: Deque[Stock] = deque()
        self._successful: List[Stock] = []
        self._failed: List[Stock] = []
        self._skipped: List[Stock] = []
        if stocks:
            self.enqueue(stocks)

    def enqueue(self, stocks: Iterable[Stock]) -> None:
        with self._lock:
            self._queued.extend(stocks)

    def dequeue_next(self) -> Optional[Stock]:
        """Pop the oldest queued stock, or ``None`` when the queue is empty."""
        with self._lock:
            if not self._queued:
                return None
            return self._queued.popleft()

    def requeue_front(self, stock: Stock) -> None:
        """Put a stock back at the head of the queue for another worker."""
        with self._lock:
            self._discard(stock.ticker)
            self._queued.appendleft(stock)

    def mark_skipped(self, stock: Stock) -> None:
        self._move(stock, self._skipped)

    def mark_successful(self, stock: Stock) -> None:
        self._move(stock, self._successful)

    def mark_failed(self, stock: Stock) -> None:
        self._move(stock, self._failed)

    def remaining_count(self) -> int:
        with self._lock:
            return len(self._queued)

    def drain_remaining_to_skipped(self) -> List[Stock]:
        """Move every queued stock to ``skipped``.

        Returns
        -------
        list[Stock]
            The drained stocks. Empty when another caller drained first.
        """
        with self._lock:
            drained = list(self._queued)
            self._queued.clear()
            self._skipped.extend(drained)
        if drained:
            LOGGER.debug("Drained %d queued stocks to skipped", len(drained))
        return drained

    @property
    def queued(self) -> List[Stock]:
        with self._lock:
            return list(self._queued)

    @property
    def successful(self) -> List[Stock]:
        with self._lock:
            return list(self._successful)

    @property
    def failed(self) -> List[Stock]:
        with self._lock:
            return list(self._failed)

    @property
    def skipped(self) -> List[Stock]:
        with self._lock:
            return list(self._skipped)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {
                Bucket.QUEUED.value: len(self._queued),
                Bucket.SUCCESSFUL.value: len(self._successful),
                Bucket.FAILED.value: len(self._failed),
                Bucket.SKIPPED.value: len(self._skipped),
            }

    def _move(self, stock: Stock, destination: List[Stock]) -> None:
        with self._lock:
            self._discard(stock.ticker)
            destination.append(stock)

    def _discard(self, ticker: str) -> None:
        # Caller holds the lock.
        for bucket in (self._successful, self._failed, self._skipped):
            bucket[:] = [s for s in bucket if s.ticker != ticker]
        if any(s.ticker == ticker for s in self._queued):
            self._queued = deque(s for s in self._queued if s.ticker != ticker)
