"""Attribute diffs between stored and freshly fetched stock data."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol

from .attributes import ATTRIBUTES, Directionality
from .extract import ExtractionResult
from .models import Stock
from .notify import MessageType, Notifier

LOGGER = logging.getLogger(__name__)

__all__ = [
    "Change",
    "ChangeDetector",
    "ChangeSet",
    "Directionality",
    "is_regression",
]


class StockWriter(Protocol):
    def patch(self, ticker: str, fields: Mapping[str, Any]) -> None:
        ...


def _normalize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class Change:
    field: str
    old: Any
    new: Any
    directionality: Directionality

    def describe(self, stock: Stock) -> str:
        descriptor = ATTRIBUTES[self.field]
        return (
            f"{self.directionality.indicator} {descriptor.label} changed from "
            f"{descriptor.format(self.old, stock)} to {descriptor.format(self.new, stock)}"
        )


@dataclass
class ChangeSet:
    """Ordered attribute changes for one stock."""

    ticker: str
    changes: List[Change] = field(default_factory=list)

    def __iter__(self) -> Iterator[Change]:
        return iter(self.changes)

    def __len__(self) -> int:
        return len(self.changes)

    def __bool__(self) -> bool:
        return bool(self.changes)

    def fields(self) -> List[str]:
        return [change.field for change in self.changes]

    def as_patch(self) -> Dict[str, Any]:
        return {change.field: change.new for change in self.changes}

    def notable(self) -> List[Change]:
        return [change for change in self.changes if ATTRIBUTES[change.field].notify]


def is_regression(stored: Any, result: ExtractionResult) -> bool:
    """A previously known value could not be extracted again."""
    return stored is not None and not result.ok


class ChangeDetector:
    """Diffs new values against a stock, persists the changes and reports them."""

    def __init__(self, catalogue: StockWriter, notifier: Notifier) -> None:
        self.catalogue = catalogue
        self.notifier = notifier

    def diff(self, stock: Stock, new_values: Mapping[str, Any]) -> ChangeSet:
        changeset = ChangeSet(stock.ticker)
        for name, new in new_values.items():
            descriptor = ATTRIBUTES.get(name)
            if descriptor is None:
                raise ValueError(f"Unknown stock attribute {name!r}")
            old = stock.get(name)
            if _normalize(old) == _normalize(new):
                continue
            changeset.changes.append(Change(name, old, new, descriptor.directionality(old, new)))
        return changeset

    def format_message(self, stock: Stock, changeset: ChangeSet) -> Optional[str]:
        notable = changeset.notable()
        if not notable:
            return None
        updated = stock.with_values(changeset.as_patch())
        lines = [f"Updates for {stock.name} ({stock.ticker}):"]
        lines.extend(f"\t{change.describe(updated)}" for change in notable)
        return "\n".join(lines)

    def diff_and_persist(self, stock: Stock, new_values: Mapping[str, Any]) -> ChangeSet:
        """Write only the changed attributes and send one update message."""
        changeset = self.diff(stock, new_values)
        if not changeset:
            LOGGER.debug("%s: no attribute changed", stock.ticker)
            return changeset

        self.catalogue.patch(stock.ticker, changeset.as_patch())
        LOGGER.info("%s: updated %s", stock.ticker, ", ".join(changeset.fields()))

        message = self.format_message(stock, changeset)
        if message:
            self.notifier.send(message, MessageType.STOCK_UPDATE)
        return changeset
