"""Single-field extraction with isolated failures."""
from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Optional, Type, TypeVar

from .browser import Session
from .errors import FieldExtractionError

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")
E = TypeVar("E", bound=Enum)

NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
SUMMARY_SPLIT_RE = re.compile(r"[\n:{]")
API_PREFIX_RE = re.compile(r"^\w+\.\w+: ")


@dataclass(frozen=True)
class Locator:
    """Where a field lives on a page.

    Reads ``attribute`` of the first element matching ``selector``, or its
    inner text when no attribute is given.
    """

    selector: str
    attribute: Optional[str] = None
    timeout: float = 5.0


@dataclass(frozen=True)
class ExtractionResult(Generic[T]):
    """Either a parsed value or an error summary, never both."""

    value: Optional[T] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.value is not None and self.error is not None:
            raise ValueError("ExtractionResult cannot carry both a value and an error")

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> ExtractionResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, error: str) -> ExtractionResult[T]:
        return cls(error=error)


def summarize_error(exc: BaseException) -> str:
    """First part of an error message, up to a newline, colon or brace."""
    # Playwright prefixes messages with the failing call, e.g. "Locator.inner_text: "
    message = API_PREFIX_RE.sub("", str(exc))
    summary = SUMMARY_SPLIT_RE.split(message, maxsplit=1)[0].strip()
    return summary or type(exc).__name__


def read_raw(session: Session, locator: Locator) -> str:
    element = session.page.locator(locator.selector).first
    timeout = locator.timeout * 1000
    if locator.attribute:
        raw = element.get_attribute(locator.attribute, timeout=timeout)
        if raw is None:
            raise FieldExtractionError(f"Element {locator.selector} has no attribute {locator.attribute}")
        return raw
    return element.inner_text(timeout=timeout)


def extract(session: Session, locator: Locator, parse: Callable[[str], T]) -> ExtractionResult[T]:
    """Read and parse one field; any exception becomes an error result."""
    try:
        return ExtractionResult.success(parse(read_raw(session, locator)))
    except Exception as exc:
        return ExtractionResult.failure(summarize_error(exc))


def parse_number(text: str) -> float:
    """Parse a plain number; anything that is not a number becomes ``0.0``.

    Some providers render "no data" as ``N/A``, ``-`` or an empty widget.
    """
    cleaned = text.strip().replace("\xa0", "").replace(" ", "").replace(",", "").rstrip("%")
    try:
        value = float(cleaned)
    except ValueError:
        return 0.0
    if math.isnan(value):
        return 0.0
    return value


def single_number(text: str, decimal_comma: bool = False) -> float:
    """Extract exactly one decimal number embedded in ``text``.

    >>> single_number("2.5°C")
    2.5
    """
    if decimal_comma:
        text = text.replace(",", ".")
    matches = NUMBER_RE.findall(text)
    if len(matches) != 1:
        raise FieldExtractionError(f"Extracted text “{text.strip()}” does not hold exactly one number")
    return float(matches[0])


def first_number(text: str) -> float:
    matches = NUMBER_RE.findall(text)
    if not matches:
        raise FieldExtractionError(f"Extracted text “{text.strip()}” holds no number")
    return float(matches[0])


def parse_enum(enum_cls: Type[E], text: str) -> E:
    """Map text onto a member of ``enum_cls`` by value, ignoring case."""
    value = text.strip()
    for member in enum_cls:
        if member.value == value or str(member.value).lower() == value.lower():
            return member
    raise FieldExtractionError(f"Extracted value “{value}” is no valid {enum_cls.__name__}")
