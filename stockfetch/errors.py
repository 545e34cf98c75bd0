"""Exception hierarchy for the fetch pipeline."""
from __future__ import annotations

from typing import Optional


class FetchPipelineError(Exception):
    """Base class for all fetch pipeline errors."""

    status_code: int = 500


class SessionUnavailable(FetchPipelineError):
    """The browser endpoint could not be reached or a session could not be created."""

    status_code = 502


class NavigationTimeout(FetchPipelineError):
    """Navigation did not land on the requested URL in time.

    Signals an unhealthy session rather than a broken page.
    """

    status_code = 502


class PageNotReady(FetchPipelineError):
    """The provider page never showed the element it is expected to render."""

    status_code = 502


class FieldExtractionError(FetchPipelineError):
    """A single field could not be extracted or did not validate."""

    def __init__(self, message: str, field: Optional[str] = None) -> None:
        super().__init__(message)
        self.field = field


class ExtractionRegression(FieldExtractionError):
    """A field with a stored value could not be extracted again."""


class CircuitBreakerTripped(FetchPipelineError):
    """Too many stocks failed within one provider run."""

    def __init__(self, provider: str, failures: int) -> None:
        super().__init__(f"{provider}: aborting after {failures} failed stocks")
        self.provider = provider
        self.failures = failures


class NotFound(FetchPipelineError):
    """A stock, provider or resource is unknown."""

    status_code = 404


class FatalFetchError(FetchPipelineError):
    """A single-stock fetch failed; surfaced to the caller instead of alerted."""

    status_code = 502
