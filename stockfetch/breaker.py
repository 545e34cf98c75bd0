"""Failure counting circuit breaker shared by the workers of one run."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import CircuitBreakerTripped

LOGGER = logging.getLogger(__name__)


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


@dataclass
class CircuitBreakerConfig:
    """How many stock failures a provider run tolerates before it aborts."""

    failure_threshold: int = 5


class CircuitBreaker:
    """Opens once a run has seen ``failure_threshold`` failures.

    There is no half-open state: a provider run that tripped the breaker is
    over, the next run starts with a fresh breaker.
    """

    def __init__(self, config: Optional[CircuitBreakerConfig] = None, name: str = "") -> None:
        self.config = config or CircuitBreakerConfig()
        self.name = name  # provider name, used in errors
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self._lock = threading.Lock()

    def record_failure(self) -> bool:
        """Count one failure.

        Returns
        -------
        bool
            True if this failure opened the circuit
        """
        with self._lock:
            self.failure_count += 1
            if self.state == CircuitState.CLOSED and self.failure_count >= self.config.failure_threshold:
                LOGGER.warning("Circuit breaker %s OPEN after %d failures", self.name, self.failure_count)
                self.state = CircuitState.OPEN
                return True
            return False

    def is_open(self) -> bool:
        """Whether the run should stop taking new stocks."""
        with self._lock:
            return self.state == CircuitState.OPEN

    def check(self) -> None:
        """Raise ``CircuitBreakerTripped`` if the circuit is open."""
        if self.is_open():
            raise CircuitBreakerTripped(self.name, self.failure_count)
