"""Process-wide circuit breaker guarding AI evaluation calls."""

from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock
from time import monotonic

logger = logging.getLogger(__name__)


class CircuitBreaker:
    """Opens after ``failure_threshold`` consecutive failures.

    While open, ``can_attempt`` is false for ``open_seconds``; afterwards calls
    are allowed again and the count starts over. Failures older than
    ``reset_seconds`` are forgotten, so sparse errors never open the circuit.
    """

    def __init__(
        self,
        *,
        failure_threshold: int = 5,
        open_seconds: float = 60.0,
        reset_seconds: float = 60.0,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self.failure_threshold = failure_threshold
        self.open_seconds = open_seconds
        self.reset_seconds = reset_seconds
        self._clock = clock
        self._lock = Lock()
        self._failures = 0
        self._last_failure_at: float | None = None
        self._opened_at: float | None = None

    @property
    def failure_count(self) -> int:
        with self._lock:
            self._expire_failures()
            return self._failures

    def is_open(self) -> bool:
        with self._lock:
            return self._remaining_open() > 0

    def can_attempt(self) -> bool:
        return not self.is_open()

    def remaining_open_seconds(self) -> float:
        with self._lock:
            return self._remaining_open()

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._last_failure_at = None
            self._opened_at = None

    def record_failure(self) -> None:
        with self._lock:
            self._expire_failures()
            now = self._clock()
            self._failures += 1
            self._last_failure_at = now
            if self._failures >= self.failure_threshold and self._opened_at is None:
                self._opened_at = now
                logger.warning(
                    "quality.ai_circuit.opened failures=%s open_seconds=%s",
                    self._failures,
                    self.open_seconds,
                )

    def _remaining_open(self) -> float:
        if self._opened_at is None:
            return 0.0
        remaining = self._opened_at + self.open_seconds - self._clock()
        if remaining <= 0:
            self._opened_at = None
            self._failures = 0
            self._last_failure_at = None
            return 0.0
        return remaining

    def _expire_failures(self) -> None:
        if self._last_failure_at is not None and self._clock() - self._last_failure_at > self.reset_seconds:
            self._failures = 0
            self._last_failure_at = None
