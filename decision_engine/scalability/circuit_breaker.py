"""Circuit breaker: consecutive-failure counter plus an opened-at timestamp. Time comes from an injected Clock."""

import logging
import threading
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, TypeVar

from decision_engine.application.exceptions import CircuitOpenError
from decision_engine.core.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Closed while opened_at is unset. After failure_threshold consecutive failures,
    opened_at is stamped (and restamped by each further failure) and the breaker is
    open for open_duration. Once the window has elapsed, the next is_open read
    clears opened_at and the failure counter, letting calls through again; a
    failure then counts from 1.
    Thread-safe: every field access holds one lock.
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        open_duration_seconds: float = 30.0,
        clock: Clock | None = None,
        name: str = "advisory",
    ) -> None:
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        self._threshold = failure_threshold
        self._open_duration = timedelta(seconds=open_duration_seconds)
        self._clock = clock or SystemClock()
        self._name = name
        self._failures = 0
        self._opened_at: Optional[datetime] = None
        self._lock = threading.Lock()

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failures

    @property
    def state(self) -> CircuitState:
        """Read-only view; unlike is_open it never resets the breaker."""
        with self._lock:
            if self._opened_at is None:
                return CircuitState.CLOSED
            if self._clock.now() - self._opened_at >= self._open_duration:
                return CircuitState.HALF_OPEN
            return CircuitState.OPEN

    def is_open(self) -> bool:
        with self._lock:
            if self._opened_at is None:
                return False
            if self._clock.now() - self._opened_at >= self._open_duration:
                self._opened_at = None
                self._failures = 0
                logger.info("circuit_breaker_half_open", extra={"breaker": self._name})
                return False
            return True

    def record_success(self) -> None:
        with self._lock:
            self._failures = 0
            self._opened_at = None

    def record_failure(self) -> None:
        with self._lock:
            self._failures += 1
            if self._failures >= self._threshold:
                was_closed = self._opened_at is None
                self._opened_at = self._clock.now()
                if was_closed:
                    logger.warning(
                        "circuit_breaker_opened",
                        extra={"breaker": self._name, "consecutive_failures": self._failures},
                    )

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Execute func through the circuit. Raises CircuitOpenError if open; on failure counts and may open."""
        if self.is_open():
            raise CircuitOpenError(f"Circuit breaker {self._name} is OPEN")
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result
