"""Circuit breaker shared by every LLM call in the process."""

import enum
import logging
import math
import threading
import time
from typing import Callable, Optional

from config import settings
from ..exceptions import CircuitOpenError

logger = logging.getLogger(__name__)


class CircuitState(enum.Enum):
    """Circuit breaker states."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Consecutive-failure circuit breaker with an injectable monotonic clock.

    Opens after ``failure_threshold`` consecutive failed call sequences.
    While open every call is rejected for ``reset_timeout`` seconds; after
    that a single trial call is admitted (half-open). The trial closes the
    circuit on success and re-opens it on failure.

    Args:
        service_name: Identifier for the protected service (used in logs).
        failure_threshold: Number of consecutive failures before opening.
        reset_timeout: Seconds to stay open before admitting a trial call.
        clock: Monotonic clock in seconds.
    """

    def __init__(
        self,
        service_name: str = "llm",
        failure_threshold: int = 5,
        reset_timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service_name = service_name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock

        self._failure_count: int = 0
        self._opened_at: float = 0.0
        self._state: CircuitState = CircuitState.CLOSED
        self._trial_in_flight = False
        self._lock = threading.Lock()

    def _refresh(self) -> None:
        # Caller holds the lock
        if self._state == CircuitState.OPEN:
            if self._clock() - self._opened_at >= self.reset_timeout:
                self._state = CircuitState.HALF_OPEN
                self._trial_in_flight = False
                logger.warning(f"Circuit breaker HALF_OPEN for {self.service_name} (testing recovery)")

    @property
    def state(self) -> CircuitState:
        """Current circuit state, accounting for the reset timeout."""
        with self._lock:
            self._refresh()
            return self._state

    @property
    def consecutive_failures(self) -> int:
        with self._lock:
            return self._failure_count

    @property
    def is_open(self) -> bool:
        return self.state == CircuitState.OPEN

    def seconds_until_retry(self) -> int:
        """Whole seconds left before a trial call is admitted (0 if not open)."""
        with self._lock:
            self._refresh()
            if self._state != CircuitState.OPEN:
                return 0
            remaining = self.reset_timeout - (self._clock() - self._opened_at)
            return max(1, math.ceil(remaining))

    def acquire(self) -> None:
        """Admit a call sequence or raise CircuitOpenError.

        In HALF_OPEN only the first caller gets through until it reports back.
        """
        with self._lock:
            self._refresh()
            if self._state == CircuitState.OPEN:
                remaining = self.reset_timeout - (self._clock() - self._opened_at)
                raise CircuitOpenError(max(1, math.ceil(remaining)))
            if self._state == CircuitState.HALF_OPEN:
                if self._trial_in_flight:
                    raise CircuitOpenError(1)
                self._trial_in_flight = True

    def release(self) -> None:
        """Give back a half-open trial slot without recording an outcome."""
        with self._lock:
            self._trial_in_flight = False

    def record_success(self) -> None:
        """Record a successful call. Resets failure count and closes circuit."""
        with self._lock:
            if self._state != CircuitState.CLOSED:
                logger.warning(f"Circuit breaker CLOSED for {self.service_name} (recovered)")
            self._failure_count = 0
            self._state = CircuitState.CLOSED
            self._trial_in_flight = False

    def record_failure(self) -> None:
        """Record a failed call sequence. Opens circuit after threshold reached."""
        with self._lock:
            self._failure_count += 1
            self._trial_in_flight = False
            if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
                if self._state != CircuitState.OPEN:
                    logger.warning(
                        f"Circuit breaker OPEN for {self.service_name} "
                        f"after {self._failure_count} consecutive failures"
                    )
                self._state = CircuitState.OPEN
                self._opened_at = self._clock()

    def reset(self) -> None:
        """Force the breaker back to CLOSED."""
        with self._lock:
            self._failure_count = 0
            self._state = CircuitState.CLOSED
            self._trial_in_flight = False


# Process-wide instance
_circuit_breaker: Optional[CircuitBreaker] = None


def get_circuit_breaker() -> CircuitBreaker:
    """Get the shared LLM circuit breaker."""
    global _circuit_breaker
    if _circuit_breaker is None:
        _circuit_breaker = CircuitBreaker(
            service_name="llm",
            failure_threshold=settings.circuit_breaker_threshold,
            reset_timeout=settings.circuit_breaker_reset_seconds,
        )
    return _circuit_breaker
