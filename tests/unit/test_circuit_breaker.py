"""
Unit tests for the LLM circuit breaker.
"""

import pytest

from command_center.ai.circuit_breaker import CircuitBreaker, CircuitState
from command_center.exceptions import CircuitOpenError


class FakeMonotonic:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeMonotonic()


@pytest.fixture
def breaker(clock):
    return CircuitBreaker("test", failure_threshold=5, reset_timeout=60, clock=clock)


def _fail(breaker: CircuitBreaker, times: int) -> None:
    for _ in range(times):
        breaker.acquire()
        breaker.record_failure()


class TestClosed:
    def test_starts_closed(self, breaker):
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0
        assert breaker.seconds_until_retry() == 0

    def test_stays_closed_below_threshold(self, breaker):
        _fail(breaker, 4)
        assert breaker.state == CircuitState.CLOSED
        breaker.acquire()

    def test_success_resets_failure_count(self, breaker):
        _fail(breaker, 4)
        breaker.record_success()
        assert breaker.consecutive_failures == 0
        _fail(breaker, 4)
        assert breaker.state == CircuitState.CLOSED


class TestOpen:
    def test_opens_at_threshold(self, breaker):
        _fail(breaker, 5)
        assert breaker.state == CircuitState.OPEN
        assert breaker.is_open

    def test_rejects_with_retry_after(self, breaker, clock):
        _fail(breaker, 5)
        clock.advance(20)
        with pytest.raises(CircuitOpenError) as exc_info:
            breaker.acquire()
        assert exc_info.value.retry_after_seconds == 40
        assert "Try again in 40 seconds" in str(exc_info.value)
        assert breaker.seconds_until_retry() == 40

    def test_still_open_just_before_timeout(self, breaker, clock):
        _fail(breaker, 5)
        clock.advance(59.5)
        assert breaker.state == CircuitState.OPEN
        assert breaker.seconds_until_retry() == 1


class TestHalfOpen:
    def test_half_open_after_timeout(self, breaker, clock):
        _fail(breaker, 5)
        clock.advance(60)
        assert breaker.state == CircuitState.HALF_OPEN
        assert not breaker.is_open

    def test_single_trial_admitted(self, breaker, clock):
        _fail(breaker, 5)
        clock.advance(60)
        breaker.acquire()
        with pytest.raises(CircuitOpenError):
            breaker.acquire()

    def test_trial_success_closes(self, breaker, clock):
        _fail(breaker, 5)
        clock.advance(60)
        breaker.acquire()
        breaker.record_success()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.consecutive_failures == 0

    def test_trial_failure_reopens(self, breaker, clock):
        _fail(breaker, 5)
        clock.advance(60)
        breaker.acquire()
        breaker.record_failure()
        assert breaker.state == CircuitState.OPEN
        assert breaker.seconds_until_retry() == 60

    def test_release_frees_trial_slot(self, breaker, clock):
        _fail(breaker, 5)
        clock.advance(60)
        breaker.acquire()
        breaker.release()
        breaker.acquire()
        assert breaker.state == CircuitState.HALF_OPEN


class TestReset:
    def test_reset_closes(self, breaker):
        _fail(breaker, 5)
        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        breaker.acquire()
