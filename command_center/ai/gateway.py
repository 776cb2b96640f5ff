"""
LLM gateway: retry, circuit breaker and metrics around the model call.

Retries are local to one logical call. The circuit breaker and the metrics
are shared by every call in the process.
"""

import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Histogram
from pydantic import BaseModel
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import settings
from .circuit_breaker import CircuitBreaker, get_circuit_breaker
from .connector import ConnectorProvider, TokenUsage
from ..exceptions import LlmGatewayError

logger = logging.getLogger(__name__)


class MetricsSnapshot(BaseModel):
    """Read-only view of the gateway counters."""
    total_calls: int
    total_failures: int
    total_input_tokens: int
    total_output_tokens: int
    total_latency_ms: float
    consecutive_failures: int
    circuit_open: bool
    avg_latency_ms: float
    failure_rate: float


class GatewayMetrics:
    """Prometheus counters for LLM calls.

    Each instance owns its collectors so a process can hold several gateways;
    pass ``REGISTRY`` to expose them on the default scrape endpoint.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._lock = threading.Lock()
        self._build()

    def _build(self) -> None:
        self.llm_calls_total = Counter(
            'llm_calls_total',
            'LLM calls admitted by the circuit breaker',
            registry=self.registry
        )
        self.llm_requests_total = Counter(
            'llm_requests_total',
            'Completed LLM calls by outcome',
            ['status'],
            registry=self.registry
        )
        self.llm_tokens_total = Counter(
            'llm_tokens_total',
            'Tokens reported by the model',
            ['direction'],
            registry=self.registry
        )
        self.llm_request_duration = Histogram(
            'llm_request_duration_seconds',
            'LLM call duration including retries',
            registry=self.registry
        )

    def _collectors(self):
        return (
            self.llm_calls_total,
            self.llm_requests_total,
            self.llm_tokens_total,
            self.llm_request_duration,
        )

    def _value(self, name: str, labels: Optional[dict] = None) -> float:
        return self.registry.get_sample_value(name, labels or {}) or 0.0

    def record_call(self) -> None:
        self.llm_calls_total.inc()

    def record_success(self, latency_ms: float, usage: Optional[TokenUsage]) -> None:
        self.llm_requests_total.labels(status='success').inc()
        self.llm_request_duration.observe(latency_ms / 1000)
        if usage is not None:
            self.llm_tokens_total.labels(direction='input').inc(usage.input_tokens)
            self.llm_tokens_total.labels(direction='output').inc(usage.output_tokens)

    def record_failure(self) -> None:
        self.llm_requests_total.labels(status='failure').inc()

    def reset(self) -> None:
        with self._lock:
            for collector in self._collectors():
                self.registry.unregister(collector)
            self._build()

    def snapshot(self, breaker: CircuitBreaker) -> MetricsSnapshot:
        with self._lock:
            total_calls = int(self._value('llm_calls_total'))
            total_failures = int(self._value('llm_requests_total', {'status': 'failure'}))
            successes = self._value('llm_request_duration_seconds_count')
            total_latency_ms = self._value('llm_request_duration_seconds_sum') * 1000
            return MetricsSnapshot(
                total_calls=total_calls,
                total_failures=total_failures,
                total_input_tokens=int(self._value('llm_tokens_total', {'direction': 'input'})),
                total_output_tokens=int(self._value('llm_tokens_total', {'direction': 'output'})),
                total_latency_ms=total_latency_ms,
                consecutive_failures=breaker.consecutive_failures,
                circuit_open=breaker.is_open,
                avg_latency_ms=total_latency_ms / successes if successes else 0.0,
                failure_rate=total_failures / total_calls if total_calls else 0.0,
            )


class LlmGateway:
    """Calls the current LLM connector under retry and circuit-breaker control."""

    def __init__(
        self,
        provider: Optional[ConnectorProvider] = None,
        breaker: Optional[CircuitBreaker] = None,
        metrics: Optional[GatewayMetrics] = None,
        max_attempts: Optional[int] = None,
        initial_backoff: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider or ConnectorProvider()
        self.breaker = breaker or get_circuit_breaker()
        self.metrics = metrics or GatewayMetrics()
        self.max_attempts = max_attempts or settings.llm_max_attempts
        self.initial_backoff = (
            settings.llm_initial_backoff_seconds if initial_backoff is None else initial_backoff
        )
        self._sleep = sleep
        self._clock = clock

    def _log_retry(self, retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        wait = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"LLM attempt {retry_state.attempt_number}/{self.max_attempts} failed: {error}. "
            f"Retrying in {wait:.2f}s"
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.initial_backoff, exp_base=2),
            retry=retry_if_exception_type(Exception),
            sleep=self._sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

    async def call(self, system_message: str, user_message: str) -> str:
        """
        Send one system + user message pair and return the generated text.

        Raises:
            CircuitOpenError: Breaker is open; the connector was not invoked
            LlmGatewayError: No connector could be resolved, or every attempt failed
        """
        try:
            connector = self.provider.get_connector()
        except Exception as e:
            logger.error(f"No LLM connector available: {e}", exc_info=True)
            raise LlmGatewayError(f"No LLM connector available: {e}") from e

        logger.debug(f"Calling {connector.model_name}")
        started = self._clock()
        self.breaker.acquire()
        self.metrics.record_call()

        try:
            async for attempt in self._retrying():
                with attempt:
                    response = await connector.complete(system_message, user_message)
        except asyncio.CancelledError:
            logger.warning("LLM call interrupted during retry, aborting")
            self.breaker.release()
            raise
        except Exception as e:
            self.breaker.record_failure()
            self.metrics.record_failure()
            logger.error(
                f"LLM call to {connector.model_name} failed after {self.max_attempts} attempts: {e}",
                exc_info=True,
            )
            raise LlmGatewayError(f"AI service call failed after {self.max_attempts} attempts: {e}") from e

        latency_ms = (self._clock() - started) * 1000
        self.breaker.record_success()
        self.metrics.record_success(latency_ms, response.usage)
        return response.text

    def get_metrics(self) -> MetricsSnapshot:
        return self.metrics.snapshot(self.breaker)

    def reset_metrics(self) -> None:
        self.metrics.reset()


# Singleton
_llm_gateway: Optional[LlmGateway] = None


def get_llm_gateway() -> LlmGateway:
    """Get the LLM gateway singleton."""
    global _llm_gateway
    if _llm_gateway is None:
        _llm_gateway = LlmGateway(metrics=GatewayMetrics(REGISTRY))
    return _llm_gateway
