"""
Circuit Breaker Core
====================
Thread-safe circuit breaker usable from both threads and coroutines.
"""

import threading
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import structlog

from .models import (
    CircuitBreakerConfig,
    CircuitBreakerOpen,
    CircuitBreakerState,
    CircuitState,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CircuitBreaker:
    """
    Failure-counting circuit breaker.

    States:
    - CLOSED: Normal operation, calls pass through
    - OPEN: Threshold reached, calls fail fast until the recovery timeout
      has elapsed since the last failure
    - HALF_OPEN: One probe call is let through; success closes the circuit,
      failure re-opens it

    The lock is only held while reading or updating state, never while the
    protected call runs.

    Example:
        breaker = CircuitBreaker("shopify-admin", CircuitBreakerConfig(failure_threshold=3))

        try:
            products = breaker.execute(fetch_products)
        except CircuitBreakerOpen:
            products = cached_products()
    """

    def __init__(
        self,
        name: str = "default",
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._state = CircuitBreakerState()
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        """Current circuit state."""
        return self._state.state

    @property
    def failure_count(self) -> int:
        return self._state.failure_count

    @property
    def metrics(self) -> Dict[str, Any]:
        """Get circuit breaker metrics."""
        with self._lock:
            return {
                "name": self.name,
                "state": self._state.state.value,
                "failure_count": self._state.failure_count,
                "total_calls": self._state.total_calls,
                "total_failures": self._state.total_failures,
                "total_successes": self._state.total_successes,
                "total_rejections": self._state.total_rejections,
                "last_failure": self._state.last_failure_time,
            }

    def _retry_after(self, now: float) -> float:
        if self._state.last_failure_time is None:
            return 0.0
        return max(0.0, self.config.recovery_timeout - (now - self._state.last_failure_time))

    def _before_call(self) -> None:
        """Admit or reject a call, moving OPEN to HALF_OPEN once recovery is due."""
        with self._lock:
            now = self._clock()

            if self._state.state == CircuitState.OPEN:
                if self._retry_after(now) > 0:
                    self._state.total_rejections += 1
                    raise CircuitBreakerOpen(self.name, self._state.state, self._retry_after(now))
                self._state.state = CircuitState.HALF_OPEN
                self._state.probe_in_flight = False
                logger.info("circuit_half_open", breaker=self.name)

            if self._state.state == CircuitState.HALF_OPEN:
                if self._state.probe_in_flight:
                    self._state.total_rejections += 1
                    raise CircuitBreakerOpen(self.name, self._state.state, 0.0)
                self._state.probe_in_flight = True

            self._state.total_calls += 1

    def _on_success(self) -> None:
        with self._lock:
            previous = self._state.state
            self._state.total_successes += 1
            self._state.failure_count = 0
            self._state.probe_in_flight = False
            self._state.state = CircuitState.CLOSED
        if previous != CircuitState.CLOSED:
            logger.info("circuit_closed", breaker=self.name)

    def _on_failure(self, exc: Exception) -> None:
        if isinstance(exc, self.config.excluded_exceptions) or (
            self.config.is_excluded is not None and self.config.is_excluded(exc)
        ):
            self._release_probe()
            return

        with self._lock:
            self._state.total_failures += 1
            self._state.failure_count += 1
            self._state.last_failure_time = self._clock()
            self._state.probe_in_flight = False
            opened = (
                self._state.failure_count >= self.config.failure_threshold
                and self._state.state != CircuitState.OPEN
            )
            if self._state.failure_count >= self.config.failure_threshold:
                self._state.state = CircuitState.OPEN
            failures = self._state.failure_count

        if opened:
            logger.warning("circuit_opened", breaker=self.name, failures=failures, error=str(exc))

    def _release_probe(self) -> None:
        with self._lock:
            self._state.probe_in_flight = False

    def execute(self, func: Callable[..., T], *args, **kwargs) -> T:
        """
        Call ``func`` through the breaker.

        Raises:
            CircuitBreakerOpen: If the circuit rejects the call; ``func`` is not invoked
        """
        self._before_call()
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            self._on_failure(exc)
            raise
        except BaseException:
            self._release_probe()
            raise
        self._on_success()
        return result

    async def aexecute(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Coroutine flavour of ``execute``."""
        self._before_call()
        try:
            result = await func(*args, **kwargs)
        except Exception as exc:
            self._on_failure(exc)
            raise
        except BaseException:
            self._release_probe()
            raise
        self._on_success()
        return result

    def reset(self) -> None:
        """Force the breaker back to a fresh CLOSED state."""
        with self._lock:
            self._state = CircuitBreakerState()
        logger.info("circuit_reset", breaker=self.name)
