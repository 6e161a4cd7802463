"""
Retry Executor
==============
Runs one logical operation through rate limiting, the circuit breaker and
classified retries, recording every attempt.

The loop itself is driven by tenacity; this module supplies the stop, wait and
retry strategies:

- rate-limited failures wait for the server's Retry-After when one was sent,
- retryable server, network and timeout failures back off exponentially,
- everything else propagates on first occurrence.
"""

import asyncio
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

import structlog
from structlog.contextvars import bound_contextvars
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
)

from ..circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from ..errors import ErrorKind, classify_exception
from ..models import OperationDescriptor
from ..monitoring import PerformanceMonitor
from ..rate_limit import RETRY_AFTER_HEADER, RateLimitTracker, get_header, parse_retry_after
from .backoff import BackoffCalculator
from .exceptions import RetryExhausted, RetryInterrupted
from .policy import RetryPolicy

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Wait before re-checking a bucket another caller filled first
MIN_SLOT_WAIT_SECONDS = 0.05
# Longest single wait while watching two cancellation events
WAIT_SLICE_SECONDS = 0.1

# (result or None, 0-based attempt, exception or None) -> retry?
RetryPredicate = Callable[[Any, int, Optional[BaseException]], bool]


@dataclass
class _AttemptLog:
    """Per-call bookkeeping shared between the attempt and the strategies."""
    attempts: int = 0
    last_latency: Optional[float] = None
    last_error: Optional[BaseException] = None


class RetryExecutor:
    """
    Executes operations with retries, backoff and optional rate limiting,
    circuit breaking and monitoring.

    All collaborators are injected; the executor owns no shared state besides
    its worker pool and shutdown flag.

    Example:
        executor = RetryExecutor(rate_limiter=tracker, monitor=monitor)
        descriptor = OperationDescriptor(endpoint="/products.json", call=fetch_products)
        products = executor.execute_with_retry(descriptor)
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        rate_limiter: Optional[RateLimitTracker] = None,
        monitor: Optional[PerformanceMonitor] = None,
        breaker: Optional[CircuitBreaker] = None,
        backoff: Optional[BackoffCalculator] = None,
        sleep: Optional[Callable[[float], None]] = None,
        async_sleep: Optional[Callable[[float], Awaitable[None]]] = None,
        max_workers: int = 4,
    ):
        """
        Args:
            policy: Default retry policy, overridable per call
            rate_limiter: Tracker consulted before each attempt and updated after it
            monitor: Receives every attempt's outcome
            breaker: Guards every attempt; an open circuit ends the call immediately
            backoff: Delay calculator
            sleep: Replaces the interruptible sleep (tests)
            async_sleep: Replaces ``asyncio.sleep`` in coroutine mode (tests)
            max_workers: Size of the pool used by ``submit`` and ``schedule_delayed``
        """
        self.policy = policy or RetryPolicy()
        self.rate_limiter = rate_limiter
        self.monitor = monitor
        self.breaker = breaker
        self.backoff = backoff or BackoffCalculator()
        self._sleep = sleep
        self._async_sleep = async_sleep or asyncio.sleep
        self._max_workers = max_workers
        self._shutdown = threading.Event()
        self._pool: Optional[ThreadPoolExecutor] = None
        self._pool_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def execute_with_retry(
        self,
        descriptor: OperationDescriptor,
        policy: Optional[RetryPolicy] = None,
        retry_if: Optional[RetryPredicate] = None,
    ) -> Any:
        """
        Run ``descriptor.call`` until it succeeds or the retry budget is spent.

        Args:
            descriptor: The operation to run
            policy: Overrides the executor's default policy for this call
            retry_if: Replaces error classification. Called with
                ``(result, attempt, exception)``; when it returns False the
                result is returned or the exception re-raised as is.

        Raises:
            RetryExhausted: All attempts failed with retryable errors
            CircuitBreakerOpen: The breaker rejected an attempt
            RetryInterrupted: A backoff sleep was cancelled
            Exception: Non-retryable failures, unchanged
        """
        policy = policy or self.policy
        log = _AttemptLog()
        sleep = self._sleeper(descriptor, log)
        retrying = Retrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=self._wait_strategy(descriptor, policy, log),
            retry=self._retry_strategy(retry_if),
            sleep=sleep,
            before_sleep=self._log_before_sleep,
            retry_error_callback=self._exhausted(descriptor),
        )
        with bound_contextvars(endpoint=descriptor.endpoint, operation_kind=descriptor.kind.value):
            return retrying(self._attempt, descriptor, log, sleep)

    async def aexecute_with_retry(
        self,
        descriptor: OperationDescriptor,
        policy: Optional[RetryPolicy] = None,
        retry_if: Optional[RetryPredicate] = None,
    ) -> Any:
        """
        Coroutine flavour of ``execute_with_retry``.

        ``descriptor.call`` must return an awaitable. Backoff waits use
        ``asyncio.sleep``, so the event loop is never blocked and task
        cancellation propagates as ``asyncio.CancelledError``.
        """
        policy = policy or self.policy
        log = _AttemptLog()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=self._wait_strategy(descriptor, policy, log),
            retry=self._retry_strategy(retry_if),
            sleep=self._async_sleep,
            before_sleep=self._log_before_sleep,
            retry_error_callback=self._exhausted(descriptor),
        )
        with bound_contextvars(endpoint=descriptor.endpoint, operation_kind=descriptor.kind.value):
            return await retrying(self._aattempt, descriptor, log)

    def submit(
        self,
        descriptor: OperationDescriptor,
        policy: Optional[RetryPolicy] = None,
        retry_if: Optional[RetryPredicate] = None,
    ) -> "Future[Any]":
        """Run ``execute_with_retry`` on the worker pool without blocking the caller."""
        return self._executor().submit(self.execute_with_retry, descriptor, policy, retry_if)

    def schedule_delayed(self, func: Callable[..., T], delay: float, *args, **kwargs) -> "Future[T]":
        """Run ``func`` on the worker pool after ``delay`` seconds."""
        def run() -> T:
            if self._shutdown.wait(delay):
                raise RetryInterrupted("Scheduled call cancelled by shutdown")
            return func(*args, **kwargs)

        return self._executor().submit(run)

    def execute_with_circuit_breaker(
        self,
        call: Callable[[], T],
        breaker: Optional[CircuitBreaker] = None,
    ) -> T:
        """Run a single call through a circuit breaker, without retries."""
        return self._require_breaker(breaker).execute(call)

    def execute_with_circuit_breaker_and_fallback(
        self,
        call: Callable[[], T],
        fallback: Callable[[], T],
        breaker: Optional[CircuitBreaker] = None,
    ) -> T:
        """Like ``execute_with_circuit_breaker``, answering with ``fallback()`` on any failure."""
        breaker = self._require_breaker(breaker)
        try:
            return breaker.execute(call)
        except Exception as exc:
            logger.warning(
                "circuit_fallback",
                breaker=breaker.name,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return fallback()

    def shutdown(self, wait: bool = True) -> None:
        """Interrupt sleeping retries and stop the worker pool."""
        self._shutdown.set()
        with self._pool_lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=wait)

    def __enter__(self) -> "RetryExecutor":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False

    # ------------------------------------------------------------------
    # Attempts
    # ------------------------------------------------------------------

    def _attempt(self, descriptor: OperationDescriptor, log: _AttemptLog, sleep: Callable[[float], None]) -> Any:
        attempt = log.attempts
        log.attempts += 1

        self._reserve_slot(descriptor, sleep)

        start = time.perf_counter()
        try:
            if self.breaker is not None:
                result = self.breaker.execute(descriptor.call)
            else:
                result = descriptor.call()
        except CircuitBreakerOpen as exc:
            self._on_rejected(descriptor, exc, attempt)
            raise
        except Exception as exc:
            self._on_failure(descriptor, exc, time.perf_counter() - start, log)
            raise
        self._on_success(descriptor, result, time.perf_counter() - start, attempt)
        return result

    async def _aattempt(self, descriptor: OperationDescriptor, log: _AttemptLog) -> Any:
        attempt = log.attempts
        log.attempts += 1

        await self._areserve_slot(descriptor)

        start = time.perf_counter()
        try:
            if self.breaker is not None:
                result = await self.breaker.aexecute(descriptor.call)
            else:
                result = await descriptor.call()
        except CircuitBreakerOpen as exc:
            self._on_rejected(descriptor, exc, attempt)
            raise
        except Exception as exc:
            self._on_failure(descriptor, exc, time.perf_counter() - start, log)
            raise
        self._on_success(descriptor, result, time.perf_counter() - start, attempt)
        return result

    def _rate_limit_delay(self, descriptor: OperationDescriptor) -> float:
        if self.rate_limiter is None:
            return 0.0
        delay = self.rate_limiter.optimal_delay(descriptor.endpoint, descriptor.kind)
        if delay > 0:
            logger.info("rate_limit_wait", delay=round(delay, 3))
        return delay

    def _reserve_slot(self, descriptor: OperationDescriptor, sleep: Callable[[float], None]) -> None:
        """Block until the tracker grants a slot for this attempt."""
        if self.rate_limiter is None:
            return
        delay = self._rate_limit_delay(descriptor)
        while True:
            if delay > 0:
                sleep(delay)
            if self.rate_limiter.can_proceed(descriptor.endpoint, descriptor.kind):
                return
            logger.debug("rate_limit_slot_contended")
            delay = max(self._rate_limit_delay(descriptor), MIN_SLOT_WAIT_SECONDS)

    async def _areserve_slot(self, descriptor: OperationDescriptor) -> None:
        if self.rate_limiter is None:
            return
        delay = self._rate_limit_delay(descriptor)
        while True:
            if delay > 0:
                await self._async_sleep(delay)
            if self.rate_limiter.can_proceed(descriptor.endpoint, descriptor.kind):
                return
            logger.debug("rate_limit_slot_contended")
            delay = max(self._rate_limit_delay(descriptor), MIN_SLOT_WAIT_SECONDS)

    def _on_success(self, descriptor: OperationDescriptor, result: Any, latency: float, attempt: int) -> None:
        meta = descriptor.response_meta(result)
        if self.monitor is not None:
            self.monitor.record_success(descriptor.endpoint, descriptor.method, latency, meta.status_code)
        if self.rate_limiter is not None:
            self.rate_limiter.record_outcome(descriptor.endpoint, descriptor.kind, meta.headers)
        if attempt > 0:
            logger.info("retry_succeeded", attempts=attempt + 1)

    def _on_failure(self, descriptor: OperationDescriptor, exc: Exception, latency: float, log: _AttemptLog) -> None:
        log.last_latency = latency
        log.last_error = exc
        status_code = getattr(exc, "status_code", 0)
        if not isinstance(status_code, int):
            status_code = 0
        if self.monitor is not None:
            self.monitor.record_error(descriptor.endpoint, descriptor.method, latency, status_code, exc)
        if self.rate_limiter is not None and status_code:
            self.rate_limiter.record_outcome(
                descriptor.endpoint, descriptor.kind, getattr(exc, "headers", None)
            )

    def _on_rejected(self, descriptor: OperationDescriptor, exc: CircuitBreakerOpen, attempt: int) -> None:
        exc.endpoint = descriptor.endpoint
        exc.attempts = attempt
        logger.warning(
            "circuit_rejected",
            breaker=exc.breaker_name,
            state=exc.state.value,
            retry_after=round(exc.retry_after, 3),
        )

    # ------------------------------------------------------------------
    # tenacity strategies
    # ------------------------------------------------------------------

    def _retry_strategy(self, retry_if: Optional[RetryPredicate]):
        if retry_if is None:
            return retry_if_exception(self._is_retryable)

        def strategy(retry_state: RetryCallState) -> bool:
            outcome = retry_state.outcome
            attempt = retry_state.attempt_number - 1
            if outcome.failed:
                exc = outcome.exception()
                if isinstance(exc, (CircuitBreakerOpen, RetryInterrupted)):
                    return False
                # Cancellation and interpreter exits always propagate
                if not isinstance(exc, Exception):
                    return False
                return bool(retry_if(None, attempt, exc))
            return bool(retry_if(outcome.result(), attempt, None))

        return strategy

    @staticmethod
    def _is_retryable(exc: BaseException) -> bool:
        if isinstance(exc, (CircuitBreakerOpen, RetryInterrupted)) or not isinstance(exc, Exception):
            return False
        kind = classify_exception(exc)
        if not kind.retryable:
            logger.warning(
                "non_retryable_failure",
                kind=kind.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return False
        return True

    def _wait_strategy(self, descriptor: OperationDescriptor, policy: RetryPolicy, log: _AttemptLog):
        def wait(retry_state: RetryCallState) -> float:
            attempt = retry_state.attempt_number - 1
            outcome = retry_state.outcome
            exc = outcome.exception() if outcome is not None and outcome.failed else None

            if exc is not None and classify_exception(exc) is ErrorKind.RATE_LIMITED:
                headers = getattr(exc, "headers", None)
                retry_after = get_header(headers, RETRY_AFTER_HEADER)
                if retry_after and retry_after.strip():
                    if self.rate_limiter is not None:
                        return self.rate_limiter.delay_on_rejection(
                            descriptor.endpoint, descriptor.kind, headers
                        )
                    return parse_retry_after(retry_after)

            return self.backoff.delay(attempt, policy, log.last_latency)

        return wait

    def _exhausted(self, descriptor: OperationDescriptor):
        def callback(retry_state: RetryCallState) -> Any:
            outcome = retry_state.outcome
            if not outcome.failed:
                # Only reachable through a custom predicate: hand back the last result
                return outcome.result()
            exc = outcome.exception()
            attempts = retry_state.attempt_number
            logger.error(
                "retry_exhausted",
                attempts=attempts,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise RetryExhausted(
                f"Max retries exceeded after {attempts} attempts: {exc}",
                last_exception=exc,
                endpoint=descriptor.endpoint,
                attempts=attempts,
            ) from exc

        return callback

    @staticmethod
    def _log_before_sleep(retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None and outcome.failed else None
        logger.warning(
            "retry_scheduled",
            attempt=retry_state.attempt_number,
            delay=round(retry_state.next_action.sleep, 3),
            error=str(exc) if exc else None,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _sleeper(self, descriptor: OperationDescriptor, log: _AttemptLog) -> Callable[[float], None]:
        if self._sleep is not None:
            return self._sleep

        cancellation = descriptor.cancellation

        def interrupted() -> bool:
            return self._shutdown.is_set() or (cancellation is not None and cancellation.is_set())

        def sleep(seconds: float) -> None:
            deadline = time.monotonic() + seconds
            while not interrupted():
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return
                if cancellation is None:
                    self._shutdown.wait(remaining)
                else:
                    cancellation.wait(min(remaining, WAIT_SLICE_SECONDS))

            logger.warning("retry_interrupted", attempts=log.attempts)
            raise RetryInterrupted(
                "Retry wait interrupted",
                endpoint=descriptor.endpoint,
                kind=classify_exception(log.last_error) if log.last_error else ErrorKind.UNKNOWN,
                attempts=log.attempts,
            ) from log.last_error

        return sleep

    def _executor(self) -> ThreadPoolExecutor:
        with self._pool_lock:
            if self._shutdown.is_set():
                raise RuntimeError("RetryExecutor has been shut down")
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="shopify-retry",
                )
            return self._pool

    def _require_breaker(self, breaker: Optional[CircuitBreaker]) -> CircuitBreaker:
        breaker = breaker or self.breaker
        if breaker is None:
            raise ValueError("No circuit breaker configured")
        return breaker
