"""
Unit Tests for Circuit Breaker
==============================
"""

import time

import pytest


class Boom(Exception):
    pass


def _fail():
    raise Boom("downstream failed")


class TestCircuitBreaker:
    """Tests for the breaker state machine."""

    def test_lifecycle(self, clock):
        """Two failures open the circuit; recovery closes it again."""
        from shopify_resilience.circuit_breaker import (
            CircuitBreaker,
            CircuitBreakerConfig,
            CircuitBreakerOpen,
            CircuitState,
        )

        breaker = CircuitBreaker("shop", CircuitBreakerConfig(failure_threshold=2, recovery_timeout=30.0), clock=clock)
        calls = []

        def tracked():
            calls.append(1)
            return "ok"

        for _ in range(2):
            with pytest.raises(Boom):
                breaker.execute(_fail)
        assert breaker.state == CircuitState.OPEN

        with pytest.raises(CircuitBreakerOpen) as exc_info:
            breaker.execute(tracked)
        assert calls == []
        assert exc_info.value.retry_after == pytest.approx(30.0)

        clock.advance(31)

        assert breaker.execute(tracked) == "ok"
        assert calls == [1]
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_failure_propagates_unchanged(self):
        from shopify_resilience.circuit_breaker import CircuitBreaker

        breaker = CircuitBreaker()
        error = Boom("original")

        def raise_original():
            raise error

        with pytest.raises(Boom) as exc_info:
            breaker.execute(raise_original)
        assert exc_info.value is error
        assert breaker.failure_count == 1

    def test_success_resets_failure_count(self):
        from shopify_resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

        breaker = CircuitBreaker(config=CircuitBreakerConfig(failure_threshold=3))

        with pytest.raises(Boom):
            breaker.execute(_fail)
        breaker.execute(lambda: None)
        with pytest.raises(Boom):
            breaker.execute(_fail)

        assert breaker.failure_count == 1
        assert breaker.state == CircuitState.CLOSED

    def test_failed_probe_reopens(self, clock):
        from shopify_resilience.circuit_breaker import (
            CircuitBreaker,
            CircuitBreakerConfig,
            CircuitBreakerOpen,
            CircuitState,
        )

        breaker = CircuitBreaker(config=CircuitBreakerConfig(failure_threshold=1, recovery_timeout=10.0), clock=clock)
        with pytest.raises(Boom):
            breaker.execute(_fail)

        clock.advance(10)
        with pytest.raises(Boom):
            breaker.execute(_fail)

        assert breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerOpen):
            breaker.execute(lambda: "never")

    def test_half_open_allows_single_probe(self, clock):
        """While the probe is in flight other callers are rejected."""
        from shopify_resilience.circuit_breaker import (
            CircuitBreaker,
            CircuitBreakerConfig,
            CircuitBreakerOpen,
            CircuitState,
        )

        breaker = CircuitBreaker(config=CircuitBreakerConfig(failure_threshold=1, recovery_timeout=5.0), clock=clock)
        with pytest.raises(Boom):
            breaker.execute(_fail)
        clock.advance(5)

        seen = {}

        def probe():
            seen["state"] = breaker.state
            with pytest.raises(CircuitBreakerOpen):
                breaker.execute(lambda: "concurrent")
            return "probe"

        assert breaker.execute(probe) == "probe"
        assert seen["state"] == CircuitState.HALF_OPEN
        assert breaker.state == CircuitState.CLOSED

    def test_excluded_exceptions_not_counted(self):
        from shopify_resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

        breaker = CircuitBreaker(config=CircuitBreakerConfig(failure_threshold=1, excluded_exceptions=(KeyError,)))

        def missing():
            raise KeyError("sku")

        with pytest.raises(KeyError):
            breaker.execute(missing)

        assert breaker.failure_count == 0
        assert breaker.state == CircuitState.CLOSED

    def test_is_excluded_predicate(self):
        """Caller errors are not counted; server errors still open the circuit."""
        from shopify_resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState
        from shopify_resilience.errors import ApiError, is_caller_error

        config = CircuitBreakerConfig(failure_threshold=2, is_excluded=is_caller_error)
        breaker = CircuitBreaker(config=config)

        caller_errors = [
            ApiError.resource_not_found("/x"),
            ApiError.validation_error("/x"),
            ApiError.from_status("/x", 400),
        ]
        for error in caller_errors:
            def fail(error=error):
                raise error

            with pytest.raises(ApiError):
                breaker.execute(fail)

        assert breaker.failure_count == 0

        for _ in range(2):
            def fail():
                raise ApiError.server_error("/x", 503)

            with pytest.raises(ApiError):
                breaker.execute(fail)

        assert breaker.state == CircuitState.OPEN

    def test_concurrent_failures_all_counted(self):
        """10 threads x 50 failures leave exactly 500 counted."""
        import threading
        from shopify_resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

        breaker = CircuitBreaker(config=CircuitBreakerConfig(failure_threshold=10_000))
        barrier = threading.Barrier(10)

        def worker():
            barrier.wait()
            for _ in range(50):
                try:
                    breaker.execute(_fail)
                except Boom:
                    pass

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert breaker.failure_count == 500
        assert breaker.metrics["total_failures"] == 500
        assert breaker.metrics["total_calls"] == 500
        assert breaker.state == CircuitState.CLOSED

    def test_metrics_and_reset(self):
        from shopify_resilience.circuit_breaker import (
            CircuitBreaker,
            CircuitBreakerConfig,
            CircuitBreakerOpen,
            CircuitState,
        )

        breaker = CircuitBreaker("orders", CircuitBreakerConfig(failure_threshold=1))
        with pytest.raises(Boom):
            breaker.execute(_fail)
        with pytest.raises(CircuitBreakerOpen):
            breaker.execute(lambda: None)

        metrics = breaker.metrics
        assert metrics["name"] == "orders"
        assert metrics["state"] == "open"
        assert metrics["total_calls"] == 1
        assert metrics["total_failures"] == 1
        assert metrics["total_rejections"] == 1

        breaker.reset()
        assert breaker.state == CircuitState.CLOSED
        assert breaker.metrics["total_calls"] == 0

    def test_open_error_is_not_retryable(self):
        from shopify_resilience.circuit_breaker import CircuitBreakerOpen, CircuitState
        from shopify_resilience.errors import ResilienceError

        error = CircuitBreakerOpen("shop", CircuitState.OPEN, 12.0)

        assert isinstance(error, ResilienceError)
        assert error.retryable is False
        assert "shop" in str(error)

    def test_invalid_config(self):
        from shopify_resilience.circuit_breaker import CircuitBreakerConfig

        with pytest.raises(ValueError):
            CircuitBreakerConfig(failure_threshold=0)

    def test_recovers_in_real_time(self):
        """Threshold 1, 100ms recovery: open, reject, then close after 150ms."""
        from shopify_resilience.circuit_breaker import (
            CircuitBreaker,
            CircuitBreakerConfig,
            CircuitBreakerOpen,
            CircuitState,
        )

        breaker = CircuitBreaker(config=CircuitBreakerConfig(failure_threshold=1, recovery_timeout=0.1))
        counter = {"calls": 0}

        def counted():
            counter["calls"] += 1
            return "ok"

        with pytest.raises(Boom):
            breaker.execute(_fail)
        assert breaker.state == CircuitState.OPEN

        with pytest.raises(CircuitBreakerOpen):
            breaker.execute(counted)
        assert counter["calls"] == 0

        time.sleep(0.15)

        assert breaker.execute(counted) == "ok"
        assert counter["calls"] == 1
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    @pytest.mark.asyncio
    async def test_aexecute(self):
        from shopify_resilience.circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitState

        breaker = CircuitBreaker(config=CircuitBreakerConfig(failure_threshold=1))

        async def ok():
            return 42

        async def fail():
            raise Boom("async")

        assert await breaker.aexecute(ok) == 42
        with pytest.raises(Boom):
            await breaker.aexecute(fail)
        assert breaker.state == CircuitState.OPEN


class TestCircuitBreakerRegistry:
    """Tests for named breaker storage."""

    def test_get_or_create(self):
        from shopify_resilience.circuit_breaker import CircuitBreakerRegistry

        registry = CircuitBreakerRegistry()

        assert registry.get("shop") is registry.get("shop")
        assert registry.get("shop") is not registry.get("payments")
        assert registry.names() == ["payments", "shop"]

    def test_default_and_custom_config(self):
        from shopify_resilience.circuit_breaker import CircuitBreakerRegistry, CircuitBreakerConfig

        registry = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=7))

        assert registry.get("a").config.failure_threshold == 7
        assert registry.get("b", CircuitBreakerConfig(failure_threshold=2)).config.failure_threshold == 2

    def test_reset(self):
        from shopify_resilience.circuit_breaker import CircuitBreakerRegistry, CircuitBreakerConfig, CircuitState

        registry = CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=1))
        with pytest.raises(Boom):
            registry.get("shop").execute(_fail)
        assert registry.all_metrics()["shop"]["state"] == "open"

        assert registry.reset("shop") is True
        assert registry.reset("unknown") is False
        assert registry.get("shop").state == CircuitState.CLOSED
