"""
Circuit Breaker
===============
Fail fast against a dependency that keeps failing, and probe its recovery.

States:

1. CLOSED: Normal operation, requests flow through
2. OPEN: Dependency is failing, requests are immediately rejected
3. HALF-OPEN: A single probe tests whether the dependency recovered

Usage:
    from shopify_resilience.circuit_breaker import CircuitBreaker, CircuitBreakerOpen

    breaker = CircuitBreaker("shopify-admin")
    result = breaker.execute(call_shopify)
"""

from .models import (
    CircuitState,
    CircuitBreakerOpen,
    CircuitBreakerConfig,
    CircuitBreakerState,
)
from .breaker import CircuitBreaker
from .registry import CircuitBreakerRegistry

__all__ = [
    # Models
    "CircuitState",
    "CircuitBreakerOpen",
    "CircuitBreakerConfig",
    "CircuitBreakerState",
    # Breaker
    "CircuitBreaker",
    # Registry
    "CircuitBreakerRegistry",
]
