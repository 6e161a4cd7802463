"""
Shopify Resilience
==================
Client-side resilience for calls to the Shopify Admin API: rate limiting,
retries with backoff, circuit breaking and performance monitoring.
"""

__version__ = "0.1.0"

# Errors
from shopify_resilience.errors import (
    ErrorKind,
    ResilienceError,
    ApiError,
    classify_status,
    classify_exception,
    is_retryable,
)

# Core models
from shopify_resilience.models import OperationDescriptor, ResponseMeta

# Rate Limiting
from shopify_resilience.rate_limit import (
    OperationKind,
    RateBucket,
    RateLimitStats,
    RateLimitTracker,
)

# Circuit Breaker
from shopify_resilience.circuit_breaker import (
    CircuitState,
    CircuitBreakerOpen,
    CircuitBreakerConfig,
    CircuitBreaker,
    CircuitBreakerRegistry,
)

# Monitoring
from shopify_resilience.monitoring import (
    EndpointStats,
    RequestMetric,
    OverallStats,
    PerformanceMonitor,
)

# Retry
from shopify_resilience.retry import (
    RetryPolicy,
    BackoffCalculator,
    RetryExecutor,
    RetryExhausted,
    RetryInterrupted,
)

# HTTP
from shopify_resilience.http import ResilientHttpClient, AsyncResilientHttpClient

# Health
from shopify_resilience.health import HealthStatus, ResilienceHealth, build_health_report

# Configuration
from shopify_resilience.config import (
    ResilienceSettings,
    ResilienceComponents,
    build_components,
    configure_logging,
    build_http_client,
)

# Logging
from shopify_resilience.logging import setup_logging, get_logger

__all__ = [
    "__version__",
    # Errors
    "ErrorKind",
    "ResilienceError",
    "ApiError",
    "classify_status",
    "classify_exception",
    "is_retryable",
    # Core models
    "OperationDescriptor",
    "ResponseMeta",
    # Rate Limiting
    "OperationKind",
    "RateBucket",
    "RateLimitStats",
    "RateLimitTracker",
    # Circuit Breaker
    "CircuitState",
    "CircuitBreakerOpen",
    "CircuitBreakerConfig",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
    # Monitoring
    "EndpointStats",
    "RequestMetric",
    "OverallStats",
    "PerformanceMonitor",
    # Retry
    "RetryPolicy",
    "BackoffCalculator",
    "RetryExecutor",
    "RetryExhausted",
    "RetryInterrupted",
    # HTTP
    "ResilientHttpClient",
    "AsyncResilientHttpClient",
    # Health
    "HealthStatus",
    "ResilienceHealth",
    "build_health_report",
    # Configuration
    "ResilienceSettings",
    "ResilienceComponents",
    "build_components",
    "configure_logging",
    "build_http_client",
    # Logging
    "setup_logging",
    "get_logger",
]
