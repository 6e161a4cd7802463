"""
Resilience Configuration
========================
Environment-driven settings and explicit wiring of the resilience components.

Environment variables:
    SHOPIFY_SHOP_URL, SHOPIFY_ACCESS_TOKEN, SHOPIFY_API_VERSION
    SHOPIFY_RETRY_*            (see RetryPolicy.from_env)
    SHOPIFY_BREAKER_ENABLED, SHOPIFY_BREAKER_FAILURE_THRESHOLD,
    SHOPIFY_BREAKER_RECOVERY_TIMEOUT, SHOPIFY_BREAKER_REQUEST_TIMEOUT
    SHOPIFY_RATE_LIMIT_ENABLED, SHOPIFY_RATE_LIMIT_WINDOW
    SHOPIFY_MONITOR_MAX_RECENT
    SHOPIFY_LOG_LEVEL, SHOPIFY_LOG_JSON
"""

import logging
import os
from dataclasses import dataclass, field, replace
from typing import Optional

import httpx

from .circuit_breaker import CircuitBreaker, CircuitBreakerConfig, CircuitBreakerRegistry
from .errors import is_caller_error
from .http import ResilientHttpClient
from .logging import setup_logging
from .monitoring import MAX_RECENT_REQUESTS, PerformanceMonitor
from .rate_limit import DEFAULT_WINDOW_SECONDS, RateLimitTracker
from .retry import RetryExecutor, RetryPolicy
from .retry.policy import env_bool

DEFAULT_API_VERSION = "2024-01"
DEFAULT_BREAKER_NAME = "shopify-admin"


@dataclass
class ResilienceSettings:
    """Configuration for the Shopify resilience layer."""
    shop_url: str = ""
    access_token: str = ""
    api_version: str = DEFAULT_API_VERSION
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    breaker_enabled: bool = True
    breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    rate_limit_enabled: bool = True
    rate_limit_window: float = DEFAULT_WINDOW_SECONDS
    monitor_max_recent: int = MAX_RECENT_REQUESTS
    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls) -> "ResilienceSettings":
        defaults = CircuitBreakerConfig()
        return cls(
            shop_url=os.getenv("SHOPIFY_SHOP_URL", ""),
            access_token=os.getenv("SHOPIFY_ACCESS_TOKEN", ""),
            api_version=os.getenv("SHOPIFY_API_VERSION", DEFAULT_API_VERSION),
            retry=RetryPolicy.from_env("SHOPIFY_RETRY_"),
            breaker_enabled=env_bool("SHOPIFY_BREAKER_ENABLED", True),
            breaker=CircuitBreakerConfig(
                failure_threshold=int(
                    os.getenv("SHOPIFY_BREAKER_FAILURE_THRESHOLD", defaults.failure_threshold)
                ),
                recovery_timeout=float(
                    os.getenv("SHOPIFY_BREAKER_RECOVERY_TIMEOUT", defaults.recovery_timeout)
                ),
                request_timeout=float(
                    os.getenv("SHOPIFY_BREAKER_REQUEST_TIMEOUT", defaults.request_timeout)
                ),
            ),
            rate_limit_enabled=env_bool("SHOPIFY_RATE_LIMIT_ENABLED", True),
            rate_limit_window=float(os.getenv("SHOPIFY_RATE_LIMIT_WINDOW", DEFAULT_WINDOW_SECONDS)),
            monitor_max_recent=int(os.getenv("SHOPIFY_MONITOR_MAX_RECENT", MAX_RECENT_REQUESTS)),
            log_level=os.getenv("SHOPIFY_LOG_LEVEL", "INFO"),
            log_json=env_bool("SHOPIFY_LOG_JSON", True),
        )

    def api_path(self, resource: str) -> str:
        """Versioned Admin API path, e.g. ``/admin/api/2024-01/products.json``."""
        return f"/admin/api/{self.api_version}/{resource.lstrip('/')}"


@dataclass
class ResilienceComponents:
    """One wired set of components, shared by every client of a shop."""
    monitor: PerformanceMonitor
    registry: CircuitBreakerRegistry
    executor: RetryExecutor
    tracker: Optional[RateLimitTracker] = None
    breaker: Optional[CircuitBreaker] = None

    def shutdown(self) -> None:
        self.executor.shutdown()


def build_components(settings: ResilienceSettings) -> ResilienceComponents:
    """
    Create tracker, monitor, breaker and executor from settings.

    Unless the breaker config brings its own ``is_excluded``, 400, 404 and 422
    failures are not counted by the shop-wide breaker.
    """
    breaker_config = settings.breaker
    if breaker_config.is_excluded is None:
        breaker_config = replace(breaker_config, is_excluded=is_caller_error)

    monitor = PerformanceMonitor(max_recent=settings.monitor_max_recent)
    registry = CircuitBreakerRegistry(default_config=breaker_config)
    tracker = RateLimitTracker(window_seconds=settings.rate_limit_window) if settings.rate_limit_enabled else None
    breaker = registry.get(DEFAULT_BREAKER_NAME) if settings.breaker_enabled else None
    executor = RetryExecutor(
        policy=settings.retry,
        rate_limiter=tracker,
        monitor=monitor,
        breaker=breaker,
    )
    return ResilienceComponents(
        monitor=monitor,
        registry=registry,
        executor=executor,
        tracker=tracker,
        breaker=breaker,
    )


def build_http_client(
    settings: ResilienceSettings,
    components: ResilienceComponents,
    transport: Optional[httpx.BaseTransport] = None,
) -> ResilientHttpClient:
    """Create a synchronous Admin API client sharing ``components``."""
    if not settings.shop_url:
        raise ValueError("shop_url is required")
    return ResilientHttpClient(
        settings.shop_url,
        access_token=settings.access_token or None,
        executor=components.executor,
        timeout=settings.breaker.request_timeout,
        transport=transport,
    )


def configure_logging(settings: ResilienceSettings, service_name: str) -> logging.Logger:
    """Apply ``SHOPIFY_LOG_LEVEL`` and ``SHOPIFY_LOG_JSON`` through ``setup_logging``."""
    return setup_logging(service_name, level=settings.log_level, json_output=settings.log_json)
