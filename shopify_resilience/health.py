"""
Resilience Health Check
=======================
Point-in-time health snapshot over the monitor, the rate-limit tracker and
the circuit breakers.
"""

import time
from enum import Enum
from typing import Dict, Optional

import structlog
from pydantic import BaseModel

from .circuit_breaker import CircuitBreakerRegistry, CircuitState
from .monitoring import PerformanceMonitor
from .rate_limit import RateLimitTracker

logger = structlog.get_logger(__name__)

DEFAULT_ERROR_RATE_THRESHOLD = 0.25


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class BreakerHealth(BaseModel):
    state: CircuitState
    failure_count: int
    total_rejections: int


class RequestHealth(BaseModel):
    total_requests: int
    total_errors: int
    average_latency: float
    error_rate: float


class RateLimitHealth(BaseModel):
    total_requests: int
    current_usage: int
    active_buckets: int


class ResilienceHealth(BaseModel):
    status: HealthStatus
    requests: RequestHealth
    breakers: Dict[str, BreakerHealth]
    rate_limit: Optional[RateLimitHealth] = None
    timestamp: float


def build_health_report(
    monitor: PerformanceMonitor,
    tracker: Optional[RateLimitTracker] = None,
    registry: Optional[CircuitBreakerRegistry] = None,
    error_rate_threshold: float = DEFAULT_ERROR_RATE_THRESHOLD,
) -> ResilienceHealth:
    """
    Build a health report.

    An open breaker makes the report unhealthy. A half-open breaker, or an
    overall error rate above ``error_rate_threshold``, makes it degraded.
    """
    overall = monitor.overall_stats()
    requests = RequestHealth(
        total_requests=overall.total_requests,
        total_errors=overall.total_errors,
        average_latency=overall.average_latency,
        error_rate=overall.error_rate,
    )

    breakers: Dict[str, BreakerHealth] = {}
    if registry is not None:
        for name, metrics in registry.all_metrics().items():
            breakers[name] = BreakerHealth(
                state=CircuitState(metrics["state"]),
                failure_count=metrics["failure_count"],
                total_rejections=metrics["total_rejections"],
            )

    rate_limit = None
    if tracker is not None:
        stats = tracker.stats()
        rate_limit = RateLimitHealth(
            total_requests=stats.total_requests,
            current_usage=stats.current_usage,
            active_buckets=stats.active_buckets,
        )

    status = HealthStatus.HEALTHY
    if overall.error_rate > error_rate_threshold:
        status = HealthStatus.DEGRADED
    if any(b.state == CircuitState.HALF_OPEN for b in breakers.values()):
        status = HealthStatus.DEGRADED
    if any(b.state == CircuitState.OPEN for b in breakers.values()):
        status = HealthStatus.UNHEALTHY

    if status != HealthStatus.HEALTHY:
        logger.warning("resilience_health_degraded", status=status.value, error_rate=overall.error_rate)

    return ResilienceHealth(
        status=status,
        requests=requests,
        breakers=breakers,
        rate_limit=rate_limit,
        timestamp=time.time(),
    )
