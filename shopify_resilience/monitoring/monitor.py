"""
Performance Monitor
===================
Records every attempt's outcome and answers read-only analytical queries.
"""

import threading
import time
from collections import deque
from dataclasses import replace
from typing import Deque, Dict, List, Optional, Tuple

import structlog

from .models import EndpointStats, OverallStats, RequestMetric

logger = structlog.get_logger(__name__)

MAX_RECENT_REQUESTS = 1000


class PerformanceMonitor:
    """
    Thread-safe in-memory performance monitor.

    A single lock guards the endpoint aggregates, the global totals and the
    bounded ring of recent requests, so readers never observe a half-applied
    recording or a partially cleared reset.
    """

    def __init__(self, max_recent: int = MAX_RECENT_REQUESTS):
        if max_recent < 1:
            raise ValueError("max_recent must be >= 1")
        self.max_recent = max_recent
        self._lock = threading.Lock()
        self._endpoints: Dict[Tuple[str, str], EndpointStats] = {}
        self._recent: Deque[RequestMetric] = deque(maxlen=max_recent)
        self._total_requests = 0
        self._total_errors = 0
        self._total_latency = 0.0

    def record_success(self, endpoint: str, method: str, latency: float, status_code: int = 200) -> None:
        """Record a successful request."""
        self._record(endpoint, method, latency, status_code, None)

    def record_error(
        self,
        endpoint: str,
        method: str,
        latency: float,
        status_code: int,
        error: Optional[BaseException] = None,
    ) -> None:
        """Record a failed request. ``status_code`` is 0 for non-HTTP failures."""
        self._record(endpoint, method, latency, status_code, error, is_error=True)

    def _record(
        self,
        endpoint: str,
        method: str,
        latency: float,
        status_code: int,
        error: Optional[BaseException],
        is_error: bool = False,
    ) -> None:
        latency = max(latency, 0.0)
        method = method.upper()
        metric = RequestMetric(
            endpoint=endpoint,
            method=method,
            latency=latency,
            status_code=status_code,
            timestamp=time.time(),
            success=not is_error,
            error_type=type(error).__name__ if error is not None else None,
            error_message=str(error) if error is not None else None,
        )
        with self._lock:
            key = (endpoint, method)
            stats = self._endpoints.get(key)
            if stats is None:
                stats = EndpointStats(endpoint=endpoint, method=method)
                self._endpoints[key] = stats
            stats.record(latency, is_error)

            self._total_requests += 1
            if is_error:
                self._total_errors += 1
            self._total_latency += latency
            self._recent.append(metric)

    def endpoint_stats(self, endpoint: str, method: str) -> Optional[EndpointStats]:
        """Copy of the statistics for an endpoint, or None if never recorded."""
        with self._lock:
            stats = self._endpoints.get((endpoint, method.upper()))
            return replace(stats) if stats else None

    def overall_stats(self) -> OverallStats:
        with self._lock:
            total = self._total_requests
            errors = self._total_errors
            latency = self._total_latency
            active = len(self._endpoints)

        if total == 0:
            return OverallStats(total_latency=latency, active_endpoints=active)

        error_rate = errors / total
        return OverallStats(
            total_requests=total,
            total_errors=errors,
            total_latency=latency,
            average_latency=latency / total,
            error_rate=error_rate,
            success_rate=1.0 - error_rate,
            active_endpoints=active,
        )

    def _snapshot(self) -> List[EndpointStats]:
        with self._lock:
            return [replace(stats) for stats in self._endpoints.values()]

    def top_performing(self, limit: int = 10) -> Dict[str, float]:
        """Fastest endpoints by mean latency, ordered ascending."""
        ranked = sorted(self._snapshot(), key=lambda s: (s.average_latency, s.key))
        return {s.key: s.average_latency for s in ranked[:limit]}

    def slowest(self, limit: int = 10) -> Dict[str, float]:
        """Slowest endpoints by mean latency, ordered descending."""
        ranked = sorted(self._snapshot(), key=lambda s: (-s.average_latency, s.key))
        return {s.key: s.average_latency for s in ranked[:limit]}

    def highest_error_rate(self, limit: int = 10) -> Dict[str, float]:
        """Endpoints with the highest error rate, ties broken by key."""
        ranked = sorted(
            (s for s in self._snapshot() if s.total_requests > 0),
            key=lambda s: (-s.error_rate, s.key),
        )
        return {s.key: s.error_rate for s in ranked[:limit]}

    def recent_requests(self, limit: int = 10) -> List[RequestMetric]:
        """Most recent recorded requests, newest first."""
        with self._lock:
            recent = list(self._recent)
        recent.reverse()
        return recent[:limit]

    def reset(self) -> None:
        """Clear all accumulated state."""
        with self._lock:
            self._endpoints.clear()
            self._recent.clear()
            self._total_requests = 0
            self._total_errors = 0
            self._total_latency = 0.0
        logger.info("performance_monitor_reset")
