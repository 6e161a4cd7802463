"""
Performance Monitoring
======================
Per-endpoint latency and error aggregates for outbound API calls.
"""

from .models import EndpointStats, RequestMetric, OverallStats
from .monitor import PerformanceMonitor, MAX_RECENT_REQUESTS

__all__ = [
    "EndpointStats",
    "RequestMetric",
    "OverallStats",
    "PerformanceMonitor",
    "MAX_RECENT_REQUESTS",
]
