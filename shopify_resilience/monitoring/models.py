"""
Monitoring Models
=================
Per-endpoint aggregates, request snapshots and overall statistics.

Latencies are in seconds.
"""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass
class EndpointStats:
    """Accumulated statistics for one (endpoint, method) pair."""
    endpoint: str
    method: str
    total_requests: int = 0
    total_errors: int = 0
    total_latency: float = 0.0
    min_latency: float = math.inf
    max_latency: float = 0.0

    @property
    def key(self) -> str:
        return f"{self.endpoint}:{self.method}"

    @property
    def average_latency(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_latency / self.total_requests

    @property
    def error_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.total_errors / self.total_requests

    @property
    def success_rate(self) -> float:
        return 1.0 - self.error_rate

    def record(self, latency: float, is_error: bool) -> None:
        self.total_requests += 1
        if is_error:
            self.total_errors += 1
        self.total_latency += latency
        self.min_latency = min(self.min_latency, latency)
        self.max_latency = max(self.max_latency, latency)


@dataclass(frozen=True)
class RequestMetric:
    """A single recorded attempt. Failures keep the exception type and message only."""
    endpoint: str
    method: str
    latency: float
    status_code: int
    timestamp: float  # Unix timestamp
    success: bool = True
    error_type: Optional[str] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class OverallStats:
    """Totals across every endpoint."""
    total_requests: int = 0
    total_errors: int = 0
    total_latency: float = 0.0
    average_latency: float = 0.0
    error_rate: float = 0.0
    success_rate: float = 1.0
    active_endpoints: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
