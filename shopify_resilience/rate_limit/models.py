"""
Rate Limit Models
=================
Operation kinds, per-endpoint buckets and tracker statistics.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OperationKind(str, Enum):
    """Kind of outbound call. Each kind has its own per-minute ceiling."""
    REST = "rest"
    GRAPHQL = "graphql"
    WEBHOOK = "webhook"

    @property
    def requests_per_minute(self) -> int:
        return _CEILINGS[self]


_CEILINGS = {
    OperationKind.REST: 40,
    OperationKind.GRAPHQL: 1000,
    OperationKind.WEBHOOK: 100,
}


@dataclass
class RateBucket:
    """
    Usage counter for one (kind, endpoint) pair.

    Only ``RateLimitTracker`` mutates buckets, always under its lock.
    """
    kind: OperationKind
    endpoint: str
    window_start: float
    usage: int = 0
    reserved: int = 0
    server_used: Optional[int] = None
    server_limit: Optional[int] = None
    last_rejection_delay: Optional[float] = None

    @property
    def ceiling(self) -> int:
        return self.kind.requests_per_minute

    @property
    def key(self) -> str:
        return f"{self.kind.name}:{self.endpoint}"


@dataclass(frozen=True)
class RateLimitStats:
    """Snapshot of tracker usage for monitoring."""
    total_requests: int
    current_usage: int
    active_buckets: int
    last_reset_time: float  # Unix timestamp
