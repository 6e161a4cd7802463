"""
Rate Limit Tracker
==================
Per-(kind, endpoint) fixed window usage tracking for the remote API.

Each bucket counts requests in a 60 second window that starts when the bucket
is created (or last rolled over). Server-reported usage headers are
authoritative and overwrite the local count.
"""

import threading
import time
from typing import Callable, Dict, Optional, Tuple

import structlog

from .headers import (
    CALL_LIMIT_HEADER,
    DEFAULT_RETRY_AFTER_SECONDS,
    RETRY_AFTER_HEADER,
    HeadersLike,
    get_header,
    parse_call_limit,
    parse_retry_after,
)
from .models import OperationKind, RateBucket, RateLimitStats

logger = structlog.get_logger(__name__)

DEFAULT_WINDOW_SECONDS = 60.0
MIN_SAFETY_BUFFER_SECONDS = 1.0


class RateLimitTracker:
    """
    Thread-safe leaky bucket usage tracker.

    ``can_proceed`` grants a slot by reserving it, so the check and the
    increment happen atomically. A later ``record_outcome`` for the same request
    consumes the reservation instead of counting the request twice.

    Example:
        tracker = RateLimitTracker()

        if tracker.can_proceed("/products.json", OperationKind.REST):
            response = client.get("/products.json")
            tracker.record_outcome("/products.json", OperationKind.REST, response.headers)
    """

    def __init__(
        self,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        rejection_fallback: float = DEFAULT_RETRY_AFTER_SECONDS,
        usage_header: str = CALL_LIMIT_HEADER,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            window_seconds: Length of a usage window
            rejection_fallback: Delay used when a rejection carries no usable Retry-After
            usage_header: Header carrying ``"<used>/<limit>"`` server usage
            clock: Monotonic time source, injectable for tests
        """
        self.window_seconds = window_seconds
        self.rejection_fallback = rejection_fallback
        self.usage_header = usage_header
        self._clock = clock
        self._buckets: Dict[Tuple[OperationKind, str], RateBucket] = {}
        self._lock = threading.Lock()
        self._total_requests = 0
        self._last_reset_time = time.time()

    def _bucket(self, endpoint: str, kind: OperationKind) -> RateBucket:
        key = (kind, endpoint)
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = RateBucket(kind=kind, endpoint=endpoint, window_start=self._clock())
            self._buckets[key] = bucket
        return bucket

    def _roll_window(self, bucket: RateBucket, now: float) -> bool:
        """Start a new window if the current one elapsed. Returns True on rollover."""
        if now - bucket.window_start >= self.window_seconds:
            bucket.usage = 0
            bucket.reserved = 0
            bucket.window_start = now
            return True
        return False

    def can_proceed(self, endpoint: str, kind: OperationKind = OperationKind.REST) -> bool:
        """
        Check whether a request may be sent now, reserving the slot if so.

        When the window has elapsed the bucket is reset and the call returns
        True without consuming the fresh window.
        """
        with self._lock:
            bucket = self._bucket(endpoint, kind)
            if self._roll_window(bucket, self._clock()):
                return True
            if bucket.usage >= bucket.ceiling:
                logger.debug(
                    "rate_limit_bucket_full",
                    bucket=bucket.key,
                    usage=bucket.usage,
                    ceiling=bucket.ceiling,
                )
                return False
            bucket.usage += 1
            bucket.reserved += 1
            return True

    def record_outcome(
        self,
        endpoint: str,
        kind: OperationKind = OperationKind.REST,
        headers: HeadersLike = None,
    ) -> None:
        """Record a completed request and absorb server-reported usage."""
        with self._lock:
            bucket = self._bucket(endpoint, kind)
            self._roll_window(bucket, self._clock())
            if bucket.reserved > 0:
                bucket.reserved -= 1
            else:
                bucket.usage += 1
            self._total_requests += 1

            reported = parse_call_limit(get_header(headers, self.usage_header))
            if reported is not None:
                bucket.server_used, bucket.server_limit = reported
                bucket.usage = bucket.server_used

    def delay_on_rejection(
        self,
        endpoint: str,
        kind: OperationKind = OperationKind.REST,
        headers: HeadersLike = None,
    ) -> float:
        """Seconds to wait after the server rejected a request for rate limiting."""
        delay = parse_retry_after(get_header(headers, RETRY_AFTER_HEADER))
        if delay is None:
            delay = self.rejection_fallback
        with self._lock:
            self._bucket(endpoint, kind).last_rejection_delay = delay
        logger.info("rate_limit_rejected", endpoint=endpoint, kind=kind.value, delay=delay)
        return delay

    def optimal_delay(self, endpoint: str, kind: OperationKind = OperationKind.REST) -> float:
        """
        Seconds to wait before the next request to avoid a rejection.

        Zero for unknown buckets or when capacity is available, otherwise the
        time left in the window plus a safety buffer (10% of it, at least 1s).
        """
        with self._lock:
            bucket = self._buckets.get((kind, endpoint))
            if bucket is None:
                return 0.0
            now = self._clock()
            if self._roll_window(bucket, now) or bucket.usage < bucket.ceiling:
                return 0.0
            remaining = self.window_seconds - (now - bucket.window_start)
        if remaining <= 0:
            return 0.0
        return remaining + max(MIN_SAFETY_BUFFER_SECONDS, remaining / 10)

    def usage(self, endpoint: str, kind: OperationKind = OperationKind.REST) -> int:
        """Current window usage for a bucket (0 if unknown)."""
        with self._lock:
            bucket = self._buckets.get((kind, endpoint))
            return bucket.usage if bucket else 0

    def bucket(self, endpoint: str, kind: OperationKind = OperationKind.REST) -> Optional[RateBucket]:
        """Copy of a bucket's state, or None if it was never referenced."""
        with self._lock:
            bucket = self._buckets.get((kind, endpoint))
            if bucket is None:
                return None
            return RateBucket(**vars(bucket))

    def stats(self) -> RateLimitStats:
        with self._lock:
            return RateLimitStats(
                total_requests=self._total_requests,
                current_usage=sum(b.usage for b in self._buckets.values()),
                active_buckets=len(self._buckets),
                last_reset_time=self._last_reset_time,
            )

    def reset_all(self) -> None:
        """Drop every bucket and counter."""
        with self._lock:
            self._buckets.clear()
            self._total_requests = 0
            self._last_reset_time = time.time()
        logger.info("rate_limit_reset")
