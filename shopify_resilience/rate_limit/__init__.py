"""
Rate Limiting
=============
Per-endpoint usage tracking against the API's per-minute ceilings.
"""

from .models import OperationKind, RateBucket, RateLimitStats
from .headers import (
    CALL_LIMIT_HEADER,
    RETRY_AFTER_HEADER,
    DEFAULT_RETRY_AFTER_SECONDS,
    get_header,
    parse_call_limit,
    parse_retry_after,
)
from .tracker import RateLimitTracker, DEFAULT_WINDOW_SECONDS

__all__ = [
    # Models
    "OperationKind",
    "RateBucket",
    "RateLimitStats",
    # Headers
    "CALL_LIMIT_HEADER",
    "RETRY_AFTER_HEADER",
    "DEFAULT_RETRY_AFTER_SECONDS",
    "get_header",
    "parse_call_limit",
    "parse_retry_after",
    # Tracker
    "RateLimitTracker",
    "DEFAULT_WINDOW_SECONDS",
]
