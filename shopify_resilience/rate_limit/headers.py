"""
Rate Limit Headers
==================
Lenient parsing of the rate-limit related response headers.

Nothing in here raises on malformed input: callers get ``None`` (or the
documented fallback) and keep their own defaults.
"""

from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Mapping, Optional, Tuple, Union

import httpx
import structlog

logger = structlog.get_logger(__name__)

RETRY_AFTER_HEADER = "Retry-After"
CALL_LIMIT_HEADER = "X-Shopify-Shop-Api-Call-Limit"

# Used when Retry-After is present but unusable
DEFAULT_RETRY_AFTER_SECONDS = 60.0

HeadersLike = Union[httpx.Headers, Mapping[str, str], None]


def get_header(headers: HeadersLike, name: str) -> Optional[str]:
    """Case-insensitive header lookup over any mapping."""
    if not headers:
        return None
    if not isinstance(headers, httpx.Headers):
        headers = httpx.Headers(headers)
    return headers.get(name)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """
    Parse a Retry-After value into seconds.

    Returns:
        ``None`` when the header is absent or blank, the integer seconds when
        numeric (negative values clamp to 0), the seconds until the given
        instant for an HTTP-date, and ``DEFAULT_RETRY_AFTER_SECONDS`` for
        anything else.
    """
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None

    try:
        return float(max(int(value), 0))
    except ValueError:
        pass

    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        when = None
    if when is None:
        logger.debug("retry_after_unparseable", value=value)
        return DEFAULT_RETRY_AFTER_SECONDS

    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def parse_call_limit(value: Optional[str]) -> Optional[Tuple[int, int]]:
    """Parse a ``"<used>/<limit>"`` usage header into ``(used, limit)``."""
    if not value:
        return None
    parts = value.split("/")
    if len(parts) != 2:
        logger.debug("call_limit_unparseable", value=value)
        return None
    try:
        used, limit = int(parts[0].strip()), int(parts[1].strip())
    except ValueError:
        logger.debug("call_limit_unparseable", value=value)
        return None
    if used < 0 or limit < 0:
        return None
    return used, limit
