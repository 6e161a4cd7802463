"""
Core Models
===========
What callers hand to the resilience layer, and what it reads back.
"""

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

import httpx

from .rate_limit.models import OperationKind


@dataclass(frozen=True)
class ResponseMeta:
    """Response metadata consumed by the rate-limit tracker and the monitor."""
    status_code: int
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    latency: Optional[float] = None

    def __post_init__(self):
        if not isinstance(self.headers, httpx.Headers):
            object.__setattr__(self, "headers", httpx.Headers(self.headers or {}))

    @classmethod
    def from_response(cls, response: Any) -> "ResponseMeta":
        """Extract metadata from an ``httpx.Response``; other results map to a bare 200."""
        if not isinstance(response, httpx.Response):
            return cls(status_code=200)
        try:
            latency = response.elapsed.total_seconds()
        except RuntimeError:
            latency = None
        return cls(status_code=response.status_code, headers=response.headers, latency=latency)


@dataclass(frozen=True)
class OperationDescriptor:
    """
    One logical outbound operation.

    ``call`` performs the network request and either returns a result or
    raises; for coroutine execution it must return an awaitable.
    """
    endpoint: str
    call: Callable[[], Any]
    kind: OperationKind = OperationKind.REST
    method: str = "GET"
    response_meta: Callable[[Any], ResponseMeta] = ResponseMeta.from_response
    cancellation: Optional[threading.Event] = None

    def __post_init__(self):
        if not self.endpoint:
            raise ValueError("endpoint is required")
        if not callable(self.call):
            raise ValueError("call must be callable")
        object.__setattr__(self, "method", self.method.upper())
