"""
Resilience Exceptions
=====================
Error taxonomy shared by the retry, circuit breaker and transport layers.

Every failure carries an explicit ``ErrorKind`` so callers can branch on the
classification instead of on exception subclasses.
"""

from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

import httpx

from ..rate_limit.headers import parse_retry_after


class ErrorKind(str, Enum):
    """Classification of a failed attempt."""
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    AUTHENTICATION_FAILED = "authentication_failed"
    AUTHORIZATION_FAILED = "authorization_failed"
    RESOURCE_NOT_FOUND = "resource_not_found"
    VALIDATION_ERROR = "validation_error"
    CLIENT_ERROR = "client_error"
    UNEXPECTED_STATUS = "unexpected_status"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self in _RETRYABLE_KINDS


_RETRYABLE_KINDS = frozenset({
    ErrorKind.RATE_LIMITED,
    ErrorKind.SERVER_ERROR,
    ErrorKind.NETWORK_ERROR,
    ErrorKind.TIMEOUT,
})

_USER_MESSAGES = {
    ErrorKind.RATE_LIMITED: "Too many requests. Please wait before trying again.",
    ErrorKind.AUTHENTICATION_FAILED: "Authentication failed. Please check your credentials.",
    ErrorKind.AUTHORIZATION_FAILED: "You don't have permission to perform this action.",
    ErrorKind.RESOURCE_NOT_FOUND: "The requested resource was not found.",
    ErrorKind.VALIDATION_ERROR: "The request contains invalid data. Please check your input.",
    ErrorKind.SERVER_ERROR: "A server error occurred. Please try again later.",
    ErrorKind.NETWORK_ERROR: "A network error occurred. Please check your connection.",
    ErrorKind.TIMEOUT: "The request timed out. Please try again.",
}

HeadersLike = Union[httpx.Headers, Mapping[str, str], None]


class ResilienceError(Exception):
    """Base exception for every failure surfaced by the resilience layer."""

    def __init__(
        self,
        message: str,
        endpoint: str = "unknown",
        kind: ErrorKind = ErrorKind.UNKNOWN,
        status_code: int = 0,
        attempts: int = 0,
    ):
        self.message = message
        self.endpoint = endpoint
        self.kind = kind
        self.status_code = status_code
        self.attempts = attempts
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.kind.retryable

    def to_dict(self) -> Dict[str, Any]:
        """Structured context for logging and automated handling."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "endpoint": self.endpoint,
            "kind": self.kind.value,
            "status_code": self.status_code,
            "attempts": self.attempts,
            "retryable": self.retryable,
        }


class ApiError(ResilienceError):
    """
    A single failed attempt against the remote API.

    ``status_code`` is 0 when the failure never produced an HTTP response
    (network errors, timeouts).
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind,
        endpoint: str = "unknown",
        status_code: int = 0,
        headers: HeadersLike = None,
        latency: Optional[float] = None,
        details: Any = None,
    ):
        super().__init__(message, endpoint=endpoint, kind=kind, status_code=status_code)
        self.headers = httpx.Headers(headers or {})
        self.latency = latency
        self.details = details

    def __str__(self) -> str:
        return f"[{self.endpoint}] {self.message} (Status: {self.status_code})"

    @property
    def retry_after(self) -> Optional[float]:
        """Server requested delay in seconds, if a usable Retry-After was sent."""
        return parse_retry_after(self.headers.get("Retry-After"))

    @property
    def user_message(self) -> str:
        return _USER_MESSAGES.get(self.kind, self.message)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["latency"] = self.latency
        if self.details is not None:
            data["details"] = self.details
        return data

    # Factories

    @classmethod
    def rate_limited(cls, endpoint: str, headers: HeadersLike = None, **kwargs) -> "ApiError":
        return cls(
            f"Rate limit exceeded for endpoint: {endpoint}",
            ErrorKind.RATE_LIMITED,
            endpoint=endpoint,
            status_code=429,
            headers=headers,
            **kwargs,
        )

    @classmethod
    def authentication_failed(cls, endpoint: str, details: Any = None, **kwargs) -> "ApiError":
        return cls(
            "Authentication failed",
            ErrorKind.AUTHENTICATION_FAILED,
            endpoint=endpoint,
            status_code=401,
            details=details,
            **kwargs,
        )

    @classmethod
    def authorization_failed(cls, endpoint: str, details: Any = None, **kwargs) -> "ApiError":
        return cls(
            "Authorization failed",
            ErrorKind.AUTHORIZATION_FAILED,
            endpoint=endpoint,
            status_code=403,
            details=details,
            **kwargs,
        )

    @classmethod
    def resource_not_found(cls, endpoint: str, details: Any = None, **kwargs) -> "ApiError":
        return cls(
            "Resource not found",
            ErrorKind.RESOURCE_NOT_FOUND,
            endpoint=endpoint,
            status_code=404,
            details=details,
            **kwargs,
        )

    @classmethod
    def validation_error(cls, endpoint: str, details: Any = None, **kwargs) -> "ApiError":
        return cls(
            "Validation error occurred",
            ErrorKind.VALIDATION_ERROR,
            endpoint=endpoint,
            status_code=422,
            details=details,
            **kwargs,
        )

    @classmethod
    def server_error(cls, endpoint: str, status_code: int = 500, details: Any = None, **kwargs) -> "ApiError":
        return cls(
            f"Server error (HTTP {status_code})",
            ErrorKind.SERVER_ERROR,
            endpoint=endpoint,
            status_code=status_code,
            details=details,
            **kwargs,
        )

    @classmethod
    def network_error(cls, endpoint: str, details: Any = None, **kwargs) -> "ApiError":
        return cls(
            "Network error occurred",
            ErrorKind.NETWORK_ERROR,
            endpoint=endpoint,
            details=details,
            **kwargs,
        )

    @classmethod
    def timeout_error(cls, endpoint: str, timeout: Optional[float] = None, **kwargs) -> "ApiError":
        message = "Request timed out"
        if timeout is not None:
            message = f"Request timed out after {timeout:.3f}s"
        return cls(message, ErrorKind.TIMEOUT, endpoint=endpoint, **kwargs)

    @classmethod
    def from_status(
        cls,
        endpoint: str,
        status_code: int,
        headers: HeadersLike = None,
        latency: Optional[float] = None,
        details: Any = None,
    ) -> "ApiError":
        """Build the error matching an HTTP status code."""
        from .classifiers import classify_status

        kind = classify_status(status_code)
        return cls(
            f"HTTP {status_code} Error",
            kind,
            endpoint=endpoint,
            status_code=status_code,
            headers=headers,
            latency=latency,
            details=details,
        )

    @classmethod
    def from_response(cls, response: httpx.Response, endpoint: Optional[str] = None) -> "ApiError":
        latency = None
        try:
            latency = response.elapsed.total_seconds()
        except RuntimeError:
            # elapsed is only set once the response has been read/closed
            pass
        return cls.from_status(
            endpoint or response.request.url.path,
            response.status_code,
            headers=response.headers,
            latency=latency,
            details=response.text,
        )
