"""
Retry Exceptions
================
Terminal errors raised by the retry executor.
"""

from typing import Any, Dict, Optional

from ..errors import ErrorKind, ResilienceError, classify_exception


class RetryExhausted(ResilienceError):
    """Raised when all retry attempts have been exhausted."""

    def __init__(
        self,
        message: str,
        last_exception: Optional[BaseException] = None,
        endpoint: str = "unknown",
        attempts: int = 0,
    ):
        kind = classify_exception(last_exception) if last_exception else ErrorKind.UNKNOWN
        super().__init__(
            message,
            endpoint=endpoint,
            kind=kind,
            status_code=getattr(last_exception, "status_code", 0) or 0,
            attempts=attempts,
        )
        self.last_exception = last_exception

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["last_error"] = repr(self.last_exception) if self.last_exception else None
        return data


class RetryInterrupted(ResilienceError):
    """Raised when a backoff sleep was cancelled before the next attempt."""
    pass
