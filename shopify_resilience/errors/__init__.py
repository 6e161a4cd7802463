"""
Error Taxonomy
==============
Tagged failures and their classification.
"""

from .exceptions import ErrorKind, ResilienceError, ApiError
from .classifiers import (
    RETRYABLE_SERVER_STATUSES,
    classify_status,
    classify_exception,
    is_retryable,
    is_caller_error,
    CALLER_ERROR_KINDS,
    map_transport_error,
)

__all__ = [
    "ErrorKind",
    "ResilienceError",
    "ApiError",
    "RETRYABLE_SERVER_STATUSES",
    "classify_status",
    "classify_exception",
    "is_retryable",
    "is_caller_error",
    "CALLER_ERROR_KINDS",
    "map_transport_error",
]
