"""
Error Classification
====================
Maps HTTP status codes and raised exceptions onto ``ErrorKind``.
"""

import httpx

from .exceptions import ApiError, ErrorKind

# Server errors worth retrying; other 5xx are treated as unexpected.
RETRYABLE_SERVER_STATUSES = frozenset({500, 502, 503, 504})

_STATUS_KINDS = {
    400: ErrorKind.CLIENT_ERROR,
    401: ErrorKind.AUTHENTICATION_FAILED,
    403: ErrorKind.AUTHORIZATION_FAILED,
    404: ErrorKind.RESOURCE_NOT_FOUND,
    422: ErrorKind.VALIDATION_ERROR,
    429: ErrorKind.RATE_LIMITED,
}


def classify_status(status_code: int) -> ErrorKind:
    """Classify an HTTP status code. 0 means no HTTP response was received."""
    if status_code == 0:
        return ErrorKind.NETWORK_ERROR
    if status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    if status_code in RETRYABLE_SERVER_STATUSES:
        return ErrorKind.SERVER_ERROR
    if 400 <= status_code < 500:
        return ErrorKind.CLIENT_ERROR
    return ErrorKind.UNEXPECTED_STATUS


def classify_exception(exc: BaseException) -> ErrorKind:
    """Classify any exception raised by an attempt."""
    if isinstance(exc, ApiError):
        return exc.kind
    if isinstance(exc, (httpx.TimeoutException, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(exc, httpx.HTTPStatusError):
        return classify_status(exc.response.status_code)
    if isinstance(exc, (httpx.TransportError, ConnectionError)):
        return ErrorKind.NETWORK_ERROR
    return ErrorKind.UNKNOWN


def is_retryable(exc: BaseException) -> bool:
    return classify_exception(exc).retryable


def map_transport_error(exc: Exception, endpoint: str) -> ApiError:
    """Map httpx exceptions to ``ApiError``."""
    if isinstance(exc, ApiError):
        return exc
    if isinstance(exc, httpx.TimeoutException):
        return ApiError.timeout_error(endpoint, details=str(exc))
    if isinstance(exc, httpx.HTTPStatusError):
        return ApiError.from_response(exc.response, endpoint)
    if isinstance(exc, httpx.TransportError):
        return ApiError.network_error(endpoint, details=str(exc))
    return ApiError(
        f"Unexpected error: {exc}",
        classify_exception(exc),
        endpoint=endpoint,
    )


# Failures caused by the request itself, which say nothing about the shop's health
CALLER_ERROR_KINDS = frozenset({
    ErrorKind.CLIENT_ERROR,
    ErrorKind.RESOURCE_NOT_FOUND,
    ErrorKind.VALIDATION_ERROR,
})


def is_caller_error(exc: BaseException) -> bool:
    return classify_exception(exc) in CALLER_ERROR_KINDS
