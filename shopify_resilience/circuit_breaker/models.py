"""
Circuit Breaker Models
======================
Data models and enums for the circuit breaker pattern.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..errors import ErrorKind, ResilienceError


class CircuitState(str, Enum):
    """Circuit breaker states."""
    CLOSED = "closed"        # Normal operation
    OPEN = "open"            # Failing, reject requests
    HALF_OPEN = "half_open"  # Single probe allowed


class CircuitBreakerOpen(ResilienceError):
    """
    Raised when the breaker rejects a call without invoking it.

    Distinct from ``RetryExhausted``: the protected call was never tried.
    """

    def __init__(self, breaker_name: str, state: CircuitState, retry_after: float, endpoint: str = "unknown"):
        self.breaker_name = breaker_name
        self.state = state
        self.retry_after = retry_after
        super().__init__(
            f"Circuit breaker '{breaker_name}' is {state.value}. "
            f"Retry after {retry_after:.1f}s",
            endpoint=endpoint,
            kind=ErrorKind.UNKNOWN,
        )

    @property
    def retryable(self) -> bool:
        return False


@dataclass(frozen=True)
class CircuitBreakerConfig:
    """Configuration for a circuit breaker."""
    failure_threshold: int = 5        # Consecutive failures before opening
    request_timeout: float = 30.0     # Reserved for the caller's own request timeout
    recovery_timeout: float = 60.0    # Seconds after the last failure before probing
    excluded_exceptions: tuple = ()   # Exceptions that don't count as failures
    is_excluded: Optional[Callable[[BaseException], bool]] = None  # Same, decided per instance

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout must be >= 0")


@dataclass
class CircuitBreakerState:
    """Runtime state of a circuit breaker."""
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: Optional[float] = None
    probe_in_flight: bool = False

    # Metrics
    total_calls: int = 0
    total_failures: int = 0
    total_successes: int = 0
    total_rejections: int = 0
