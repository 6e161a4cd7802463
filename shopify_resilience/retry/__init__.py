"""
Retry
=====
Retry policy, backoff calculation and the retry executor.

Usage:
    from shopify_resilience.retry import RetryExecutor, RetryPolicy

    executor = RetryExecutor(policy=RetryPolicy(max_retries=5))
    result = executor.execute_with_retry(descriptor)
"""

from .policy import RetryPolicy
from .backoff import BackoffCalculator, MAX_ADAPTIVE_FACTOR
from .exceptions import RetryExhausted, RetryInterrupted
from .executor import RetryExecutor, RetryPredicate

__all__ = [
    # Policy
    "RetryPolicy",
    # Backoff
    "BackoffCalculator",
    "MAX_ADAPTIVE_FACTOR",
    # Exceptions
    "RetryExhausted",
    "RetryInterrupted",
    # Executor
    "RetryExecutor",
    "RetryPredicate",
]
