"""
Retry Backoff
=============
Exponential backoff delay calculation.
"""

import random
from typing import Optional

from .policy import RetryPolicy

# Cap for the latency scaling factor applied by adaptive retry
MAX_ADAPTIVE_FACTOR = 2.0


class BackoffCalculator:
    """
    Computes the delay before a retry.

    Pure with respect to its inputs apart from the jitter draw, which comes
    from an injectable ``random.Random``.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    def delay(
        self,
        attempt: int,
        policy: RetryPolicy,
        last_latency: Optional[float] = None,
    ) -> float:
        """
        Delay in seconds after the given 0-based attempt failed.

        Args:
            attempt: 0-based index of the attempt that just failed
            policy: Retry configuration
            last_latency: Observed latency of that attempt, in seconds
        """
        delay = policy.base_delay * (policy.backoff_multiplier ** attempt)

        if (
            policy.adaptive_retry_enabled
            and last_latency is not None
            and attempt >= policy.adaptive_threshold
        ):
            delay *= min(last_latency, MAX_ADAPTIVE_FACTOR)

        if policy.jitter_enabled and policy.jitter_fraction > 0:
            delay *= self._rng.uniform(1 - policy.jitter_fraction, 1 + policy.jitter_fraction)

        return min(max(delay, 0.0), policy.max_delay)
