"""
Retry Policy
============
Immutable retry configuration, overridable per call.
"""

import os
from dataclasses import dataclass, replace


def env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behaviour. Delays are in seconds."""
    max_retries: int = 3              # Retries after the first attempt
    base_delay: float = 1.0
    backoff_multiplier: float = 2.0
    max_delay: float = 30.0
    jitter_enabled: bool = True
    jitter_fraction: float = 0.1      # +/- 10%
    adaptive_retry_enabled: bool = True
    adaptive_threshold: int = 2       # First 0-based attempt scaled by latency

    def __post_init__(self):
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.backoff_multiplier <= 0:
            raise ValueError("backoff_multiplier must be > 0")
        if self.max_delay < 0:
            raise ValueError("max_delay must be >= 0")
        if not 0.0 <= self.jitter_fraction <= 1.0:
            raise ValueError("jitter_fraction must be between 0 and 1")
        if self.adaptive_threshold < 0:
            raise ValueError("adaptive_threshold must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def with_overrides(self, **changes) -> "RetryPolicy":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    @classmethod
    def from_env(cls, prefix: str = "SHOPIFY_RETRY_") -> "RetryPolicy":
        """Build a policy from ``<prefix>*`` environment variables."""
        defaults = cls()
        return cls(
            max_retries=int(os.getenv(f"{prefix}MAX_RETRIES", defaults.max_retries)),
            base_delay=float(os.getenv(f"{prefix}BASE_DELAY", defaults.base_delay)),
            backoff_multiplier=float(
                os.getenv(f"{prefix}BACKOFF_MULTIPLIER", defaults.backoff_multiplier)
            ),
            max_delay=float(os.getenv(f"{prefix}MAX_DELAY", defaults.max_delay)),
            jitter_enabled=env_bool(f"{prefix}JITTER_ENABLED", defaults.jitter_enabled),
            jitter_fraction=float(os.getenv(f"{prefix}JITTER_FRACTION", defaults.jitter_fraction)),
            adaptive_retry_enabled=env_bool(
                f"{prefix}ADAPTIVE_ENABLED", defaults.adaptive_retry_enabled
            ),
            adaptive_threshold=int(
                os.getenv(f"{prefix}ADAPTIVE_THRESHOLD", defaults.adaptive_threshold)
            ),
        )
