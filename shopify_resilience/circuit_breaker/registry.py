"""
Circuit Breaker Registry
========================
Named circuit breakers, one per protected dependency.
"""

import threading
from typing import Any, Dict, List, Optional

import structlog

from .breaker import CircuitBreaker
from .models import CircuitBreakerConfig

logger = structlog.get_logger(__name__)


class CircuitBreakerRegistry:
    """
    Get-or-create store of circuit breakers keyed by dependency name.

    Instances are passed around explicitly; there is no module level registry.
    """

    def __init__(self, default_config: Optional[CircuitBreakerConfig] = None):
        self.default_config = default_config or CircuitBreakerConfig()
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, name: str, config: Optional[CircuitBreakerConfig] = None) -> CircuitBreaker:
        """
        Get or create the breaker for ``name``.

        Args:
            name: Name of the protected dependency
            config: Only used if the breaker is created by this call
        """
        with self._lock:
            breaker = self._breakers.get(name)
            if breaker is None:
                breaker = CircuitBreaker(name=name, config=config or self.default_config)
                self._breakers[name] = breaker
                logger.debug("circuit_registered", breaker=name)
            return breaker

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._breakers)

    def all_metrics(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            breakers = list(self._breakers.values())
        return {breaker.name: breaker.metrics for breaker in breakers}

    def reset(self, name: str) -> bool:
        """Reset one breaker. Returns False if it does not exist."""
        with self._lock:
            breaker = self._breakers.get(name)
        if breaker is None:
            return False
        breaker.reset()
        return True

    def reset_all(self) -> None:
        with self._lock:
            breakers = list(self._breakers.values())
        for breaker in breakers:
            breaker.reset()
