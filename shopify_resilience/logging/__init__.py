"""
Logging
=======
Structured logging setup shared by every module of the resilience layer.
"""

from .structured import (
    # Setup
    setup_logging,
    get_logger,
    # Context
    service_name_var,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "service_name_var",
]
