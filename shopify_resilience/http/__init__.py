from .client import (
    ResilientHttpClient,
    AsyncResilientHttpClient,
    ACCESS_TOKEN_HEADER,
    GRAPHQL_PATH,
)

__all__ = [
    "ResilientHttpClient",
    "AsyncResilientHttpClient",
    "ACCESS_TOKEN_HEADER",
    "GRAPHQL_PATH",
]
