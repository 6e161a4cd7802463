"""
Resilient HTTP Clients
======================
Thin httpx clients for the Shopify Admin API whose every request runs
through the retry executor.

Features:
- Connection pooling (via httpx.Client / httpx.AsyncClient)
- Access-token and JSON headers on every request
- Non-2xx responses and transport failures mapped to ``ApiError``
- Rate limiting, circuit breaking and monitoring from the executor
"""

import functools
from typing import Any, Dict, Optional

import httpx
import structlog

from ..errors import ApiError, map_transport_error
from ..models import OperationDescriptor
from ..rate_limit import OperationKind
from ..retry import RetryExecutor, RetryPolicy

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_HEADER = "X-Shopify-Access-Token"
GRAPHQL_PATH = "/admin/api/graphql.json"


def _default_headers(access_token: Optional[str], user_agent: str) -> Dict[str, str]:
    headers = {
        "User-Agent": user_agent,
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if access_token:
        headers[ACCESS_TOKEN_HEADER] = access_token
    return headers


def _raise_for_status(response: httpx.Response, path: str) -> httpx.Response:
    if response.status_code >= 400:
        error = ApiError.from_response(response, path)
        logger.debug("api_error_response", endpoint=path, status_code=response.status_code, kind=error.kind.value)
        raise error
    return response


def _decode(response: httpx.Response) -> Any:
    """JSON body, or None for empty responses."""
    if response.status_code == 204 or not response.content:
        return None
    return response.json()


class ResilientHttpClient:
    """
    Synchronous Shopify Admin API client.

    Example:
        with ResilientHttpClient("https://shop.myshopify.com", access_token=token) as client:
            products = client.get("/admin/api/2024-01/products.json")
    """

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        executor: Optional[RetryExecutor] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
        user_agent: str = "shopify-resilience",
    ):
        self.base_url = base_url.rstrip("/")
        self.executor = executor or RetryExecutor()
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=_default_headers(access_token, user_agent),
            transport=transport,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self.client.close()

    def __enter__(self) -> "ResilientHttpClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise map_transport_error(exc, path) from exc
        return _raise_for_status(response, path)

    def request(
        self,
        method: str,
        path: str,
        *,
        kind: OperationKind = OperationKind.REST,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> httpx.Response:
        """Send one logical request, retried per ``policy``; returns the final response."""
        descriptor = OperationDescriptor(
            endpoint=path,
            call=functools.partial(self._send, method, path, json=json, params=params),
            kind=kind,
            method=method,
        )
        return self.executor.execute_with_retry(descriptor, policy)

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return _decode(self.request("GET", path, params=params))

    def post(self, path: str, json: Any = None) -> Any:
        return _decode(self.request("POST", path, json=json))

    def put(self, path: str, json: Any = None) -> Any:
        return _decode(self.request("PUT", path, json=json))

    def delete(self, path: str) -> Any:
        return _decode(self.request("DELETE", path))

    def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Any:
        """Run a GraphQL query against the Admin API and return the decoded body."""
        payload = {"query": query, "variables": variables or {}}
        return _decode(self.request("POST", GRAPHQL_PATH, kind=OperationKind.GRAPHQL, json=payload))


class AsyncResilientHttpClient:
    """Coroutine flavour of ``ResilientHttpClient``."""

    def __init__(
        self,
        base_url: str,
        access_token: Optional[str] = None,
        executor: Optional[RetryExecutor] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_agent: str = "shopify-resilience",
    ):
        self.base_url = base_url.rstrip("/")
        self.executor = executor or RetryExecutor()
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers=_default_headers(access_token, user_agent),
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> "AsyncResilientHttpClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
        return False

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise map_transport_error(exc, path) from exc
        return _raise_for_status(response, path)

    async def request(
        self,
        method: str,
        path: str,
        *,
        kind: OperationKind = OperationKind.REST,
        json: Any = None,
        params: Optional[Dict[str, Any]] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> httpx.Response:
        descriptor = OperationDescriptor(
            endpoint=path,
            call=functools.partial(self._send, method, path, json=json, params=params),
            kind=kind,
            method=method,
        )
        return await self.executor.aexecute_with_retry(descriptor, policy)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return _decode(await self.request("GET", path, params=params))

    async def post(self, path: str, json: Any = None) -> Any:
        return _decode(await self.request("POST", path, json=json))

    async def put(self, path: str, json: Any = None) -> Any:
        return _decode(await self.request("PUT", path, json=json))

    async def delete(self, path: str) -> Any:
        return _decode(await self.request("DELETE", path))

    async def graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Any:
        payload = {"query": query, "variables": variables or {}}
        return _decode(await self.request("POST", GRAPHQL_PATH, kind=OperationKind.GRAPHQL, json=payload))
