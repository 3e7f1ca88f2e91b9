"""
ApiClient - Async HTTP transport that routes every call through a RequestCoordinator.

The client owns the httpx connection and error mapping; the coordinator
decides whether the request runs at all.
"""

from datetime import timedelta
from typing import Any

import httpx
from loguru import logger

from reqcoord.services.coordinator import RequestCoordinator
from reqcoord.services.errors import RequestTimeoutError, ServiceError
from reqcoord.services.keys import generate_key
from reqcoord.settings import Settings


class ApiClient:
    """
    HTTP client for one API host backed by a shared coordinator.

    Usage:
        coordinator = RequestCoordinator()
        async with ApiClient(coordinator, "https://example.com") as client:
            balance = await client.get("/api/wallet/balance", params={"currency": "usd"})
            await client.post("/api/wallet/topup", {"amount": 10}, invalidate=["/api/wallet"])
    """

    def __init__(
        self,
        coordinator: RequestCoordinator,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._coordinator = coordinator
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = headers or {}
        self._transport = transport

        # HTTP client (lazy initialization)
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        coordinator: RequestCoordinator,
        settings: Settings,
        **kwargs: Any,
    ) -> "ApiClient":
        return cls(
            coordinator,
            settings.api_base_url,
            timeout=settings.request_timeout,
            **kwargs,
        )

    @property
    def coordinator(self) -> RequestCoordinator:
        return self._coordinator

    def url_for(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                headers=self._headers,
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http_client

    async def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        cache: bool = True,
        cache_ttl: timedelta | None = None,
    ) -> Any:
        """
        GET a JSON resource through the coordinator.

        Raises:
            CircuitOpenError: If the endpoint group's breaker is open
            RequestTimeoutError: If the request times out
            ServiceError: For other transport or HTTP errors
        """
        url = self.url_for(path)
        key = generate_key(url, params)
        return await self._coordinator.execute(
            key,
            lambda: self._send("GET", url, params=params),
            cache=cache,
            cache_ttl=cache_ttl,
        )

    async def post(
        self,
        path: str,
        json_data: dict[str, Any] | None = None,
        invalidate: list[str] | None = None,
    ) -> Any:
        """
        POST a JSON body through the coordinator.

        Identical concurrent POSTs share one request; responses are never
        cached. On success each pattern in ``invalidate`` is dropped from
        the cache so follow-up reads see the change.
        """
        url = self.url_for(path)
        key = generate_key(url, json_data, method="POST")
        data = await self._coordinator.execute(
            key,
            lambda: self._send("POST", url, json_data=json_data),
            cache=False,
        )
        for pattern in invalidate or []:
            self._coordinator.invalidate(pattern)
        return data

    async def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
    ) -> Any:
        """Execute the actual HTTP request."""
        client = await self._get_http_client()

        try:
            response = await client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
            )
            response.raise_for_status()
            return response.json()

        except ValueError as e:
            # 2xx with a body that is not JSON
            raise ServiceError(f"Invalid JSON response: {e}", service_id=url) from e

        except httpx.TimeoutException as e:
            raise RequestTimeoutError(url, self._timeout) from e

        except httpx.HTTPStatusError as e:
            raise ServiceError(
                f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                service_id=url,
            ) from e

        except httpx.RequestError as e:
            raise ServiceError(str(e), service_id=url) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("ApiClient closed")

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
