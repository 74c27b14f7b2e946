"""
ServiceClient - Async HTTP client where every call goes through the
circuit breaker registered for its dependency.
"""

from typing import Any, TypeVar

import httpx
from loguru import logger

from newsradar.services.circuit_breaker import (
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)
from newsradar.services.errors import RequestTimeoutError, ServiceError

T = TypeVar("T")


class ServiceClient:
    """
    JSON-over-HTTP client for upstream data services (market quotes,
    prediction markets, baseline snapshots).

    Usage:
        client = ServiceClient(registry)

        quotes = await client.fetch_json(
            service_id="market-quotes",
            url="https://example.com/api/quotes",
            params={"symbols": "SPY,QQQ"},
            fallback=[],
        )
    """

    def __init__(
        self,
        registry: CircuitBreakerRegistry | None = None,
        default_timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._registry = registry or CircuitBreakerRegistry()
        self._default_timeout = default_timeout
        self._transport = transport
        self._breaker_configs: dict[str, CircuitBreakerConfig] = {}

        self._http_client: httpx.AsyncClient | None = None

    @property
    def registry(self) -> CircuitBreakerRegistry:
        return self._registry

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Shared AsyncClient, created on first use."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._default_timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._http_client

    def register_service(self, service_id: str, config: CircuitBreakerConfig) -> None:
        """Use a dedicated breaker configuration for a dependency."""
        self._breaker_configs[service_id] = config
        logger.debug(f"Registered service: {service_id}")

    async def fetch_json(
        self,
        service_id: str,
        url: str,
        fallback: T,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: float | None = None,
    ) -> Any | T:
        """
        GET ``url`` and decode JSON, answering from the breaker's cache or
        ``fallback`` when the dependency is failing.
        """
        breaker = self._registry.get(service_id, self._breaker_configs.get(service_id))

        async def do_request() -> Any:
            return await self._execute_request(
                url=url,
                params=params,
                headers=headers or {},
                timeout=timeout or self._default_timeout,
                service_id=service_id,
            )

        return await breaker.execute(do_request, fallback)

    async def _execute_request(
        self,
        url: str,
        params: dict[str, Any] | None,
        headers: dict[str, str],
        timeout: float,
        service_id: str,
    ) -> Any:
        """GET and decode; transport failures become service errors."""
        client = await self._get_http_client()

        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=timeout,
            )
            response.raise_for_status()
            return response.json()

        except httpx.TimeoutException as e:
            raise RequestTimeoutError(service_id, timeout) from e

        except httpx.HTTPStatusError as e:
            raise ServiceError(
                f"HTTP {e.response.status_code}: {e.response.text[:200]}",
                service_id=service_id,
            ) from e

        except httpx.RequestError as e:
            raise ServiceError(str(e), service_id=service_id) from e

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
        logger.debug("ServiceClient closed")

    async def __aenter__(self) -> "ServiceClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def get_health_status(self) -> dict[str, Any]:
        """Get breaker status of all dependencies."""
        return {
            "circuit_breakers": self._registry.get_all_status(),
            "open_circuits": self._registry.get_open_circuits(),
        }
