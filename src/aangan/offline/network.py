"""Network access used by the offline cache coordinator on cache misses."""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeAlias

import httpx

logger = logging.getLogger(__name__)

# Async callable returning the response body for a resource key
Fetcher: TypeAlias = Callable[[str], Awaitable[bytes]]


class HttpFetcher:
    """Fetches resource keys relative to the application origin with httpx."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize fetcher.

        Args:
            base_url: Application origin, e.g. "https://aangan.app"
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (e.g. MockTransport in tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            )
        return self._client

    async def __call__(self, key: str) -> bytes:
        """Fetch a resource.

        Raises:
            httpx.HTTPError: On connection failures and non-2xx responses
        """
        response = await self.client.get(key)
        response.raise_for_status()
        logger.debug(f"Fetched {key} from network ({len(response.content)} bytes)")
        return response.content

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
