"""Async HTTP client wrapper with timeout and header configuration."""

from typing import Dict, Optional

import httpx

from apiprobe.models.config import DEFAULT_USER_AGENT


DEFAULT_HEADERS: Dict[str, str] = {
    "User-Agent": DEFAULT_USER_AGENT,
    "Accept": "application/json",
}


class AsyncHTTPClient:
    """
    Async HTTP client wrapper around httpx.AsyncClient.

    Provides:
    - Configurable connect and read timeouts
    - A fixed identifying header set sent with every request
    - Redirects followed to the final location
    - Connection pooling via httpx
    - Context manager for proper lifecycle management
    """

    def __init__(
        self,
        connect_timeout: float = 8.0,
        read_timeout: float = 8.0,
        headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_connections: Optional[int] = None
    ):
        """
        Initialize HTTP client.

        Args:
            connect_timeout: Connection timeout in seconds
            read_timeout: Read timeout in seconds
            headers: Headers sent with every request (defaults to DEFAULT_HEADERS)
            transport: Optional httpx transport, e.g. MockTransport or ASGITransport
            max_connections: Connection pool ceiling; None leaves httpx's default
        """
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.headers = dict(headers or DEFAULT_HEADERS)
        self.transport = transport
        self.max_connections = max_connections
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Enter async context manager."""
        timeout = httpx.Timeout(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.read_timeout,
            pool=self.connect_timeout
        )
        kwargs = {"timeout": timeout, "headers": self.headers, "follow_redirects": True}
        if self.transport is not None:
            kwargs["transport"] = self.transport
        if self.max_connections is not None:
            kwargs["limits"] = httpx.Limits(max_connections=self.max_connections)
        self._client = httpx.AsyncClient(**kwargs)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(self, url: str, **kwargs) -> httpx.Response:
        """
        Perform GET request.

        Args:
            url: URL to request
            **kwargs: Additional arguments for httpx

        Returns:
            HTTP response with the body already read
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        return await self._client.get(url, **kwargs)
