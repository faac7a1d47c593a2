"""Pooled async HTTP client shared by both product upstreams."""

from typing import Any, Dict, Optional

import httpx

DEFAULT_HEADERS = {
    "Accept": "application/json",
    "User-Agent": "similar-products/1.0",
}


class AsyncHTTPClient:
    """
    Thin lifecycle wrapper around one httpx.AsyncClient.

    One instance is opened per process (or per test) and shared by every
    gateway, so all upstream calls draw from a single bounded pool. Per-call
    deadlines are enforced by the gateways; the timeouts here only bound
    the individual transport phases.
    """

    def __init__(
        self,
        connect_timeout: float = 1.0,
        read_timeout: float = 2.0,
        write_timeout: float = 2.0,
        pool_timeout: float = 1.5,
        max_connections: int = 1000,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Args:
            connect_timeout: TCP connect limit in seconds
            read_timeout: Socket read limit in seconds
            write_timeout: Socket write limit in seconds
            pool_timeout: Wait for a free pooled connection in seconds
            max_connections: Upper bound on open connections
            transport: Transport override (mock or ASGI transports in tests)
        """
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.pool_timeout = pool_timeout
        self.max_connections = max_connections
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_open(self) -> bool:
        return self._client is not None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=self.connect_timeout,
                read=self.read_timeout,
                write=self.write_timeout,
                pool=self.pool_timeout
            ),
            limits=httpx.Limits(max_connections=self.max_connections),
            headers=DEFAULT_HEADERS,
            transport=self.transport
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        **kwargs
    ) -> httpx.Response:
        """
        GET ``url`` on the shared pool.

        Raises:
            RuntimeError: If called outside ``async with``
            httpx.TransportError: On connection or transport failures
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        return await self._client.get(url, params=params, **kwargs)
