"""
HTTP client utilities for talking to external services.
"""

import asyncio
from typing import Any

import aiohttp


class AsyncHTTPClient:
    """Async HTTP client for external service calls."""

    def __init__(self, timeout: float = 30) -> None:
        """Initialize HTTP client."""
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> "AsyncHTTPClient":
        """Enter async context manager."""
        self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager."""
        if self.session:
            await self.session.close()

    @staticmethod
    async def _prepare_request(coro_or_ctx: Any) -> Any:
        """Normalize aiohttp request result to an async context manager."""
        if asyncio.iscoroutine(coro_or_ctx):
            return await coro_or_ctx
        return coro_or_ctx

    @staticmethod
    async def _ensure_response_ok(response: Any) -> None:
        """Invoke raise_for_status, awaiting when necessary."""
        result = response.raise_for_status()
        if asyncio.iscoroutine(result):
            await result

    def _require_session(self) -> aiohttp.ClientSession:
        if not self.session:
            raise RuntimeError("HTTP client not initialized. Use async context manager.")
        return self.session

    async def post(
        self,
        url: str,
        data: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, Any] | None = None,
    ) -> Any:
        """Perform POST request with an optional JSON body and decode the JSON reply."""
        session = self._require_session()
        request_ctx = await self._prepare_request(
            session.post(url, json=data, params=params, headers=headers)
        )
        async with request_ctx as response:
            await self._ensure_response_ok(response)
            return await response.json()

    async def post_bytes(
        self,
        url: str,
        data: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, Any] | None = None,
    ) -> bytes:
        """Perform POST request and return the raw response body."""
        session = self._require_session()
        request_ctx = await self._prepare_request(
            session.post(url, json=data, params=params, headers=headers)
        )
        async with request_ctx as response:
            await self._ensure_response_ok(response)
            return await response.read()

    async def is_reachable(self, url: str) -> bool:
        """Return True when a GET on url answers with a 2xx status."""
        session = self._require_session()
        try:
            request_ctx = await self._prepare_request(session.get(url))
            async with request_ctx as response:
                return 200 <= response.status < 300
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError):
            return False
