"""Tests for HTTP client utility module."""

from typing import Any
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from shared.http_client import AsyncHTTPClient


class TestAsyncHTTPClient:
    """Test HTTP client functionality."""

    @pytest.mark.asyncio
    async def test_context_manager(self) -> None:
        """Test HTTP client as async context manager."""
        async with AsyncHTTPClient() as client:
            assert client.session is not None

    @pytest.mark.asyncio
    async def test_post_request(self) -> None:
        """Test POST request with query parameters and no body."""
        mock_response_data: dict[str, Any] = {"speedScale": 1.0}

        with patch("aiohttp.ClientSession") as mock_session_class:
            mock_session = AsyncMock()
            mock_response = AsyncMock()
            mock_response.json.return_value = mock_response_data
            mock_response.raise_for_status.return_value = None
            mock_session.post.return_value.__aenter__.return_value = mock_response
            mock_session_class.return_value = mock_session

            async with AsyncHTTPClient() as client:
                params = {"text": "hello", "speaker": "3"}
                result = await client.post("http://localhost:50021/audio_query", params=params)
                assert result == mock_response_data
                mock_session.post.assert_called_once_with(
                    "http://localhost:50021/audio_query", json=None, params=params, headers=None
                )

    @pytest.mark.asyncio
    async def test_post_bytes_request(self) -> None:
        """Test POST request returning the raw body."""
        query: dict[str, Any] = {"speedScale": 1.2}

        with patch("aiohttp.ClientSession") as mock_session_class:
            mock_session = AsyncMock()
            mock_response = AsyncMock()
            mock_response.read.return_value = b"RIFFdata"
            mock_response.raise_for_status.return_value = None
            mock_session.post.return_value.__aenter__.return_value = mock_response
            mock_session_class.return_value = mock_session

            async with AsyncHTTPClient() as client:
                result = await client.post_bytes(
                    "http://localhost:50021/synthesis", data=query, params={"speaker": "3"}
                )
                assert result == b"RIFFdata"
                mock_session.post.assert_called_once_with(
                    "http://localhost:50021/synthesis",
                    json=query,
                    params={"speaker": "3"},
                    headers=None,
                )

    @pytest.mark.asyncio
    async def test_not_initialized_error(self) -> None:
        """Test error when client not used as context manager."""
        client = AsyncHTTPClient()
        with pytest.raises(RuntimeError, match="HTTP client not initialized"):
            await client.post("http://localhost:50021/audio_query")

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        """Test HTTP error status handling."""
        with patch("aiohttp.ClientSession") as mock_session_class:
            mock_session = AsyncMock()
            mock_response = AsyncMock()
            mock_response.raise_for_status.side_effect = aiohttp.ClientResponseError(
                request_info=AsyncMock(), history=(), status=422
            )
            mock_session.post.return_value.__aenter__.return_value = mock_response
            mock_session_class.return_value = mock_session

            async with AsyncHTTPClient() as client:
                with pytest.raises(aiohttp.ClientResponseError):
                    await client.post_bytes("http://localhost:50021/synthesis")

    @pytest.mark.asyncio
    async def test_is_reachable(self) -> None:
        """Test reachability probe on a 2xx answer."""
        with patch("aiohttp.ClientSession") as mock_session_class:
            mock_session = AsyncMock()
            mock_response = AsyncMock()
            mock_response.status = 200
            mock_session.get.return_value.__aenter__.return_value = mock_response
            mock_session_class.return_value = mock_session

            async with AsyncHTTPClient() as client:
                assert await client.is_reachable("http://localhost:50021/version")

    @pytest.mark.asyncio
    async def test_is_reachable_connection_refused(self) -> None:
        """Test reachability probe when nothing listens."""
        with patch("aiohttp.ClientSession") as mock_session_class:
            mock_session = AsyncMock()
            mock_session.get.side_effect = aiohttp.ClientConnectionError("refused")
            mock_session_class.return_value = mock_session

            async with AsyncHTTPClient() as client:
                assert not await client.is_reachable("http://localhost:50021/version")
