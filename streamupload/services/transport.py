"""
HTTP transport built on httpx.

Sends staged bodies as streamed request content with an explicit
Content-Length, and streams downloads straight to disk.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Optional

import httpx

from ..errors import StreamIOError, TransportError
from ..models import UploadRequest
from .stream_copy import DEFAULT_CHUNK_SIZE

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], Any]


async def iter_file(
    path: Path,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    progress_callback: Optional[ProgressCallback] = None,
) -> AsyncIterator[bytes]:
    """Yield a file in chunks, reading off the event loop."""
    total = path.stat().st_size
    sent = 0
    with open(path, "rb") as f:
        while True:
            chunk = await asyncio.to_thread(f.read, chunk_size)
            if not chunk:
                break
            sent += len(chunk)
            yield chunk
            if progress_callback:
                result = progress_callback(sent, total)
                if inspect.isawaitable(result):
                    await result


class HTTPXTransport:
    """
    Transport adapter around httpx.AsyncClient.

    Implements IUploadTransport protocol.
    """

    def __init__(self, timeout: float = 60, client: Optional[httpx.AsyncClient] = None):
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self):
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("HTTPXTransport not initialized. Use 'async with' context.")
        return self._client

    async def upload_file(
        self,
        request: UploadRequest,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> httpx.Response:
        """
        Send a staged file as the request body.

        Args:
            request: Destination, staged body and headers
            chunk_size: Bytes read per chunk while streaming the body
            progress_callback: Optional callback(bytes_sent, total_bytes)

        Returns:
            The HTTP response, whatever its status code

        Raises:
            TransportError: If the request could not be completed
        """
        client = self._require_client()
        headers = dict(request.headers)
        headers["Content-Length"] = str(request.staged.size)

        try:
            response = await client.request(
                request.method.value,
                request.url,
                content=iter_file(request.staged.path, chunk_size, progress_callback),
                headers=headers,
            )
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise TransportError(f"{request.method.value} {request.url} failed: {exc}") from exc
        except OSError as exc:
            raise StreamIOError(f"Could not read staged body {request.staged.path}: {exc}") from exc

        logger.debug(
            "%s %s -> %d (%d bytes sent)",
            request.method.value,
            request.url,
            response.status_code,
            request.staged.size,
        )
        return response

    async def download_to(
        self,
        url: str,
        destination: Path,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> int:
        """
        Stream url into destination.

        Returns:
            Number of bytes written

        Raises:
            TransportError: On network failure or an error status
            StreamIOError: If the destination cannot be written
        """
        client = self._require_client()
        written = 0

        try:
            async with client.stream("GET", url) as response:
                response.raise_for_status()
                f = await asyncio.to_thread(open, destination, "wb")
                try:
                    async for chunk in response.aiter_bytes(chunk_size):
                        await asyncio.to_thread(f.write, chunk)
                        written += len(chunk)
                finally:
                    await asyncio.to_thread(f.close)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            raise TransportError(f"GET {url} failed: {exc}") from exc
        except OSError as exc:
            raise StreamIOError(f"Could not write download to {destination}: {exc}") from exc

        return written
