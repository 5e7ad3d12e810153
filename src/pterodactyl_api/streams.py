"""
Pull-based byte streams for file downloads and uploads.

Downloads are handed to the caller as a ``ByteStream``: an async iterator
over one HTTP response body that is read chunk by chunk, so peak memory is
one chunk rather than the whole file. Uploads accept any ``ByteSequence``
(an async iterable of bytes); ``file_chunks`` builds one from a local file.

    async with await api.download_file("a1b2c3d4", "/logs/latest.log") as stream:
        async for chunk in stream:
            sink.write(chunk)

Chunk boundaries carry no meaning. Streams are forward-only: once exhausted
or closed they cannot be iterated again.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, AsyncExitStack
from os import PathLike
from typing import Any

import httpx

from pterodactyl_api.errors import StreamConsumedError, TransportError

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

ByteSequence = AsyncIterable[bytes]


class ByteStream:
    """
    A forward-only async byte sequence tied to one streamed response.

    The stream owns the response until it is exhausted or closed; both
    release the connection. Use it as an async context manager so an
    abandoned download is closed as well.
    """

    def __init__(
        self,
        response: httpx.Response,
        closer: Callable[[], Awaitable[Any]],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._response = response
        self._closer = closer
        self._chunk_size = chunk_size
        self._started = False
        self._closed = False

    @classmethod
    async def open(
        cls,
        context: AbstractAsyncContextManager[httpx.Response],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> ByteStream:
        """Enter a streamed-response context and wrap the response."""
        stack = AsyncExitStack()
        response = await stack.enter_async_context(context)
        return cls(response, stack.aclose, chunk_size)

    @property
    def content_length(self) -> int | None:
        """Declared body size, or None if the server did not send one."""
        value = self._response.headers.get("content-length")
        return int(value) if value and value.isdigit() else None

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> AsyncIterator[bytes]:
        if self._started or self._closed:
            raise StreamConsumedError(
                message="Stream already consumed",
                detail="Byte streams are forward-only and cannot be replayed",
            )
        self._started = True
        return self._chunks()

    async def _chunks(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self._response.aiter_bytes(self._chunk_size):
                yield chunk
        except httpx.TransportError as e:
            raise TransportError(
                message="Stream interrupted",
                detail=repr(e),
                cause=e,
            ) from e
        finally:
            await self.aclose()

    async def read(self) -> bytes:
        """Drain the remaining stream into memory. Meant for small files."""
        return b"".join([chunk async for chunk in self])

    async def aclose(self) -> None:
        """Release the underlying connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._closer()

    async def __aenter__(self) -> ByteStream:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()


async def file_chunks(
    path: str | PathLike[str],
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """
    Yield a local file in chunks, reading in a worker thread.

    Example:
        await api.upload_file("a1b2c3d4", "/world.zip", file_chunks("world.zip"))
    """
    handle = await asyncio.to_thread(open, path, "rb")
    try:
        while True:
            chunk = await asyncio.to_thread(handle.read, chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()
