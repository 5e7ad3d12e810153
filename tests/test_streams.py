"""
Tests for the binary stream adapter.

ByteStream is exercised directly over in-memory ``httpx.Response`` objects;
end-to-end downloads through the facade are covered in test_client_api.py.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import httpx
import pytest

from pterodactyl_api.errors import StreamConsumedError, TransportError
from pterodactyl_api.streams import ByteStream, file_chunks


class CloseRecorder:
    """Async closer that counts how often it is called."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1


class FailingStream(httpx.AsyncByteStream):
    """Yields one chunk, then fails like a dropped connection."""

    async def __aiter__(self) -> AsyncIterator[bytes]:
        yield b"partial"
        raise httpx.ReadError("connection reset")


# =============================================================================
# BYTE STREAM TESTS
# =============================================================================


class TestByteStream:
    """Tests for ByteStream iteration and lifecycle."""

    @pytest.mark.asyncio
    async def test_chunks_bounded_by_chunk_size(self):
        closer = CloseRecorder()
        stream = ByteStream(httpx.Response(200, content=b"0123456789" * 10), closer, chunk_size=16)

        chunks = [chunk async for chunk in stream]

        assert b"".join(chunks) == b"0123456789" * 10
        assert all(len(chunk) <= 16 for chunk in chunks)
        assert closer.calls == 1
        assert stream.closed is True

    @pytest.mark.asyncio
    async def test_second_iteration_rejected(self):
        stream = ByteStream(httpx.Response(200, content=b"data"), CloseRecorder())
        await stream.read()

        with pytest.raises(StreamConsumedError):
            stream.__aiter__()

    @pytest.mark.asyncio
    async def test_iteration_after_close_rejected(self):
        closer = CloseRecorder()
        stream = ByteStream(httpx.Response(200, content=b"data"), closer)

        await stream.aclose()
        await stream.aclose()

        assert closer.calls == 1
        with pytest.raises(StreamConsumedError):
            await stream.read()

    @pytest.mark.asyncio
    async def test_context_manager_closes_abandoned_stream(self):
        closer = CloseRecorder()

        async with ByteStream(httpx.Response(200, content=b"data"), closer) as stream:
            assert stream.closed is False

        assert closer.calls == 1

    @pytest.mark.asyncio
    async def test_interrupted_stream_raises_transport_error(self):
        closer = CloseRecorder()
        stream = ByteStream(httpx.Response(200, stream=FailingStream()), closer)
        received: list[bytes] = []

        with pytest.raises(TransportError) as exc_info:
            async for chunk in stream:
                received.append(chunk)

        assert received == [b"partial"]
        assert isinstance(exc_info.value.cause, httpx.ReadError)
        assert closer.calls == 1

    def test_content_length(self):
        stream = ByteStream(httpx.Response(200, content=b"12345"), CloseRecorder())

        assert stream.content_length == 5

    def test_content_length_unknown(self):
        stream = ByteStream(httpx.Response(200, stream=FailingStream()), CloseRecorder())

        assert stream.content_length is None

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ValueError, match="chunk_size"):
            ByteStream(httpx.Response(200), CloseRecorder(), chunk_size=0)

    @pytest.mark.asyncio
    async def test_open_exits_context_on_close(self):
        exited: list[bool] = []

        @asynccontextmanager
        async def context() -> AsyncIterator[httpx.Response]:
            try:
                yield httpx.Response(200, content=b"data")
            finally:
                exited.append(True)

        stream = await ByteStream.open(context())
        assert exited == []

        assert await stream.read() == b"data"
        assert exited == [True]


# =============================================================================
# UPLOAD SOURCE TESTS
# =============================================================================


class TestFileChunks:
    """Tests for file_chunks."""

    @pytest.mark.asyncio
    async def test_reads_file_in_chunks(self, tmp_path: Path):
        path = tmp_path / "world.zip"
        path.write_bytes(b"abcdefghij")

        chunks = [chunk async for chunk in file_chunks(path, chunk_size=4)]

        assert chunks == [b"abcd", b"efgh", b"ij"]

    @pytest.mark.asyncio
    async def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "empty.txt"
        path.write_bytes(b"")

        assert [chunk async for chunk in file_chunks(path)] == []
