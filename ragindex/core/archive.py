"""
Gzip archive codec with two interchangeable decompression paths.

``SyncArchiveCodec`` decompresses an in-memory buffer in one call.
``StreamingArchiveCodec`` pumps the archive in chunks through a
GzipDecompressionStream, which exposes separate writable and readable ends the
way stream-only host runtimes do. Both produce byte-identical output and raise
ArchiveFormatError (UnsupportedFormatError for a non-gzip header) on bad input.
"""

import asyncio
import gzip
import zlib
from abc import ABC, abstractmethod
from typing import AsyncIterator, List, Optional

from ..util.logging import logger
from .errors import ArchiveFormatError, UnsupportedFormatError

GZIP_MAGIC = b"\x1f\x8b"
GZIP_WBITS = 16 + zlib.MAX_WBITS
DEFAULT_CHUNK_SIZE = 64 * 1024

_END = object()


def _check_header(archive: bytes) -> None:
    if len(archive) < 2 or archive[:2] != GZIP_MAGIC:
        raise UnsupportedFormatError("Unsupported archive format: missing gzip header")


def compress(data: bytes, level: int = 9) -> bytes:
    """Gzip ``data`` with a zeroed timestamp so equal input gives equal archives."""
    return gzip.compress(data, compresslevel=level, mtime=0)


def decompress_sync(archive: bytes) -> bytes:
    """Decompress a whole archive held in memory."""
    _check_header(archive)
    try:
        return gzip.decompress(archive)
    except (OSError, EOFError, zlib.error) as e:
        raise ArchiveFormatError(f"Corrupt or truncated gzip archive: {e}") from e


class _WritableEnd:
    def __init__(self, stream: "GzipDecompressionStream"):
        self._stream = stream

    async def write(self, chunk: bytes) -> None:
        self._stream._feed(bytes(chunk))
        await asyncio.sleep(0)

    async def close(self) -> None:
        self._stream._finish()
        await asyncio.sleep(0)


class _ReadableEnd:
    def __init__(self, stream: "GzipDecompressionStream"):
        self._stream = stream

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        while True:
            item = await self._stream._queue.get()
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item


class GzipDecompressionStream:
    """Chunked gzip decompressor with a writable (input) and readable (output) end.

    Handles multi-member archives and the zero padding gzip allows between
    members. Errors are delivered to both ends.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._decompressor: Optional[object] = zlib.decompressobj(GZIP_WBITS)
        self._pending = b""
        self._header_checked = False
        self._closed = False
        self._error: Optional[ArchiveFormatError] = None
        self.writable = _WritableEnd(self)
        self.readable = _ReadableEnd(self)

    def _fail(self, error: ArchiveFormatError) -> None:
        self._error = error
        self._queue.put_nowait(error)
        raise error

    def _emit(self, data: bytes) -> None:
        if data:
            self._queue.put_nowait(data)

    def _feed(self, chunk: bytes) -> None:
        if self._error is not None:
            raise self._error
        if self._closed:
            raise ArchiveFormatError("Write after close")

        data = self._pending + chunk
        self._pending = b""

        if not self._header_checked:
            if len(data) < 2:
                self._pending = data
                return
            if data[:2] != GZIP_MAGIC:
                self._fail(UnsupportedFormatError("Unsupported archive format: missing gzip header"))
            self._header_checked = True

        while data:
            if self._decompressor is None:
                # Between members: skip padding, then expect a new gzip header
                data = data.lstrip(b"\x00")
                if not data:
                    return
                if len(data) < 2:
                    self._pending = data
                    return
                if data[:2] != GZIP_MAGIC:
                    self._fail(ArchiveFormatError("Trailing garbage after gzip member"))
                self._decompressor = zlib.decompressobj(GZIP_WBITS)

            try:
                self._emit(self._decompressor.decompress(data))
            except zlib.error as e:
                self._fail(ArchiveFormatError(f"Corrupt gzip archive: {e}"))

            if self._decompressor.eof:
                data = self._decompressor.unused_data
                self._decompressor = None
            else:
                data = b""

    def _finish(self) -> None:
        if self._error is not None or self._closed:
            return
        self._closed = True

        if not self._header_checked:
            self._fail(UnsupportedFormatError("Unsupported archive format: missing gzip header"))
        if self._pending or self._decompressor is not None:
            if self._decompressor is not None:
                try:
                    self._emit(self._decompressor.flush())
                except zlib.error as e:
                    self._fail(ArchiveFormatError(f"Corrupt gzip archive: {e}"))
                if self._decompressor.eof:
                    self._decompressor = None
            if self._pending or self._decompressor is not None:
                self._fail(ArchiveFormatError("Compressed archive ended before the end-of-stream marker was reached"))

        self._queue.put_nowait(_END)


async def decompress_streaming(archive: bytes, chunk_size: int = DEFAULT_CHUNK_SIZE) -> bytes:
    """Decompress by pumping ``archive`` through a GzipDecompressionStream."""
    _check_header(archive)
    stream = GzipDecompressionStream()

    async def pump() -> None:
        view = memoryview(archive)
        for offset in range(0, len(archive), chunk_size):
            await stream.writable.write(view[offset:offset + chunk_size])
        await stream.writable.close()

    async def collect() -> List[bytes]:
        return [chunk async for chunk in stream.readable]

    _, chunks = await asyncio.gather(pump(), collect())
    return b"".join(chunks)


class ArchiveCodec(ABC):
    """Compress with gzip; decompress with an implementation-specific path."""

    name = "base"

    def compress(self, data: bytes) -> bytes:
        archive = compress(data)
        logger.log_archive_operation("compress", self.name, len(data), len(archive))
        return archive

    async def decompress(self, archive: bytes) -> bytes:
        try:
            data = await self._decompress(archive)
        except ArchiveFormatError:
            logger.log_archive_operation("decompress", self.name, len(archive), status="failed")
            raise
        logger.log_archive_operation("decompress", self.name, len(archive), len(data))
        return data

    @abstractmethod
    async def _decompress(self, archive: bytes) -> bytes:
        pass


class SyncArchiveCodec(ArchiveCodec):
    """In-memory decompression for batch and CLI callers."""

    name = "sync"

    async def _decompress(self, archive: bytes) -> bytes:
        return decompress_sync(archive)


class StreamingArchiveCodec(ArchiveCodec):
    """Chunked decompression for runtimes that only expose stream primitives."""

    name = "streaming"

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        self.chunk_size = chunk_size

    async def _decompress(self, archive: bytes) -> bytes:
        return await decompress_streaming(archive, self.chunk_size)
