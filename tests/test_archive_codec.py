"""
Tests for the gzip archive codec and its streaming/synchronous decompression paths.
"""

import asyncio
import gzip
import os

import pytest

from ragindex.core.archive import (
    GzipDecompressionStream,
    StreamingArchiveCodec,
    SyncArchiveCodec,
    compress,
    decompress_streaming,
    decompress_sync,
)
from ragindex.core.errors import ArchiveFormatError, UnsupportedFormatError

PAYLOADS = [
    b"",
    b"x",
    b"RAGIDX\x00" + bytes(range(256)) * 40,
    os.urandom(200_000),
    ("Keep your face to the sunshine. " * 5000).encode("utf-8"),
]
PAYLOAD_IDS = ["empty", "one-byte", "binary", "random", "text"]

# Byte-at-a-time pumping only runs on the small payloads
CODEC_CASES = [
    pytest.param(payload, chunk_size, id=f"{name}-{chunk_size}")
    for name, payload in zip(PAYLOAD_IDS, PAYLOADS)
    for chunk_size in (1, 7, 64 * 1024)
    if chunk_size > 1 or len(payload) <= 10_000
]


@pytest.mark.parametrize("payload, chunk_size", CODEC_CASES)
def test_streaming_and_sync_paths_agree(payload, chunk_size):
    """Test both decompression paths return the original bytes exactly."""
    archive = compress(payload)

    assert decompress_sync(archive) == payload
    assert asyncio.run(decompress_streaming(archive, chunk_size)) == payload


def test_compress_is_deterministic():
    """Test that equal input produces byte-identical archives."""
    assert compress(b"same input") == compress(b"same input")


def test_compress_output_is_standard_gzip():
    assert gzip.decompress(compress(b"interop")) == b"interop"


@pytest.mark.parametrize("codec", [SyncArchiveCodec(), StreamingArchiveCodec(chunk_size=5)], ids=["sync", "streaming"])
def test_codecs_share_interface(codec):
    archive = codec.compress(b"payload bytes")

    assert asyncio.run(codec.decompress(archive)) == b"payload bytes"


@pytest.mark.parametrize("codec", [SyncArchiveCodec(), StreamingArchiveCodec()], ids=["sync", "streaming"])
@pytest.mark.parametrize("archive", [b"", b"\x1f", b"{\"schema\": {}}", b"PK\x03\x04zip"], ids=["empty", "short", "json", "zip"])
def test_non_gzip_header_is_unsupported(codec, archive):
    """Test that anything without the gzip magic is UnsupportedFormatError."""
    with pytest.raises(UnsupportedFormatError):
        asyncio.run(codec.decompress(archive))


@pytest.mark.parametrize("codec", [SyncArchiveCodec(), StreamingArchiveCodec(chunk_size=16)], ids=["sync", "streaming"])
def test_truncated_archive(codec):
    """Test a cut-off archive raises ArchiveFormatError, not a zlib/OS error."""
    archive = compress(os.urandom(4096))[:-20]

    with pytest.raises(ArchiveFormatError) as excinfo:
        asyncio.run(codec.decompress(archive))
    assert not isinstance(excinfo.value, UnsupportedFormatError)


@pytest.mark.parametrize("codec", [SyncArchiveCodec(), StreamingArchiveCodec(chunk_size=16)], ids=["sync", "streaming"])
def test_corrupt_deflate_stream(codec):
    archive = bytearray(compress(os.urandom(4096)))
    for position in range(12, 40):
        archive[position] ^= 0xFF

    with pytest.raises(ArchiveFormatError):
        asyncio.run(codec.decompress(bytes(archive)))


@pytest.mark.parametrize("chunk_size", [3, 1024])
def test_multi_member_archive(chunk_size):
    """Test concatenated gzip members decompress to the concatenated payloads."""
    archive = compress(b"first member|") + compress(b"second member")

    assert decompress_sync(archive) == b"first member|second member"
    assert asyncio.run(decompress_streaming(archive, chunk_size)) == b"first member|second member"


def test_stream_ends_are_separate():
    """Test the writable and readable ends can be driven independently."""

    async def run():
        stream = GzipDecompressionStream()
        archive = compress(b"hello stream")
        await stream.writable.write(archive[:5])
        await stream.writable.write(archive[5:])
        await stream.writable.close()
        return b"".join([chunk async for chunk in stream.readable])

    assert asyncio.run(run()) == b"hello stream"


def test_stream_rejects_write_after_close():
    async def run():
        stream = GzipDecompressionStream()
        await stream.writable.write(compress(b"done"))
        await stream.writable.close()
        await stream.writable.write(b"more")

    with pytest.raises(ArchiveFormatError):
        asyncio.run(run())


def test_streaming_codec_rejects_bad_chunk_size():
    with pytest.raises(ValueError):
        StreamingArchiveCodec(chunk_size=0)
