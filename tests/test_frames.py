from __future__ import annotations

import asyncio
import io
from pathlib import Path

import pytest

from framecast.frames import aiter_chunks, count_frame_files, iter_frame_files


async def _collect(source, chunk_size=4):
    return [chunk async for chunk in aiter_chunks(source, chunk_size)]


def test_iter_frame_files_sorted(tmp_path: Path):
    (tmp_path / "frame_000002.png").write_bytes(b"two")
    (tmp_path / "frame_000001.png").write_bytes(b"one")
    (tmp_path / "notes.txt").write_text("skip")

    assert list(iter_frame_files(tmp_path)) == [b"one", b"two"]
    assert count_frame_files(tmp_path) == 2
    assert list(iter_frame_files(tmp_path, "*.txt")) == [b"skip"]


def test_iter_frame_files_missing_directory(tmp_path: Path):
    with pytest.raises(FileNotFoundError):
        list(iter_frame_files(tmp_path / "missing"))


def test_chunks_from_binary_stream():
    chunks = asyncio.run(_collect(io.BytesIO(b"abcdefghij")))
    assert chunks == [b"abcd", b"efgh", b"ij"]


def test_chunks_from_iterable_skip_empty_frames():
    chunks = asyncio.run(_collect([b"one", b"", bytearray(b"two")]))
    assert chunks == [b"one", b"two"]


def test_chunks_from_async_iterable():
    async def frames():
        yield b"first"
        yield b"second"

    assert asyncio.run(_collect(frames())) == [b"first", b"second"]


def test_chunks_from_stream_reader():
    async def scenario():
        reader = asyncio.StreamReader()
        reader.feed_data(b"0123456789")
        reader.feed_eof()
        return await _collect(reader, chunk_size=6)

    assert b"".join(asyncio.run(scenario())) == b"0123456789"
