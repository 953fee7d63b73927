"""Frame source helpers.

A frame source is anything that yields encoded still images in order: a
binary stream with ``read``, an ``asyncio.StreamReader``, or an iterable
(sync or async) of ``bytes`` frames.
"""
from __future__ import annotations

import asyncio
import inspect
from collections.abc import AsyncIterable, AsyncIterator, Iterator
from pathlib import Path
from typing import Any

DEFAULT_CHUNK_SIZE = 64 * 1024


def iter_frame_files(frames_dir: Path, pattern: str = "*.png") -> Iterator[bytes]:
    if not frames_dir.is_dir():
        raise FileNotFoundError(f"Frames directory not found: {frames_dir}")
    for frame_path in sorted(frames_dir.glob(pattern)):
        if frame_path.is_file():
            yield frame_path.read_bytes()


def count_frame_files(frames_dir: Path, pattern: str = "*.png") -> int:
    return sum(1 for path in frames_dir.glob(pattern) if path.is_file())


async def aiter_chunks(
    source: Any, chunk_size: int = DEFAULT_CHUNK_SIZE
) -> AsyncIterator[bytes]:
    read = getattr(source, "read", None)
    if callable(read):
        while True:
            if inspect.iscoroutinefunction(read):
                chunk = await read(chunk_size)
            else:
                chunk = await asyncio.to_thread(read, chunk_size)
            if not chunk:
                return
            yield bytes(chunk)
        return

    if isinstance(source, AsyncIterable):
        async for frame in source:
            if frame:
                yield bytes(frame)
        return

    iterator = iter(source)
    sentinel = object()
    while True:
        # Generators may block on disk reads, keep them off the loop.
        frame = await asyncio.to_thread(next, iterator, sentinel)
        if frame is sentinel:
            return
        if frame:
            yield bytes(frame)
