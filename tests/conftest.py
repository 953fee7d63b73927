"""Shared fixtures: a scripted stand-in for the ffmpeg subprocess."""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

from framecast.config import EncoderSettings


class FakeStdin:
    def __init__(self, broken: bool = False) -> None:
        self.data = bytearray()
        self.closed = False
        self._broken = broken

    def write(self, data: bytes) -> None:
        self.data += data

    async def drain(self) -> None:
        if self._broken:
            raise BrokenPipeError("pipe closed")

    def close(self) -> None:
        self.closed = True

    async def wait_closed(self) -> None:
        return None


class FakeProcess:
    def __init__(
        self,
        output: bytes = b"",
        stderr: bytes = b"",
        exit_code: int = 0,
        hang: bool = False,
        broken_stdin: bool = False,
    ) -> None:
        self.stdin = FakeStdin(broken=broken_stdin)
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.returncode: int | None = None
        self.terminated = False
        self._exit_code = exit_code
        self._exited = asyncio.Event()
        self.stdout.feed_data(output)
        self.stderr.feed_data(stderr)
        if not hang:
            self._finish_streams()
            self._exited.set()

    def _finish_streams(self) -> None:
        if not self.stdout.at_eof():
            self.stdout.feed_eof()
        if not self.stderr.at_eof():
            self.stderr.feed_eof()

    async def wait(self) -> int:
        await self._exited.wait()
        self.returncode = self._exit_code
        return self._exit_code

    def terminate(self) -> None:
        self.terminated = True
        self._exit_code = -15
        self._finish_streams()
        self._exited.set()

    def kill(self) -> None:
        self._exit_code = -9
        self._finish_streams()
        self._exited.set()


class SpawnRecorder:
    def __init__(self, **process_kwargs) -> None:
        self.process_kwargs = process_kwargs
        self.calls: list[tuple[str, ...]] = []
        self.processes: list[FakeProcess] = []

    async def __call__(self, *cmd: str, **kwargs) -> FakeProcess:
        self.calls.append(cmd)
        process = FakeProcess(**self.process_kwargs)
        self.processes.append(process)
        return process


class RecordingReporter:
    def __init__(self) -> None:
        self.events: list[tuple[str, float | None]] = []

    def start(self) -> None:
        self.events.append(("start", None))

    def update(self, percent: float) -> None:
        self.events.append(("update", percent))

    def stop(self) -> None:
        self.events.append(("stop", None))

    @property
    def updates(self) -> list[float]:
        return [value for name, value in self.events if name == "update"]


@pytest.fixture
def settings() -> EncoderSettings:
    # Any executable path passes the ffmpeg presence check.
    return EncoderSettings(ffmpeg_path=sys.executable)


@pytest.fixture
def make_spawn():
    return SpawnRecorder


@pytest.fixture
def reporter() -> RecordingReporter:
    return RecordingReporter()


@pytest.fixture
def output_path(tmp_path: Path) -> Path:
    return tmp_path / "renders" / "nested" / "video.mp4"
