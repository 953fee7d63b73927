from __future__ import annotations

import asyncio
import contextlib
import logging
import shlex
from collections import deque
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, BinaryIO, Callable

from framecast.config.job import JobConfig, validate_job_config
from framecast.config.settings import EncoderSettings, load_encoder_settings
from framecast.encode.ffmpeg import (
    ProgressSnapshot,
    build_command,
    ensure_ffmpeg,
    is_progress_line,
    parse_progress_line,
    probe_duration,
)
from framecast.encode.output import prepare_output_path
from framecast.encode.progress import (
    ProgressReporter,
    RichProgressReporter,
    estimate_percent,
    percent_from,
)
from framecast.errors import (
    EncodeCancelled,
    EncodeError,
    FramecastError,
    OutputPathError,
)
from framecast.frames import aiter_chunks

logger = logging.getLogger(__name__)

STDERR_TAIL_LINES = 20
OUTPUT_CHUNK_SIZE = 64 * 1024
STREAM_LIMIT = 1024 * 1024
PROCESS_EXIT_TIMEOUT = 2.0

SpawnFn = Callable[..., Awaitable[Any]]


class JobState(Enum):
    CONFIGURING = "configuring"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class EncodeResult:
    path: str | Path
    stream: BinaryIO


class EncodeJob:
    """Drive one ffmpeg process from a frame source to a finished file.

    The job settles exactly once: either :meth:`run` returns an
    :class:`EncodeResult` or it raises one of the :mod:`framecast.errors`
    types. Lifecycle events arriving out of order, or after the job has
    settled, are ignored.
    """

    def __init__(
        self,
        config: JobConfig,
        settings: EncoderSettings | None = None,
        reporter: ProgressReporter | None = None,
        spawn: SpawnFn | None = None,
    ) -> None:
        self.config = config
        self.settings = settings or EncoderSettings()
        self.state = JobState.CONFIGURING
        self.last_percent = 0.0
        self._reporter = reporter
        self._spawn = spawn or asyncio.create_subprocess_exec
        self._outcome: asyncio.Future[EncodeResult] | None = None
        self._process = None
        self._sink: BinaryIO | None = None
        self._total_seconds: float | None = None
        self._stderr_tail: deque[str] = deque(maxlen=STDERR_TAIL_LINES)
        self._pipe_failure: str | None = None

    @property
    def verbose(self) -> bool:
        return bool(getattr(self.config, "verbose", False))

    @property
    def done(self) -> bool:
        return self._outcome is not None and self._outcome.done()

    async def run(self) -> EncodeResult:
        if self._outcome is not None:
            raise RuntimeError("EncodeJob.run() can only be awaited once.")
        self._outcome = asyncio.get_running_loop().create_future()

        try:
            await self._execute()
        except FramecastError as exc:
            await self._reap()
            self._release_sink()
            self._settle(error=exc)
        except asyncio.CancelledError:
            await self._reap()
            self._release_sink()
            if self._settle(error=EncodeCancelled("Encoding was cancelled.")):
                # Nobody awaits the outcome after a cancellation.
                self._outcome.exception()
            raise
        except Exception as exc:
            logger.debug("Encoding aborted by unexpected error", exc_info=True)
            await self._reap()
            self._release_sink()
            message = str(exc) or type(exc).__name__
            try:
                self.handle_error(message)
            finally:
                self._settle(error=EncodeError(message))
        return await self._outcome

    async def _execute(self) -> None:
        config = validate_job_config(self.config)
        output_path = prepare_output_path(config.output_path, config.verbose)
        ensure_ffmpeg(self.settings)
        if config.verbose:
            if self._reporter is None:
                self._reporter = RichProgressReporter()
            self._total_seconds = await self._estimate_total_seconds()

        cmd = build_command(config, self.settings)
        try:
            self._process = await self._spawn(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
            )
        except OSError as exc:
            self.handle_error(f"Could not start {cmd[0]}: {exc}")
            return

        # Opened only once ffmpeg is running so a failed spawn leaves the file alone.
        try:
            self._sink = open(output_path, "wb")
        except OSError as exc:
            raise OutputPathError(f"Cannot open output file {output_path}: {exc}") from exc

        self.handle_start(shlex.join(cmd))
        tasks = [
            asyncio.create_task(self._feed_frames()),
            asyncio.create_task(self._copy_output()),
            asyncio.create_task(self._read_diagnostics()),
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
        returncode = await self._process.wait()
        try:
            self._close_sink()
        except OSError as exc:
            if self._pipe_failure is None:
                self._pipe_failure = f"Could not write output: {exc}"

        if self._pipe_failure is not None:
            self.handle_error(self._pipe_failure)
        elif returncode != 0:
            detail = "\n".join(self._stderr_tail) or "no error output"
            self.handle_error(f"ffmpeg exited with code {returncode}: {detail}")
        else:
            self.handle_end()

    async def _estimate_total_seconds(self) -> float | None:
        config = self.config
        overlay = config.background_overlay
        if overlay is not None:
            duration = await probe_duration(overlay.video_path, self.settings)
            if duration is not None:
                return duration
        if config.expected_frames:
            seconds = config.expected_frames / config.frame_rate.input
            if overlay is not None:
                seconds += overlay.in_seconds
            return seconds
        return None

    async def _feed_frames(self) -> None:
        stdin = self._process.stdin
        try:
            async for chunk in aiter_chunks(self.config.frame_source):
                stdin.write(chunk)
                await stdin.drain()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug("ffmpeg closed its input early; waiting for exit status")
        except Exception as exc:
            self._pipe_failure = f"Frame source failed: {exc}"
            self._terminate()
        finally:
            stdin.close()
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                await stdin.wait_closed()

    async def _copy_output(self) -> None:
        stdout = self._process.stdout
        while True:
            chunk = await stdout.read(OUTPUT_CHUNK_SIZE)
            if not chunk:
                return
            try:
                self._sink.write(chunk)
            except OSError as exc:
                self._pipe_failure = f"Could not write output: {exc}"
                self._terminate()
                # Keep draining so ffmpeg is not blocked on a full pipe.
                while await stdout.read(OUTPUT_CHUNK_SIZE):
                    pass
                return

    async def _read_diagnostics(self) -> None:
        stderr = self._process.stderr
        state: dict[str, str] = {}
        while True:
            try:
                raw = await stderr.readline()
            except ValueError:
                # The reader drops the oversized line and carries on.
                self._stderr_tail.append("[stderr line too long, truncated]")
                continue
            if not raw:
                return
            line = raw.decode(errors="replace").rstrip()
            if not line:
                continue
            if is_progress_line(line):
                snapshot = parse_progress_line(line, state)
                if snapshot is not None:
                    self.handle_progress(snapshot)
            else:
                self._stderr_tail.append(line)

    def _terminate(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            process.terminate()

    async def _reap(self) -> None:
        process = self._process
        if process is None or process.returncode is not None:
            return
        self._terminate()
        try:
            await asyncio.wait_for(asyncio.shield(process.wait()), PROCESS_EXIT_TIMEOUT)
        except asyncio.TimeoutError:
            logger.debug("ffmpeg ignored SIGTERM; killing it")
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()

    def _close_sink(self) -> None:
        sink = self._sink
        if sink is None or sink.closed:
            return
        try:
            sink.flush()
        finally:
            sink.close()

    def _release_sink(self) -> None:
        try:
            self._close_sink()
        except OSError as exc:
            logger.debug("Could not flush output while aborting: %s", exc)

    def _settle(
        self, result: EncodeResult | None = None, error: BaseException | None = None
    ) -> bool:
        if self._outcome is None or self._outcome.done():
            return False
        if error is not None:
            self.state = JobState.FAILED
            self._outcome.set_exception(error)
        else:
            self.state = JobState.SUCCEEDED
            self._outcome.set_result(result)
        return True

    def handle_start(self, command_line: str) -> None:
        if self.state is not JobState.CONFIGURING:
            logger.debug("Ignoring start event in state %s", self.state.value)
            return
        self.state = JobState.RUNNING
        if self.verbose:
            logger.info("Spawned ffmpeg with command: %s", command_line)
            self._reporter.start()

    def handle_progress(self, snapshot: ProgressSnapshot) -> None:
        if self.state is not JobState.RUNNING:
            logger.debug("Ignoring progress event in state %s", self.state.value)
            return
        if not self.verbose:
            return
        percent = percent_from(
            estimate_percent(snapshot, self._total_seconds, self.config.expected_frames)
        )
        self.last_percent = percent
        self._reporter.update(percent)

    def handle_end(self) -> None:
        if self.state is not JobState.RUNNING:
            logger.debug("Ignoring end event in state %s", self.state.value)
            return
        if self.verbose:
            self._reporter.stop()
            logger.info("Processing complete: %s", self.config.output_path)
        self._settle(
            result=EncodeResult(path=self.config.output_path, stream=self._sink)
        )

    def handle_error(self, message: str) -> None:
        if self.state not in (JobState.CONFIGURING, JobState.RUNNING):
            logger.debug("Ignoring error event in state %s", self.state.value)
            return
        if self.verbose:
            if self.state is JobState.RUNNING:
                self._reporter.stop()
            logger.info("An error occurred while processing: %s", message)
        self._settle(error=EncodeError(message))


async def encode(
    config: JobConfig,
    *,
    settings: EncoderSettings | None = None,
    reporter: ProgressReporter | None = None,
) -> EncodeResult:
    """Encode ``config.frame_source`` into ``config.output_path``."""

    if settings is None:
        settings = load_encoder_settings()
    return await EncodeJob(config, settings=settings, reporter=reporter).run()
