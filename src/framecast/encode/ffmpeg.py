from __future__ import annotations

import asyncio
import logging
import math
import os
import shutil
from dataclasses import dataclass

from framecast.config.job import BackgroundOverlay, JobConfig
from framecast.config.settings import EncoderSettings
from framecast.errors import EncodeError

logger = logging.getLogger(__name__)

OVERLAY_OUTPUT_LABEL = "out"


@dataclass(frozen=True)
class ProgressSnapshot:
    frame: int | None
    out_time_seconds: float | None
    finished: bool = False


def ensure_ffmpeg(settings: EncoderSettings) -> None:
    if not shutil.which(settings.ffmpeg_path):
        raise EncodeError(
            f"{settings.ffmpeg_path} not found in PATH. Install ffmpeg to encode videos."
        )


def format_seconds(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def build_filter_graph(overlay: BackgroundOverlay | None) -> str | None:
    """Return the overlay graph for ``overlay`` or ``None`` when there is none.

    Input 0 is the background clip and input 1 is the frame stream. The
    frames are shifted by ``in_seconds`` onto the background clock and only
    drawn while ``in_seconds <= t <= out_seconds``.
    """

    if overlay is None:
        return None
    start = format_seconds(overlay.in_seconds)
    end = format_seconds(overlay.out_seconds)
    return (
        f"[1:v]setpts=PTS+{start}/TB[fg];"
        f"[0:v][fg]overlay=x=0:y=0:enable='between(t,{start},{end})'"
        f"[{OVERLAY_OUTPUT_LABEL}]"
    )


def build_command(config: JobConfig, settings: EncoderSettings) -> list[str]:
    cmd = [
        settings.ffmpeg_path,
        "-hide_banner",
        "-y",
        "-loglevel",
        "error",
        "-nostats",
        "-progress",
        "pipe:2",
    ]

    overlay = config.background_overlay
    if overlay is not None:
        cmd += ["-i", os.fspath(overlay.video_path)]

    cmd += [
        "-f",
        "image2pipe",
        "-framerate",
        format_seconds(config.frame_rate.input),
        "-i",
        "pipe:0",
    ]

    graph = build_filter_graph(overlay)
    if graph is not None:
        cmd += ["-filter_complex", graph, "-map", f"[{OVERLAY_OUTPUT_LABEL}]"]

    cmd += [
        "-preset",
        settings.preset,
        "-crf",
        str(settings.crf),
        "-f",
        settings.container,
        "-movflags",
        settings.movflags,
        "-pix_fmt",
        settings.pixel_format,
        "-r",
        format_seconds(config.frame_rate.output),
        "pipe:1",
    ]
    return cmd


def _parse_out_time(value: str) -> float | None:
    hours, _, rest = value.partition(":")
    minutes, _, seconds = rest.partition(":")
    try:
        total = int(hours) * 3600 + int(minutes) * 60 + float(seconds)
    except ValueError:
        return None
    return total if math.isfinite(total) and total >= 0 else None


def parse_progress_line(line: str, state: dict[str, str]) -> ProgressSnapshot | None:
    """Feed one ``-progress`` line; return a snapshot when a block completes."""

    key, sep, value = line.strip().partition("=")
    if not sep:
        return None
    key = key.strip()
    value = value.strip()
    if key != "progress":
        state[key] = value
        return None

    frame: int | None
    try:
        frame = int(state["frame"])
    except (KeyError, ValueError):
        frame = None

    out_time: float | None = None
    raw_us = state.get("out_time_us") or state.get("out_time_ms")
    if raw_us and raw_us.lstrip("-").isdigit():
        # out_time_ms is microseconds too, despite the name.
        micros = int(raw_us)
        out_time = micros / 1_000_000 if micros >= 0 else None
    elif "out_time" in state:
        out_time = _parse_out_time(state["out_time"])

    state.clear()
    return ProgressSnapshot(
        frame=frame, out_time_seconds=out_time, finished=value == "end"
    )


def is_progress_line(line: str) -> bool:
    key, sep, _ = line.partition("=")
    return bool(sep) and key.strip().replace("_", "").isalnum() and " " not in key


async def probe_duration(path: str | os.PathLike, settings: EncoderSettings) -> float | None:
    cmd = [
        settings.ffprobe_path,
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        os.fspath(path),
    ]
    try:
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
        )
        stdout, stderr = await process.communicate()
    except OSError as exc:
        logger.debug("ffprobe unavailable for %s: %s", path, exc)
        return None
    if process.returncode != 0:
        logger.debug("ffprobe failed for %s: %s", path, stderr.decode(errors="replace").strip())
        return None
    try:
        duration = float(stdout.decode().strip())
    except ValueError:
        return None
    return duration if math.isfinite(duration) and duration > 0 else None
