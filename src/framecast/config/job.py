from __future__ import annotations

import math
import os
from collections.abc import AsyncIterable, Iterable, Mapping
from dataclasses import dataclass
from numbers import Real
from pathlib import Path
from typing import Any

from framecast.errors import ConfigError


@dataclass(frozen=True)
class FrameRate:
    input: float
    output: float


@dataclass(frozen=True)
class BackgroundOverlay:
    video_path: str | Path
    in_seconds: float
    out_seconds: float


@dataclass(frozen=True)
class JobConfig:
    """Everything one encode needs.

    ``frame_source`` is read to the end exactly once; the rest is treated as
    immutable for the lifetime of the job.
    """

    frame_source: Any
    output_path: str | Path
    frame_rate: FrameRate
    background_overlay: BackgroundOverlay | None = None
    verbose: bool = False
    expected_frames: int | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "JobConfig":
        frame_rate = data.get("frame_rate")
        if isinstance(frame_rate, Mapping):
            frame_rate = FrameRate(
                input=frame_rate.get("input"), output=frame_rate.get("output")
            )
        overlay = data.get("background_overlay")
        if isinstance(overlay, Mapping):
            overlay = BackgroundOverlay(
                video_path=overlay.get("video_path"),
                in_seconds=overlay.get("in_seconds"),
                out_seconds=overlay.get("out_seconds"),
            )
        return cls(
            frame_source=data.get("frame_source"),
            output_path=data.get("output_path"),
            frame_rate=frame_rate,
            background_overlay=overlay,
            verbose=bool(data.get("verbose", False)),
            expected_frames=data.get("expected_frames"),
        )


def _type_name(value: object) -> str:
    return "None" if value is None else type(value).__name__


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def is_frame_source(value: object) -> bool:
    if isinstance(value, (str, bytes, bytearray, memoryview)):
        return False
    if callable(getattr(value, "read", None)):
        return True
    return isinstance(value, (Iterable, AsyncIterable))


def _check_rate(value: object, name: str) -> None:
    if value is None:
        raise ConfigError(f"{name} is required.")
    if not _is_number(value):
        raise ConfigError(
            f"{name} should be a number. You provided {_type_name(value)}."
        )
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"{name} must be a positive number, got {value!r}.")


def _check_overlay(overlay: object) -> None:
    if not isinstance(overlay, BackgroundOverlay):
        raise ConfigError(
            "background_overlay should be a BackgroundOverlay. "
            f"You provided {_type_name(overlay)}."
        )

    video_path = overlay.video_path
    if not isinstance(video_path, (str, os.PathLike)) or not str(video_path):
        raise ConfigError(
            "background_overlay.video_path should be a non-empty path. "
            f"You provided {_type_name(video_path)}."
        )

    for name in ("in_seconds", "out_seconds"):
        value = getattr(overlay, name)
        if value is None:
            raise ConfigError(f"background_overlay.{name} is required.")
        if not _is_number(value) or not math.isfinite(value):
            raise ConfigError(
                f"background_overlay.{name} should be a finite number. "
                f"You provided {_type_name(value)}."
            )

    if overlay.in_seconds < 0:
        raise ConfigError(
            "background_overlay.in_seconds must not be negative, "
            f"got {overlay.in_seconds!r}."
        )
    if overlay.out_seconds <= overlay.in_seconds:
        raise ConfigError(
            "background_overlay.out_seconds must be greater than in_seconds "
            f"({overlay.out_seconds!r} <= {overlay.in_seconds!r})."
        )


def validate_job_config(config: JobConfig) -> JobConfig:
    """Check ``config`` and return it unchanged.

    Stops at the first violation with a :class:`ConfigError` naming the field.
    """

    if not isinstance(config, JobConfig):
        raise ConfigError(
            f"config should be a JobConfig. You provided {_type_name(config)}."
        )

    if not is_frame_source(config.frame_source):
        raise ConfigError(
            "frame_source should be a readable byte stream or an iterable of "
            f"frames. You provided {_type_name(config.frame_source)}."
        )

    output_path = config.output_path
    if not isinstance(output_path, (str, os.PathLike)):
        raise ConfigError(
            f"output_path should be a string. You provided {_type_name(output_path)}."
        )
    if not os.fspath(output_path).strip():
        raise ConfigError("output_path must not be empty.")

    frame_rate = config.frame_rate
    if not isinstance(frame_rate, FrameRate):
        raise ConfigError(
            "frame_rate should be a FrameRate with input and output. "
            f"You provided {_type_name(frame_rate)}."
        )
    _check_rate(frame_rate.input, "frame_rate.input")
    _check_rate(frame_rate.output, "frame_rate.output")

    if config.background_overlay is not None:
        _check_overlay(config.background_overlay)

    expected = config.expected_frames
    if expected is not None and (
        not isinstance(expected, int) or isinstance(expected, bool) or expected <= 0
    ):
        raise ConfigError(
            f"expected_frames must be a positive integer, got {expected!r}."
        )

    return config
