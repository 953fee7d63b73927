from __future__ import annotations

import math
import threading
from numbers import Real
from typing import Protocol

from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn

from framecast.encode.ffmpeg import ProgressSnapshot


class ProgressReporter(Protocol):
    def start(self) -> None: ...

    def update(self, percent: float) -> None: ...

    def stop(self) -> None: ...


def percent_from(value: object) -> float:
    """Clamp a raw percent into ``[0, 100]``; anything unusable becomes 0."""

    if not isinstance(value, Real) or isinstance(value, bool):
        return 0.0
    percent = float(value)
    if not math.isfinite(percent):
        return 0.0
    return round(min(100.0, max(0.0, percent)), 2)


def estimate_percent(
    snapshot: ProgressSnapshot,
    total_seconds: float | None,
    total_frames: int | None,
) -> float | None:
    if snapshot.out_time_seconds is not None and total_seconds:
        return snapshot.out_time_seconds / total_seconds * 100
    if snapshot.frame is not None and total_frames:
        return snapshot.frame / total_frames * 100
    return None


class RichProgressReporter:
    def __init__(self, description: str = "Rendering") -> None:
        self._description = description
        self._lock = threading.Lock()
        self._progress: Progress | None = None
        self._task_id = None

    def start(self) -> None:
        with self._lock:
            if self._progress is not None:
                return
            self._progress = Progress(
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("{task.percentage:>6.2f}%"),
                TimeElapsedColumn(),
                transient=False,
            )
            self._progress.start()
            self._task_id = self._progress.add_task(self._description, total=100)

    def update(self, percent: float) -> None:
        with self._lock:
            if self._progress is None:
                return
            self._progress.update(self._task_id, completed=percent_from(percent))

    def stop(self) -> None:
        with self._lock:
            if self._progress is None:
                return
            self._progress.stop()
            self._progress = None
            self._task_id = None
