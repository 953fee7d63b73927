from .ffmpeg import ProgressSnapshot, build_command, build_filter_graph
from .job import EncodeJob, EncodeResult, JobState, encode
from .output import prepare_output_path
from .progress import ProgressReporter, RichProgressReporter, percent_from

__all__ = [
    "EncodeJob",
    "EncodeResult",
    "JobState",
    "ProgressReporter",
    "ProgressSnapshot",
    "RichProgressReporter",
    "build_command",
    "build_filter_graph",
    "encode",
    "percent_from",
    "prepare_output_path",
]
