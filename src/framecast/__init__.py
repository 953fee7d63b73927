from framecast.config import BackgroundOverlay, EncoderSettings, FrameRate, JobConfig
from framecast.encode import EncodeJob, EncodeResult, encode
from framecast.errors import (
    ConfigError,
    EncodeCancelled,
    EncodeError,
    FramecastError,
    OutputPathError,
)

__version__ = "0.1.0"

__all__ = [
    "BackgroundOverlay",
    "ConfigError",
    "EncodeCancelled",
    "EncodeError",
    "EncodeJob",
    "EncodeResult",
    "EncoderSettings",
    "FrameRate",
    "FramecastError",
    "JobConfig",
    "OutputPathError",
    "encode",
]
