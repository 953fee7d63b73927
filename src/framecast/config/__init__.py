from .job import (
    BackgroundOverlay,
    FrameRate,
    JobConfig,
    is_frame_source,
    validate_job_config,
)
from .settings import (
    EncoderSettings,
    load_encoder_settings,
    parse_crf,
    resolve_config_path,
    save_encoder_settings,
)

__all__ = [
    "BackgroundOverlay",
    "EncoderSettings",
    "FrameRate",
    "JobConfig",
    "is_frame_source",
    "load_encoder_settings",
    "parse_crf",
    "resolve_config_path",
    "save_encoder_settings",
    "validate_job_config",
]
