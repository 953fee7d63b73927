from __future__ import annotations

import configparser
import io
import os
import sys
from dataclasses import dataclass
from pathlib import Path


DEFAULT_FFMPEG = "ffmpeg"
DEFAULT_FFPROBE = "ffprobe"
DEFAULT_PRESET = "veryfast"
DEFAULT_CRF = 24
DEFAULT_PIXEL_FORMAT = "yuv420p"
DEFAULT_CONTAINER = "mp4"
DEFAULT_MOVFLAGS = "frag_keyframe+empty_moov"


@dataclass(frozen=True)
class EncoderSettings:
    ffmpeg_path: str = DEFAULT_FFMPEG
    ffprobe_path: str = DEFAULT_FFPROBE
    preset: str = DEFAULT_PRESET
    crf: int = DEFAULT_CRF
    pixel_format: str = DEFAULT_PIXEL_FORMAT
    container: str = DEFAULT_CONTAINER
    movflags: str = DEFAULT_MOVFLAGS


def _default_config_dir() -> Path:
    if os.name == "nt":
        base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "framecast"


def resolve_config_path(explicit: Path | None = None) -> Path:
    if explicit is not None:
        return explicit.expanduser()
    env_path = os.getenv("FRAMECAST_CONFIG_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return _default_config_dir() / "config.ini"


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def parse_crf(value: str | None, default: int) -> int:
    text = _clean(value)
    if text is None:
        return default
    try:
        crf = int(text)
    except ValueError:
        raise ValueError(f"Invalid crf: {value!r}") from None
    if not 0 <= crf <= 63:
        raise ValueError(f"crf must be between 0 and 63, got {crf}.")
    return crf


def load_encoder_settings(
    config_path: Path | None = None, include_env: bool = True
) -> EncoderSettings:
    path = resolve_config_path(config_path)
    parser = configparser.ConfigParser()
    if path.is_file():
        parser.read(path)
    section = parser["default"] if parser.has_section("default") else {}

    ffmpeg_path = _clean(section.get("ffmpeg_path")) or DEFAULT_FFMPEG
    ffprobe_path = _clean(section.get("ffprobe_path")) or DEFAULT_FFPROBE
    preset = _clean(section.get("preset")) or DEFAULT_PRESET
    crf = parse_crf(section.get("crf"), DEFAULT_CRF)
    pixel_format = _clean(section.get("pixel_format")) or DEFAULT_PIXEL_FORMAT

    if include_env:
        ffmpeg_path = os.getenv("FRAMECAST_FFMPEG") or ffmpeg_path
        ffprobe_path = os.getenv("FRAMECAST_FFPROBE") or ffprobe_path
        preset = os.getenv("FRAMECAST_PRESET") or preset
        crf_env = os.getenv("FRAMECAST_CRF")
        if crf_env:
            crf = parse_crf(crf_env, crf)

    return EncoderSettings(
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
        preset=preset,
        crf=crf,
        pixel_format=pixel_format,
    )


def save_encoder_settings(
    settings: EncoderSettings, config_path: Path | None = None
) -> Path:
    path = resolve_config_path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    parser = configparser.ConfigParser()
    parser["default"] = {
        "ffmpeg_path": settings.ffmpeg_path,
        "ffprobe_path": settings.ffprobe_path,
        "preset": settings.preset,
        "crf": str(settings.crf),
        "pixel_format": settings.pixel_format,
    }
    buffer = io.StringIO()
    parser.write(buffer)
    path.write_text(buffer.getvalue(), encoding="utf-8")
    return path
