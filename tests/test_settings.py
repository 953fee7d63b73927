from __future__ import annotations

from pathlib import Path

import pytest

from framecast.config import (
    EncoderSettings,
    load_encoder_settings,
    parse_crf,
    resolve_config_path,
    save_encoder_settings,
)

_ENV_VARS = (
    "FRAMECAST_CONFIG_PATH",
    "FRAMECAST_FFMPEG",
    "FRAMECAST_FFPROBE",
    "FRAMECAST_PRESET",
    "FRAMECAST_CRF",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_when_file_missing(tmp_path: Path):
    settings = load_encoder_settings(tmp_path / "missing.ini")
    assert settings == EncoderSettings()
    assert settings.preset == "veryfast"
    assert settings.crf == 24
    assert settings.movflags == "frag_keyframe+empty_moov"


def test_save_and_reload(tmp_path: Path):
    path = tmp_path / "conf" / "config.ini"
    original = EncoderSettings(ffmpeg_path="/opt/ffmpeg", preset="medium", crf=18)

    written = save_encoder_settings(original, path)

    assert written == path
    assert load_encoder_settings(path, include_env=False) == original


def test_env_overrides_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    path = tmp_path / "config.ini"
    save_encoder_settings(EncoderSettings(preset="medium", crf=18), path)
    monkeypatch.setenv("FRAMECAST_PRESET", "ultrafast")
    monkeypatch.setenv("FRAMECAST_CRF", "30")
    monkeypatch.setenv("FRAMECAST_FFMPEG", "/usr/local/bin/ffmpeg")

    settings = load_encoder_settings(path)

    assert settings.preset == "ultrafast"
    assert settings.crf == 30
    assert settings.ffmpeg_path == "/usr/local/bin/ffmpeg"
    assert load_encoder_settings(path, include_env=False).preset == "medium"


def test_resolve_config_path_prefers_explicit(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("FRAMECAST_CONFIG_PATH", str(tmp_path / "env.ini"))
    assert resolve_config_path(tmp_path / "explicit.ini") == tmp_path / "explicit.ini"
    assert resolve_config_path() == tmp_path / "env.ini"


def test_resolve_config_path_default(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))
    path = resolve_config_path()
    assert path.name == "config.ini"
    assert path.parent.name == "framecast"


@pytest.mark.parametrize("value", ["abc", "64", "-1"])
def test_invalid_crf(value):
    with pytest.raises(ValueError):
        parse_crf(value, 24)


def test_blank_crf_uses_default():
    assert parse_crf("  ", 24) == 24
    assert parse_crf(None, 19) == 19
