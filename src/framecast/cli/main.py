from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from framecast.config import (
    BackgroundOverlay,
    FrameRate,
    JobConfig,
    load_encoder_settings,
    parse_crf,
    resolve_config_path,
    save_encoder_settings,
)
from framecast.encode import encode
from framecast.errors import FramecastError
from framecast.frames import count_frame_files, iter_frame_files

_DEBUG_VALUES = {"1", "true", "yes", "on"}


def _parse_log_level(value: str | None) -> int | None:
    if not value:
        return None
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else None


def configure_logging(verbose: bool = False) -> None:
    level = _parse_log_level(os.getenv("FRAMECAST_LOG_LEVEL"))
    if level is None:
        debug = os.getenv("FRAMECAST_DEBUG", "").lower() in _DEBUG_VALUES
        level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        force=True,
    )


def _positive_float(value: str) -> float:
    parsed = float(value)
    if parsed <= 0:
        raise argparse.ArgumentTypeError("Value must be greater than 0.")
    return parsed


def build_job_config(
    args: argparse.Namespace, parser: argparse.ArgumentParser
) -> JobConfig:
    input_fps = args.input_fps if args.input_fps is not None else args.fps
    output_fps = args.output_fps if args.output_fps is not None else args.fps

    overlay = None
    if args.background is not None:
        if args.bg_in is None or args.bg_out is None:
            parser.error("--background requires both --bg-in and --bg-out.")
        overlay = BackgroundOverlay(
            video_path=args.background,
            in_seconds=args.bg_in,
            out_seconds=args.bg_out,
        )
    elif args.bg_in is not None or args.bg_out is not None:
        parser.error("--bg-in/--bg-out require --background.")

    expected_frames = args.expected_frames
    if str(args.frames) == "-":
        frame_source = sys.stdin.buffer
    else:
        frames_dir = args.frames
        if not frames_dir.is_dir():
            parser.error(f"Frames directory not found: {frames_dir}")
        frame_source = iter_frame_files(frames_dir, args.pattern)
        if expected_frames is None:
            expected_frames = count_frame_files(frames_dir, args.pattern) or None

    return JobConfig(
        frame_source=frame_source,
        output_path=args.out,
        frame_rate=FrameRate(input=input_fps, output=output_fps),
        background_overlay=overlay,
        verbose=args.verbose,
        expected_frames=expected_frames,
    )


def handle_encode(args: argparse.Namespace, parser: argparse.ArgumentParser) -> int:
    config = build_job_config(args, parser)
    try:
        settings = load_encoder_settings(args.config_path)
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    try:
        result = asyncio.run(encode(config, settings=settings))
    except FramecastError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    print(result.path)
    return 0


def handle_configure(args: argparse.Namespace) -> int:
    config_path = resolve_config_path(args.config_path)
    current = load_encoder_settings(config_path, include_env=False)

    updates: dict[str, object] = {}
    if args.ffmpeg_path is not None:
        updates["ffmpeg_path"] = args.ffmpeg_path
    if args.ffprobe_path is not None:
        updates["ffprobe_path"] = args.ffprobe_path
    if args.preset is not None:
        updates["preset"] = args.preset
    if args.crf is not None:
        try:
            updates["crf"] = parse_crf(args.crf, current.crf)
        except ValueError as exc:
            raise SystemExit(str(exc)) from None

    if not updates:
        raise SystemExit("No configuration values provided.")

    path = save_encoder_settings(replace(current, **updates), config_path)
    print(f"Saved config to {path}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="framecast",
        description="Encode a stream of image frames into a fragmented MP4.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    configure = sub.add_parser(
        "configure", help="Store default encoder settings on disk."
    )
    configure.add_argument(
        "--config-path",
        type=Path,
        default=None,
        help="Optional config file path override.",
    )
    configure.add_argument(
        "--ffmpeg-path", type=str, default=None, help="ffmpeg executable."
    )
    configure.add_argument(
        "--ffprobe-path", type=str, default=None, help="ffprobe executable."
    )
    configure.add_argument(
        "--preset",
        type=str,
        default=None,
        help="x264 preset (e.g., veryfast, fast, medium).",
    )
    configure.add_argument(
        "--crf", type=str, default=None, help="Constant rate factor (0-63)."
    )

    enc = sub.add_parser("encode", help="Encode frames into a video file.")
    enc.add_argument(
        "--frames",
        required=True,
        type=Path,
        help="Directory of frame images, or '-' to read frames from stdin.",
    )
    enc.add_argument(
        "--out", required=True, type=Path, help="Output video path (mp4)."
    )
    enc.add_argument(
        "--pattern",
        type=str,
        default="*.png",
        help="Glob for frame files inside --frames.",
    )
    enc.add_argument(
        "--fps",
        type=_positive_float,
        default=30.0,
        help="Frame rate used for both input and output unless overridden.",
    )
    enc.add_argument(
        "--input-fps",
        type=_positive_float,
        default=None,
        help="Rate at which frames are presented.",
    )
    enc.add_argument(
        "--output-fps",
        type=_positive_float,
        default=None,
        help="Frame rate of the encoded video.",
    )
    enc.add_argument(
        "--background",
        type=Path,
        default=None,
        help="Background video to composite the frames onto.",
    )
    enc.add_argument(
        "--bg-in",
        type=float,
        default=None,
        help="Second of the background at which the frames appear.",
    )
    enc.add_argument(
        "--bg-out",
        type=float,
        default=None,
        help="Second of the background after which the frames are hidden.",
    )
    enc.add_argument(
        "--expected-frames",
        type=int,
        default=None,
        help="Frame count hint for progress when reading from stdin.",
    )
    enc.add_argument(
        "--config-path",
        type=Path,
        default=None,
        help="Optional config file path override.",
    )
    enc.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Show progress and ffmpeg diagnostics.",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(getattr(args, "verbose", False))

    if args.command == "configure":
        return handle_configure(args)
    return handle_encode(args, parser)


if __name__ == "__main__":
    raise SystemExit(main())
