"""Command line interface for the contact sheet tool."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from contact_sheet.config import DEFAULT_CONFIG_FILE, Settings, load_config
from contact_sheet.exceptions import ContactSheetError, InvalidInput
from contact_sheet.logging_setup import configure_logging
from contact_sheet.models import DurationOrPercent, SampleWindow, parse_duration
from contact_sheet.sheet import ContactSheet, ExtractRequest, SheetRequest

DEFAULT_VCS_FRAMES = 30


def _duration_arg(value: str) -> float:
    try:
        seconds = parse_duration(value)
    except InvalidInput as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    if seconds <= 0:
        raise argparse.ArgumentTypeError("duration must be greater than zero")
    return seconds


def _offset_arg(value: str) -> DurationOrPercent:
    try:
        return DurationOrPercent.parse(value)
    except InvalidInput as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _add_extract_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("video", type=Path, help="Video file input.")
    parser.add_argument(
        "-n",
        "--number",
        type=int,
        required=True,
        help="Number of equidistant points in the video to capture.",
    )
    parser.add_argument(
        "--ignore-start",
        type=_offset_arg,
        help="Time or percentage at the start to ignore when calculating capture points.",
    )
    parser.add_argument(
        "--ignore-end",
        type=_offset_arg,
        help="Time or percentage at the end to ignore when calculating capture points.",
    )
    parser.add_argument(
        "-f",
        "--capture-frames",
        type=int,
        help="Frames to output per capture, above 1 for animated captures (default: 1 extract, 30 vcs).",
    )
    parser.add_argument(
        "-t",
        "--capture-time",
        type=_duration_arg,
        help="Duration per capture for multi-frame captures (default: 1500ms).",
    )
    parser.add_argument("--vfilter", help="ffmpeg video filter applied during capture.")
    parser.add_argument(
        "-T",
        "--threads",
        type=int,
        help="Concurrent ffmpeg calls, 0 = auto (default: 3).",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        help="Directory to write capture images (extract) or the default output (vcs) into.",
    )


def _add_size_arguments(parser: argparse.ArgumentParser) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "-W",
        "--capture-width",
        type=int,
        help="Pixel width of each capture inside the grid, aspect preserved.",
    )
    group.add_argument(
        "-H",
        "--capture-height",
        type=int,
        help="Pixel height of each capture inside the grid, aspect preserved.",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate video contact sheets with ffmpeg.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(DEFAULT_CONFIG_FILE),
        help=f"JSON configuration file (default: {DEFAULT_CONFIG_FILE}; environment used when absent).",
    )
    parser.add_argument("--verbose", action="store_true", help="Show per-capture debug output, tagged by worker thread.")
    parser.add_argument("--log-file", type=Path, help="Also write logs to this file.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    extract_parser = subparsers.add_parser(
        "extract",
        help="Generate capture bmp images from a video.",
    )
    _add_extract_arguments(extract_parser)

    join_parser = subparsers.add_parser(
        "join",
        help="Join same-sized capture images into a single grid image.",
    )
    join_parser.add_argument(
        "-c",
        "--columns",
        type=int,
        required=True,
        help="Number of capture columns in output.",
    )
    join_parser.add_argument("-o", "--output", type=Path, required=True, help="Output file name.")
    join_parser.add_argument(
        "--label",
        action="append",
        default=[],
        help="Label for the capture at the same position; repeat per image.",
    )
    _add_size_arguments(join_parser)
    join_parser.add_argument("images", nargs="+", type=Path, help="Images to join.")

    vcs_parser = subparsers.add_parser(
        "vcs",
        help="Create a video contact sheet (avif).",
    )
    vcs_parser.add_argument(
        "-c",
        "--columns",
        type=int,
        required=True,
        help="Number of capture columns in output.",
    )
    vcs_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        help="Output file name. Defaults to the input name with an .avif extension.",
    )
    vcs_parser.add_argument("--avif-crf", type=int, help="crf quality level for the output avif.")
    vcs_parser.add_argument(
        "--avif-preset",
        type=int,
        help="Preset/cpu-used for the output avif (default: 1 single frame, 5 animated).",
    )
    vcs_parser.add_argument("--avif-fps", type=float, help="Output framerate for animated output.")
    vcs_parser.add_argument(
        "--no-labels",
        dest="labels",
        action="store_false",
        help="Do not draw timestamps on captures.",
    )
    vcs_parser.add_argument("--temp-dir", type=Path, help="Parent of the scratch directory.")
    vcs_parser.add_argument(
        "--keep-temp",
        action="store_true",
        default=None,
        help="Keep the scratch directory after finishing.",
    )
    _add_size_arguments(vcs_parser)
    _add_extract_arguments(vcs_parser)
    vcs_parser.set_defaults(labels=True)

    return parser


def _pick(value, fallback):
    return fallback if value is None else value


def _extract_request(args: argparse.Namespace, settings: Settings, default_frames: int) -> ExtractRequest:
    capture = settings.capture
    window = SampleWindow(
        ignore_start=_pick(args.ignore_start, DurationOrPercent.parse(capture.ignore_start)),
        ignore_end=_pick(args.ignore_end, DurationOrPercent.parse(capture.ignore_end)),
    )
    return ExtractRequest(
        video=args.video,
        number=args.number,
        window=window,
        capture_frames=_pick(args.capture_frames, _pick(capture.capture_frames, default_frames)),
        capture_time=_pick(args.capture_time, capture.capture_time),
        vfilter=args.vfilter,
        threads=_pick(args.threads, capture.threads),
        output_dir=args.output_dir,
    )


def run_extract(sheet: ContactSheet, args: argparse.Namespace) -> int:
    capture_set = sheet.extract(_extract_request(args, sheet.settings, 1))
    sheet.logger.info(
        "Extracted %s capture(s) of %s frame(s) into %s",
        len(capture_set.templates),
        capture_set.frames_per_capture,
        capture_set.directory,
    )
    return 0


def run_join(sheet: ContactSheet, args: argparse.Namespace) -> int:
    sheet.join(
        args.images,
        args.output,
        columns=args.columns,
        labels=args.label,
        width=args.capture_width,
        height=args.capture_height,
    )
    return 0


def run_vcs(sheet: ContactSheet, args: argparse.Namespace) -> int:
    settings = sheet.settings
    request = SheetRequest(
        capture=_extract_request(args, settings, DEFAULT_VCS_FRAMES),
        columns=args.columns,
        output=args.output,
        crf=_pick(args.avif_crf, settings.encode.crf),
        preset=_pick(args.avif_preset, settings.encode.preset),
        fps=_pick(args.avif_fps, settings.encode.fps),
        capture_width=args.capture_width,
        capture_height=args.capture_height,
        labels=args.labels,
        temp_dir=_pick(args.temp_dir, settings.workspace.temp_dir),
        keep_temp=_pick(args.keep_temp, settings.workspace.keep_temp),
    )
    result = sheet.create(request)
    if result.warnings:
        sheet.logger.warning(
            "Duplicated frames in %s capture(s) to cover for missing extractions",
            len(result.warnings),
        )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = load_config(args.config)
    except InvalidInput as exc:
        parser.error(str(exc))

    try:
        logger = configure_logging(
            verbose=args.verbose,
            log_file=_pick(args.log_file, settings.log_file),
        )
    except InvalidInput as exc:
        parser.error(str(exc))
    sheet = ContactSheet(settings, logger=logger)

    handlers = {
        "extract": run_extract,
        "join": run_join,
        "vcs": run_vcs,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.error(f"Unhandled command: {args.command}")

    try:
        return handler(sheet, args)
    except ContactSheetError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
