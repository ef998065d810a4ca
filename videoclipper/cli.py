"""CLI for videoclipper: one pipeline stage per invocation.

Usage:
    videoclipper [-v|-q] exporter -i VIDEO [-o DIR] [-p PIXELS] [-a AUDIO] [-d MS] [-f FPS] [-y]
    videoclipper [-v|-q] sampler  -i VIDEO [-o DIR] [-u] [-n N] [-a AUDIO] [-d MS] [-y]
    videoclipper [-v|-q] merger   -i DIR -r DIR [-o DIR] [-t OPACITY] [-y]
    videoclipper [-v|-q] gmicer   -i DIR [-o DIR] [-y] -- GMIC_ARGS...
    videoclipper [-v|-q] clutter  -i DIR -l CLUT [-o DIR] [--clut-opacity X | --clut-multiple | --clut-merge] [-y]
    videoclipper [-v|-q] clipper  -i DIR [-o VIDEO] [-a AUDIO] [-f FPS] [-y]

Exit codes: 0 success, 1 pipeline error, 2 bad arguments, 130 interrupted.
"""
from __future__ import annotations

import argparse
import logging
import sys

import structlog
from pydantic import ValidationError

from videoclipper import __version__
from videoclipper.config import config
from videoclipper.dispatch import run_stage
from videoclipper.engines import Engines
from videoclipper.errors import VideoClipperError
from videoclipper.filters.clutter import select_blend_opacities
from videoclipper.models import (
    ClipResult,
    ClipperConfig,
    ClipSpec,
    ClutterConfig,
    ExporterConfig,
    FrameSequence,
    GmicerConfig,
    MergerConfig,
    MergeSpec,
    SamplerConfig,
)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

def _print_err(msg: str) -> None:
    print(msg, file=sys.stderr)


def _print_result(result) -> None:
    if isinstance(result, ClipResult):
        print(f"Clip:     {result.path}")
        print(f"Frames:   {result.frame_count} @ {result.fps} fps")
        print(f"Duration: {result.duration_seconds:.3f}s")
        if result.audio is not None:
            print(f"Audio:    {result.audio.path}")
    elif isinstance(result, FrameSequence):
        print(f"Frames:   {result.count}")
        print(f"Output:   {result.directory}")
        if result.resolution:
            print(f"Size:     {result.resolution[0]}x{result.resolution[1]}")


def configure_logging(verbose: int = 0, quiet: bool = False) -> None:
    """-q shows warnings and errors only, -v adds debug events."""
    if quiet:
        level = logging.WARNING
    elif verbose > 0:
        level = logging.DEBUG
    else:
        level = logging.INFO
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


# ---------------------------------------------------------------------------
# Stage config builders (flags win over environment defaults)
# ---------------------------------------------------------------------------

def _or(value, default):
    return default if value is None else value


def build_exporter(args: argparse.Namespace) -> ExporterConfig:
    return ExporterConfig(
        input=args.input,
        output=args.output,
        audio=args.audio,
        overwrite=args.overwrite,
        clip=ClipSpec(
            duration_ms=args.duration,
            fps=_or(args.fps, config.FPS),
            pixel_limit=_or(args.pixel_limit, config.PIXEL_LIMIT),
        ),
    )


def build_sampler(args: argparse.Namespace) -> SamplerConfig:
    return SamplerConfig(
        input=args.input,
        output=args.output,
        multiple=args.multiple,
        number=args.number,
        duration_ms=args.duration,
        audio=args.audio,
        overwrite=args.overwrite,
    )


def build_merger(args: argparse.Namespace) -> MergerConfig:
    return MergerConfig(
        input=args.input,
        second=args.second_directory,
        output=args.output,
        merge=MergeSpec(opacity=_or(args.opacity, config.OPACITY)),
        overwrite=args.overwrite,
    )


def build_gmicer(args: argparse.Namespace) -> GmicerConfig:
    return GmicerConfig(
        input=args.input,
        output=args.output,
        args=args.filter_args,
        overwrite=args.overwrite,
    )


def build_clutter(args: argparse.Namespace) -> ClutterConfig:
    return ClutterConfig(
        input=args.input,
        output=args.output,
        clut=args.clut,
        blend_opacities=select_blend_opacities(args.clut_opacity, args.clut_multiple, args.clut_merge),
        overwrite=args.overwrite,
    )


def build_clipper(args: argparse.Namespace) -> ClipperConfig:
    return ClipperConfig(
        input=args.input,
        output=args.output,
        audio=args.audio,
        fps=_or(args.fps, config.FPS),
        overwrite=args.overwrite,
    )


COMMANDS = {
    "exporter": build_exporter,
    "sampler":  build_sampler,
    "merger":   build_merger,
    "gmicer":   build_gmicer,
    "clutter":  build_clutter,
    "clipper":  build_clipper,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------

def _add_io(p: argparse.ArgumentParser, input_help: str, output_help: str) -> None:
    p.add_argument("-i", "--input", required=True, help=input_help)
    p.add_argument("-o", "--output", default=None, help=output_help)
    p.add_argument(
        "-y", "--overwrite", action="store_true", default=False,
        help="Replace existing output instead of failing",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="videoclipper",
        description="Convert videos to frame directories, transform frames, and assemble clips",
    )
    parser.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="Show debug output (repeatable)",
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", default=False,
        help="Only show warnings and errors",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    sub = parser.add_subparsers(dest="command")

    # exporter
    p_export = sub.add_parser("exporter", help="Export a video to a frame directory")
    _add_io(p_export, "Input video file", "Output frame directory (default: <video>_frames)")
    p_export.add_argument(
        "-p", "--pixel-limit", type=int, default=None,
        help="Max size of the larger frame side (default: $FRAME_EXPORTER_PIXEL_LIMIT)",
    )
    p_export.add_argument(
        "-a", "--audio", default=None,
        help="Audio file or directory; its length caps the export (default: $FXP_VIDEOCLIPPER_AUDIO)",
    )
    p_export.add_argument("-d", "--duration", type=int, default=None, help="Duration in milliseconds")
    p_export.add_argument(
        "-f", "--fps", type=int, default=None,
        help="Frames per second (default: $FXP_VIDEOCLIPPER_FPS or 30)",
    )

    # sampler
    p_sample = sub.add_parser("sampler", help="Extract sample frames from a video")
    _add_io(p_sample, "Input video file", "Output frame directory (default: <video>_samples)")
    p_sample.add_argument(
        "-u", "--multiple", action="store_true", default=False,
        help="Sample several evenly spaced frames instead of the middle one",
    )
    p_sample.add_argument(
        "-n", "--number", type=int, default=None,
        help="Frames to sample with -u (default: $FRAME_EXPORTER_SAMPLING_NUMBER or 10)",
    )
    p_sample.add_argument("-a", "--audio", default=None, help="Audio file or directory")
    p_sample.add_argument("-d", "--duration", type=int, default=None, help="Duration in milliseconds")

    # merger
    p_merge = sub.add_parser("merger", help="Blend two frame directories")
    _add_io(p_merge, "First frame directory", "Output directory (default: <input>_merged_<opacity>)")
    p_merge.add_argument("-r", "--second-directory", required=True, help="Second frame directory")
    p_merge.add_argument(
        "-t", "--opacity", type=float, default=None,
        help="Weight of the first directory, 0..1 (default: $EMP_TRANSFER_COLORS_OPACITY or 0.5)",
    )

    # gmicer
    p_gmic = sub.add_parser("gmicer", help="Apply a G'MIC filter to every frame")
    _add_io(p_gmic, "Input frame directory", "Output directory (default: <input>_gmic)")
    p_gmic.add_argument(
        "filter_args", nargs=argparse.REMAINDER,
        help="G'MIC arguments, after '--' (e.g. -- blur 3)",
    )

    # clutter
    p_clut = sub.add_parser("clutter", help="Apply a HALD color lookup table to every frame")
    _add_io(p_clut, "Input frame directory", "Output directory (default: <input>_clut)")
    p_clut.add_argument("-l", "--clut", required=True, help="HALD CLUT reference image")
    p_clut.add_argument(
        "--clut-opacity", type=float, default=None,
        help="Blend mapped frames back over the originals at this opacity",
    )
    p_clut.add_argument(
        "--clut-multiple", action="store_true", default=False,
        help="Blend back at each of $EMP_TRANSFER_COLORS_MULTIPLE_OPACITIES",
    )
    p_clut.add_argument(
        "--clut-merge", action="store_true", default=False,
        help="Blend back at the default opacity",
    )

    # clipper
    p_clip = sub.add_parser("clipper", help="Assemble a frame directory into a video")
    _add_io(p_clip, "Input frame directory", "Output video file (default: <input>.mp4)")
    p_clip.add_argument(
        "-a", "--audio", default=None,
        help="Audio file or directory (default: $FXP_VIDEOCLIPPER_AUDIO)",
    )
    p_clip.add_argument(
        "-f", "--fps", type=int, default=None,
        help="Frames per second (default: $FXP_VIDEOCLIPPER_FPS or 30)",
    )

    return parser


# ---------------------------------------------------------------------------
# Main entry point
# ---------------------------------------------------------------------------

def main(argv: list[str] | None = None, engines: Engines | None = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        return e.code if isinstance(e.code, int) else EXIT_USAGE

    if not args.command:
        parser.print_help(sys.stderr)
        return EXIT_USAGE

    configure_logging(args.verbose, args.quiet)

    try:
        cfg = COMMANDS[args.command](args)
    except ValidationError as exc:
        _print_err(f"Error: invalid arguments for {args.command}:\n{exc}")
        return EXIT_USAGE
    except ValueError as exc:
        _print_err(f"Error: {exc}")
        return EXIT_ERROR

    try:
        result = run_stage(cfg, engines or Engines.from_config())
    except VideoClipperError as exc:
        _print_err(f"Error [{exc.stage or args.command}] {args.input}: {exc}")
        return EXIT_ERROR
    except (ValueError, OSError) as exc:
        _print_err(f"Error [{args.command}] {args.input}: {exc}")
        return EXIT_ERROR
    except KeyboardInterrupt:
        _print_err(f"Interrupted: partial output of {args.command} left in place")
        return EXIT_INTERRUPTED

    _print_result(result)
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
