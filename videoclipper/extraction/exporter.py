"""
Exporter: decode a video into a contiguous frame directory.

Design principles:
  - One decode invocation per export; ffmpeg does the fps and scale work
  - The frame count is fixed up front: N = round(fps * seconds)
  - Whatever ffmpeg writes is reconciled to exactly N frames afterwards
"""
from __future__ import annotations

import math
import shutil
from pathlib import Path

import structlog

from videoclipper.engines import Engines
from videoclipper.errors import EngineFailure, InvalidDuration
from videoclipper.frames.sequence import (
    FRAME_PATTERN,
    default_output_path,
    frame_path,
    load_sequence,
    prepare_output_dir,
    require_contiguous,
)
from videoclipper.ingestion.probe import (
    load_audio,
    probe_video,
    resolve_audio_path,
    resolve_duration_ms,
    validate_video_path,
)
from videoclipper.models import FRAME_ORIGIN, ClipSpec, ExporterConfig, Frame, FrameSequence

log = structlog.get_logger(__name__)

STAGE = "exporter"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def expected_frame_count(fps: int, duration_ms: int) -> int:
    """N = round(fps * seconds), halves rounded up."""
    return round_half_up(fps * duration_ms / 1000.0)


def scale_resolution(width: int, height: int, pixel_limit: int | None) -> tuple[int, int] | None:
    """
    Target (width, height) under ``pixel_limit``, or None when no scaling applies.

    The larger side becomes the limit and the other keeps the aspect ratio.
    Both sides are then rounded down to even numbers (encoders need even
    dimensions), so the limit is never exceeded. Never upscales.
    """
    if pixel_limit is None or max(width, height) <= pixel_limit:
        return None
    if width >= height:
        new_w, new_h = pixel_limit, round(height * pixel_limit / width)
    else:
        new_w, new_h = round(width * pixel_limit / height), pixel_limit
    return _even(new_w), _even(new_h)


def build_export_command(
    source: str | Path,
    output_dir: str | Path,
    seconds: float,
    fps: int,
    frame_count: int,
    scale: tuple[int, int] | None = None,
) -> list[str]:
    vf = f"fps={fps}"
    if scale is not None:
        vf += f",scale={scale[0]}:{scale[1]}"
    return [
        "-y",
        "-i", str(source),
        "-t", f"{seconds:.3f}",
        "-vf", vf,
        "-frames:v", str(frame_count),
        "-start_number", str(FRAME_ORIGIN),
        str(Path(output_dir) / FRAME_PATTERN),
    ]


def reconcile_frames(output_dir: str | Path, expected: int) -> FrameSequence:
    """
    Trim or pad the decoder's output to exactly ``expected`` frames.

    Extra frames are deleted; missing trailing frames are copies of the
    last decoded frame. An empty directory is returned unchanged.
    """
    seq = require_contiguous(load_sequence(output_dir), stage=STAGE)
    if seq.count == 0:
        return seq

    frames = list(seq.frames)
    if len(frames) > expected:
        for extra in frames[expected:]:
            extra.path.unlink()
        log.debug("exporter.frames_trimmed", removed=len(frames) - expected)
        frames = frames[:expected]
    elif len(frames) < expected:
        last = frames[-1]
        for index in range(last.index + 1, FRAME_ORIGIN + expected):
            target = frame_path(output_dir, index)
            shutil.copyfile(last.path, target)
            frames.append(Frame(index=index, path=target))
        log.debug("exporter.frames_padded", added=expected - seq.count)

    return FrameSequence(directory=seq.directory, frames=frames)


def export_frames(
    source: str | Path,
    engines: Engines,
    clip: ClipSpec,
    output_dir: str | Path | None = None,
    audio: str | Path | None = None,
    overwrite: bool = False,
) -> FrameSequence:
    """
    Decode ``source`` into frame_0001.png .. frame_NNNN.png.

    Args:
        source: Input video file
        engines: Engine bundle; only decoder and prober are used
        clip: Duration, fps and pixel limit
        output_dir: Destination; defaults to '<source stem>_frames' beside it
        audio: Audio file or directory; its length caps the clip when no
            explicit duration is given
        overwrite: Clear a non-empty output directory instead of failing

    Returns:
        FrameSequence with fps, resolution and exactly N frames.

    Raises:
        InputNotFound, InvalidDuration before decoding; EngineFailure after.
    """
    src = validate_video_path(source, stage=STAGE)
    audio_path = resolve_audio_path(audio, stage=STAGE)

    info = probe_video(src, engines, stage=STAGE)
    track = load_audio(audio_path, engines, stage=STAGE) if audio_path else None
    duration_ms = resolve_duration_ms(clip.duration_ms, track, info.duration_ms, stage=STAGE)

    count = expected_frame_count(clip.fps, duration_ms)
    if count == 0:
        raise InvalidDuration(
            f"Duration {duration_ms} ms at {clip.fps} fps yields no frames",
            stage=STAGE,
        )
    scale = scale_resolution(info.width, info.height, clip.pixel_limit)
    resolution = scale or (info.width, info.height)

    inputs = (src, audio_path) if audio_path else (src,)
    out = prepare_output_dir(
        output_dir or default_output_path(src, "_frames"),
        overwrite=overwrite,
        inputs=inputs,
        stage=STAGE,
    )
    args = build_export_command(src, out, duration_ms / 1000.0, clip.fps, count, scale)
    result = engines.decoder.check(args, stage=STAGE)

    seq = reconcile_frames(out, count)
    if seq.count == 0:
        raise EngineFailure(
            engines.decoder.name,
            result.args,
            result.returncode,
            stderr=f"decoder wrote no frames to {out}\n{result.stderr}",
            stage=STAGE,
        )

    log.info(
        "exporter.frames_extracted",
        source=str(src),
        output=str(out),
        frames=seq.count,
        fps=clip.fps,
        duration_ms=duration_ms,
        resolution=f"{resolution[0]}x{resolution[1]}",
    )
    return FrameSequence(
        directory=out,
        frames=seq.frames,
        fps=float(clip.fps),
        resolution=resolution,
    )


def run(cfg: ExporterConfig, engines: Engines) -> FrameSequence:
    """Stage entry point for the 'exporter' subcommand."""
    return export_frames(
        cfg.input,
        engines,
        cfg.clip,
        output_dir=cfg.output,
        audio=cfg.audio,
        overwrite=cfg.overwrite,
    )


def _even(value: int) -> int:
    return max(2, value - value % 2)
