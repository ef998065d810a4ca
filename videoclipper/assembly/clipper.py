"""
Clip assembly: encode a contiguous frame directory (plus optional audio)
into an H.264 MP4.

  - The sequence is validated before the encoder is started
  - Clip length is count / fps, cut to the audio length when audio is shorter
  - All writes are atomic (encode to .tmp, rename to final)
"""
from __future__ import annotations

import os
from pathlib import Path

import structlog

from videoclipper.engines import Engines
from videoclipper.errors import EngineFailure, InvalidDuration, OutputExists
from videoclipper.frames.sequence import (
    default_output_path,
    load_sequence,
    require_contiguous,
    require_frames,
)
from videoclipper.ingestion.probe import load_audio, resolve_audio_path
from videoclipper.models import ClipperConfig, ClipResult

log = structlog.get_logger(__name__)

STAGE = "clipper"


def build_clip_command(
    pattern: str,
    start_number: int,
    fps: int,
    target_seconds: float,
    output: str | Path,
    audio: str | Path | None = None,
) -> list[str]:
    args = [
        "-y",
        "-framerate", str(fps),
        "-start_number", str(start_number),
        "-i", pattern,
    ]
    if audio is not None:
        args += ["-i", str(audio)]
    args += ["-c:v", "libx264", "-pix_fmt", "yuv420p"]
    if audio is not None:
        args += ["-c:a", "aac", "-map", "0:v:0", "-map", "1:a:0"]
    args += [
        "-t", f"{target_seconds:.3f}",
        "-movflags", "+faststart",
        str(output),
    ]
    return args


def assemble_clip(
    input_dir: str | Path,
    engines: Engines,
    fps: int,
    output_path: str | Path | None = None,
    audio: str | Path | None = None,
    overwrite: bool = False,
) -> ClipResult:
    """
    Encode frames of ``input_dir`` at ``fps`` into ``output_path``.

    Args:
        input_dir: Directory of frames indexed contiguously from 1
        engines: Engine bundle; decoder and prober are used
        fps: Output frame rate
        output_path: Destination video; defaults to '<input_dir>.mp4' beside it
        audio: Audio file or directory holding one
        overwrite: Replace an existing output file

    Returns:
        ClipResult describing the written video.

    Raises:
        InputNotFound, EmptySequence, NonContiguousSequence before encoding;
        EngineFailure after.
    """
    seq = load_sequence(input_dir, fps=fps)
    require_frames(seq, stage=STAGE)
    require_contiguous(seq, stage=STAGE)
    pattern, start_number = seq.ffmpeg_pattern()
    audio_path = resolve_audio_path(audio, stage=STAGE)

    out = Path(output_path) if output_path else default_output_path(input_dir, suffix=".mp4")
    if out.is_dir():
        raise OutputExists(f"Output path is a directory: {out}", stage=STAGE)
    if out.exists() and not overwrite:
        raise OutputExists(f"Output file already exists: {out} (pass --overwrite to replace it)", stage=STAGE)

    track = load_audio(audio_path, engines, stage=STAGE) if audio_path else None
    duration = seq.duration_seconds
    if track is not None:
        duration = min(duration, track.duration_seconds)
    if duration <= 0:
        raise InvalidDuration(f"Audio track {track.path} has no duration", stage=STAGE)

    out.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = out.with_name(f"{out.stem}.tmp{out.suffix}")
    args = build_clip_command(
        pattern, start_number, fps, duration, tmp_path,
        audio=track.path if track else None,
    )
    try:
        engines.decoder.check(args, stage=STAGE)
    except EngineFailure:
        tmp_path.unlink(missing_ok=True)
        log.error("clipper.encode_failed", input=str(seq.directory), output=str(out))
        raise
    os.replace(tmp_path, out)

    size_mb = out.stat().st_size / 1024 / 1024
    log.info(
        "clipper.clip_written",
        output=str(out),
        frames=seq.count,
        fps=fps,
        duration_sec=round(duration, 3),
        audio=str(track.path) if track else None,
        size_mb=round(size_mb, 1),
    )
    return ClipResult(
        path=out,
        frame_count=seq.count,
        fps=fps,
        duration_seconds=duration,
        audio=track,
    )


def run(cfg: ClipperConfig, engines: Engines) -> ClipResult:
    """Stage entry point for the 'clipper' subcommand."""
    return assemble_clip(
        cfg.input,
        engines,
        cfg.fps,
        output_path=cfg.output,
        audio=cfg.audio,
        overwrite=cfg.overwrite,
    )
