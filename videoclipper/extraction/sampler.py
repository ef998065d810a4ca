"""
Sampler: pull a handful of representative stills from a video.

Single mode grabs the middle frame. Multiple mode grabs N frames at
t_k = k * duration / N (k = 0..N-1), one seek-and-decode per frame.
"""
from __future__ import annotations

from pathlib import Path

import structlog

from videoclipper.engines import Engines
from videoclipper.errors import EngineFailure, InvalidFrameCount
from videoclipper.frames.sequence import default_output_path, frame_path, prepare_output_dir
from videoclipper.ingestion.probe import (
    load_audio,
    probe_video,
    resolve_audio_path,
    resolve_duration_ms,
    validate_video_path,
)
from videoclipper.models import FRAME_ORIGIN, Frame, FrameSequence, SamplerConfig

log = structlog.get_logger(__name__)

STAGE = "sampler"


def sample_timestamps(duration_ms: int, count: int) -> list[float]:
    """Evenly spaced timestamps in seconds; start inclusive, end exclusive."""
    if count <= 0:
        raise InvalidFrameCount(f"Sample count must be at least 1, got {count}", stage=STAGE)
    seconds = duration_ms / 1000.0
    return [k * seconds / count for k in range(count)]


def build_sample_command(source: str | Path, timestamp: float, output: str | Path) -> list[str]:
    return [
        "-y",
        "-ss", f"{timestamp:.3f}",
        "-i", str(source),
        "-frames:v", "1",
        str(output),
    ]


def sample_frames(
    source: str | Path,
    engines: Engines,
    output_dir: str | Path | None = None,
    multiple: bool = False,
    number: int | None = None,
    duration_ms: int | None = None,
    audio: str | Path | None = None,
    overwrite: bool = False,
) -> FrameSequence:
    """
    Write sampled frames as frame_0001.png ... into ``output_dir``.

    Returns:
        FrameSequence with exactly 1 (single mode) or N (multiple mode) frames.
    """
    if multiple:
        if number is None:
            from videoclipper.config import config

            number = config.SAMPLING_NUMBER
        if number <= 0:
            raise InvalidFrameCount(f"Sample count must be at least 1, got {number}", stage=STAGE)
    elif number is not None:
        log.warning("sampler.number_ignored", number=number, reason="single mode; pass -u for multiple")

    src = validate_video_path(source, stage=STAGE)
    audio_path = resolve_audio_path(audio, stage=STAGE)

    info = probe_video(src, engines, stage=STAGE)
    track = load_audio(audio_path, engines, stage=STAGE) if audio_path else None
    effective_ms = resolve_duration_ms(duration_ms, track, info.duration_ms, stage=STAGE)

    if multiple:
        timestamps = sample_timestamps(effective_ms, number)
    else:
        timestamps = [effective_ms / 2000.0]

    inputs = (src, audio_path) if audio_path else (src,)
    out = prepare_output_dir(
        output_dir or default_output_path(src, "_samples"),
        overwrite=overwrite,
        inputs=inputs,
        stage=STAGE,
    )

    frames: list[Frame] = []
    for offset, ts in enumerate(timestamps):
        index = FRAME_ORIGIN + offset
        target = frame_path(out, index)
        result = engines.decoder.check(build_sample_command(src, ts, target), stage=STAGE)
        if not target.is_file():
            raise EngineFailure(
                engines.decoder.name,
                result.args,
                result.returncode,
                stderr=f"decoder wrote no image to {target}\n{result.stderr}",
                stage=STAGE,
            )
        frames.append(Frame(index=index, path=target))
        log.debug("sampler.frame_written", index=index, timestamp=round(ts, 3))

    log.info(
        "sampler.frames_sampled",
        source=str(src),
        output=str(out),
        frames=len(frames),
        mode="multiple" if multiple else "single",
        duration_ms=effective_ms,
    )
    return FrameSequence(directory=out, frames=frames, resolution=(info.width, info.height))


def run(cfg: SamplerConfig, engines: Engines) -> FrameSequence:
    """Stage entry point for the 'sampler' subcommand."""
    return sample_frames(
        cfg.input,
        engines,
        output_dir=cfg.output,
        multiple=cfg.multiple,
        number=cfg.number,
        duration_ms=cfg.duration_ms,
        audio=cfg.audio,
        overwrite=cfg.overwrite,
    )
