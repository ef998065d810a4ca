"""
gmicer: run a G'MIC filter chain over every frame of a directory.

    gmic IN_FRAME ARGS... -output OUT_FRAME

Output frames keep their input index. A failed frame does not stop the
others; failures are reported together at the end.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

import structlog

from videoclipper.engines import Engines
from videoclipper.errors import InvalidArgument
from videoclipper.filters.runner import FrameJob, run_frame_jobs
from videoclipper.frames.sequence import (
    default_output_path,
    frame_path,
    load_sequence,
    prepare_output_dir,
    require_frames,
)
from videoclipper.models import FilterSpec, FrameSequence, GmicerConfig

log = structlog.get_logger(__name__)

STAGE = "gmicer"

# Verbosity flags meant for videoclipper that must not reach gmic.
VERBOSITY_FLAGS = {"-v", "-vv", "-vvv", "-vvvv"}


def clean_filter_args(args: Sequence[str]) -> list[str]:
    """Drop a leading '--' and stray verbosity flags; at least one arg must remain."""
    cleaned = list(args)
    if cleaned and cleaned[0] == "--":
        cleaned = cleaned[1:]
    stripped = [a for a in cleaned if a in VERBOSITY_FLAGS]
    if stripped:
        log.debug("gmicer.verbosity_flags_removed", flags=stripped)
    cleaned = [a for a in cleaned if a not in VERBOSITY_FLAGS]
    if not cleaned:
        raise InvalidArgument("gmicer needs at least one filter argument", stage=STAGE)
    return cleaned


def build_gmic_command(source: str | Path, args: Sequence[str], output: str | Path) -> list[str]:
    return [str(source), *args, "-output", str(output)]


def collapse_multi_output(target: str | Path) -> int:
    """
    gmic writes frame_0001_000000.png, frame_0001_000001.png, ... instead of
    frame_0001.png when a filter leaves several images on its stack. Keep the
    first image under ``target`` and delete the rest.

    Returns:
        Number of extra images deleted.
    """
    target = Path(target)
    if target.exists():
        return 0
    images = sorted(target.parent.glob(f"{target.stem}_*{target.suffix}"))
    if not images:
        return 0
    os.replace(images[0], target)
    for extra in images[1:]:
        extra.unlink()
    return len(images) - 1


def apply_gmic(
    input_dir: str | Path,
    engines: Engines,
    args: Sequence[str],
    output_dir: str | Path | None = None,
    overwrite: bool = False,
    workers: int | None = None,
) -> FrameSequence:
    """
    Filter every frame of ``input_dir`` through gmic.

    Raises:
        InvalidArgument when no filter arguments remain after cleaning.
        FilterBatchFailed when any frame failed; other frames stay on disk.
    """
    spec = FilterSpec(engine="generic-filter", args=clean_filter_args(args))
    seq = require_frames(load_sequence(input_dir), stage=STAGE)
    out = prepare_output_dir(
        output_dir or default_output_path(input_dir, "_gmic"),
        overwrite=overwrite,
        inputs=(seq.directory,),
        stage=STAGE,
    )

    jobs = []
    for frame in seq.frames:
        target = frame_path(out, frame.index)
        jobs.append(FrameJob(frame.index, build_gmic_command(frame.path, spec.args, target), target))

    collapsed: list[int] = []

    def keep_first_image(job: FrameJob) -> None:
        if collapse_multi_output(job.output):
            collapsed.append(job.index)

    frames = run_frame_jobs(engines.filter, jobs, stage=STAGE, workers=workers, finalize=keep_first_image)

    if collapsed:
        log.warning(
            "gmicer.multiple_outputs",
            indices=sorted(collapsed),
            hint="the filter chain left several images per frame; only the first is kept",
        )

    log.info("gmicer.frames_filtered", input=str(seq.directory), output=str(out), frames=len(frames))
    return FrameSequence(directory=out, frames=frames)


def run(cfg: GmicerConfig, engines: Engines) -> FrameSequence:
    """Stage entry point for the 'gmicer' subcommand."""
    return apply_gmic(cfg.input, engines, cfg.args, output_dir=cfg.output, overwrite=cfg.overwrite)
