"""
clutter: remap frame colors through a HALD color-lookup-table image.

    convert IN_FRAME REFERENCE -hald-clut OUT_FRAME

Optionally blends the remapped frames back over the originals, once per
requested opacity, each blend into its own '<clut_dir>_merged_<opacity>'.
"""
from __future__ import annotations

from pathlib import Path
from typing import Sequence

import structlog

from videoclipper.engines import Engines
from videoclipper.errors import ReferenceNotFound
from videoclipper.filters.runner import FrameJob, run_frame_jobs
from videoclipper.frames.merger import merge_directories
from videoclipper.frames.sequence import (
    default_output_path,
    frame_path,
    load_sequence,
    prepare_output_dir,
    require_frames,
)
from videoclipper.models import ClutterConfig, FilterSpec, FrameSequence, MergeSpec

log = structlog.get_logger(__name__)

STAGE = "clutter"


def select_blend_opacities(
    opacity: float | None = None,
    multiple: bool = False,
    merge: bool = False,
) -> list[float]:
    """
    Map the blend-back flags to the opacities to blend at.

    --clut-opacity wins over --clut-multiple, which wins over --clut-merge.
    No flag means no blending.
    """
    from videoclipper.config import config

    if opacity is not None:
        if multiple:
            log.warning("clutter.multiple_ignored", opacity=opacity, reason="--clut-opacity takes priority")
        return [opacity]
    if multiple:
        return list(config.MULTIPLE_OPACITIES)
    if merge:
        return [config.OPACITY]
    return []


def build_clut_command(source: str | Path, reference: str | Path, output: str | Path) -> list[str]:
    return [str(source), str(reference), "-hald-clut", str(output)]


def apply_clut(
    input_dir: str | Path,
    engines: Engines,
    reference: str | Path,
    output_dir: str | Path | None = None,
    overwrite: bool = False,
    blend_opacities: Sequence[float] = (),
    workers: int | None = None,
) -> FrameSequence:
    """
    Color-map every frame of ``input_dir`` through ``reference``.

    Raises:
        ReferenceNotFound before any engine runs if the CLUT image is missing.
        FilterBatchFailed when any frame failed; other frames stay on disk.
    """
    ref = Path(reference)
    if not ref.is_file():
        raise ReferenceNotFound(f"CLUT reference image not found: {ref}", stage=STAGE)
    spec = FilterSpec(engine="color-lookup-table", reference_image=ref)

    seq = require_frames(load_sequence(input_dir), stage=STAGE)
    out = prepare_output_dir(
        output_dir or default_output_path(input_dir, "_clut"),
        overwrite=overwrite,
        inputs=(seq.directory, ref),
        stage=STAGE,
    )

    jobs = []
    for frame in seq.frames:
        target = frame_path(out, frame.index)
        jobs.append(FrameJob(frame.index, build_clut_command(frame.path, spec.reference_image, target), target))

    frames = run_frame_jobs(engines.clut, jobs, stage=STAGE, workers=workers)
    log.info(
        "clutter.frames_mapped",
        input=str(seq.directory),
        output=str(out),
        reference=str(ref),
        frames=len(frames),
    )
    result = FrameSequence(directory=out, frames=frames)

    for opacity in blend_opacities:
        blended = merge_directories(out, seq.directory, spec=MergeSpec(opacity=opacity), stage=STAGE)
        log.info("clutter.blended", opacity=opacity, output=str(blended.directory))

    return result


def run(cfg: ClutterConfig, engines: Engines) -> FrameSequence:
    """Stage entry point for the 'clutter' subcommand."""
    return apply_clut(
        cfg.input,
        engines,
        cfg.clut,
        output_dir=cfg.output,
        overwrite=cfg.overwrite,
        blend_opacities=cfg.blend_opacities,
    )
