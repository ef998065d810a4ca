"""
Directory merger: alpha-blend two frame directories pair by pair.

Frames are paired by position in index order, so two directories with
different numbering still line up. Only min(len(a), len(b)) pairs are
written; output frames keep the first directory's indices.
"""
from __future__ import annotations

from pathlib import Path

import numpy as np
import structlog

from videoclipper.errors import InvalidArgument, ResolutionMismatch, VideoClipperError
from videoclipper.frames.sequence import (
    default_output_path,
    frame_path,
    load_sequence,
    prepare_output_dir,
)
from videoclipper.models import Frame, FrameSequence, MergeSpec, MergerConfig

log = structlog.get_logger(__name__)


def opacity_label(opacity: float) -> str:
    """0.5 -> '0.5', 1.0 -> '1'. Used in default directory names."""
    return f"{opacity:g}"


def blend_images(first: np.ndarray, second: np.ndarray, opacity: float) -> np.ndarray:
    """
    out = round(opacity * first + (1 - opacity) * second), per channel.
    Both arrays must have the same shape; result is uint8.
    """
    if first.shape != second.shape:
        raise ResolutionMismatch(
            f"Cannot blend images of shape {first.shape} and {second.shape}"
        )
    mixed = opacity * first.astype(np.float64) + (1.0 - opacity) * second.astype(np.float64)
    return np.clip(np.rint(mixed), 0, 255).astype(np.uint8)


def merge_directories(
    first_dir: str | Path,
    second_dir: str | Path,
    output_dir: str | Path | None = None,
    spec: MergeSpec | None = None,
    overwrite: bool = False,
    stage: str = "merger",
) -> FrameSequence:
    """
    Blend frames of ``first_dir`` over ``second_dir`` into ``output_dir``.

    Args:
        first_dir: Frames weighted by ``spec.opacity``
        second_dir: Frames weighted by ``1 - spec.opacity``
        output_dir: Destination; defaults to '<first_dir>_merged_<opacity>'
        spec: Blend parameters (opacity already clamped to [0, 1])
        overwrite: Clear a non-empty output directory instead of failing

    Returns:
        FrameSequence of the written frames.

    Raises:
        ResolutionMismatch on the first pair whose sizes differ. Pairs
        written before the mismatch are left on disk.
    """
    import cv2

    spec = spec or MergeSpec()
    first = load_sequence(first_dir)
    second = load_sequence(second_dir)

    pairs = min(first.count, second.count)
    if first.count != second.count:
        log.warning(
            "merger.truncated",
            first=str(first.directory),
            first_count=first.count,
            second=str(second.directory),
            second_count=second.count,
            pairs=pairs,
        )

    if output_dir is None:
        output_dir = default_output_path(first_dir, f"_merged_{opacity_label(spec.opacity)}")
    out = prepare_output_dir(
        output_dir,
        overwrite=overwrite,
        inputs=(first.directory, second.directory),
        stage=stage,
    )

    written: list[Frame] = []
    resolution: tuple[int, int] | None = None
    for a, b in zip(first.frames, second.frames):
        img_a = _read_color(cv2, a.path, stage)
        img_b = _read_color(cv2, b.path, stage)
        if img_a.shape != img_b.shape:
            raise ResolutionMismatch(
                f"Frame size mismatch: {a.path} is {img_a.shape[1]}x{img_a.shape[0]}, "
                f"{b.path} is {img_b.shape[1]}x{img_b.shape[0]}",
                stage=stage,
            )
        target = frame_path(out, a.index)
        if not cv2.imwrite(str(target), blend_images(img_a, img_b, spec.opacity)):
            raise VideoClipperError(f"Failed to write blended frame: {target}", stage=stage)
        written.append(Frame(index=a.index, path=target))
        resolution = (img_a.shape[1], img_a.shape[0])

    log.info(
        "merger.frames_blended",
        output=str(out),
        frames=len(written),
        opacity=spec.opacity,
    )
    return FrameSequence(directory=out, frames=written, resolution=resolution)


def run(cfg: MergerConfig, engines=None) -> FrameSequence:
    """Stage entry point for the 'merger' subcommand."""
    return merge_directories(
        cfg.input,
        cfg.second,
        output_dir=cfg.output,
        spec=cfg.merge,
        overwrite=cfg.overwrite,
    )


def _read_color(cv2, path: Path, stage: str) -> np.ndarray:
    image = cv2.imread(str(path), cv2.IMREAD_COLOR)
    if image is None:
        raise InvalidArgument(f"Cannot read image: {path}", stage=stage)
    return image
