"""
Frame-sequence conventions shared by every stage.

  - Frames are named frame_0001.png, frame_0002.png, ... (origin index 1)
  - Index order == lexical order == temporal order
  - Stages never modify their input directory; each writes a fresh one
  - Default output locations sit beside the input and never clobber data
"""
from __future__ import annotations

import re
import shutil
from collections.abc import Sequence
from pathlib import Path

import structlog

from videoclipper.errors import (
    DuplicateFrameIndex,
    EmptySequence,
    InputNotFound,
    InvalidArgument,
    NonContiguousSequence,
    OutputExists,
)
from videoclipper.models import (
    FRAME_EXTENSION,
    FRAME_ORIGIN,
    FRAME_PADDING,
    FRAME_PREFIX,
    Frame,
    FrameSequence,
)

log = structlog.get_logger(__name__)

IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tif", ".tiff", ".webp"}

FRAME_PATTERN = f"{FRAME_PREFIX}%0{FRAME_PADDING}d{FRAME_EXTENSION}"
"""printf-style pattern handed to ffmpeg when it writes frames."""

_INDEX_RE = re.compile(r"_(\d+)")


# ---------------------------------------------------------------------------
# Naming
# ---------------------------------------------------------------------------

def frame_filename(index: int) -> str:
    """frame_filename(7) -> 'frame_0007.png'. Wider than 4 digits when needed."""
    return f"{FRAME_PREFIX}{index:0{FRAME_PADDING}d}{FRAME_EXTENSION}"


def frame_path(directory: str | Path, index: int) -> Path:
    return Path(directory) / frame_filename(index)


def parse_frame_index(filename: str) -> int | None:
    """
    Extract the frame index: the first '_<digits>' group in the file stem.
    'image_0007.png', 'frame_7.jpg' and 'frame_0007_000000.png' all give 7.
    """
    match = _INDEX_RE.search(Path(filename).stem)
    if match is None:
        return None
    return int(match.group(1))


# ---------------------------------------------------------------------------
# Enumeration
# ---------------------------------------------------------------------------

def load_sequence(directory: str | Path, fps: float | None = None) -> FrameSequence:
    """
    Enumerate the image files of a frame directory in index order.

    Files without an index are skipped with a warning.

    Raises:
        InputNotFound if the directory does not exist.
        DuplicateFrameIndex if two files resolve to the same index.
    """
    d = Path(directory)
    if not d.is_dir():
        raise InputNotFound(f"Frame directory not found: {d}")

    by_index: dict[int, Path] = {}
    skipped: list[str] = []
    for entry in sorted(d.iterdir()):
        if not entry.is_file() or entry.suffix.lower() not in IMAGE_EXTENSIONS:
            continue
        index = parse_frame_index(entry.name)
        if index is None:
            skipped.append(entry.name)
            continue
        if index in by_index:
            raise DuplicateFrameIndex(
                f"Frame index {index} appears twice in {d}: "
                f"'{by_index[index].name}' and '{entry.name}'"
            )
        by_index[index] = entry

    if skipped:
        log.warning("sequence.unindexed_files_ignored", directory=str(d), files=skipped)

    frames = [Frame(index=i, path=by_index[i]) for i in sorted(by_index)]
    log.debug("sequence.loaded", directory=str(d), frames=len(frames))
    return FrameSequence(directory=d, frames=frames, fps=fps)


def require_frames(seq: FrameSequence, *, stage: str | None = None) -> FrameSequence:
    if seq.count == 0:
        raise EmptySequence(f"No frames found in {seq.directory}", stage=stage)
    return seq


def require_contiguous(
    seq: FrameSequence,
    origin: int = FRAME_ORIGIN,
    *,
    stage: str | None = None,
) -> FrameSequence:
    """Raise NonContiguousSequence unless indices run origin..origin+n-1."""
    if seq.is_contiguous(origin):
        return seq
    missing = seq.missing_indices(origin)
    if missing:
        shown = ", ".join(str(i) for i in missing[:20])
        if len(missing) > 20:
            shown += ", ..."
        detail = f"missing indices: {shown}"
    else:
        detail = f"first index is {seq.indices[0]}, expected {origin}"
    raise NonContiguousSequence(
        f"Frames in {seq.directory} are not contiguous from {origin} ({detail})",
        missing=missing,
        stage=stage,
    )


# ---------------------------------------------------------------------------
# Output locations
# ---------------------------------------------------------------------------

def check_output_separate(
    path: str | Path,
    inputs: Sequence[str | Path],
    *,
    stage: str | None = None,
) -> None:
    """Reject an output location that is, or contains, one of the inputs."""
    target = Path(path).resolve()
    for source in inputs:
        src = Path(source).resolve()
        if src == target or src.is_relative_to(target):
            raise InvalidArgument(
                f"Output {path} would overwrite input {source}; choose another output location",
                stage=stage,
            )


def prepare_output_dir(
    path: str | Path,
    overwrite: bool = False,
    *,
    inputs: Sequence[str | Path] = (),
    stage: str | None = None,
) -> Path:
    """
    Make sure ``path`` is an empty directory ready to receive frames.

    A missing directory is created (with parents). An existing non-empty
    directory is cleared when ``overwrite`` is set, otherwise rejected.
    ``inputs`` are never inside the directory that gets cleared.
    """
    p = Path(path)
    check_output_separate(p, inputs, stage=stage)
    if p.exists() and not p.is_dir():
        raise OutputExists(f"Output path exists and is not a directory: {p}")

    if p.is_dir() and any(p.iterdir()):
        if not overwrite:
            raise OutputExists(
                f"Output directory is not empty: {p} (pass --overwrite to replace it)"
            )
        for child in p.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        log.info("sequence.output_cleared", directory=str(p))

    p.mkdir(parents=True, exist_ok=True)
    return p


def default_output_path(source: str | Path, tag: str = "", suffix: str = "") -> Path:
    """
    Pick an output location beside ``source``.

    The base name is the source's stem (files) or name (directories) plus
    ``tag`` and ``suffix``. The first of name, name_2, name_3, ... that is
    absent (or, for directories, empty) wins.
    """
    src = Path(source).resolve()
    base = (src.stem if src.is_file() else src.name) + tag

    n = 1
    while True:
        name = base if n == 1 else f"{base}_{n}"
        candidate = src.parent / f"{name}{suffix}"
        if not candidate.exists():
            return candidate
        if not suffix and candidate.is_dir() and not any(candidate.iterdir()):
            return candidate
        n += 1
