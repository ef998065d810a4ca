"""
Data models for the frame-sequence pipeline.
These are the canonical FrameSequence and per-stage config types used
throughout the package. Every instance lives for one command invocation.
"""
from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

from videoclipper.errors import InvalidArgument

FRAME_ORIGIN = 1
"""Index of the first frame every producer writes."""

FRAME_PREFIX = "frame_"
FRAME_EXTENSION = ".png"
FRAME_PADDING = 4

_NAME_PARTS = re.compile(r"^(?P<prefix>.*?_)(?P<digits>\d+)(?P<suffix>\.[^.]+)$")


class Frame(BaseModel):
    index: int = Field(ge=0)
    path: Path


class FrameSequence(BaseModel):
    """An indexed, ordered set of frame files in one directory."""

    directory: Path
    frames: list[Frame] = Field(default_factory=list)
    fps: Optional[float] = None
    resolution: Optional[tuple[int, int]] = None   # (width, height)

    @property
    def count(self) -> int:
        return len(self.frames)

    @property
    def indices(self) -> list[int]:
        return [f.index for f in self.frames]

    def missing_indices(self, origin: int = FRAME_ORIGIN) -> list[int]:
        present = set(self.indices)
        if not present:
            return []
        return [i for i in range(origin, max(present) + 1) if i not in present]

    def is_contiguous(self, origin: int = FRAME_ORIGIN) -> bool:
        return self.indices == list(range(origin, origin + self.count))

    @property
    def duration_seconds(self) -> float:
        if not self.fps:
            raise ValueError("FrameSequence has no fps; duration is undefined")
        return self.count / self.fps

    def ffmpeg_pattern(self) -> tuple[str, int]:
        """
        Return (printf-style input pattern, start number) for the encoder.
        All frames must share one prefix, padding width and extension.
        """
        if not self.frames:
            raise InvalidArgument(f"No frames in {self.directory}")
        first = self.frames[0]
        match = _NAME_PARTS.match(first.path.name)
        if match is None:
            raise InvalidArgument(f"Cannot derive a frame pattern from '{first.path.name}'")
        prefix, suffix = match["prefix"], match["suffix"]
        width = len(match["digits"])
        for frame in self.frames:
            expected = f"{prefix}{frame.index:0{width}d}{suffix}"
            if frame.path.name != expected:
                raise InvalidArgument(
                    f"Frame names in {self.directory} are not uniform: "
                    f"'{frame.path.name}' does not match '{expected}'"
                )
        pattern = f"{prefix.replace('%', '%%')}%0{width}d{suffix}"
        return str(self.directory / pattern), first.index


class VideoInfo(BaseModel):
    path: str
    duration_ms: int
    fps: float
    width: int
    height: int
    codec: str


class AudioTrack(BaseModel):
    path: Path
    duration_ms: int = Field(ge=0)

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000.0


class ClipSpec(BaseModel):
    """Governs how much of a video becomes frames, and at what rate and size."""

    duration_ms: Optional[int] = Field(default=None, ge=0)
    fps: int = Field(gt=0)
    pixel_limit: Optional[int] = Field(default=None, gt=0)


class MergeSpec(BaseModel):
    opacity: float = 0.5

    @field_validator("opacity")
    @classmethod
    def _clamp(cls, value: float) -> float:
        return min(1.0, max(0.0, value))


class FilterSpec(BaseModel):
    engine: Literal["generic-filter", "color-lookup-table"]
    args: list[str] = Field(default_factory=list)
    reference_image: Optional[Path] = None

    @model_validator(mode="after")
    def _check_reference(self) -> "FilterSpec":
        if self.engine == "color-lookup-table" and self.reference_image is None:
            raise ValueError("color-lookup-table filter requires a reference image")
        if self.engine == "generic-filter" and self.reference_image is not None:
            raise ValueError("generic-filter does not take a reference image")
        return self


# ---------------------------------------------------------------------------
# Per-subcommand configuration (one tagged variant per stage)
# ---------------------------------------------------------------------------

class _StageConfig(BaseModel):
    input: Path
    output: Optional[Path] = None
    overwrite: bool = False


class ExporterConfig(_StageConfig):
    stage: Literal["exporter"] = "exporter"
    clip: ClipSpec
    audio: Optional[Path] = None


class SamplerConfig(_StageConfig):
    stage: Literal["sampler"] = "sampler"
    multiple: bool = False
    number: Optional[int] = Field(default=None, ge=0)
    duration_ms: Optional[int] = Field(default=None, ge=0)
    audio: Optional[Path] = None


class MergerConfig(_StageConfig):
    stage: Literal["merger"] = "merger"
    second: Path
    merge: MergeSpec = Field(default_factory=MergeSpec)


class GmicerConfig(_StageConfig):
    stage: Literal["gmicer"] = "gmicer"
    args: list[str] = Field(default_factory=list)


class ClutterConfig(_StageConfig):
    stage: Literal["clutter"] = "clutter"
    clut: Path
    blend_opacities: list[float] = Field(default_factory=list)


class ClipperConfig(_StageConfig):
    stage: Literal["clipper"] = "clipper"
    fps: int = Field(gt=0)
    audio: Optional[Path] = None


StageConfig = Annotated[
    Union[ExporterConfig, SamplerConfig, MergerConfig, GmicerConfig, ClutterConfig, ClipperConfig],
    Field(discriminator="stage"),
]


class ClipResult(BaseModel):
    path: Path
    frame_count: int
    fps: int
    duration_seconds: float
    audio: Optional[AudioTrack] = None
