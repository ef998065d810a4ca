"""
Error taxonomy for the frame-sequence pipeline.

Validation errors are raised before any engine process is spawned.
EngineFailure is raised after an engine exits non-zero and keeps the
engine's own diagnostic output untouched.
"""
from __future__ import annotations

from typing import Sequence


class VideoClipperError(Exception):
    """Base error. ``stage`` names the subcommand that failed, when known."""

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        return self.message


class InputNotFound(VideoClipperError):
    """A required input path does not exist."""


class InvalidDuration(VideoClipperError):
    """Requested duration is zero or longer than the source video."""


class InvalidFrameCount(VideoClipperError):
    """Sampler asked for zero frames."""


class InvalidArgument(VideoClipperError):
    """An argument is present but unusable."""


class ResolutionMismatch(VideoClipperError):
    """Two frames paired for blending have different sizes."""


class ReferenceNotFound(VideoClipperError):
    """The color-lookup-table reference image is missing."""


class NonContiguousSequence(VideoClipperError):
    """A frame directory has gaps in its index range."""

    def __init__(self, message: str, *, missing: Sequence[int] = (), stage: str | None = None) -> None:
        super().__init__(message, stage=stage)
        self.missing = list(missing)


class EmptySequence(VideoClipperError):
    """A frame directory holds no indexed frames."""


class DuplicateFrameIndex(VideoClipperError):
    """Two files in one directory resolve to the same frame index."""


class OutputExists(VideoClipperError):
    """Output directory is non-empty and overwrite was not requested."""


class EngineFailure(VideoClipperError):
    """An external engine exited non-zero, could not be started, or wrote no output."""

    def __init__(
        self,
        engine: str,
        argv: Sequence[str],
        returncode: int,
        stderr: str = "",
        stdout: str = "",
        *,
        stage: str | None = None,
    ) -> None:
        self.engine = engine
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        diagnostic = stderr.strip() or stdout.strip() or "(no diagnostic output)"
        super().__init__(
            f"{engine} exited with status {returncode}\n{diagnostic}",
            stage=stage,
        )


class FilterBatchFailed(VideoClipperError):
    """One or more per-frame filter invocations failed."""

    def __init__(
        self,
        failures: dict[int, EngineFailure],
        total: int,
        *,
        stage: str | None = None,
    ) -> None:
        self.failures = dict(sorted(failures.items()))
        self.total = total
        lines = [
            f"{len(self.failures)} of {total} frames failed "
            f"(indices: {', '.join(str(i) for i in self.failures)})"
        ]
        for index, failure in self.failures.items():
            lines.append(f"  frame {index}: {failure.message}")
        super().__init__("\n".join(lines), stage=stage)

    @property
    def failed_indices(self) -> list[int]:
        return list(self.failures)
