"""
External engines behind one narrow interface.

Every external tool (ffmpeg, ffprobe, gmic, ImageMagick) is driven through
``Engine.run(args)``, which returns the exit status and captured output.
Pipeline code never calls subprocess directly, so tests can substitute an
engine that records calls instead of spawning processes.
"""
from __future__ import annotations

import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Sequence

import structlog

from videoclipper.errors import EngineFailure

log = structlog.get_logger(__name__)

# Shell-style exit statuses for an engine binary that cannot be started.
NOT_FOUND_STATUS = 127
NOT_EXECUTABLE_STATUS = 126


@dataclass(frozen=True)
class EngineResult:
    """Outcome of one engine invocation."""

    engine: str
    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class Engine(ABC):
    """An external process accepting an argument list."""

    def __init__(self, name: str) -> None:
        self.name = name

    @abstractmethod
    def run(self, args: Sequence[str]) -> EngineResult:
        """Invoke the engine once and return its exit status and output."""
        ...

    def check(self, args: Sequence[str], *, stage: str | None = None) -> EngineResult:
        """Run and raise EngineFailure on a non-zero exit."""
        result = self.run(args)
        if not result.ok:
            log.debug(
                "engine.failed",
                engine=self.name,
                returncode=result.returncode,
                error=result.stderr[:300],
            )
            raise EngineFailure(
                self.name,
                result.args,
                result.returncode,
                stderr=result.stderr,
                stdout=result.stdout,
                stage=stage,
            )
        return result


class SubprocessEngine(Engine):
    """Runs ``binary *args`` and captures text output."""

    def __init__(self, name: str, binary: str) -> None:
        super().__init__(name)
        self.binary = binary

    def run(self, args: Sequence[str]) -> EngineResult:
        cmd = [self.binary, *[str(a) for a in args]]
        log.debug("engine.run", engine=self.name, cmd=" ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True)
        except FileNotFoundError:
            return EngineResult(
                engine=self.name,
                args=tuple(cmd),
                returncode=NOT_FOUND_STATUS,
                stderr=f"{self.binary}: command not found",
            )
        except OSError as exc:
            return EngineResult(
                engine=self.name,
                args=tuple(cmd),
                returncode=NOT_EXECUTABLE_STATUS,
                stderr=f"{self.binary}: {exc}",
            )
        return EngineResult(
            engine=self.name,
            args=tuple(cmd),
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )


@dataclass(frozen=True)
class Engines:
    """The set of engines one pipeline run talks to."""

    decoder: Engine
    prober: Engine
    filter: Engine
    clut: Engine

    @classmethod
    def from_config(cls) -> "Engines":
        from videoclipper.config import config

        return cls(
            decoder=SubprocessEngine("ffmpeg", config.FFMPEG_BIN),
            prober=SubprocessEngine("ffprobe", config.FFPROBE_BIN),
            filter=SubprocessEngine("gmic", config.GMIC_BIN),
            clut=SubprocessEngine("convert", config.MAGICK_BIN),
        )
