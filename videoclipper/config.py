"""
Central configuration for videoclipper.

There is no configuration file: every default is read from the environment
at call time, and command-line flags always win over these values.
Unset optional values resolve to None.
"""
from __future__ import annotations

import os


def _opt(key: str, default: str | None = None) -> str | None:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def _int(key: str, default: int | None) -> int | None:
    raw = _opt(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be an integer, got '{raw}'") from None


def _float(key: str, default: float) -> float:
    raw = _opt(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"Environment variable '{key}' must be a number, got '{raw}'") from None


def _float_list(key: str, default: tuple[float, ...]) -> tuple[float, ...]:
    raw = _opt(key)
    if raw is None:
        return default
    try:
        return tuple(float(part) for part in raw.split(",") if part.strip())
    except ValueError:
        raise ValueError(
            f"Environment variable '{key}' must be comma-separated numbers, got '{raw}'"
        ) from None


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_FPS = 30
"""Frames per second for exporter and clipper when neither flag nor env is set."""

DEFAULT_SAMPLING_NUMBER = 10
"""Frame count for sampler multiple mode when -n is not given."""

DEFAULT_OPACITY = 0.5
"""Blend weight of the first directory in merger and clutter blends."""

DEFAULT_MULTIPLE_OPACITIES = (0.25, 0.5, 0.75)
"""Opacities used by clutter --clut-multiple."""


class _Config:
    """
    Dynamic config accessor: reads env vars at call time.
    Usage: from videoclipper.config import config; config.FPS
    """

    @property
    def FPS(self) -> int:
        return _int("FXP_VIDEOCLIPPER_FPS", DEFAULT_FPS)

    @property
    def PIXEL_LIMIT(self) -> int | None:
        return _int("FRAME_EXPORTER_PIXEL_LIMIT", None)

    @property
    def SAMPLING_NUMBER(self) -> int:
        return _int("FRAME_EXPORTER_SAMPLING_NUMBER", DEFAULT_SAMPLING_NUMBER)

    @property
    def OPACITY(self) -> float:
        return _float("EMP_TRANSFER_COLORS_OPACITY", DEFAULT_OPACITY)

    @property
    def MULTIPLE_OPACITIES(self) -> tuple[float, ...]:
        return _float_list("EMP_TRANSFER_COLORS_MULTIPLE_OPACITIES", DEFAULT_MULTIPLE_OPACITIES)

    @property
    def AUDIO(self) -> str | None:
        """Audio file, or a directory holding one, used when -a is absent."""
        return _opt("FXP_VIDEOCLIPPER_AUDIO")

    @property
    def WORKERS(self) -> int:
        """Upper bound on concurrent per-frame filter invocations."""
        workers = _int("VIDEOCLIPPER_WORKERS", os.cpu_count() or 1)
        return max(1, workers)

    @property
    def FFMPEG_BIN(self) -> str:
        return _opt("FFMPEG_BIN", "ffmpeg")

    @property
    def FFPROBE_BIN(self) -> str:
        return _opt("FFPROBE_BIN", "ffprobe")

    @property
    def GMIC_BIN(self) -> str:
        return _opt("GMIC_BIN", "gmic")

    @property
    def MAGICK_BIN(self) -> str:
        return _opt("MAGICK_BIN", "convert")


config = _Config()
