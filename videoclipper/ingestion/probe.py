"""
Input intake: validate paths, read media metadata via ffprobe, resolve the
audio track and reconcile the effective clip duration.

All checks here run before any decode/encode process is spawned.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import structlog

from videoclipper.engines import Engines
from videoclipper.errors import InputNotFound, InvalidArgument, InvalidDuration
from videoclipper.models import AudioTrack, VideoInfo

log = structlog.get_logger(__name__)

AUDIO_DIR_EXTENSIONS = {".mp3"}

# Requested durations may overshoot the source by this much (ffprobe rounding).
DURATION_TOLERANCE_MS = 1

_FFPROBE_ARGS = ["-v", "quiet", "-print_format", "json", "-show_streams", "-show_format"]


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_path(path: str | Path, what: str = "Input", *, stage: str | None = None) -> Path:
    """Raise InputNotFound unless ``path`` exists. Returns it as a Path."""
    p = Path(path)
    if not p.exists():
        raise InputNotFound(f"{what} not found: {p}", stage=stage)
    return p


def validate_video_path(path: str | Path, *, stage: str | None = None) -> Path:
    p = validate_path(path, "Video file", stage=stage)
    if not p.is_file():
        raise InputNotFound(f"Video path is not a file: {p}", stage=stage)
    return p


def probe_video(path: str | Path, engines: Engines, *, stage: str | None = None) -> VideoInfo:
    """Run ffprobe on a video file and return its VideoInfo."""
    p = validate_video_path(path, stage=stage)
    info = parse_ffprobe_output(_run_ffprobe(p, engines, stage), str(p))
    log.info(
        "probe.video_metadata",
        path=str(p),
        duration_ms=info.duration_ms,
        resolution=f"{info.width}x{info.height}",
        fps=info.fps,
        codec=info.codec,
    )
    return info


def parse_ffprobe_output(data: dict[str, Any], path: str) -> VideoInfo:
    """
    Parse ffprobe JSON output dict into a VideoInfo model.
    Pure function, no I/O.
    """
    streams = data.get("streams", [])
    video_streams = [s for s in streams if s.get("codec_type") == "video"]
    if not video_streams:
        raise InvalidArgument(f"No video stream found in: {path}")

    vs = video_streams[0]
    return VideoInfo(
        path=path,
        duration_ms=parse_duration_ms(data, path),
        fps=_parse_fps(vs.get("r_frame_rate", "0/1")),
        width=int(vs.get("width", 0)),
        height=int(vs.get("height", 0)),
        codec=vs.get("codec_name", "").lower(),
    )


def parse_duration_ms(data: dict[str, Any], path: str) -> int:
    """Container duration, falling back to the first stream that reports one."""
    raw = data.get("format", {}).get("duration")
    if raw is None:
        for stream in data.get("streams", []):
            if stream.get("duration") is not None:
                raw = stream["duration"]
                break
    if raw is None:
        raise InvalidArgument(f"Cannot determine duration of: {path}")
    return int(round(float(raw) * 1000))


def resolve_audio_path(audio: str | Path | None, *, stage: str | None = None) -> Path | None:
    """
    Resolve the audio argument (falling back to FXP_VIDEOCLIPPER_AUDIO).

    A directory stands for the first .mp3 file inside it.
    """
    if audio is None:
        from videoclipper.config import config

        audio = config.AUDIO
        if audio is None:
            return None

    p = validate_path(audio, "Audio", stage=stage)
    if p.is_dir():
        candidates = sorted(
            c for c in p.iterdir() if c.is_file() and c.suffix.lower() in AUDIO_DIR_EXTENSIONS
        )
        if not candidates:
            raise InputNotFound(f"No .mp3 file found in audio directory: {p}", stage=stage)
        log.debug("probe.audio_from_directory", directory=str(p), audio=str(candidates[0]))
        return candidates[0]
    return p


def load_audio(
    audio: str | Path | None,
    engines: Engines,
    *,
    stage: str | None = None,
) -> AudioTrack | None:
    """Resolve and probe the audio track, or return None when there is none."""
    path = resolve_audio_path(audio, stage=stage)
    if path is None:
        return None
    duration_ms = parse_duration_ms(_run_ffprobe(path, engines, stage), str(path))
    log.info("probe.audio_metadata", path=str(path), duration_ms=duration_ms)
    return AudioTrack(path=path, duration_ms=duration_ms)


def resolve_duration_ms(
    explicit_ms: int | None,
    audio: AudioTrack | None,
    source_ms: int,
    *,
    stage: str | None = None,
) -> int:
    """
    Effective duration: explicit value, else the audio length, else the
    whole source. Must be positive and fit inside the source.
    """
    if explicit_ms is not None:
        duration, origin = explicit_ms, "explicit"
    elif audio is not None:
        duration, origin = audio.duration_ms, "audio"
    else:
        duration, origin = source_ms, "source"

    if duration <= 0:
        raise InvalidDuration(f"Duration must be positive, got {duration} ms ({origin})", stage=stage)
    if duration > source_ms + DURATION_TOLERANCE_MS:
        raise InvalidDuration(
            f"Duration {duration} ms ({origin}) exceeds the source video duration of {source_ms} ms",
            stage=stage,
        )
    duration = min(duration, source_ms)
    log.debug("probe.duration_resolved", duration_ms=duration, origin=origin)
    return duration


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _run_ffprobe(path: Path, engines: Engines, stage: str | None) -> dict[str, Any]:
    """Execute ffprobe and return parsed JSON output."""
    result = engines.prober.check([*_FFPROBE_ARGS, str(path)], stage=stage)
    try:
        return json.loads(result.stdout)
    except json.JSONDecodeError as exc:
        raise InvalidArgument(f"ffprobe returned unreadable output for {path}: {exc}", stage=stage) from exc


def _parse_fps(fps_str: str) -> float:
    """Parse '30/1', '60000/1001', '30' style fps strings."""
    if "/" in fps_str:
        num, den = fps_str.split("/", 1)
        den_val = float(den)
        if den_val == 0:
            return 0.0
        return float(num) / den_val
    return float(fps_str)
