"""
Shared pytest fixtures for all test levels.
Uses only synthetic data: tiny generated PNG frames and fake engines that
write the files a real engine would write.
"""
import json
import shutil
import subprocess
import threading
from pathlib import Path
from typing import Callable

import numpy as np
import pytest
import structlog

from videoclipper.engines import Engine, EngineResult, Engines


# ---------------------------------------------------------------------------
# Environment setup: keep the developer's env out of the defaults
# ---------------------------------------------------------------------------
ENV_VARS = [
    "FXP_VIDEOCLIPPER_FPS",
    "FRAME_EXPORTER_PIXEL_LIMIT",
    "FRAME_EXPORTER_SAMPLING_NUMBER",
    "EMP_TRANSFER_COLORS_OPACITY",
    "EMP_TRANSFER_COLORS_MULTIPLE_OPACITIES",
    "FXP_VIDEOCLIPPER_AUDIO",
    "VIDEOCLIPPER_WORKERS",
    "FFMPEG_BIN",
    "FFPROBE_BIN",
    "GMIC_BIN",
    "MAGICK_BIN",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for key in ENV_VARS:
        monkeypatch.delenv(key, raising=False)
    yield


@pytest.fixture(autouse=True)
def reset_logging():
    # cli.main() binds structlog to the (captured) stderr of the running test
    yield
    structlog.reset_defaults()


# ---------------------------------------------------------------------------
# Frame helpers
# ---------------------------------------------------------------------------

def write_frame(path: Path, color=(0, 128, 255), size=(8, 6)) -> Path:
    """Write a solid-color BGR PNG of size (width, height)."""
    import cv2

    width, height = size
    image = np.zeros((height, width, 3), dtype=np.uint8)
    image[:, :] = color
    path.parent.mkdir(parents=True, exist_ok=True)
    assert cv2.imwrite(str(path), image)
    return path


def make_frames(
    directory: Path,
    count: int,
    start: int = 1,
    color=(0, 128, 255),
    size=(8, 6),
    name: str = "frame_{:04d}.png",
) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    for i in range(start, start + count):
        write_frame(directory / name.format(i), color=color, size=size)
    return directory


def make_ffprobe_json(
    duration: float | None = 10.0,
    width: int = 1280,
    height: int = 720,
    fps_str: str = "30/1",
    codec: str = "h264",
    video: bool = True,
) -> str:
    """Build fake ffprobe JSON output."""
    streams = []
    if video:
        streams.append({
            "codec_type": "video",
            "codec_name": codec,
            "width": width,
            "height": height,
            "r_frame_rate": fps_str,
        })
    streams.append({"codec_type": "audio", "codec_name": "aac"})
    fmt = {"filename": "input.mp4"}
    if duration is not None:
        fmt["duration"] = str(duration)
    return json.dumps({"streams": streams, "format": fmt})


# ---------------------------------------------------------------------------
# Fake engines
# ---------------------------------------------------------------------------
Handler = Callable[[list[str]], "tuple[int, str, str] | None"]


class FakeEngine(Engine):
    """Records every argument list; ``handler`` produces side effects and output."""

    def __init__(self, name: str, handler: Handler | None = None) -> None:
        super().__init__(name)
        self.handler = handler
        self.calls: list[list[str]] = []
        self._lock = threading.Lock()

    def run(self, args) -> EngineResult:
        args = [str(a) for a in args]
        with self._lock:
            self.calls.append(args)
        outcome = self.handler(args) if self.handler else None
        returncode, stdout, stderr = outcome or (0, "", "")
        return EngineResult(
            engine=self.name,
            args=(self.name, *args),
            returncode=returncode,
            stdout=stdout,
            stderr=stderr,
        )


def probe_handler(media: dict[str, str]) -> Handler:
    """ffprobe stand-in: answers with the JSON registered for the probed path."""

    def handle(args: list[str]):
        target = str(Path(args[-1]))
        if target not in media:
            return 1, "", f"{target}: No such file or directory"
        return 0, media[target], ""

    return handle


def ffmpeg_handler(frames_written: int | None = None, size=(8, 6)) -> Handler:
    """
    ffmpeg stand-in. A '%04d' output gets image frames (as many as -frames:v
    asks for, or ``frames_written``); any other output gets one file.
    """

    def handle(args: list[str]):
        output = args[-1]
        if "%04d" in output:
            count = frames_written
            if count is None:
                count = int(args[args.index("-frames:v") + 1])
            for i in range(1, count + 1):
                write_frame(Path(output.replace("%04d", f"{i:04d}")), size=size)
        elif output.endswith(".png"):
            write_frame(Path(output), size=size)
        else:
            Path(output).parent.mkdir(parents=True, exist_ok=True)
            Path(output).write_bytes(b"\x00" * 2048)
        return None

    return handle


def copy_handler(source_pos: int, output_pos: int, fail_on: Callable[[str], bool] | None = None) -> Handler:
    """Per-frame filter stand-in: copies the input frame to the output path."""

    def handle(args: list[str]):
        source, output = args[source_pos], args[output_pos]
        if fail_on is not None and fail_on(source):
            return 1, "", f"cannot process {Path(source).name}"
        shutil.copyfile(source, output)
        return None

    return handle


@pytest.fixture
def media() -> dict[str, str]:
    """Path -> ffprobe JSON registry read by the fake prober."""
    return {}


@pytest.fixture
def fake_engines(media: dict[str, str]) -> Engines:
    return Engines(
        decoder=FakeEngine("ffmpeg", ffmpeg_handler()),
        prober=FakeEngine("ffprobe", probe_handler(media)),
        filter=FakeEngine("gmic", copy_handler(0, -1)),
        clut=FakeEngine("convert", copy_handler(0, -1)),
    )


@pytest.fixture
def source_video(tmp_path: Path, media: dict[str, str]) -> Path:
    """A placeholder 10 s 1280x720 video registered with the fake prober."""
    path = tmp_path / "match.mp4"
    path.write_bytes(b"\x00" * 1024)
    media[str(path)] = make_ffprobe_json(duration=10.0, width=1280, height=720)
    return path


@pytest.fixture
def source_audio(tmp_path: Path, media: dict[str, str]) -> Path:
    """A placeholder 4 s mp3 registered with the fake prober."""
    path = tmp_path / "music" / "track.mp3"
    path.parent.mkdir()
    path.write_bytes(b"\x00" * 512)
    media[str(path)] = json.dumps({
        "streams": [{"codec_type": "audio", "codec_name": "mp3", "duration": "4.0"}],
        "format": {"duration": "4.000000"},
    })
    return path


@pytest.fixture
def frames_dir(tmp_path: Path) -> Path:
    """Five contiguous 8x6 frames."""
    return make_frames(tmp_path / "shots", 5)


# ---------------------------------------------------------------------------
# Real binaries (integration tests)
# ---------------------------------------------------------------------------

def have_binary(name: str) -> bool:
    return shutil.which(name) is not None


def make_synthetic_video(width: int, height: int, fps: int, duration: float, output_path: Path) -> Path:
    """Generate a synthetic test-pattern video with a sine audio track."""
    cmd = [
        "ffmpeg", "-y",
        "-f", "lavfi",
        "-i", f"testsrc=size={width}x{height}:rate={fps}",
        "-f", "lavfi",
        "-i", "sine=frequency=440:sample_rate=48000",
        "-t", str(duration),
        "-c:v", "libx264", "-pix_fmt", "yuv420p", "-preset", "ultrafast",
        "-c:a", "aac", "-b:a", "64k",
        str(output_path),
    ]
    result = subprocess.run(cmd, capture_output=True)
    if result.returncode != 0:
        raise RuntimeError(f"FFmpeg failed: {result.stderr.decode()}")
    return output_path
