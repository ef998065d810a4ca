"""
Unit tests for videoclipper/assembly/clipper.py

Tests ffmpeg command construction, pre-encode validation and the atomic
rename. The encoder is a fake engine that writes a placeholder file.
"""
from pathlib import Path

import pytest

from tests.conftest import make_frames


@pytest.mark.unit
class TestCommand:
    def test_video_only(self):
        from videoclipper.assembly.clipper import build_clip_command
        cmd = build_clip_command("d/frame_%04d.png", 1, 24, 2.5, "out.tmp.mp4")
        assert cmd[cmd.index("-framerate") + 1] == "24"
        assert cmd[cmd.index("-start_number") + 1] == "1"
        assert cmd[cmd.index("-c:v") + 1] == "libx264"
        assert cmd[cmd.index("-pix_fmt") + 1] == "yuv420p"
        assert cmd[cmd.index("-t") + 1] == "2.500"
        assert "-c:a" not in cmd
        assert cmd.count("-i") == 1
        assert cmd[-1] == "out.tmp.mp4"

    def test_with_audio_maps_both_streams(self):
        from videoclipper.assembly.clipper import build_clip_command
        cmd = build_clip_command("d/frame_%04d.png", 1, 30, 4.0, "out.tmp.mp4", audio="a.mp3")
        assert cmd.count("-i") == 2
        assert cmd[cmd.index("-c:a") + 1] == "aac"
        maps = [cmd[i + 1] for i, a in enumerate(cmd) if a == "-map"]
        assert maps == ["0:v:0", "1:a:0"]

    def test_framerate_precedes_input(self):
        from videoclipper.assembly.clipper import build_clip_command
        cmd = build_clip_command("p", 1, 30, 1.0, "o.mp4")
        assert cmd.index("-framerate") < cmd.index("-i")


@pytest.mark.unit
class TestAssembleClip:
    def test_frames_to_clip(self, frames_dir: Path, fake_engines, tmp_path: Path):
        from videoclipper.assembly.clipper import assemble_clip
        out = tmp_path / "clips" / "shot.mp4"

        result = assemble_clip(frames_dir, fake_engines, fps=25, output_path=out)

        assert result.path == out
        assert out.exists()
        assert not (tmp_path / "clips" / "shot.tmp.mp4").exists()
        assert result.frame_count == 5
        assert result.duration_seconds == pytest.approx(0.2)
        assert result.audio is None
        cmd = fake_engines.decoder.calls[0]
        assert cmd[cmd.index("-i") + 1] == str(frames_dir / "frame_%04d.png")
        assert cmd[-1].endswith("shot.tmp.mp4")

    def test_default_output_name(self, frames_dir: Path, fake_engines):
        from videoclipper.assembly.clipper import assemble_clip
        result = assemble_clip(frames_dir, fake_engines, fps=30)
        assert result.path.name == "shots.mp4"

    def test_audio_shorter_than_frames_sets_duration(self, tmp_path: Path, source_audio: Path, fake_engines):
        from videoclipper.assembly.clipper import assemble_clip
        frames = make_frames(tmp_path / "long", 150)
        result = assemble_clip(frames, fake_engines, fps=30, audio=source_audio)
        assert result.duration_seconds == pytest.approx(4.0)
        assert result.audio.path == source_audio
        cmd = fake_engines.decoder.calls[0]
        assert cmd[cmd.index("-t") + 1] == "4.000"

    def test_audio_longer_than_frames_keeps_frame_duration(self, frames_dir: Path, source_audio: Path, fake_engines):
        from videoclipper.assembly.clipper import assemble_clip
        result = assemble_clip(frames_dir, fake_engines, fps=5, audio=source_audio.parent)
        assert result.duration_seconds == pytest.approx(1.0)

    def test_audio_from_env(self, frames_dir: Path, source_audio: Path, fake_engines, monkeypatch):
        from videoclipper.assembly.clipper import assemble_clip
        monkeypatch.setenv("FXP_VIDEOCLIPPER_AUDIO", str(source_audio))
        result = assemble_clip(frames_dir, fake_engines, fps=30)
        assert result.audio is not None

    def test_gap_rejected_before_spawn(self, tmp_path: Path, fake_engines):
        from videoclipper.assembly.clipper import assemble_clip
        from videoclipper.errors import NonContiguousSequence
        d = make_frames(tmp_path / "gappy", 3)
        (d / "frame_0002.png").unlink()
        with pytest.raises(NonContiguousSequence) as exc_info:
            assemble_clip(d, fake_engines, fps=30)
        assert exc_info.value.missing == [2]
        assert fake_engines.decoder.calls == []

    def test_empty_directory_rejected(self, tmp_path: Path, fake_engines):
        from videoclipper.assembly.clipper import assemble_clip
        from videoclipper.errors import EmptySequence
        (tmp_path / "empty").mkdir()
        with pytest.raises(EmptySequence):
            assemble_clip(tmp_path / "empty", fake_engines, fps=30)
        assert fake_engines.decoder.calls == []

    def test_existing_output_needs_overwrite(self, frames_dir: Path, fake_engines, tmp_path: Path):
        from videoclipper.assembly.clipper import assemble_clip
        from videoclipper.errors import OutputExists
        out = tmp_path / "shot.mp4"
        out.write_bytes(b"old")
        with pytest.raises(OutputExists):
            assemble_clip(frames_dir, fake_engines, fps=30, output_path=out)
        assemble_clip(frames_dir, fake_engines, fps=30, output_path=out, overwrite=True)
        assert out.read_bytes() != b"old"

    def test_encoder_failure_cleans_temp(self, frames_dir: Path, fake_engines, tmp_path: Path):
        from videoclipper.assembly.clipper import assemble_clip
        from videoclipper.errors import EngineFailure

        def fail(args):
            Path(args[-1]).write_bytes(b"partial")
            return 1, "", "Unknown encoder 'libx264'"

        fake_engines.decoder.handler = fail
        out = tmp_path / "shot.mp4"
        with pytest.raises(EngineFailure, match="libx264"):
            assemble_clip(frames_dir, fake_engines, fps=30, output_path=out)
        assert not out.exists()
        assert not (tmp_path / "shot.tmp.mp4").exists()
