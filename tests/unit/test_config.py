"""
Unit tests for videoclipper/config.py

Defaults come from the environment at call time; bad values fail loudly.
"""
import pytest


@pytest.mark.unit
class TestDefaults:
    def test_unset_env_uses_builtin_defaults(self):
        from videoclipper.config import config
        assert config.FPS == 30
        assert config.PIXEL_LIMIT is None
        assert config.SAMPLING_NUMBER == 10
        assert config.OPACITY == 0.5
        assert config.MULTIPLE_OPACITIES == (0.25, 0.5, 0.75)
        assert config.AUDIO is None
        assert config.WORKERS >= 1

    def test_engine_binaries_default_to_path_lookup(self):
        from videoclipper.config import config
        assert config.FFMPEG_BIN == "ffmpeg"
        assert config.FFPROBE_BIN == "ffprobe"
        assert config.GMIC_BIN == "gmic"
        assert config.MAGICK_BIN == "convert"


@pytest.mark.unit
class TestEnvOverrides:
    def test_values_read_at_call_time(self, monkeypatch):
        from videoclipper.config import config
        assert config.FPS == 30
        monkeypatch.setenv("FXP_VIDEOCLIPPER_FPS", "24")
        assert config.FPS == 24

    def test_pixel_limit_and_sampling_number(self, monkeypatch):
        from videoclipper.config import config
        monkeypatch.setenv("FRAME_EXPORTER_PIXEL_LIMIT", "640")
        monkeypatch.setenv("FRAME_EXPORTER_SAMPLING_NUMBER", "4")
        assert config.PIXEL_LIMIT == 640
        assert config.SAMPLING_NUMBER == 4

    def test_multiple_opacities_parsed_from_csv(self, monkeypatch):
        from videoclipper.config import config
        monkeypatch.setenv("EMP_TRANSFER_COLORS_MULTIPLE_OPACITIES", "0.1, 0.9,")
        assert config.MULTIPLE_OPACITIES == (0.1, 0.9)

    def test_blank_value_treated_as_unset(self, monkeypatch):
        from videoclipper.config import config
        monkeypatch.setenv("FXP_VIDEOCLIPPER_AUDIO", "   ")
        assert config.AUDIO is None

    def test_workers_never_below_one(self, monkeypatch):
        from videoclipper.config import config
        monkeypatch.setenv("VIDEOCLIPPER_WORKERS", "0")
        assert config.WORKERS == 1

    def test_non_integer_fps_raises(self, monkeypatch):
        from videoclipper.config import config
        monkeypatch.setenv("FXP_VIDEOCLIPPER_FPS", "thirty")
        with pytest.raises(ValueError, match="FXP_VIDEOCLIPPER_FPS"):
            _ = config.FPS

    def test_bad_opacity_list_raises(self, monkeypatch):
        from videoclipper.config import config
        monkeypatch.setenv("EMP_TRANSFER_COLORS_MULTIPLE_OPACITIES", "0.2,high")
        with pytest.raises(ValueError, match="comma-separated"):
            _ = config.MULTIPLE_OPACITIES
