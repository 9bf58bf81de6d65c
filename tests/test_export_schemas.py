"""Tests for export settings and sound schemas."""

import pytest
from pydantic import ValidationError

from ffexport.schemas.export import ExportSettings, RendererResult, SegmentReport, Sound


class TestSound:
    """Tests for the Sound model."""

    def test_defaults(self):
        sound = Sound(audio="/a.wav")
        assert sound.offset == 0
        assert sound.start is None
        assert sound.end is None
        assert sound.gain is None
        assert sound.real_playback_rate == 1
        assert sound.segment_name is None

    def test_camel_case_payload(self):
        """Renderer payloads use camelCase names."""
        sound = Sound.model_validate(
            {
                "audio": "/a.wav",
                "offset": -1.5,
                "realPlaybackRate": 2,
                "sceneName": "intro",
                "sceneFirstFrame": 60,
            }
        )
        assert sound.real_playback_rate == 2
        assert sound.segment_name == "intro"
        assert sound.segment_first_frame == 60

    def test_playback_rate_must_be_positive(self):
        with pytest.raises(ValidationError):
            Sound(audio="/a.wav", real_playback_rate=0)


class TestExportSettings:
    """Tests for the ExportSettings model."""

    def test_frame_size_applies_scale(self):
        settings = ExportSettings(size={"x": 1920, "y": 1080}, resolution_scale=0.5, fps=30, duration=60)
        assert settings.frame_size == (960, 540)

    def test_duration_seconds(self):
        settings = ExportSettings(size={"x": 16, "y": 16}, fps=30, duration=45)
        assert settings.duration_seconds == 1.5

    def test_defaults(self):
        settings = ExportSettings(size={"x": 16, "y": 16}, fps=24, duration=0)
        assert settings.audio_sample_rate == 48000
        assert settings.include_audio is True
        assert settings.split_by_segment is False
        assert settings.high_quality is False

    def test_split_by_scene_alias(self):
        settings = ExportSettings.model_validate(
            {"size": {"x": 16, "y": 16}, "fps": 24, "duration": 10, "splitByScene": True}
        )
        assert settings.split_by_segment is True

    def test_rejects_zero_fps(self):
        with pytest.raises(ValidationError):
            ExportSettings(size={"x": 16, "y": 16}, fps=0, duration=10)

    def test_rejects_empty_frame(self):
        """A scale that rounds the frame down to nothing is rejected."""
        with pytest.raises(ValidationError):
            ExportSettings(size={"x": 16, "y": 16}, resolution_scale=0.01, fps=30, duration=10)

    def test_settings_are_frozen(self):
        settings = ExportSettings(size={"x": 16, "y": 16}, fps=30, duration=10)
        with pytest.raises(ValidationError):
            settings.fps = 60


class TestSegmentReport:
    def test_scene_name(self):
        assert SegmentReport.model_validate({"sceneName": "outro"}).segment_name == "outro"


class TestRendererResult:
    def test_wire_values(self):
        assert RendererResult(0) is RendererResult.SUCCESS
        assert RendererResult(1) is RendererResult.ABORTED
        assert RendererResult(2) is RendererResult.ERROR
