"""Export run schemas.

Wire names follow the renderer's camelCase payloads; attributes are
snake_case. Both spellings are accepted on input.
"""

from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class RendererResult(IntEnum):
    """Outcome reported by the render loop when it stops producing frames."""

    SUCCESS = 0
    ABORTED = 1
    ERROR = 2


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Vector2(_WireModel):
    x: float
    y: float


class Sound(_WireModel):
    """One audio source placed on the timeline."""

    audio: str = Field(description="Project-root relative reference, e.g. /audio/voice.wav")
    offset: float = Field(default=0.0, description="Seconds from segment start to the sound's zero point")
    start: float | None = Field(default=None, description="Trim start in the source (seconds)")
    end: float | None = Field(default=None, description="Trim end in the source (seconds)")
    gain: float | None = Field(default=None, description="Gain in dB")
    real_playback_rate: float = Field(default=1.0, gt=0)

    segment_name: str | None = Field(default=None, alias="sceneName")
    segment_first_frame: int | None = Field(default=None, alias="sceneFirstFrame")


class ExportSettings(_WireModel):
    """Immutable settings for one export run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str = "project"
    size: Vector2
    resolution_scale: float = Field(default=1.0, gt=0)
    fps: int = Field(gt=0)
    duration: int = Field(ge=0, description="Duration in frames")

    sounds: list[Sound] = Field(default_factory=list)
    audio: str | None = None
    audio_offset: float | None = None

    include_audio: bool = True
    fast_start: bool = True
    split_by_segment: bool = Field(default=False, alias="splitByScene")
    high_quality: bool = False
    audio_sample_rate: int = Field(default=48000, gt=0)

    output_dir: str = "output"
    project_root: str = "."

    @model_validator(mode="after")
    def check_frame_size(self) -> "ExportSettings":
        width, height = self.frame_size
        if width <= 0 or height <= 0:
            raise ValueError(f"Frame size must be positive, got {width}x{height}")
        return self

    @property
    def frame_size(self) -> tuple[int, int]:
        """Output frame size after applying the resolution scale."""
        return (
            round(self.size.x * self.resolution_scale),
            round(self.size.y * self.resolution_scale),
        )

    @property
    def duration_seconds(self) -> float:
        return self.duration / self.fps


class SegmentReport(_WireModel):
    """Notification that the render loop entered a segment."""

    segment_name: str = Field(alias="sceneName")
