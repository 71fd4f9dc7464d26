"""
Persisted export configuration (.video.json) models.
"""
from pydantic import BaseModel, ConfigDict, Field

from shared.errors import NarrationPrecondition
from shared.timeline_models import (
    FileNarration,
    MusicRange,
    NarrationSource,
    SlideRange,
    TextNarration,
    TimeRange,
)


class VoicevoxConfig(BaseModel):
    """Narration voice settings for the speech-synthesis engine."""
    url: str = Field(default="http://localhost:50021", description="Engine endpoint")
    speaker: int = Field(default=3, ge=0, description="Voice id")
    speed: float = Field(default=1.0, ge=0.1, le=5.0, description="Speed multiplier")


class SlideConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    slide_index: int = Field(..., ge=0, alias="slideIndex")
    narration: str | None = None
    audio_file: str | None = Field(default=None, alias="audioFile")
    duration: float | None = Field(default=None, ge=0, description="Seconds; null = auto from audio")

    def narration_source(self) -> NarrationSource | None:
        """Return the slide's narration as a tagged variant, or None."""
        has_text = bool(self.narration and self.narration.strip())
        if has_text and self.audio_file:
            raise NarrationPrecondition(
                f"Slide {self.slide_index} has both narration text and an audio file"
            )
        if has_text:
            return TextNarration(text=self.narration.strip())
        if self.audio_file:
            return FileNarration(path=self.audio_file)
        return None


class BgmConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    src: str
    volume: float = Field(default=0.15, ge=0.0, le=1.0)
    loop: bool = True
    fade_in: float = Field(default=0, ge=0, alias="fadeIn")
    fade_out: float = Field(default=0, ge=0, alias="fadeOut")
    from_slide: int | None = Field(default=None, ge=0, alias="fromSlide")
    to_slide: int | None = Field(default=None, ge=0, alias="toSlide")
    from_time: float | None = Field(default=None, ge=0, alias="fromTime")
    to_time: float | None = Field(default=None, ge=0, alias="toTime")

    @property
    def has_time_range(self) -> bool:
        return self.from_time is not None or self.to_time is not None

    @property
    def has_slide_range(self) -> bool:
        return self.from_slide is not None or self.to_slide is not None

    def music_range(self) -> MusicRange:
        """Time bounds take precedence over slide bounds."""
        if self.has_time_range:
            return TimeRange(
                from_ms=None if self.from_time is None else self.from_time * 1000,
                to_ms=None if self.to_time is None else self.to_time * 1000,
            )
        return SlideRange(from_slide=self.from_slide, to_slide=self.to_slide)


class ExportConfig(BaseModel):
    """Root of a .video.json file."""
    model_config = ConfigDict(populate_by_name=True)

    input: str = Field(..., description="Path of the .slide.json deck")
    voicevox: VoicevoxConfig | None = None
    fps: int = Field(default=30, ge=1)
    default_slide_duration: float = Field(default=5, ge=0, alias="defaultSlideDuration")
    default_step_delay: float = Field(default=1, ge=0, alias="defaultStepDelay")
    slides: list[SlideConfig] = Field(default_factory=list)
    bgm: list[BgmConfig] = Field(default_factory=list)
