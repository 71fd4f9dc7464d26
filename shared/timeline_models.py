"""
Timeline, audio track and pipeline value models shared by the export stages.
"""
from typing import Literal

from pydantic import BaseModel, Field


class SlideTiming(BaseModel):
    """Absolute placement of one slide and its animation steps (milliseconds)."""
    slide_index: int = Field(..., ge=0)
    start_time_ms: float = Field(..., ge=0)
    duration_ms: float = Field(..., ge=0)
    max_step: int = Field(default=0, ge=0)
    step_timings: list[float] = Field(default_factory=list, description="Absolute start of each step")

    @property
    def end_time_ms(self) -> float:
        return self.start_time_ms + self.duration_ms


class AudioTrack(BaseModel):
    """One audio source placed on the output timeline."""
    id: str
    source: str = Field(..., description="Local path of the audio file")
    start_time_ms: float = Field(..., ge=0)
    duration_ms: float = Field(..., ge=0)
    volume: float = Field(default=1.0, ge=0.0, le=1.0)
    loop: bool = False
    fade_in_ms: float = Field(default=0, ge=0)
    fade_out_ms: float = Field(default=0, ge=0)


class TextNarration(BaseModel):
    kind: Literal["text"] = "text"
    text: str


class FileNarration(BaseModel):
    kind: Literal["file"] = "file"
    path: str


NarrationSource = TextNarration | FileNarration


class NarrationRequest(BaseModel):
    """What the narration adapter has to produce audio for on one slide."""
    slide_index: int = Field(..., ge=0)
    source: NarrationSource = Field(..., discriminator="kind")
    explicit_duration_ms: float | None = Field(default=None, ge=0)


class NarrationClip(BaseModel):
    """A measured narration clip and the slide duration it implies."""
    slide_index: int = Field(..., ge=0)
    audio_path: str
    measured_duration_ms: float = Field(..., ge=0)
    slide_duration_ms: float = Field(..., ge=0)
    synthesized: bool = False


class SlideRange(BaseModel):
    kind: Literal["slides"] = "slides"
    from_slide: int | None = Field(default=None, ge=0)
    to_slide: int | None = Field(default=None, ge=0)


class TimeRange(BaseModel):
    kind: Literal["time"] = "time"
    from_ms: float | None = Field(default=None, ge=0)
    to_ms: float | None = Field(default=None, ge=0)


MusicRange = SlideRange | TimeRange


class MusicSpec(BaseModel):
    """Background music entry with its range still unresolved."""
    source: str
    volume: float = Field(default=0.15, ge=0.0, le=1.0)
    loop: bool = True
    fade_in_ms: float = Field(default=0, ge=0)
    fade_out_ms: float = Field(default=0, ge=0)
    range: MusicRange = Field(default_factory=SlideRange, discriminator="kind")


class HostStatus(BaseModel):
    """Status flags polled from the rendering surface."""
    ready: bool = False
    done: bool = False
    slide_index: int = -1


class CaptureProgress(BaseModel):
    frame: int
    total_frames: int
    time_ms: float
    total_time_ms: float

    @property
    def percent(self) -> float:
        if self.total_frames <= 0:
            return 100.0
        return self.frame / self.total_frames * 100


class VideoFile(BaseModel):
    """The finished, muxed output."""
    path: str
    size_bytes: int = Field(..., ge=0)
    frame_count: int = Field(..., ge=0)
    duration_ms: float = Field(..., ge=0)
