"""
Deck document models.

Only the fields the exporter reads are declared; everything else in the
document is kept as extra data and handed to the rendering host untouched.
"""
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Animation(BaseModel):
    """Element animation; only trigger and stepIndex matter for timing."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    trigger: Literal["onEnter", "onExit", "onClick"] = Field(default="onEnter")
    step_index: int = Field(default=0, ge=0, alias="stepIndex")


class SlideElement(BaseModel):
    model_config = ConfigDict(extra="allow")

    animations: list[Animation] = Field(default_factory=list)


class Slide(BaseModel):
    model_config = ConfigDict(extra="allow")

    elements: list[SlideElement] = Field(default_factory=list)


class PresentationMeta(BaseModel):
    model_config = ConfigDict(extra="allow")

    width: int = Field(default=1920, gt=0)
    height: int = Field(default=1080, gt=0)


class Presentation(BaseModel):
    """A slide deck as stored in a .slide.json file."""
    model_config = ConfigDict(extra="allow")

    meta: PresentationMeta = Field(default_factory=PresentationMeta)
    slides: list[Slide] = Field(default_factory=list)
    playback: dict[str, Any] | None = Field(default=None, description="Player configuration, if saved")
