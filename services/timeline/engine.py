"""Timeline engine shared by the interactive player and the video exporter.

Given the slides of a deck and per-slide duration overrides, lay the slides
back to back from t=0 and split each slide evenly between its animation
steps. The computation is a pure function of its inputs so the player and the
exporter always agree on where every slide and step begins.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from shared.presentation_models import Slide
from shared.timeline_models import SlideTiming

DEFAULT_SLIDE_DURATION_MS = 5000
DEFAULT_STEP_DELAY_MS = 1000


def max_enter_step(slide: Slide) -> int:
    """Highest stepIndex used by any element's enter animation (0 when none)."""
    highest = 0
    for element in slide.elements:
        for animation in element.animations:
            if animation.trigger == "onEnter" and animation.step_index > highest:
                highest = animation.step_index
    return highest


def compute_timeline(
    slides: Sequence[Slide],
    overrides: Mapping[int, float | None] | None = None,
    default_slide_duration_ms: float = DEFAULT_SLIDE_DURATION_MS,
    default_step_delay_ms: float = DEFAULT_STEP_DELAY_MS,
) -> list[SlideTiming]:
    """
    Compute absolute slide and step timings.

    Args:
        slides: Slides of the deck, in order
        overrides: slide index -> duration in ms. None means "auto from audio"
            and falls back to the default like a missing entry.
        default_slide_duration_ms: Duration of slides without an override
        default_step_delay_ms: Player step delay; step spacing is always
            duration / step count, so this does not move any timing

    Returns:
        One SlideTiming per slide, contiguous from t=0
    """
    overrides = overrides or {}
    timings: list[SlideTiming] = []
    current_ms = 0.0

    for index, slide in enumerate(slides):
        override = overrides.get(index)
        duration_ms = float(default_slide_duration_ms if override is None else override)

        max_step = max_enter_step(slide)
        step_count = max_step + 1
        interval = duration_ms / step_count
        step_timings = [current_ms + step * interval for step in range(step_count)]

        timings.append(
            SlideTiming(
                slide_index=index,
                start_time_ms=current_ms,
                duration_ms=duration_ms,
                max_step=max_step,
                step_timings=step_timings,
            )
        )
        current_ms += duration_ms

    return timings


def total_duration_ms(timeline: Sequence[SlideTiming]) -> float:
    if not timeline:
        return 0.0
    return timeline[-1].end_time_ms


def locate(timeline: Sequence[SlideTiming], time_ms: float) -> tuple[int, int]:
    """Return (slide index, step) shown at time_ms; clamps outside the timeline."""
    if not timeline:
        return 0, 0

    current = timeline[0]
    for timing in reversed(timeline):
        if time_ms >= timing.start_time_ms:
            current = timing
            break

    step = 0
    for candidate in range(len(current.step_timings) - 1, -1, -1):
        if time_ms >= current.step_timings[candidate]:
            step = candidate
            break

    return current.slide_index, step
