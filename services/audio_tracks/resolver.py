"""Resolve narration clips and background music against a final timeline."""

from __future__ import annotations

from collections.abc import Sequence

from services.timeline.engine import total_duration_ms
from shared.timeline_models import (
    AudioTrack,
    MusicSpec,
    NarrationClip,
    SlideRange,
    SlideTiming,
    TimeRange,
)


def _slide_timing(timeline: Sequence[SlideTiming], slide_index: int) -> SlideTiming:
    if 0 <= slide_index < len(timeline):
        return timeline[slide_index]
    raise ValueError(
        f"Slide index {slide_index} is outside the timeline (0..{len(timeline) - 1})"
    )


def resolve_music_window(spec: MusicSpec, timeline: Sequence[SlideTiming]) -> tuple[float, float]:
    """Absolute [start, end] in ms for one music entry."""
    total = total_duration_ms(timeline)
    music_range = spec.range

    if isinstance(music_range, TimeRange):
        start = music_range.from_ms if music_range.from_ms is not None else 0.0
        end = music_range.to_ms if music_range.to_ms is not None else total
        return float(start), float(end)

    if isinstance(music_range, SlideRange):
        if not timeline:
            return 0.0, 0.0
        from_slide = music_range.from_slide if music_range.from_slide is not None else 0
        to_slide = (
            music_range.to_slide if music_range.to_slide is not None else len(timeline) - 1
        )
        start = _slide_timing(timeline, from_slide).start_time_ms
        end = _slide_timing(timeline, to_slide).end_time_ms
        return start, end

    raise TypeError(f"Unsupported music range: {type(music_range).__name__}")


def resolve_audio_tracks(
    narration_clips: Sequence[NarrationClip],
    music_specs: Sequence[MusicSpec],
    timeline: Sequence[SlideTiming],
) -> list[AudioTrack]:
    """
    Build the flat list of positioned audio tracks.

    Narration tracks come first, ordered by slide; music tracks follow in
    configuration order. Tracks may overlap, the muxer sums them.
    """
    tracks: list[AudioTrack] = []

    for clip in sorted(narration_clips, key=lambda c: c.slide_index):
        if not 0 <= clip.slide_index < len(timeline):
            continue
        timing = timeline[clip.slide_index]
        tracks.append(
            AudioTrack(
                id=f"narration-{clip.slide_index}",
                source=clip.audio_path,
                start_time_ms=timing.start_time_ms,
                duration_ms=clip.measured_duration_ms,
                volume=1.0,
                loop=False,
                fade_in_ms=0,
                fade_out_ms=0,
            )
        )

    for index, spec in enumerate(music_specs):
        start, end = resolve_music_window(spec, timeline)
        tracks.append(
            AudioTrack(
                id=f"bgm-{index}",
                source=spec.source,
                start_time_ms=start,
                duration_ms=max(0.0, end - start),
                volume=spec.volume,
                loop=spec.loop,
                fade_in_ms=spec.fade_in_ms,
                fade_out_ms=spec.fade_out_ms,
            )
        )

    return tracks
