"""Export orchestrator: deck + export configuration -> finished MP4."""

from __future__ import annotations

import contextlib
import tempfile
from collections.abc import AsyncIterator, Callable
from pathlib import Path
from typing import Any

from services.audio_tracks.resolver import resolve_audio_tracks
from services.capture.host import RenderingHost
from services.capture.pipeline import (
    DEFAULT_BOUNDARY_SETTLE_TICKS,
    DEFAULT_SETTLE_TICKS,
    capture_frames,
)
from services.export.deck import load_presentation
from services.muxer.ffmpeg import FFmpegMuxer
from services.narration.drivers.base import SpeechSynthesisEngine
from services.narration.service import SETTLE_MARGIN_MS, NarrationSynthesizer
from services.timeline.engine import compute_timeline, total_duration_ms
from shared.config import config as service_config
from shared.errors import ConfigInvalid
from shared.export_models import ExportConfig
from shared.logging_utils import setup_logging
from shared.media_utils import materialize_source
from shared.presentation_models import Presentation
from shared.timeline_models import (
    AudioTrack,
    CaptureProgress,
    FileNarration,
    MusicSpec,
    NarrationClip,
    NarrationRequest,
    SlideRange,
    SlideTiming,
    TextNarration,
    TimeRange,
    VideoFile,
)

logger = setup_logging("export-orchestrator")

HostOpener = Callable[[dict[str, Any], list[dict[str, Any]], int, int], Any]


def validate_against_deck(export_config: ExportConfig, presentation: Presentation) -> None:
    """Reject configuration entries that reference slides the deck does not have."""
    slide_count = len(presentation.slides)
    issues: list[dict[str, Any]] = []
    seen: set[int] = set()

    for position, entry in enumerate(export_config.slides):
        if entry.slide_index >= slide_count:
            issues.append({
                "loc": ["slides", position, "slideIndex"],
                "msg": f"slide {entry.slide_index} does not exist (deck has {slide_count})",
            })
        if entry.slide_index in seen:
            issues.append({
                "loc": ["slides", position, "slideIndex"],
                "msg": f"duplicate entry for slide {entry.slide_index}",
            })
        seen.add(entry.slide_index)

    for position, bgm in enumerate(export_config.bgm):
        if bgm.has_time_range and bgm.has_slide_range:
            logger.warning("bgm[%d] has both time and slide bounds; using the time bounds", position)
        music_range = bgm.music_range()
        if isinstance(music_range, SlideRange):
            for field, value in (("fromSlide", music_range.from_slide), ("toSlide", music_range.to_slide)):
                if value is not None and value >= slide_count:
                    issues.append({
                        "loc": ["bgm", position, field],
                        "msg": f"slide {value} does not exist (deck has {slide_count})",
                    })
            if (
                music_range.from_slide is not None
                and music_range.to_slide is not None
                and music_range.from_slide > music_range.to_slide
            ):
                issues.append({"loc": ["bgm", position], "msg": "fromSlide is after toSlide"})
        elif isinstance(music_range, TimeRange):
            if (
                music_range.from_ms is not None
                and music_range.to_ms is not None
                and music_range.from_ms > music_range.to_ms
            ):
                issues.append({"loc": ["bgm", position], "msg": "fromTime is after toTime"})

    if issues:
        raise ConfigInvalid("Export configuration does not match the deck", issues=issues)


def build_narration_requests(
    export_config: ExportConfig, config_dir: Path, scratch_dir: Path
) -> list[NarrationRequest]:
    """Turn slide entries into narration requests; raises NarrationPrecondition."""
    requests: list[NarrationRequest] = []
    for position, entry in sorted(enumerate(export_config.slides), key=lambda item: item[1].slide_index):
        source = entry.narration_source()
        if source is None:
            continue
        if isinstance(source, FileNarration):
            try:
                path = materialize_source(
                    source.path, config_dir, scratch_dir, f"narration-{entry.slide_index:03d}"
                )
            except ValueError as exc:
                raise ConfigInvalid(
                    f"Slide {entry.slide_index} has an unreadable audio source",
                    issues=[{"loc": ["slides", position, "audioFile"], "msg": str(exc)}],
                ) from exc
            source = FileNarration(path=str(path))
        elif isinstance(source, TextNarration) and export_config.voicevox is None:
            raise ConfigInvalid(
                "Slides with narration text require a voicevox section in the export configuration",
                issues=[{"loc": ["voicevox"], "msg": "field required when narration text is used"}],
            )
        requests.append(
            NarrationRequest(
                slide_index=entry.slide_index,
                source=source,
                explicit_duration_ms=None if entry.duration is None else entry.duration * 1000,
            )
        )
    return requests


def final_timeline(
    export_config: ExportConfig,
    presentation: Presentation,
    clips: list[NarrationClip],
) -> list[SlideTiming]:
    """Timeline with narration-driven and explicit durations applied."""
    overrides: dict[int, float | None] = {}
    for entry in export_config.slides:
        if entry.duration is not None:
            overrides[entry.slide_index] = entry.duration * 1000
    for clip in clips:
        overrides[clip.slide_index] = clip.slide_duration_ms

    return compute_timeline(
        presentation.slides,
        overrides,
        default_slide_duration_ms=export_config.default_slide_duration * 1000,
        default_step_delay_ms=export_config.default_step_delay * 1000,
    )


def build_music_specs(export_config: ExportConfig, config_dir: Path, scratch_dir: Path) -> list[MusicSpec]:
    specs: list[MusicSpec] = []
    for index, bgm in enumerate(export_config.bgm):
        try:
            source = materialize_source(bgm.src, config_dir, scratch_dir, f"bgm-{index}")
        except ValueError as exc:
            raise ConfigInvalid(
                f"BGM {index} has an unreadable source",
                issues=[{"loc": ["bgm", index, "src"], "msg": str(exc)}],
            ) from exc
        if not source.exists():
            raise ConfigInvalid(
                f"BGM file not found: {source}",
                issues=[{"loc": ["bgm", index, "src"], "msg": "file not found"}],
            )
        specs.append(
            MusicSpec(
                source=str(source),
                volume=bgm.volume,
                loop=bgm.loop,
                fade_in_ms=bgm.fade_in * 1000,
                fade_out_ms=bgm.fade_out * 1000,
                range=bgm.music_range(),
            )
        )
    return specs


def slide_timing_payload(timeline: list[SlideTiming]) -> list[dict[str, Any]]:
    """Per-slide timing the export app uses to auto-advance slides and steps."""
    return [{"durationMs": t.duration_ms, "steps": t.max_step} for t in timeline]


class ExportOrchestrator:
    """Runs the full export: narration, timeline, audio tracks, capture and muxing."""

    def __init__(
        self,
        on_progress: Callable[[CaptureProgress], None] | None = None,
        speech_engine: SpeechSynthesisEngine | None = None,
    ):
        self.on_progress = on_progress
        self.settle_ticks = int(service_config.get_pipeline_value("capture.settle_ticks", DEFAULT_SETTLE_TICKS))
        self.boundary_settle_ticks = int(
            service_config.get_pipeline_value("capture.boundary_settle_ticks", DEFAULT_BOUNDARY_SETTLE_TICKS)
        )
        self._muxer: FFmpegMuxer | None = None
        self._speech_engine = speech_engine
        self._host_opener: HostOpener | None = None

    @property
    def muxer(self) -> FFmpegMuxer:
        """Lazy load the ffmpeg muxer."""
        if self._muxer is None:
            self._muxer = FFmpegMuxer()
        return self._muxer

    @muxer.setter
    def muxer(self, muxer: FFmpegMuxer) -> None:
        self._muxer = muxer

    @property
    def host_opener(self) -> HostOpener:
        if self._host_opener is None:
            self._host_opener = self._open_browser_host
        return self._host_opener

    @host_opener.setter
    def host_opener(self, opener: HostOpener) -> None:
        self._host_opener = opener

    def speech_engine_for(self, export_config: ExportConfig) -> SpeechSynthesisEngine | None:
        if self._speech_engine is not None:
            return self._speech_engine
        if export_config.voicevox is None:
            return None
        from services.narration.drivers.voicevox import VoicevoxEngine

        timeout = float(service_config.get_pipeline_value("narration.timeout", 120))
        self._speech_engine = VoicevoxEngine(export_config.voicevox.url, timeout=timeout)
        return self._speech_engine

    @contextlib.asynccontextmanager
    async def _open_browser_host(
        self,
        presentation_raw: dict[str, Any],
        slide_timing: list[dict[str, Any]],
        width: int,
        height: int,
    ) -> AsyncIterator[RenderingHost]:
        from services.capture.browser import BrowserHost, build_export_payload
        from services.capture.server import ExportAppServer

        app_dir = service_config.get("export_app_dir") or service_config.get_pipeline_value(
            "capture.export_app_dir"
        )
        if not app_dir:
            raise ConfigInvalid(
                "No export app bundle configured",
                hint="Set EXPORT_APP_DIR (or capture.export_app_dir) to the built export app.",
            )
        clock_script = service_config.get("clock_script") or service_config.get_pipeline_value(
            "capture.clock_script"
        )
        clock_path = Path(clock_script) if clock_script else Path(app_dir) / "timeweb.js"

        async with ExportAppServer(Path(app_dir)) as server:
            host = await BrowserHost.launch(
                server.url,
                build_export_payload(presentation_raw, slide_timing),
                width,
                height,
                clock_path,
                ready_timeout_ms=float(service_config.get_pipeline_value("capture.ready_timeout_ms", 30000)),
                headless=bool(service_config.get_pipeline_value("capture.headless", True)),
            )
            try:
                yield host
            finally:
                await host.close()

    async def prepare_narration(
        self, export_config: ExportConfig, config_dir: Path, scratch_dir: Path
    ) -> list[NarrationClip]:
        requests = build_narration_requests(export_config, config_dir, scratch_dir)
        if not requests:
            return []
        voicevox = export_config.voicevox
        synthesizer = NarrationSynthesizer(
            self.speech_engine_for(export_config),
            scratch_dir,
            voice=voicevox.speaker if voicevox else 3,
            speed=voicevox.speed if voicevox else 1.0,
            base_dir=config_dir,
            concurrency=int(service_config.get_pipeline_value("narration.concurrency", 4)),
            settle_margin_ms=float(
                service_config.get_pipeline_value("narration.settle_margin_ms", SETTLE_MARGIN_MS)
            ),
        )
        return await synthesizer.prepare(requests)

    async def capture_and_mux(
        self,
        presentation: Presentation,
        presentation_raw: dict[str, Any],
        timeline: list[SlideTiming],
        tracks: list[AudioTrack],
        fps: int,
        output_path: Path,
    ) -> VideoFile:
        total_ms = total_duration_ms(timeline)
        meta = presentation.meta
        opener = self.host_opener(presentation_raw, slide_timing_payload(timeline), meta.width, meta.height)

        async with opener as host:
            job = await self.muxer.start(fps, tracks, output_path, expected_duration_ms=total_ms)
            try:
                await capture_frames(
                    host,
                    job,
                    fps,
                    total_ms,
                    settle_ticks=self.settle_ticks,
                    boundary_settle_ticks=self.boundary_settle_ticks,
                    on_progress=self.on_progress,
                )
                logger.info("[Phase 3] Encoding video...")
                return await job.wait()
            except BaseException:
                await job.abort()
                output_path.unlink(missing_ok=True)
                raise

    async def render(
        self,
        export_config: ExportConfig,
        config_dir: str | Path,
        output_path: str | Path,
    ) -> VideoFile:
        """Run the whole export. Any failure aborts the run and removes partial output."""
        config_dir = Path(config_dir).resolve()
        output_path = Path(output_path).resolve()
        input_path = (config_dir / export_config.input).resolve()

        logger.info("Input:  %s", input_path)
        logger.info("Output: %s", output_path)
        logger.info("FPS:    %d", export_config.fps)

        presentation, presentation_raw = load_presentation(input_path)
        logger.info("Slides: %d", len(presentation.slides))
        validate_against_deck(export_config, presentation)

        scratch_root = service_config.get("scratch_root")
        with tempfile.TemporaryDirectory(prefix="slidereel-", dir=scratch_root) as scratch:
            scratch_dir = Path(scratch)

            logger.info("[Phase 1] Preparing audio...")
            clips = await self.prepare_narration(export_config, config_dir, scratch_dir)
            timeline = final_timeline(export_config, presentation, clips)
            logger.info("Total duration: %.1fs", total_duration_ms(timeline) / 1000)

            music = build_music_specs(export_config, config_dir, scratch_dir)
            tracks = resolve_audio_tracks(clips, music, timeline)
            if music:
                logger.info("BGM tracks: %d", len(music))

            logger.info("[Phase 2] Capturing frames...")
            video = await self.capture_and_mux(
                presentation,
                presentation_raw,
                timeline,
                tracks,
                export_config.fps,
                output_path,
            )

        logger.info("Done! Output: %s (%.1f MB)", video.path, video.size_bytes / 1024 / 1024)
        return video
