"""Narration synthesis adapter: produce and measure one clip per narrated slide."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

import aiohttp

from services.narration.audio_probe import probe_duration_ms, wav_duration_ms
from services.narration.drivers.base import SpeechSynthesisEngine
from shared.errors import ConfigInvalid, ExportError, SynthesisError, SynthesisUnavailable
from shared.logging_utils import setup_logging
from shared.timeline_models import FileNarration, NarrationClip, NarrationRequest, TextNarration

logger = setup_logging("narration-synthesizer")

SETTLE_MARGIN_MS = 1000


class NarrationSynthesizer:
    """Synthesize text narration and measure pre-recorded clips.

    The whole batch either succeeds or raises: availability is probed once
    before any work, and a failing clip aborts the batch.
    """

    def __init__(
        self,
        engine: SpeechSynthesisEngine | None,
        scratch_dir: Path,
        voice: int | str = 3,
        speed: float = 1.0,
        base_dir: Path | None = None,
        concurrency: int = 4,
        settle_margin_ms: float = SETTLE_MARGIN_MS,
    ):
        self.engine = engine
        self.scratch_dir = Path(scratch_dir)
        self.voice = voice
        self.speed = speed
        self.base_dir = Path(base_dir) if base_dir else Path.cwd()
        self.concurrency = max(1, concurrency)
        self.settle_margin_ms = settle_margin_ms

    def slide_duration_for(self, measured_ms: float, explicit_ms: float | None) -> float:
        """Explicit duration wins; otherwise the clip plus the settle margin."""
        if explicit_ms is not None:
            return float(explicit_ms)
        return measured_ms + self.settle_margin_ms

    async def ensure_available(self) -> None:
        if self.engine is None:
            raise SynthesisUnavailable("Narration text requires a speech-synthesis engine")
        if not await self.engine.is_available():
            raise SynthesisUnavailable(
                f"Speech synthesis engine '{self.engine.name}' is not reachable"
            )

    async def prepare(self, requests: Sequence[NarrationRequest]) -> list[NarrationClip]:
        """Produce a measured clip for every request, ordered by slide index."""
        if any(isinstance(r.source, TextNarration) for r in requests):
            await self.ensure_available()
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            logger.info("Generating narration audio...")

        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(request: NarrationRequest) -> NarrationClip:
            async with semaphore:
                return await self._prepare_one(request)

        tasks = [asyncio.create_task(_bounded(r)) for r in requests]
        try:
            clips = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise
        return sorted(clips, key=lambda c: c.slide_index)

    async def _prepare_one(self, request: NarrationRequest) -> NarrationClip:
        source = request.source
        if isinstance(source, TextNarration):
            return await self._synthesize(request.slide_index, source, request.explicit_duration_ms)
        if isinstance(source, FileNarration):
            return await self._measure_file(request.slide_index, source, request.explicit_duration_ms)
        raise TypeError(f"Unsupported narration source: {type(source).__name__}")

    async def _synthesize(
        self, slide_index: int, source: TextNarration, explicit_ms: float | None
    ) -> NarrationClip:
        if self.engine is None:
            raise SynthesisUnavailable("Narration text requires a speech-synthesis engine")
        preview = source.text[:40]
        logger.info('  Slide %d: "%s..."', slide_index + 1, preview)
        try:
            audio = await self.engine.synthesize(source.text, self.voice, self.speed)
            measured_ms = wav_duration_ms(audio)
        except ExportError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise SynthesisError(
                f"Narration synthesis failed for slide {slide_index}: {exc}"
            ) from exc

        wav_path = self.scratch_dir / f"slide-{slide_index:03d}.wav"
        wav_path.write_bytes(audio)

        return NarrationClip(
            slide_index=slide_index,
            audio_path=str(wav_path),
            measured_duration_ms=measured_ms,
            slide_duration_ms=self.slide_duration_for(measured_ms, explicit_ms),
            synthesized=True,
        )

    async def _measure_file(
        self, slide_index: int, source: FileNarration, explicit_ms: float | None
    ) -> NarrationClip:
        path = Path(source.path)
        if not path.is_absolute():
            path = (self.base_dir / path).resolve()
        if not path.exists():
            raise ConfigInvalid(
                f"Audio file not found: {path} (slide {slide_index})",
                issues=[{"loc": ["slides", slide_index, "audioFile"], "msg": "file not found"}],
            )

        logger.info('  Slide %d: audio file "%s"', slide_index + 1, source.path)
        measured_ms = await probe_duration_ms(path)
        return NarrationClip(
            slide_index=slide_index,
            audio_path=str(path),
            measured_duration_ms=measured_ms,
            slide_duration_ms=self.slide_duration_for(measured_ms, explicit_ms),
            synthesized=False,
        )
