import asyncio
from pathlib import Path

import aiohttp
import pytest

from services.narration import NarrationSynthesizer
from services.narration.drivers.base import SpeechSynthesisEngine
from shared.errors import ConfigInvalid, SynthesisError, SynthesisUnavailable
from shared.timeline_models import FileNarration, NarrationRequest, TextNarration

from conftest import build_wav


class DummyEngine(SpeechSynthesisEngine):
    """Returns a WAV whose length is looked up per text."""

    name = "dummy"

    def __init__(self, durations: dict[str, float] | None = None, available: bool = True):
        self.durations = durations or {}
        self.available = available
        self.calls: list[tuple[str, int | str, float]] = []

    async def is_available(self) -> bool:
        return self.available

    async def synthesize(self, text: str, voice: int | str, speed: float = 1.0) -> bytes:
        self.calls.append((text, voice, speed))
        return build_wav(self.durations.get(text, 1000))


class FailingEngine(DummyEngine):
    def __init__(self, error: Exception):
        super().__init__()
        self.error = error

    async def synthesize(self, text: str, voice: int | str, speed: float = 1.0) -> bytes:
        raise self.error


def text_request(slide_index: int, text: str, explicit_ms: float | None = None) -> NarrationRequest:
    return NarrationRequest(
        slide_index=slide_index,
        source=TextNarration(text=text),
        explicit_duration_ms=explicit_ms,
    )


@pytest.mark.asyncio
async def test_synthesized_clip_sets_slide_duration(tmp_path: Path) -> None:
    engine = DummyEngine({"Hello": 4200})
    synthesizer = NarrationSynthesizer(engine, tmp_path / "scratch", voice=3, speed=1.2)

    (clip,) = await synthesizer.prepare([text_request(0, "Hello")])

    assert clip.measured_duration_ms == pytest.approx(4200)
    assert clip.slide_duration_ms == pytest.approx(5200)
    assert clip.synthesized
    assert Path(clip.audio_path).name == "slide-000.wav"
    assert Path(clip.audio_path).exists()
    assert engine.calls == [("Hello", 3, 1.2)]


@pytest.mark.asyncio
async def test_explicit_duration_does_not_extend_slide(tmp_path: Path) -> None:
    synthesizer = NarrationSynthesizer(DummyEngine({"Long": 4200}), tmp_path)

    (clip,) = await synthesizer.prepare([text_request(1, "Long", explicit_ms=3000)])

    assert clip.measured_duration_ms == pytest.approx(4200)
    assert clip.slide_duration_ms == 3000


@pytest.mark.asyncio
async def test_clips_are_ordered_by_slide(tmp_path: Path) -> None:
    synthesizer = NarrationSynthesizer(DummyEngine(), tmp_path, concurrency=2)

    clips = await synthesizer.prepare(
        [text_request(4, "d"), text_request(0, "a"), text_request(2, "c")]
    )

    assert [c.slide_index for c in clips] == [0, 2, 4]


@pytest.mark.asyncio
async def test_unavailable_engine_fails_before_any_synthesis(tmp_path: Path) -> None:
    engine = DummyEngine(available=False)
    synthesizer = NarrationSynthesizer(engine, tmp_path)

    with pytest.raises(SynthesisUnavailable) as excinfo:
        await synthesizer.prepare([text_request(0, "Hi")])

    assert engine.calls == []
    assert "docker run" in excinfo.value.hint


@pytest.mark.asyncio
async def test_missing_engine_for_text(tmp_path: Path) -> None:
    with pytest.raises(SynthesisUnavailable):
        await NarrationSynthesizer(None, tmp_path).prepare([text_request(0, "Hi")])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [aiohttp.ClientConnectionError("connection reset"), ValueError("bad query")],
)
async def test_engine_failure_becomes_synthesis_error(tmp_path: Path, error: Exception) -> None:
    synthesizer = NarrationSynthesizer(FailingEngine(error), tmp_path)

    with pytest.raises(SynthesisError, match="slide 0"):
        await synthesizer.prepare([text_request(0, "Hi")])


@pytest.mark.asyncio
async def test_unreadable_audio_is_synthesis_error(tmp_path: Path) -> None:
    class GarbageEngine(DummyEngine):
        async def synthesize(self, text, voice, speed=1.0) -> bytes:
            return b"not a wav file"

    with pytest.raises(SynthesisError):
        await NarrationSynthesizer(GarbageEngine(), tmp_path).prepare([text_request(0, "Hi")])


@pytest.mark.asyncio
async def test_file_narration_is_measured_without_engine(tmp_path: Path, write_wav) -> None:
    write_wav("intro.wav", 2500)
    synthesizer = NarrationSynthesizer(None, tmp_path / "scratch", base_dir=tmp_path)

    (clip,) = await synthesizer.prepare(
        [NarrationRequest(slide_index=0, source=FileNarration(path="intro.wav"))]
    )

    assert clip.measured_duration_ms == pytest.approx(2500)
    assert clip.slide_duration_ms == pytest.approx(3500)
    assert not clip.synthesized
    assert clip.audio_path == str((tmp_path / "intro.wav").resolve())


@pytest.mark.asyncio
async def test_missing_audio_file(tmp_path: Path) -> None:
    synthesizer = NarrationSynthesizer(None, tmp_path, base_dir=tmp_path)

    with pytest.raises(ConfigInvalid) as excinfo:
        await synthesizer.prepare(
            [NarrationRequest(slide_index=3, source=FileNarration(path="missing.wav"))]
        )

    assert excinfo.value.issues[0]["loc"] == ["slides", 3, "audioFile"]


def test_custom_settle_margin(tmp_path: Path) -> None:
    synthesizer = NarrationSynthesizer(None, tmp_path, settle_margin_ms=250)
    assert synthesizer.slide_duration_for(1000, None) == 1250
    assert synthesizer.slide_duration_for(1000, 400) == 400


@pytest.mark.asyncio
async def test_failing_clip_cancels_pending_synthesis(tmp_path: Path) -> None:
    class MixedEngine(DummyEngine):
        def __init__(self):
            super().__init__()
            self.finished: list[str] = []

        async def synthesize(self, text: str, voice: int | str, speed: float = 1.0) -> bytes:
            if text == "fail":
                raise aiohttp.ClientConnectionError("engine went away")
            await asyncio.sleep(0.2)
            self.finished.append(text)
            return build_wav(500)

    engine = MixedEngine()
    synthesizer = NarrationSynthesizer(engine, tmp_path / "scratch", concurrency=2)

    with pytest.raises(SynthesisError):
        await synthesizer.prepare([text_request(0, "slow"), text_request(1, "fail")])
    await asyncio.sleep(0.3)

    assert engine.finished == []
    assert not (tmp_path / "scratch" / "slide-000.wav").exists()


@pytest.mark.asyncio
async def test_synthesis_without_engine_is_unavailable(tmp_path: Path) -> None:
    synthesizer = NarrationSynthesizer(None, tmp_path)
    with pytest.raises(SynthesisUnavailable):
        await synthesizer._synthesize(0, TextNarration(text="Hi"), None)
