import io
import json
import sys
import wave
from pathlib import Path
from typing import Any, Callable

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from shared.config import config as service_config  # noqa: E402

WAV_RATE = 24000


def build_wav(duration_ms: float, rate: int = WAV_RATE) -> bytes:
    """Silent mono 16-bit WAV of the given length."""
    frames = int(rate * duration_ms / 1000)
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x00\x00" * frames)
    return buffer.getvalue()


@pytest.fixture
def wav_bytes() -> Callable[[float], bytes]:
    return build_wav


@pytest.fixture
def write_wav(tmp_path: Path) -> Callable[[str, float], Path]:
    def _write(name: str, duration_ms: float) -> Path:
        path = tmp_path / name
        path.write_bytes(build_wav(duration_ms))
        return path

    return _write


@pytest.fixture
def write_json(tmp_path: Path) -> Callable[[str, Any], Path]:
    def _write(name: str, data: Any) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def deck_data() -> dict[str, Any]:
    """Two slides; the first reveals one extra element at step 1."""
    return {
        "meta": {"title": "Demo", "width": 320, "height": 180},
        "slides": [
            {
                "id": "intro",
                "elements": [
                    {"id": "title", "animations": [{"type": "fadeIn", "trigger": "onEnter", "stepIndex": 0}]},
                    {"id": "bullet", "animations": [{"type": "fadeIn", "trigger": "onEnter", "stepIndex": 1}]},
                ],
            },
            {"id": "outro", "elements": []},
        ],
    }


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch):
    """Keep tests independent of the developer's .env and pipeline file."""
    monkeypatch.setattr(service_config, "config", dict(service_config.config))
    monkeypatch.setattr(service_config, "pipeline_config", {})
    for key in ("ffmpeg_path", "ffprobe_path", "export_app_dir", "clock_script"):
        service_config.set(key, None)
    yield
