"""Measure narration clip durations."""

from __future__ import annotations

import asyncio
import io
import shutil
import wave
from pathlib import Path

from shared.config import config
from shared.errors import SynthesisError


def is_wav(data: bytes) -> bool:
    return len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WAVE"


def wav_duration_ms(data: bytes) -> float:
    """Duration of a PCM WAV buffer, read from its header."""
    try:
        with wave.open(io.BytesIO(data), "rb") as wav:
            rate = wav.getframerate()
            frames = wav.getnframes()
    except (wave.Error, EOFError) as exc:
        raise ValueError(f"Unreadable WAV header: {exc}") from exc
    if rate <= 0:
        return 0.0
    return frames / rate * 1000


async def _ffprobe_duration_ms(path: Path) -> float:
    ffprobe = config.tool_path("ffprobe") or shutil.which("ffprobe")
    if not ffprobe:
        raise SynthesisError(
            f"Cannot measure {path.name}: ffprobe not found",
            hint="Install ffmpeg (which ships ffprobe) or convert the file to WAV.",
        )

    proc = await asyncio.create_subprocess_exec(
        ffprobe,
        "-v", "error",
        "-show_entries", "format=duration",
        "-of", "default=noprint_wrappers=1:nokey=1",
        str(path),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        raise SynthesisError(
            f"ffprobe could not read {path}",
            diagnostics=stderr.decode(errors="replace"),
        )
    try:
        return float(stdout.decode().strip()) * 1000
    except ValueError as exc:
        raise SynthesisError(f"ffprobe returned no duration for {path}") from exc


async def probe_duration_ms(path: Path) -> float:
    """Duration of an audio file: WAV header when possible, ffprobe otherwise."""
    with open(path, "rb") as stream:
        head = stream.read(12)
    if is_wav(head):
        try:
            return wav_duration_ms(path.read_bytes())
        except ValueError:
            pass
    return await _ffprobe_duration_ms(path)
