"""VOICEVOX driver that talks to a running VOICEVOX engine over HTTP."""

from typing import Any

from shared.http_client import AsyncHTTPClient
from shared.logging_utils import setup_logging

from .base import SpeechSynthesisEngine

logger = setup_logging("voicevox-driver")


class VoicevoxEngine(SpeechSynthesisEngine):
    """HTTP-based VOICEVOX driver.

    Each clip takes two sequential calls: ``/audio_query`` builds a speech
    query for (text, speaker), then ``/synthesis`` renders that query, with
    its ``speedScale`` replaced by the requested speed, into WAV bytes.
    """

    name = "voicevox"

    def __init__(self, base_url: str = "http://localhost:50021", timeout: float = 120):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def is_available(self) -> bool:
        async with AsyncHTTPClient(timeout=min(self.timeout, 10)) as client:
            return await client.is_reachable(f"{self.base_url}/version")

    async def synthesize(self, text: str, voice: int | str, speed: float = 1.0) -> bytes:
        logger.debug("Synthesizing %d chars with speaker %s at speed %s", len(text), voice, speed)
        async with AsyncHTTPClient(timeout=self.timeout) as client:
            query: dict[str, Any] = await client.post(
                f"{self.base_url}/audio_query",
                params={"text": text, "speaker": str(voice)},
            )
            query["speedScale"] = speed
            return await client.post_bytes(
                f"{self.base_url}/synthesis",
                data=query,
                params={"speaker": str(voice)},
                headers={"Content-Type": "application/json"},
            )
