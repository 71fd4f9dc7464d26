from abc import ABC, abstractmethod


class SpeechSynthesisEngine(ABC):
    """Abstract base class for narration speech-synthesis engines."""

    name: str = "engine"

    @abstractmethod
    async def is_available(self) -> bool:
        """Probe the engine once; True when it can take synthesis requests."""
        pass

    @abstractmethod
    async def synthesize(self, text: str, voice: int | str, speed: float = 1.0) -> bytes:
        """Synthesize text and return a playable WAV buffer."""
        pass
