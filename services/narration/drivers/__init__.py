"""Speech-synthesis driver implementations"""

from .base import SpeechSynthesisEngine
from .voicevox import VoicevoxEngine

__all__ = ["SpeechSynthesisEngine", "VoicevoxEngine"]
