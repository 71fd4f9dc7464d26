"""Narration synthesis adapter.

Synthesizes narration text through an external speech engine, or accepts
pre-recorded files, and measures every clip so slide durations can follow
the narration.
"""

from services.narration.service import SETTLE_MARGIN_MS, NarrationSynthesizer

__all__ = ["SETTLE_MARGIN_MS", "NarrationSynthesizer"]
