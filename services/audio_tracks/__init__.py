"""Audio track resolution for narration and background music."""

from services.audio_tracks.resolver import resolve_audio_tracks, resolve_music_window

__all__ = ["resolve_audio_tracks", "resolve_music_window"]
