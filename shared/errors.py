"""
Error taxonomy for the export pipeline.

Every error here is fatal to the whole export: the run aborts, partial output
is removed and the CLI exits non-zero.
"""

from typing import Any


class ExportError(Exception):
    """Base class for export failures."""

    hint: str = ""

    def __init__(self, message: str, hint: str | None = None, diagnostics: str | None = None):
        super().__init__(message)
        if hint is not None:
            self.hint = hint
        self.diagnostics = diagnostics


class ConfigInvalid(ExportError):
    """Raised when the export configuration or deck violates its schema."""

    hint = "Fix the fields listed above and run the export again."

    def __init__(self, message: str, issues: list[dict[str, Any]] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.issues = issues or []


class NarrationPrecondition(ExportError):
    """Raised when a slide specifies both narration text and an audio file."""

    hint = "Give each slide either 'narration' or 'audioFile', not both."


class SynthesisUnavailable(ExportError):
    """Raised when the speech-synthesis service cannot be reached."""

    hint = (
        "Start the VOICEVOX engine first, e.g. "
        "docker run --rm -p 50021:50021 voicevox/voicevox_engine:cpu-latest"
    )


class SynthesisError(ExportError):
    """Raised when synthesizing or measuring one narration clip fails."""

    hint = "Check the narration text and the synthesis engine logs."


class CaptureTimeout(ExportError):
    """Raised when the rendering host never reports ready."""

    hint = "Make sure the export app bundle loads and sets window.__EXPORT_READY__."


class EncoderUnavailable(ExportError):
    """Raised when the ffmpeg binary cannot be located."""

    hint = "Install it: brew install ffmpeg (macOS) or apt install ffmpeg (Linux), or set FFMPEG_PATH."


class EncodingFailed(ExportError):
    """Raised when ffmpeg exits with a non-zero status."""

    hint = "Inspect the ffmpeg output above; input audio files may be unreadable."

    def __init__(self, returncode: int, stderr: str):
        super().__init__(
            f"FFmpeg exited with code {returncode}",
            diagnostics=stderr,
        )
        self.returncode = returncode
        self.stderr = stderr
