"""
Media source utilities.
"""

import base64
import binascii
import re
from pathlib import Path
from urllib.parse import unquote_to_bytes

MIME_TO_EXT = {
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
    "audio/mpeg": ".mp3",
    "audio/ogg": ".ogg",
    "audio/mp4": ".m4a",
    "audio/aac": ".aac",
    "audio/flac": ".flac",
    "audio/webm": ".webm",
}

_DATA_URI = re.compile(r"^data:(?P<mime>[^;,]*)(?P<params>(?:;[^;,]*)*),(?P<payload>.*)$", re.DOTALL)


def is_data_uri(source: str) -> bool:
    return source.startswith("data:")


def extension_for_data_uri(source: str) -> str:
    """Pick a file extension from the data URI's MIME type."""
    match = _DATA_URI.match(source)
    if not match or not match.group("mime"):
        return ".bin"
    return MIME_TO_EXT.get(match.group("mime").lower(), ".bin")


def decode_data_uri(source: str) -> bytes:
    """Decode the payload of a data URI."""
    match = _DATA_URI.match(source)
    if not match:
        raise ValueError("Malformed data URI")
    payload = match.group("payload")
    if ";base64" in match.group("params").lower():
        try:
            return base64.b64decode(payload, validate=False)
        except binascii.Error as exc:
            raise ValueError(f"Invalid base64 payload in data URI: {exc}") from exc
    return unquote_to_bytes(payload)


def materialize_source(source: str, base_dir: Path, scratch_dir: Path, stem: str) -> Path:
    """
    Turn an audio source reference into a local file path.

    Data URIs are written to scratch_dir as <stem><ext>; anything else is a
    path, resolved against base_dir when relative.
    """
    if is_data_uri(source):
        target = scratch_dir / f"{stem}{extension_for_data_uri(source)}"
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(decode_data_uri(source))
        return target
    path = Path(source)
    if not path.is_absolute():
        path = base_dir / path
    return path.resolve()
