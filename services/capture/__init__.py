"""Virtual-time capture pipeline.

Drives a headless rendering host frame by frame on a virtual clock and
emits frames in temporal order.
"""

from services.capture.host import FrameSink, RenderingHost
from services.capture.pipeline import CaptureState, FrameCapturer, capture_frames, frame_count

__all__ = [
    "CaptureState",
    "FrameCapturer",
    "FrameSink",
    "RenderingHost",
    "capture_frames",
    "frame_count",
]
