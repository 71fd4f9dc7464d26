"""Virtual-time frame capture.

Frames are sampled at exact virtual instants T = i / fps. For each frame the
host's timer clock is advanced to T first, then the UI framework's scheduler
is drained so state updates re-render. When the active slide changes, the
newly mounted elements have registered their entrance-animation callbacks
after the clock advanced, so the clock is pulsed at T once more and drained
again; without that second pulse the first frame of every slide misses its
entrance animation.
"""

from __future__ import annotations

import enum
import math
from collections.abc import Callable

from services.capture.host import FrameSink, RenderingHost
from shared.logging_utils import setup_logging
from shared.timeline_models import CaptureProgress

logger = setup_logging("capture-pipeline")

DEFAULT_SETTLE_TICKS = 10
DEFAULT_BOUNDARY_SETTLE_TICKS = 5


class CaptureState(str, enum.Enum):
    IDLE = "idle"
    READY = "ready"
    CAPTURING = "capturing"
    SETTLING = "settling"
    CAPTURED = "captured"
    DONE = "done"


def frame_count(total_duration_ms: float, fps: int) -> int:
    """Number of frames needed to cover total_duration_ms at fps."""
    if total_duration_ms <= 0:
        return 0
    # round() absorbs float noise such as 12000.000000001 before ceil
    return math.ceil(round(total_duration_ms * fps / 1000, 6))


def frame_time_ms(index: int, fps: int) -> float:
    return index * 1000 / fps


class FrameCapturer:
    """Drives a rendering host frame by frame and pushes frames into a sink."""

    def __init__(
        self,
        host: RenderingHost,
        sink: FrameSink,
        fps: int,
        settle_ticks: int = DEFAULT_SETTLE_TICKS,
        boundary_settle_ticks: int = DEFAULT_BOUNDARY_SETTLE_TICKS,
        on_progress: Callable[[CaptureProgress], None] | None = None,
    ):
        if fps < 1:
            raise ValueError("fps must be at least 1")
        self.host = host
        self.sink = sink
        self.fps = fps
        self.settle_ticks = settle_ticks
        self.boundary_settle_ticks = boundary_settle_ticks
        self.on_progress = on_progress
        self.state = CaptureState.IDLE
        self.frames_emitted = 0

    async def run(self, total_duration_ms: float) -> int:
        """Capture every frame of the timeline; returns the number of frames emitted."""
        total_frames = frame_count(total_duration_ms, self.fps)
        self.state = CaptureState.READY
        logger.info("Total frames: %d", total_frames)
        previous_slide = -1

        for index in range(total_frames):
            time_ms = frame_time_ms(index, self.fps)

            self.state = CaptureState.CAPTURING
            slide_index = await self.host.advance_clock(time_ms)

            self.state = CaptureState.SETTLING
            await self.host.settle(self.settle_ticks)

            if slide_index != previous_slide and previous_slide != -1:
                await self.host.advance_clock(time_ms)
                await self.host.settle(self.boundary_settle_ticks)
            previous_slide = slide_index

            status = await self.host.read_status()
            if status.done:
                logger.info("Rendering surface reported done at frame %d", index)
                break

            frame = await self.host.capture()
            await self.sink.push(frame)
            self.frames_emitted += 1
            self.state = CaptureState.CAPTURED

            if self.on_progress:
                self.on_progress(
                    CaptureProgress(
                        frame=index + 1,
                        total_frames=total_frames,
                        time_ms=time_ms,
                        total_time_ms=total_duration_ms,
                    )
                )

        self.state = CaptureState.DONE
        return self.frames_emitted


async def capture_frames(
    host: RenderingHost,
    sink: FrameSink,
    fps: int,
    total_duration_ms: float,
    settle_ticks: int = DEFAULT_SETTLE_TICKS,
    boundary_settle_ticks: int = DEFAULT_BOUNDARY_SETTLE_TICKS,
    on_progress: Callable[[CaptureProgress], None] | None = None,
) -> int:
    """Capture all frames of a timeline of total_duration_ms into sink."""
    capturer = FrameCapturer(
        host,
        sink,
        fps,
        settle_ticks=settle_ticks,
        boundary_settle_ticks=boundary_settle_ticks,
        on_progress=on_progress,
    )
    return await capturer.run(total_duration_ms)
