"""Rendering host interface used by the capture pipeline."""

from abc import ABC, abstractmethod
from typing import Protocol

from shared.timeline_models import HostStatus


class RenderingHost(ABC):
    """A rendering surface driven by a virtual clock.

    Two schedulers run inside the host without a shared clock: the virtual
    timer clock (timeouts, animation frames) and the UI framework's own task
    queue. ``advance_clock`` steps the first, ``settle`` drains the second.
    """

    @abstractmethod
    async def advance_clock(self, time_ms: float) -> int:
        """Move virtual time to time_ms, fire due callbacks, return the active slide index."""
        pass

    @abstractmethod
    async def settle(self, ticks: int) -> None:
        """Yield to the host's own task scheduler `ticks` times."""
        pass

    @abstractmethod
    async def read_status(self) -> HostStatus:
        """Poll the status flags exposed by the rendering surface."""
        pass

    @abstractmethod
    async def capture(self) -> bytes:
        """Return the current surface as an encoded PNG."""
        pass

    async def close(self) -> None:
        """Release host resources."""
        return None


class FrameSink(Protocol):
    """Consumer side of the frame pipe."""

    async def push(self, frame: bytes) -> None:
        ...
