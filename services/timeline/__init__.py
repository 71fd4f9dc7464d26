"""Timeline engine: slide and animation-step timings for player and exporter."""

from services.timeline.engine import (
    compute_timeline,
    locate,
    max_enter_step,
    total_duration_ms,
)

__all__ = ["compute_timeline", "locate", "max_enter_step", "total_duration_ms"]
