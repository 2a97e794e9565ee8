"""
Playback Module: Race clock, position sampling, display smoothing.

Key classes:
- RaceClock: Play/pause, speed multiplier, board and car absolute times
- PositionSampler: Binary-search interpolation of per-entity samples
- PositionSmoother: Exponential smoothing for drawing only
"""

from .clock import (
    RaceClock,
    ClockConfig,
    ClockReading,
)
from .sampler import (
    PositionSampler,
    interpolate_position,
    index_at_or_before,
)
from .smoother import (
    PositionSmoother,
    SmootherConfig,
)

__all__ = [
    'RaceClock',
    'ClockConfig',
    'ClockReading',
    'PositionSampler',
    'interpolate_position',
    'index_at_or_before',
    'PositionSmoother',
    'SmootherConfig',
]
