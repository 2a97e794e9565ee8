"""
Display Position Smoother.

Exponential smoothing of interpolated positions for drawing continuity at
high playback speeds. Crossing detection never uses smoothed positions.
"""

from dataclasses import dataclass
from typing import Dict, Optional
import math

import numpy as np


@dataclass
class SmootherConfig:
    """
    Configuration for display smoothing.

    Attributes:
        enabled: Apply smoothing (False passes positions through)
        time_constant_s: Time constant tau in simulated seconds
        min_alpha: Lower clamp for the blend factor
        max_alpha: Upper clamp for the blend factor
    """

    enabled: bool = True
    time_constant_s: float = 0.12
    min_alpha: float = 0.18
    max_alpha: float = 0.9


class PositionSmoother:
    """Per-entity exponential smoother."""

    def __init__(self, config: Optional[SmootherConfig] = None):
        self.config = config or SmootherConfig()
        self._smoothed: Dict[str, np.ndarray] = {}

    def alpha(self, dt: float, speed: float) -> float:
        """
        Blend factor for one frame of dt wall seconds at a playback speed.

        Zero when no simulated time elapsed, so a paused display holds still.
        """
        if dt * speed <= 0:
            return 0.0
        tau = self.config.time_constant_s
        raw = 1.0 - math.exp(-(dt * speed) / tau) if tau > 0 else 1.0
        return max(self.config.min_alpha, min(self.config.max_alpha, raw))

    def update(self, entity_id: str, position: np.ndarray, dt: float, speed: float) -> np.ndarray:
        """
        Blend a new raw position into the entity's smoothed position.

        The first position of an entity passes through unchanged.
        """
        position = np.asarray(position, dtype=float)
        if not self.config.enabled:
            return position

        prev = self._smoothed.get(entity_id)
        if prev is None:
            smoothed = position.copy()
        else:
            smoothed = prev + (position - prev) * self.alpha(dt, speed)

        self._smoothed[entity_id] = smoothed
        return smoothed

    def reset(self):
        self._smoothed.clear()
