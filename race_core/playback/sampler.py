"""
Position Sampler.

Maps an absolute time to an interpolated 2-D position for each entity.
Times before the first or after the last sample clamp to the nearest
endpoint; there is no extrapolation.
"""

from typing import Dict, Optional

import numpy as np

from race_core.proto.telemetry import EntityTelemetry, TelemetryStore


def index_at_or_before(times: np.ndarray, t: float) -> int:
    """
    Index of the last sample with timestamp <= t.

    Args:
        times: Strictly increasing sample times
        t: Query time

    Returns:
        Index in [0, len(times) - 1]; 0 if t precedes every sample
    """
    idx = int(np.searchsorted(times, t, side='right')) - 1
    return max(0, min(idx, len(times) - 1))


def interpolate_position(telemetry: EntityTelemetry, t: float) -> Optional[np.ndarray]:
    """
    Interpolate an entity's position at absolute time t.

    Args:
        telemetry: Entity samples
        t: Absolute time (seconds-of-day)

    Returns:
        (x, y) numpy vector, or None if the entity has no samples
    """
    if telemetry.is_empty:
        return None

    times = telemetry.times
    if t <= times[0]:
        return telemetry.position_at(0)
    if t >= times[-1]:
        return telemetry.position_at(len(times) - 1)

    k = index_at_or_before(times, t)
    t0, t1 = times[k], times[k + 1]
    span = max(1e-6, t1 - t0)
    f = min(1.0, max(0.0, (t - t0) / span))

    p0 = telemetry.position_at(k)
    p1 = telemetry.position_at(k + 1)
    return p0 + (p1 - p0) * f


class PositionSampler:
    """
    Interpolated positions for every entity in a telemetry store.

    Usage:
        sampler = PositionSampler(store)
        positions = sampler.sample_all(car_time)
        pos = positions.get("44")
    """

    def __init__(self, store: TelemetryStore):
        self.store = store

    def position(self, entity_id: str, t: float) -> Optional[np.ndarray]:
        """Interpolated position of one entity, or None without samples."""
        telemetry = self.store.get(entity_id)
        if telemetry is None:
            return None
        return interpolate_position(telemetry, t)

    def sample_all(self, t: float) -> Dict[str, np.ndarray]:
        """
        Interpolated positions for all entities with samples.

        Returns:
            Dict entity_id -> (x, y), in declaration order
        """
        positions = {}
        for entity_id in self.store.entity_ids:
            pos = self.position(entity_id, t)
            if pos is not None:
                positions[entity_id] = pos
        return positions
