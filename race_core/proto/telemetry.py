"""
Telemetry Schemas.

Defines the recorded inputs of a replay: per-entity position samples,
entity metadata, tyre stints and retirement events, plus the TelemetryStore
that holds them for lookup.

All timestamps are seconds-of-day floats.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple
import math

import numpy as np


@dataclass(frozen=True)
class Sample:
    """
    One recorded position of one entity.

    Attributes:
        timestamp: Absolute time (seconds-of-day)
        x: World X coordinate
        y: World Y coordinate
    """

    timestamp: float
    x: float
    y: float

    def __post_init__(self):
        """Validate sample values."""
        for name in ('timestamp', 'x', 'y'):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"Sample {name} must be finite: {value}")

    @property
    def position(self) -> Tuple[float, float]:
        """Get (x, y) position."""
        return (self.x, self.y)


@dataclass(frozen=True)
class EntityInfo:
    """
    Cosmetic metadata for one competitor.

    The replay core only references these; presentation owns them.
    """

    entity_id: str
    label: str = ""
    team_name: str = ""
    color: Optional[str] = None

    @property
    def display_label(self) -> str:
        """Label to display, falling back to the entity id."""
        return self.label or self.entity_id


@dataclass(frozen=True)
class TyreStint:
    """
    One tyre stint of one entity.

    Attributes:
        entity_id: Entity the stint belongs to
        lap_start: First lap of the stint (inclusive)
        lap_end: Last lap of the stint (inclusive)
        compound: Normalized compound name (SOFT, MEDIUM, HARD, ...)
        age: Tyre age at stint start, if recorded
        tyre_age_at_start: Alternative age column, used when age is missing
    """

    entity_id: str
    lap_start: int
    lap_end: int
    compound: Optional[str]
    age: Optional[int] = None
    tyre_age_at_start: int = 0

    @property
    def starting_age(self) -> int:
        """Tyre age at the start of the stint."""
        return self.age if self.age is not None else self.tyre_age_at_start


@dataclass(frozen=True)
class RetirementEvent:
    """An entity retiring at an absolute time."""

    entity_id: str
    timestamp: float


class EntityTelemetry:
    """
    Time-ordered samples for one entity, stored as numpy arrays.

    Samples must be strictly increasing in time; gaps between samples are
    bridged by interpolation, never treated as missing data.
    """

    def __init__(self, entity_id: str, samples: Iterable[Sample] = ()):
        self.entity_id = entity_id
        samples = list(samples)

        self.times = np.array([s.timestamp for s in samples], dtype=float)
        self.xs = np.array([s.x for s in samples], dtype=float)
        self.ys = np.array([s.y for s in samples], dtype=float)

        if len(self.times) > 1 and np.any(np.diff(self.times) <= 0):
            raise ValueError(
                f"Samples for entity {entity_id} are not strictly time-ordered"
            )

    def __len__(self) -> int:
        return len(self.times)

    @property
    def is_empty(self) -> bool:
        """Check if entity has no valid samples."""
        return len(self.times) == 0

    @property
    def first_time(self) -> Optional[float]:
        return float(self.times[0]) if len(self.times) else None

    @property
    def last_time(self) -> Optional[float]:
        return float(self.times[-1]) if len(self.times) else None

    def position_at(self, index: int) -> np.ndarray:
        """Get the (x, y) position at an index as a numpy vector."""
        return np.array([self.xs[index], self.ys[index]])


@dataclass
class TelemetryStore:
    """
    Complete pre-recorded telemetry for one replay session.

    Entity declaration order is the order of `entities`; every per-tick
    update runs in that order.
    """

    entities: List[EntityInfo]
    telemetry: Dict[str, EntityTelemetry]
    stints: List[TyreStint] = field(default_factory=list)
    retirements: List[RetirementEvent] = field(default_factory=list)

    def __post_init__(self):
        """Ensure every declared entity has a (possibly empty) telemetry entry."""
        for info in self.entities:
            if info.entity_id not in self.telemetry:
                self.telemetry[info.entity_id] = EntityTelemetry(info.entity_id)

    @property
    def entity_ids(self) -> List[str]:
        """Entity ids in declaration order."""
        return [info.entity_id for info in self.entities]

    def get(self, entity_id: str) -> Optional[EntityTelemetry]:
        return self.telemetry.get(entity_id)

    def info(self, entity_id: str) -> Optional[EntityInfo]:
        for entity in self.entities:
            if entity.entity_id == entity_id:
                return entity
        return None

    def earliest_time(self) -> float:
        """
        Earliest sample time across all entities.

        Returns:
            Seconds-of-day, or 0.0 if there are no samples at all
        """
        firsts = [t.first_time for t in self.telemetry.values() if not t.is_empty]
        return min(firsts) if firsts else 0.0
