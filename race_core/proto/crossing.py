"""
Gate Crossing Event Schema.

Output of the crossing detector: one event per accepted (or candidate)
passage of an entity through a gate.
"""

from dataclasses import dataclass
from enum import IntEnum


class GateKind(IntEnum):
    """Kind of gate."""
    START_FINISH = 0    # Lap line
    MINISECTOR = 1      # Intermediate timing gate
    PIT_ENTRY = 2       # Pit lane entry


class CrossingDirection(IntEnum):
    """Direction of a crossing relative to the gate normal."""
    FORWARD = 1     # Signed distance went from negative to non-negative
    BACKWARD = 2    # Signed distance went from positive to non-positive


@dataclass(frozen=True)
class CrossingEvent:
    """
    A crossing of one gate by one entity.

    Attributes:
        entity_id: Entity that crossed
        gate_id: Gate identifier (e.g. "SF", "M3", "PIT")
        gate_kind: Kind of gate
        gate_index: Ordinal of the gate within its kind (minisector order)
        direction: Crossing direction along the gate normal
        time: Interpolated crossing time (absolute seconds)
        fraction: Zero-crossing fraction r along prev -> current (0-1)
        offset: Tangential offset u of the intersection from the gate anchor
    """

    entity_id: str
    gate_id: str
    gate_kind: GateKind
    gate_index: int
    direction: CrossingDirection
    time: float
    fraction: float
    offset: float

    @property
    def is_forward(self) -> bool:
        return self.direction == CrossingDirection.FORWARD

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'entity_id': self.entity_id,
            'gate_id': self.gate_id,
            'gate_kind': self.gate_kind.name,
            'gate_index': self.gate_index,
            'direction': self.direction.name,
            'time': self.time,
            'fraction': self.fraction,
            'offset': self.offset,
        }
