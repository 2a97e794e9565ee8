"""
Standings Output Schema.

Read-only per-tick output of the replay pipeline, handed to presentation.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Optional, Tuple

from .gap_value import GapValue


class EntityStatus(IntEnum):
    """Displayed status of an entity."""
    FORMATION = 0   # Before the green flag
    RACING = 1      # Racing, no overlay
    PIT = 2         # Pit overlay active (cleared on next minisector)
    DNF = 3         # Retired; irreversible
    FROZEN = 4      # Classified; terminal


@dataclass(frozen=True)
class StandingRow:
    """
    One row of the classified order.

    Attributes:
        entity_id: Entity identifier
        position: 1-based position in the classified order
        status: Displayed status
        final_position: Immutable classified position once FROZEN
        retired: True if the entity retired (also kept after freezing)
        lap: Lap number for display
        gap_to_leader: Gap to the leader
        gap_to_ahead: Gap to the entity immediately ahead
        compound: Current tyre compound, if stints are known
        tyre_age: Current tyre age in laps, if stints are known
    """

    entity_id: str
    position: int
    status: EntityStatus
    final_position: Optional[int]
    retired: bool
    lap: int
    gap_to_leader: GapValue
    gap_to_ahead: GapValue
    compound: Optional[str] = None
    tyre_age: Optional[int] = None

    @property
    def is_frozen(self) -> bool:
        return self.status == EntityStatus.FROZEN

    def gap_text(self, to_leader: bool = True) -> str:
        """
        Gap column text: DNF and PIT overlays replace the gap.
        """
        if self.retired:
            return "DNF"
        if self.status == EntityStatus.PIT:
            return "PIT"
        gap = self.gap_to_leader if to_leader else self.gap_to_ahead
        return gap.format()

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'entity_id': self.entity_id,
            'position': self.position,
            'status': self.status.name,
            'final_position': self.final_position,
            'retired': self.retired,
            'lap': self.lap,
            'gap_to_leader': self.gap_to_leader.to_dict(),
            'gap_to_ahead': self.gap_to_ahead.to_dict(),
            'compound': self.compound,
            'tyre_age': self.tyre_age,
        }


@dataclass(frozen=True)
class ReplaySnapshot:
    """
    Everything presentation needs after one tick.

    Attributes:
        race_time: Clock race time (s since replay start)
        board_time: Board absolute time (seconds-of-day)
        car_time: Car absolute time (seconds-of-day)
        race_started: Board has passed the green flag
        after_green: Cars have passed the green flag
        header_lap: Highest display lap across entities
        rows: Classified order (revealed entities only)
        positions: Interpolated (x, y) per entity with samples
        display_positions: Smoothed (x, y) per entity for drawing
        positions_by_lap: Leader-lap -> {entity -> position} history
        race_finish_triggered: Some entity has reached the final lap
    """

    race_time: float
    board_time: float
    car_time: float
    race_started: bool
    after_green: bool
    header_lap: int
    rows: Tuple[StandingRow, ...]
    positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    display_positions: Dict[str, Tuple[float, float]] = field(default_factory=dict)
    positions_by_lap: Dict[int, Dict[str, int]] = field(default_factory=dict)
    race_finish_triggered: bool = False

    @property
    def order(self) -> Tuple[str, ...]:
        """Entity ids in classified order."""
        return tuple(row.entity_id for row in self.rows)

    def row_for(self, entity_id: str) -> Optional[StandingRow]:
        for row in self.rows:
            if row.entity_id == entity_id:
                return row
        return None
