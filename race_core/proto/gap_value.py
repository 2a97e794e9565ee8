"""
Gap Value Schema.

A gap is a tagged value: the entity is the reference (LEADER), a
non-negative TIME in seconds, or UNAVAILABLE.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class GapKind(IntEnum):
    """Tag of a gap value."""
    UNAVAILABLE = 0
    LEADER = 1
    TIME = 2


@dataclass(frozen=True)
class GapValue:
    """
    Time gap to a reference entity.

    Use the LEADER / UNAVAILABLE constants and GapValue.time() rather than
    constructing directly.
    """

    kind: GapKind
    seconds: Optional[float] = None

    def __post_init__(self):
        """Validate gap value."""
        if self.kind == GapKind.TIME:
            if self.seconds is None:
                raise ValueError("TIME gap requires seconds")
            if self.seconds < 0:
                raise ValueError(f"Gap cannot be negative: {self.seconds}")
        elif self.seconds is not None:
            raise ValueError(f"{self.kind.name} gap cannot carry seconds")

    @classmethod
    def time(cls, seconds: float) -> 'GapValue':
        """Create a TIME gap, clamping measurement noise below zero to 0."""
        return cls(GapKind.TIME, max(0.0, float(seconds)))

    @property
    def is_leader(self) -> bool:
        return self.kind == GapKind.LEADER

    @property
    def is_time(self) -> bool:
        return self.kind == GapKind.TIME

    @property
    def is_unavailable(self) -> bool:
        return self.kind == GapKind.UNAVAILABLE

    def format(self) -> str:
        """
        Format for display.

        Examples:
            LEADER -> "Leader"; 0.532 -> "+0.532s"; 75.123 -> "+1:15.123"
        """
        if self.kind == GapKind.LEADER:
            return "Leader"
        if self.kind == GapKind.UNAVAILABLE:
            return ""
        if self.seconds < 60:
            return f"+{self.seconds:.3f}s"
        minutes = int(self.seconds // 60)
        rest = self.seconds - minutes * 60
        return f"+{minutes}:{rest:06.3f}"

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {'kind': self.kind.name, 'seconds': self.seconds}


GapValue.LEADER = GapValue(GapKind.LEADER)
GapValue.UNAVAILABLE = GapValue(GapKind.UNAVAILABLE)
