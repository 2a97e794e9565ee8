"""
Progress & Timing Ledger.

Per-entity lap and minisector counters and timestamps, mutated only by
applying accepted crossing events. The ledger reports the side effects of
each event (reveal, pit entry, pit clear, gap recompute) for the replay
pipeline to route to the status machine and gap engine.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
import logging

from race_core.proto import CrossingEvent, GateKind
from race_core.metrics import get_metrics

logger = logging.getLogger(__name__)

# Minimum spacing between consecutive minisector sequence times
SEQUENCE_EPSILON_S = 1e-6


@dataclass
class LedgerEntry:
    """
    Progress and timing state for one entity.

    Attributes:
        entity_id: Entity id
        lap_count: Completed start/finish crossings after the green flag
        lap_times: Absolute time of each counted start/finish crossing
        mini_count: Minisector crossings since session start (incl. formation)
        last_mini_time: Time of the last minisector crossing (-inf if none)
        baseline: mini_count captured at the green flag (None before)
        mini_seq_times: Minisector crossing times after the green flag
        revealed: Entity has crossed at least one minisector
    """

    entity_id: str
    lap_count: int = 0
    lap_times: List[float] = field(default_factory=list)
    mini_count: int = 0
    last_mini_time: float = float('-inf')
    baseline: Optional[int] = None
    mini_seq_times: List[float] = field(default_factory=list)
    revealed: bool = False

    @property
    def raw_progress(self) -> int:
        """Minisectors completed since the green flag (all of them before it)."""
        return max(0, self.mini_count - (self.baseline or 0))

    def recency(self, board_time: float) -> float:
        """Time since the last minisector crossing (-inf if never crossed)."""
        if self.last_mini_time == float('-inf'):
            return float('-inf')
        return board_time - self.last_mini_time

    @property
    def last_lap_time(self) -> Optional[float]:
        """Duration of the most recent complete lap, if two laps are recorded."""
        if len(self.lap_times) < 2:
            return None
        return self.lap_times[-1] - self.lap_times[-2]


@dataclass(frozen=True)
class LedgerUpdate:
    """
    Side effects of applying one crossing event.

    Attributes:
        event: The applied event
        revealed: Entity became revealed by this event
        pit_entered: Pit-entry gate crossed
        pit_cleared: Minisector crossed (clears any pit overlay)
        lap_completed: Start/finish crossed; lap_count incremented
        gaps_dirty: Minisector sequence appended; gaps need recomputing
    """

    event: CrossingEvent
    revealed: bool = False
    pit_entered: bool = False
    pit_cleared: bool = False
    lap_completed: bool = False
    gaps_dirty: bool = False


class ProgressLedger:
    """
    Ledger of all entities for one replay session.

    Entries are created for every known entity at initialization and never
    deleted; counters only grow.
    """

    def __init__(self, entity_ids: Iterable[str]):
        self.metrics = get_metrics()
        self._entries: Dict[str, LedgerEntry] = {
            eid: LedgerEntry(entity_id=eid) for eid in entity_ids
        }
        self.baselined = False

    def __contains__(self, entity_id: str) -> bool:
        return entity_id in self._entries

    def __iter__(self):
        return iter(self._entries.values())

    def entry(self, entity_id: str) -> LedgerEntry:
        """
        Get an entity's entry.

        Raises:
            KeyError: If the entity is unknown
        """
        return self._entries[entity_id]

    @property
    def entity_ids(self) -> List[str]:
        return list(self._entries)

    def revealed_ids(self) -> List[str]:
        """Revealed entities in declaration order."""
        return [e.entity_id for e in self._entries.values() if e.revealed]

    def capture_baseline(self):
        """
        Snapshot minisector counts at the green flag.

        Sequences are cleared so post-green progress starts at zero.
        Only the first call has an effect.
        """
        if self.baselined:
            return
        for entry in self._entries.values():
            entry.baseline = entry.mini_count
            entry.mini_seq_times.clear()
        self.baselined = True
        logger.info("Green flag: minisector baselines captured for %d entities", len(self._entries))

    def apply(self, event: CrossingEvent, after_green: bool) -> LedgerUpdate:
        """
        Apply one accepted crossing.

        Args:
            event: Accepted crossing event
            after_green: Car clock has passed the green flag

        Returns:
            LedgerUpdate describing the side effects
        """
        entry = self._entries[event.entity_id]

        if event.gate_kind == GateKind.MINISECTOR:
            return self._apply_minisector(entry, event, after_green)
        if event.gate_kind == GateKind.START_FINISH:
            return self._apply_start_finish(entry, event)

        self.metrics.increment('pit_entry_crossings')
        return LedgerUpdate(event=event, pit_entered=True)

    def _apply_minisector(self, entry: LedgerEntry, event: CrossingEvent, after_green: bool) -> LedgerUpdate:
        entry.mini_count += 1
        entry.last_mini_time = event.time
        self.metrics.increment('minisector_crossings')

        revealed_now = not entry.revealed
        if revealed_now:
            entry.revealed = True
            self.metrics.increment('entities_revealed')
            logger.debug("Entity %s revealed at %.3f", entry.entity_id, event.time)

        if after_green:
            self._append_sequence(entry, event.time)

        return LedgerUpdate(
            event=event,
            revealed=revealed_now,
            pit_cleared=True,
            gaps_dirty=after_green,
        )

    def _append_sequence(self, entry: LedgerEntry, t: float):
        """Append to the minisector sequence, keeping it strictly increasing."""
        seq = entry.mini_seq_times
        if seq and t <= seq[-1]:
            t = seq[-1] + SEQUENCE_EPSILON_S
            self.metrics.increment_drop('non_monotonic_time')
        seq.append(t)

    def _apply_start_finish(self, entry: LedgerEntry, event: CrossingEvent) -> LedgerUpdate:
        entry.lap_count += 1
        entry.lap_times.append(event.time)
        self.metrics.increment('start_finish_crossings')
        return LedgerUpdate(event=event, lap_completed=True)
