"""
Entity Status State Machine.

One explicit status per entity with transition functions:

    FORMATION -> RACING -> {PIT, DNF} -> FROZEN (terminal)

- PIT: set by a pit-entry crossing, cleared by the next minisector crossing
- DNF: set once the board clock reaches the entity's retirement time;
  irreversible
- FROZEN: set when the entity reaches the final lap, or on its first
  start/finish crossing after another entity has triggered the race finish,
  or immediately when a retired entity is classified last. The rank at that
  moment becomes the immutable final position.

Status records are only mutated through the methods of StatusStateMachine;
every transition on a FROZEN record is refused.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional
import logging

from race_core.proto import EntityStatus
from race_core.metrics import get_metrics
from .ranking import numeric_lap

logger = logging.getLogger(__name__)


@dataclass
class StatusConfig:
    """
    Configuration for the status machine.

    Attributes:
        final_lap: Lap at which an entity takes the chequered flag
        pit_starters: Entities starting from the pit lane
        retirements: Entity -> absolute retirement time
        freeze_retired_when_last: Freeze a retired entity classified last
    """

    final_lap: int = 72
    pit_starters: FrozenSet[str] = frozenset()
    retirements: Dict[str, float] = field(default_factory=dict)
    freeze_retired_when_last: bool = True


@dataclass
class StatusRecord:
    """
    Status of one entity. Read-only outside StatusStateMachine.

    Attributes:
        entity_id: Entity id
        state: Current status
        retired: Entity has retired (kept after freezing)
        final_position: Classified position once FROZEN
        awaiting_flag: Will freeze on its next start/finish crossing
        freeze_pending: Freeze requested, committed at the next evaluation
    """

    entity_id: str
    state: EntityStatus = EntityStatus.FORMATION
    retired: bool = False
    final_position: Optional[int] = None
    awaiting_flag: bool = False
    freeze_pending: bool = False

    @property
    def is_frozen(self) -> bool:
        return self.state == EntityStatus.FROZEN

    @property
    def in_pit(self) -> bool:
        return self.state == EntityStatus.PIT


class StatusStateMachine:
    """
    Status of every entity in a replay.

    Usage:
        machine = StatusStateMachine(entity_ids, StatusConfig(final_lap=72))
        machine.start_race()
        machine.update_retirements(board_time)
        machine.on_lap_completed("44", lap_count=72)
        machine.evaluate_freezes(order, lap_counts)
    """

    def __init__(self, entity_ids: Iterable[str], config: Optional[StatusConfig] = None):
        self.config = config or StatusConfig()
        self.metrics = get_metrics()

        self._records: Dict[str, StatusRecord] = {
            eid: StatusRecord(entity_id=eid) for eid in entity_ids
        }
        self.race_started = False
        self.race_finish_triggered = False
        self.finish_leader: Optional[str] = None

    def record(self, entity_id: str) -> StatusRecord:
        return self._records[entity_id]

    def status(self, entity_id: str) -> EntityStatus:
        return self._records[entity_id].state

    def final_positions(self) -> Dict[str, int]:
        """Frozen entity -> final position."""
        return {
            eid: r.final_position for eid, r in self._records.items() if r.is_frozen
        }

    def lap_number(self, entity_id: str, lap_count: int) -> int:
        """Display lap, accounting for pit-lane starters."""
        return numeric_lap(lap_count, entity_id in self.config.pit_starters)

    def _refuse_if_frozen(self, record: StatusRecord) -> bool:
        if record.is_frozen:
            self.metrics.increment_drop('frozen_entity')
            return True
        return False

    def _base_state(self, record: StatusRecord) -> EntityStatus:
        if record.retired:
            return EntityStatus.DNF
        return EntityStatus.RACING if self.race_started else EntityStatus.FORMATION

    # -- transitions ---------------------------------------------------------

    def start_race(self):
        """Green flag: every live entity leaves FORMATION and any pit overlay."""
        if self.race_started:
            return
        self.race_started = True
        for record in self._records.values():
            if not record.is_frozen:
                record.state = self._base_state(record)

    def enter_pit(self, entity_id: str) -> bool:
        """Activate the pit overlay. Retired entities are not shown in the pit."""
        record = self._records[entity_id]
        if self._refuse_if_frozen(record) or record.retired:
            return False
        record.state = EntityStatus.PIT
        return True

    def leave_pit(self, entity_id: str) -> bool:
        """Clear the pit overlay if active."""
        record = self._records[entity_id]
        if not record.in_pit:
            return False
        record.state = self._base_state(record)
        return True

    def retire(self, entity_id: str) -> bool:
        """Mark an entity DNF. Irreversible."""
        record = self._records[entity_id]
        if record.retired or self._refuse_if_frozen(record):
            return False
        record.retired = True
        record.state = EntityStatus.DNF
        self.metrics.increment('entities_retired')
        logger.info("Entity %s retired (DNF)", entity_id)
        return True

    def update_retirements(self, board_time: float) -> List[str]:
        """
        Retire entities whose retirement time has been reached.

        Returns:
            Entity ids retired by this call
        """
        retired = []
        for eid, t in self.config.retirements.items():
            if eid in self._records and board_time >= t and not self._records[eid].retired:
                if not self._records[eid].is_frozen and self.retire(eid):
                    retired.append(eid)
        return retired

    def on_lap_completed(self, entity_id: str, lap_count: int):
        """
        Apply finish rules after a counted start/finish crossing.

        - An entity awaiting the flag freezes on this crossing
        - An entity reaching the final lap freezes
        - The first entity to reach it triggers the race finish and every
          other live entity starts awaiting the flag
        """
        record = self._records[entity_id]
        if record.is_frozen:
            return

        lap = self.lap_number(entity_id, lap_count)

        if self.race_finish_triggered and record.awaiting_flag:
            record.freeze_pending = True
            record.awaiting_flag = False

        if lap >= self.config.final_lap:
            record.freeze_pending = True

            if not self.race_finish_triggered:
                self.race_finish_triggered = True
                self.finish_leader = entity_id
                logger.info("Race finish triggered by %s on lap %d", entity_id, lap)
                for other in self._records.values():
                    if other.entity_id != entity_id and not other.is_frozen:
                        other.awaiting_flag = True

    def evaluate_freezes(self, order: List[str], lap_counts: Dict[str, int]) -> List[str]:
        """
        Commit pending freezes at the current rank.

        Args:
            order: Live ranked order, leader first
            lap_counts: Entity -> completed laps

        Returns:
            Entity ids frozen by this call
        """
        positions = {eid: i + 1 for i, eid in enumerate(order)}
        last_position = len(order)

        for eid in order:
            record = self._records[eid]
            if record.is_frozen:
                continue
            if self.lap_number(eid, lap_counts.get(eid, 0)) >= self.config.final_lap:
                record.freeze_pending = True
            if (self.config.freeze_retired_when_last and record.retired
                    and positions[eid] == last_position):
                record.freeze_pending = True

        frozen = []
        for eid in order:
            record = self._records[eid]
            if record.freeze_pending and not record.is_frozen:
                self._freeze(record, positions[eid])
                frozen.append(eid)
        return frozen

    def _freeze(self, record: StatusRecord, position: int):
        """Terminal transition; clears pit overlay and flags."""
        if position < 1:
            raise ValueError(f"Final position must be >= 1: {position}")
        record.state = EntityStatus.FROZEN
        record.final_position = position
        record.freeze_pending = False
        record.awaiting_flag = False
        self.metrics.increment('entities_frozen')
        logger.info("Entity %s classified P%d", record.entity_id, position)
