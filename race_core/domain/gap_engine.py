"""
Minisector Gap Engine.

Time gaps to the leader and to the entity immediately ahead, measured at
the same minisector ordinal: an entity's latest sequence time is compared
with the reference entity's time at the same index. Gaps therefore only
change when an entity actually advances through a sector.

When the reference has not reached that index yet, the previous stable
value is kept instead of flipping to UNAVAILABLE.
"""

from typing import Dict, List, Optional, Sequence
import logging

from race_core.proto import GapValue
from race_core.metrics import get_metrics
from .ledger import ProgressLedger

logger = logging.getLogger(__name__)


def gap_at_matching_index(
    sequence: Sequence[float],
    reference: Sequence[float],
) -> Optional[GapValue]:
    """
    Compare an entity's latest minisector time with a reference's at the same index.

    Args:
        sequence: Entity's post-green minisector times
        reference: Reference entity's post-green minisector times

    Returns:
        TIME gap (clamped at zero), or None when no comparison is possible
    """
    if not sequence:
        return None
    idx = len(sequence) - 1
    if len(reference) <= idx:
        return None
    return GapValue.time(sequence[idx] - reference[idx])


def merge_with_stable(attempt: Optional[GapValue], stable: Optional[GapValue]) -> GapValue:
    """
    Merge a gap attempt with the last stable value.

    None keeps the stable value; a stable LEADER tag (or nothing) becomes
    UNAVAILABLE since leadership cannot be carried over.
    """
    if attempt is not None:
        return attempt
    if stable is None or stable.is_leader:
        return GapValue.UNAVAILABLE
    return stable


class GapEngine:
    """
    Gap computation over a ranked order.

    Usage:
        engine = GapEngine()
        order = ranking.rank(ledger, board_time)
        engine.recompute(order, ledger)
        engine.gap_to_leader("44")

    Invariants:
    - Exactly one LEADER tag in the leader map when the order is non-empty
    - No LEADER tag when the order is empty
    - TIME gaps are never negative
    """

    def __init__(self):
        self.metrics = get_metrics()

        self.gaps_to_leader: Dict[str, GapValue] = {}
        self.gaps_to_ahead: Dict[str, GapValue] = {}
        self.current_leader: Optional[str] = None
        self.order: List[str] = []

        self._stable_leader: Dict[str, GapValue] = {}
        self._stable_ahead: Dict[str, GapValue] = {}

    def gap_to_leader(self, entity_id: str) -> GapValue:
        return self.gaps_to_leader.get(entity_id, GapValue.UNAVAILABLE)

    def gap_to_ahead(self, entity_id: str) -> GapValue:
        return self.gaps_to_ahead.get(entity_id, GapValue.UNAVAILABLE)

    def reset_stable(self):
        """Forget stable caches (green flag)."""
        self._stable_leader.clear()
        self._stable_ahead.clear()

    def recompute(self, order: List[str], ledger: ProgressLedger):
        """
        Recompute both gap maps.

        Args:
            order: Ranked revealed entities, leader first
            ledger: Ledger holding each entity's minisector sequence
        """
        self.metrics.increment('gap_recomputes')
        self.order = list(order)

        if not order:
            self.gaps_to_leader = {
                eid: (GapValue.UNAVAILABLE if g.is_leader else g)
                for eid, g in self.gaps_to_leader.items()
            }
            self.gaps_to_ahead = {
                eid: (GapValue.UNAVAILABLE if g.is_leader else g)
                for eid, g in self.gaps_to_ahead.items()
            }
            self.current_leader = None
            return

        leader = order[0]
        leader_seq = ledger.entry(leader).mini_seq_times

        new_leader: Dict[str, GapValue] = {}
        new_ahead: Dict[str, GapValue] = {}

        for i, eid in enumerate(order):
            seq = ledger.entry(eid).mini_seq_times

            if eid == leader:
                new_leader[eid] = GapValue.LEADER
            else:
                attempt = gap_at_matching_index(seq, leader_seq)
                new_leader[eid] = merge_with_stable(attempt, self._stable_leader.get(eid))

            if i == 0:
                new_ahead[eid] = GapValue.LEADER
            else:
                ahead_seq = ledger.entry(order[i - 1]).mini_seq_times
                attempt = gap_at_matching_index(seq, ahead_seq)
                new_ahead[eid] = merge_with_stable(attempt, self._stable_ahead.get(eid))

        if leader != self.current_leader:
            logger.debug("Gap reference leader is now %s", leader)

        self.gaps_to_leader = new_leader
        self.gaps_to_ahead = new_ahead
        self.current_leader = leader

        # A leader's stable gap is zero to the leader, unknown to the car ahead
        for eid, gap in new_leader.items():
            self._stable_leader[eid] = GapValue.time(0.0) if gap.is_leader else gap
            if gap.is_time:
                self.metrics.record_histogram('gap_to_leader_s', gap.seconds)
        for eid, gap in new_ahead.items():
            self._stable_ahead[eid] = GapValue.UNAVAILABLE if gap.is_leader else gap
