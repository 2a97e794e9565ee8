"""
Ranking Engine.

Strict total order of revealed entities by minisector progress:
1. Raw progress (minisectors since the green flag), descending
2. Recency (board time since the last minisector crossing), descending;
   among equal progress the entity that reached its last gate earliest
   is further ahead
3. Declaration order, so the order is total and repeatable

Also places frozen entities at their final positions to produce the
classified order shown on the leaderboard.
"""

from typing import Dict, Iterable, List, Optional

from .ledger import ProgressLedger


def numeric_lap(lap_count: int, pit_start: bool = False) -> int:
    """
    Lap number for display and finish checks.

    Lap 0 displays as lap 1. Pit-lane starters cross the line one time
    fewer, so their count is offset by one.
    """
    if lap_count == 0:
        return 1
    return lap_count + 1 if pit_start else lap_count


def lap_header(lap_counts: Dict[str, int], pit_starters: Iterable[str] = ()) -> int:
    """Highest display lap across entities (at least 1)."""
    pit_starters = set(pit_starters)
    laps = [numeric_lap(count, eid in pit_starters) for eid, count in lap_counts.items()]
    return max([1] + laps)


class RankingEngine:
    """
    Orders revealed entities from the ledger.

    Usage:
        engine = RankingEngine(entity_ids)
        order = engine.rank(ledger, board_time)
        leader = order[0] if order else None
    """

    def __init__(self, entity_ids: Iterable[str]):
        self._declaration_index = {eid: i for i, eid in enumerate(entity_ids)}

    def sort_key(self, ledger: ProgressLedger, entity_id: str, board_time: float):
        entry = ledger.entry(entity_id)
        return (
            -entry.raw_progress,
            -entry.recency(board_time),
            self._declaration_index.get(entity_id, len(self._declaration_index)),
        )

    def rank(self, ledger: ProgressLedger, board_time: float) -> List[str]:
        """
        Rank revealed entities.

        Returns:
            Entity ids, leader first; empty if nothing is revealed
        """
        candidates = ledger.revealed_ids()
        return sorted(candidates, key=lambda eid: self.sort_key(ledger, eid, board_time))

    @staticmethod
    def positions(order: List[str]) -> Dict[str, int]:
        """1-based position of each entity in an order."""
        return {eid: i + 1 for i, eid in enumerate(order)}


def classify(order: List[str], final_positions: Dict[str, int]) -> List[str]:
    """
    Merge frozen entities into a live order.

    Each frozen entity takes the first free slot at or after its final
    position, or the nearest free slot before it when none is left; the
    remaining slots take the non-frozen entities in live order.

    Args:
        order: Live ranked order
        final_positions: Frozen entity -> final position

    Returns:
        Classified order with the same members as `order`
    """
    total = len(order)
    slots: List[Optional[str]] = [None] * total
    members = set(order)

    for eid, pos in final_positions.items():
        if eid not in members:
            continue
        pos = max(1, min(pos, total))
        idx = pos - 1
        while idx < total and slots[idx] is not None:
            idx += 1
        if idx >= total:
            idx = pos - 2
            while idx >= 0 and slots[idx] is not None:
                idx -= 1
        if 0 <= idx < total:
            slots[idx] = eid

    active = iter(eid for eid in order if eid not in final_positions)
    for i in range(total):
        if slots[i] is None:
            slots[i] = next(active)

    return slots
