"""
Tyre Stint Lookup.

Read-only lookup of an entity's tyre compound and age at a lap number.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional

from race_core.proto import TyreStint


def normalize_compound(compound: Optional[str]) -> Optional[str]:
    """
    Normalize tyre compound codes.

    Accepts single letters (S, M, H) and words starting with SOFT, MED, HARD;
    anything else is returned upper-cased.
    """
    if not compound or not compound.strip():
        return None
    c = compound.strip().upper()
    if c == 'S' or c.startswith('SOFT'):
        return 'SOFT'
    if c == 'M' or c.startswith('MED'):
        return 'MEDIUM'
    if c == 'H' or c.startswith('HARD'):
        return 'HARD'
    return c


class StintBook:
    """Stints grouped by entity, sorted by first lap."""

    def __init__(self, stints: Iterable[TyreStint] = ()):
        grouped: Dict[str, List[TyreStint]] = defaultdict(list)
        for stint in stints:
            grouped[stint.entity_id].append(stint)
        self._by_entity = {
            eid: sorted(items, key=lambda s: s.lap_start) for eid, items in grouped.items()
        }

    def stints_for(self, entity_id: str) -> List[TyreStint]:
        return list(self._by_entity.get(entity_id, []))

    def current_stint(self, entity_id: str, lap: int) -> Optional[TyreStint]:
        """
        Stint covering a lap.

        Falls back to the last stint starting at or before the lap when no
        stint contains it.
        """
        stints = self._by_entity.get(entity_id)
        if not stints:
            return None
        for stint in stints:
            if stint.lap_start <= lap <= stint.lap_end:
                return stint
        best = None
        for stint in stints:
            if stint.lap_start <= lap:
                best = stint
        return best

    def current_compound(self, entity_id: str, lap: int) -> Optional[str]:
        stint = self.current_stint(entity_id, lap)
        return stint.compound if stint else None

    def current_tyre_age(self, entity_id: str, lap: int) -> Optional[int]:
        """Laps on the current set: laps into the stint plus its starting age."""
        stint = self.current_stint(entity_id, lap)
        if stint is None:
            return None
        return (lap - stint.lap_start) + stint.starting_age
