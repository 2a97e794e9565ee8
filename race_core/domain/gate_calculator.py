"""
Gate Crossing Detection.

Detects entities passing through finite oriented gates between two
consecutive positions, with per-gate debounce and a start-of-timeline
suspension window.

Detection is split in two:
- find_crossing(): pure geometry, previous + current position and a gate
  to a candidate CrossingEvent
- GateCrossingDetector: per-entity history, extent check, direction rules,
  debounce; emits accepted events without mutating race state
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import logging

import numpy as np

from race_core.proto import CrossingEvent, CrossingDirection, GateKind
from race_core.metrics import get_metrics
from .gates import Gate, GateSet

logger = logging.getLogger(__name__)


def find_crossing(
    gate: Gate,
    prev_pos,
    curr_pos,
    prev_time: float,
    curr_time: float,
    entity_id: str = "",
) -> Optional[CrossingEvent]:
    """
    Find a sign flip of the signed distance to a gate's line.

    Args:
        gate: Gate to test
        prev_pos: Position at prev_time (x, y)
        curr_pos: Position at curr_time (x, y)
        prev_time: Absolute time of prev_pos
        curr_time: Absolute time of curr_pos
        entity_id: Entity id carried into the event

    Returns:
        CrossingEvent for any sign flip (either direction), or None

    Algorithm:
        1. d = (p - anchor) . normal for both positions
        2. Forward if d0 < 0 <= d1, backward if d0 > 0 >= d1
        3. Zero-crossing fraction r = d0 / (d0 - d1)
        4. Intersection point i = prev + (curr - prev) * r
        5. Tangential offset u = (i - anchor) . tangent
        6. Crossing time = prev_time + r * (curr_time - prev_time)

    The extent check (|u| <= half_length) is left to the caller; the event
    always carries u.
    """
    p0 = np.asarray(prev_pos, dtype=float)
    p1 = np.asarray(curr_pos, dtype=float)
    d0 = gate.signed_distance(p0)
    d1 = gate.signed_distance(p1)

    if d0 < 0 and d1 >= 0:
        direction = CrossingDirection.FORWARD
    elif d0 > 0 and d1 <= 0:
        direction = CrossingDirection.BACKWARD
    else:
        return None

    denom = d0 - d1
    r = d0 / denom if abs(denom) > 1e-6 else 0.5
    intersection = p0 + (p1 - p0) * r
    u = gate.tangential_offset(intersection)

    return CrossingEvent(
        entity_id=entity_id,
        gate_id=gate.gate_id,
        gate_kind=gate.kind,
        gate_index=gate.index,
        direction=direction,
        time=float(prev_time + r * (curr_time - prev_time)),
        fraction=float(r),
        offset=float(u),
    )


@dataclass
class GateDetectorConfig:
    """
    Configuration for the crossing detector.

    Attributes:
        min_crossing_interval_s: Debounce between two accepted crossings of
            the same gate by the same entity (simulated seconds)
        start_delay_s: Detection is suspended for this long from the start
            of the session timeline
    """

    min_crossing_interval_s: float = 4.0
    start_delay_s: float = 1.0


class GateCrossingDetector:
    """
    Per-entity crossing detection across a gate set.

    Usage:
        detector = GateCrossingDetector(gates, config)

        events = detector.process(
            "44", position, car_time, elapsed,
            evaluate_start_finish=after_green,
            evaluate_pit=not frozen,
        )
        for event in events:
            ledger.apply(event, after_green)

    Rules:
    - Start/finish and minisector gates accept forward crossings only
    - The pit-entry gate accepts either direction
    - A crossing must pass within the gate's half-length
    - Same gate, same entity: crossings within the debounce interval are
      discarded; a discarded crossing does not restart the interval
    """

    FORWARD_ONLY = (GateKind.START_FINISH, GateKind.MINISECTOR)

    def __init__(self, gates: GateSet, config: Optional[GateDetectorConfig] = None):
        """
        Initialize crossing detector.

        Args:
            gates: Track gates (fixed for the session)
            config: Detector configuration (uses defaults if None)
        """
        self.gates = gates
        self.config = config or GateDetectorConfig()
        self.metrics_collector = get_metrics()

        # Previous raw position and time per entity
        self._last_pos: Dict[str, np.ndarray] = {}
        self._last_time: Dict[str, float] = {}

        # Last accepted crossing time per (entity, gate_id)
        self._last_cross: Dict[Tuple[str, str], float] = {}

    def last_crossing_time(self, entity_id: str, gate_id: str) -> float:
        """Last accepted crossing time of a gate, -inf if never crossed."""
        return self._last_cross.get((entity_id, gate_id), float('-inf'))

    def process(
        self,
        entity_id: str,
        position,
        t: float,
        elapsed: float,
        evaluate_start_finish: bool = True,
        evaluate_pit: bool = True,
    ) -> List[CrossingEvent]:
        """
        Detect accepted crossings between the entity's previous and current position.

        Args:
            entity_id: Entity id
            position: Current raw interpolated position (x, y)
            t: Current car absolute time
            elapsed: Car time since the start of the session timeline
            evaluate_start_finish: Test the start/finish gate this tick
            evaluate_pit: Test the pit-entry gate this tick

        Returns:
            Accepted crossing events sorted by crossing time
        """
        position = np.asarray(position, dtype=float)
        prev_pos = self._last_pos.get(entity_id)
        prev_time = self._last_time.get(entity_id)

        self._last_pos[entity_id] = position
        self._last_time[entity_id] = t

        if prev_pos is None:
            return []

        suspended = elapsed < self.config.start_delay_s

        accepted = []
        for gate in self._gates_to_test(evaluate_start_finish, evaluate_pit):
            event = find_crossing(gate, prev_pos, position, prev_time, t, entity_id)
            if event is None:
                continue

            if not self._accept(event, gate, suspended):
                continue

            self._last_cross[(entity_id, gate.gate_id)] = event.time
            accepted.append(event)

            self.metrics_collector.increment('crossings_accepted')
            self.metrics_collector.record_histogram('crossing_offset', abs(event.offset))
            logger.debug(
                "Entity %s crossed %s at %.3f (u=%.1f)",
                entity_id, gate.gate_id, event.time, event.offset,
            )

        accepted.sort(key=lambda e: e.time)
        return accepted

    def _gates_to_test(self, evaluate_start_finish: bool, evaluate_pit: bool) -> List[Gate]:
        gates = []
        if self.gates.pit_entry is not None and evaluate_pit:
            gates.append(self.gates.pit_entry)
        gates.extend(self.gates.minisectors)
        if self.gates.start_finish is not None and evaluate_start_finish:
            gates.append(self.gates.start_finish)
        return gates

    def _accept(self, event: CrossingEvent, gate: Gate, suspended: bool) -> bool:
        """Apply direction, extent, suspension and debounce rules."""
        if abs(event.offset) > gate.half_length:
            self.metrics_collector.increment_drop('outside_gate_extent')
            return False

        if gate.kind in self.FORWARD_ONLY and not event.is_forward:
            self.metrics_collector.increment_drop('backward_crossing')
            return False

        if suspended:
            self.metrics_collector.increment_drop('detection_suspended')
            return False

        last = self.last_crossing_time(event.entity_id, gate.gate_id)
        if (event.time - last) < self.config.min_crossing_interval_s:
            self.metrics_collector.increment_drop('debounced')
            return False

        return True

    def reset_debounce(self, kinds=None):
        """
        Forget last accepted crossing times.

        Args:
            kinds: Gate kinds to reset (all kinds if None)
        """
        kinds = set(kinds) if kinds is not None else None
        gate_kinds = {gate.gate_id: gate.kind for gate in self.gates}
        for key in list(self._last_cross):
            if kinds is None or gate_kinds.get(key[1]) in kinds:
                del self._last_cross[key]

    def reset_entity_history(self, entity_id: str):
        """Reset position and debounce history for one entity."""
        self._last_pos.pop(entity_id, None)
        self._last_time.pop(entity_id, None)
        for key in [k for k in self._last_cross if k[0] == entity_id]:
            del self._last_cross[key]
        self.metrics_collector.increment('detector_history_resets')


def create_default_detector(gates: GateSet) -> GateCrossingDetector:
    """
    Create a crossing detector with default configuration.

    Args:
        gates: Track gates

    Returns:
        Configured GateCrossingDetector
    """
    config = GateDetectorConfig(
        min_crossing_interval_s=4.0,
        start_delay_s=1.0,
    )

    return GateCrossingDetector(gates, config)
