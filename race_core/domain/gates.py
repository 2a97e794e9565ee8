"""
Gate Geometry and Derivation.

A gate is a finite oriented line segment in world space, derived once at
initialization from a reference entity's recorded path at a reference
timestamp. Gates are never recomputed during a replay.

Orientation: the normal is the local direction of travel of the reference
entity, so forward travel takes the signed distance from negative to
non-negative. The tangent spans the segment across the track.
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Sequence, Tuple
import logging
import math

import numpy as np

from race_core.proto import GateKind, EntityTelemetry, TelemetryStore
from race_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Gate:
    """
    Immutable oriented gate segment.

    Attributes:
        gate_id: Identifier ("SF", "M1".."MK", "PIT")
        kind: Gate kind
        index: Ordinal within its kind (minisector order, 0 otherwise)
        anchor: Gate centre (x, y)
        tangent: Unit vector along the segment
        normal: Unit vector perpendicular to the segment (forward direction)
        half_length: Half of the segment length, world units
    """

    gate_id: str
    kind: GateKind
    index: int
    anchor: Tuple[float, float]
    tangent: Tuple[float, float]
    normal: Tuple[float, float]
    half_length: float

    def __post_init__(self):
        """Validate gate geometry."""
        if self.half_length <= 0:
            raise ValueError(f"Gate half-length must be positive: {self.half_length}")
        for name in ('tangent', 'normal'):
            norm = math.hypot(*getattr(self, name))
            if abs(norm - 1.0) > 1e-6:
                raise ValueError(f"Gate {name} must be a unit vector: |{name}|={norm}")

    def signed_distance(self, point) -> float:
        """Signed distance of a point to the gate's infinite line, along the normal."""
        return float(np.dot(np.asarray(point, dtype=float) - self.anchor, self.normal))

    def tangential_offset(self, point) -> float:
        """Projection of a point onto the gate tangent, relative to the anchor."""
        return float(np.dot(np.asarray(point, dtype=float) - self.anchor, self.tangent))

    def endpoints(self) -> Tuple[Tuple[float, float], Tuple[float, float]]:
        """Segment endpoints, for drawing."""
        ax, ay = self.anchor
        tx, ty = self.tangent
        h = self.half_length
        return (ax - tx * h, ay - ty * h), (ax + tx * h, ay + ty * h)


def gate_from_direction(
    gate_id: str,
    kind: GateKind,
    index: int,
    anchor: Sequence[float],
    direction: Sequence[float],
    half_length: float,
) -> Gate:
    """
    Build a gate at an anchor whose normal points along a travel direction.

    Args:
        direction: Travel direction (any non-zero length)
    """
    d = np.asarray(direction, dtype=float)
    d = d / np.linalg.norm(d)
    normal = (float(d[0]), float(d[1]))
    tangent = (-normal[1], normal[0])
    return Gate(
        gate_id=gate_id,
        kind=kind,
        index=index,
        anchor=(float(anchor[0]), float(anchor[1])),
        tangent=tangent,
        normal=normal,
        half_length=float(half_length),
    )


@dataclass
class GateDerivationConfig:
    """
    Configuration for deriving gates from a reference path.

    Attributes:
        half_length: Half-length of every derived gate (world units)
        tolerance_s: Max distance in time to the nearest sample when the
            reference timestamp has no exact match
        default_angle_deg: Normal angle used when the local direction of
            travel cannot be measured
    """

    half_length: float = 200.0
    tolerance_s: float = 3.0
    default_angle_deg: float = 73.0


def find_reference_index(
    telemetry: EntityTelemetry,
    timestamp: float,
    tolerance_s: float,
) -> Optional[int]:
    """
    Index of the sample at a reference timestamp.

    Exact match first; otherwise the nearest sample within tolerance.

    Returns:
        Sample index, or None if no sample is within tolerance
    """
    if telemetry.is_empty:
        return None

    diffs = np.abs(telemetry.times - timestamp)
    best = int(np.argmin(diffs))
    if diffs[best] < 1e-6:
        return best

    if diffs[best] > tolerance_s:
        return None

    logger.debug(
        "No exact sample at %.3f for entity %s, using nearest (%.3fs away)",
        timestamp, telemetry.entity_id, float(diffs[best]),
    )
    return best


def local_direction(telemetry: EntityTelemetry, idx: int) -> Optional[np.ndarray]:
    """
    Direction of travel through a sample, from its neighbours.

    Returns:
        Direction vector, or None if the neighbours coincide
    """
    n = len(telemetry)
    if 0 < idx < n - 1:
        p_a, p_b = telemetry.position_at(idx - 1), telemetry.position_at(idx + 1)
    elif idx < n - 1:
        p_a, p_b = telemetry.position_at(idx), telemetry.position_at(idx + 1)
    elif idx > 0:
        p_a, p_b = telemetry.position_at(idx - 1), telemetry.position_at(idx)
    else:
        return None

    d = p_b - p_a
    if abs(d[0]) + abs(d[1]) <= 1e-6:
        return None
    return d


def derive_gate(
    telemetry: Optional[EntityTelemetry],
    timestamp: float,
    gate_id: str,
    kind: GateKind,
    index: int = 0,
    config: Optional[GateDerivationConfig] = None,
) -> Optional[Gate]:
    """
    Derive a gate from a reference entity's path at a timestamp.

    Returns:
        Gate, or None if the reference has no sample within tolerance
    """
    config = config or GateDerivationConfig()

    if telemetry is None:
        get_metrics().increment_drop('gate_not_derived')
        logger.warning("Gate %s omitted: reference entity has no telemetry", gate_id)
        return None

    idx = find_reference_index(telemetry, timestamp, config.tolerance_s)
    if idx is None:
        get_metrics().increment_drop('gate_not_derived')
        logger.warning(
            "Gate %s omitted: no sample of entity %s within %.1fs of %.3f",
            gate_id, telemetry.entity_id, config.tolerance_s, timestamp,
        )
        return None

    direction = local_direction(telemetry, idx)
    if direction is None:
        theta = math.radians(config.default_angle_deg)
        direction = np.array([math.cos(theta), math.sin(theta)])

    return gate_from_direction(
        gate_id, kind, index, telemetry.position_at(idx), direction, config.half_length
    )


@dataclass
class GateReferences:
    """
    Reference timestamps and entities used to derive the track's gates.

    Attributes:
        start_finish_time: Absolute time the reference entity is on the line
        minisector_times: Ordered absolute times of the minisector gates
        pit_entry_time: Absolute time the pit reference entity enters the pit
        reference_entity_id: Entity whose path defines SF and minisectors
        pit_reference_entity_id: Entity whose path defines the pit entry
    """

    start_finish_time: float
    minisector_times: List[float] = field(default_factory=list)
    pit_entry_time: Optional[float] = None
    reference_entity_id: str = "1"
    pit_reference_entity_id: Optional[str] = None


@dataclass
class GateSet:
    """All gates of a track."""

    start_finish: Optional[Gate] = None
    minisectors: List[Gate] = field(default_factory=list)
    pit_entry: Optional[Gate] = None

    def __iter__(self) -> Iterator[Gate]:
        if self.start_finish is not None:
            yield self.start_finish
        yield from self.minisectors
        if self.pit_entry is not None:
            yield self.pit_entry

    def __len__(self) -> int:
        return sum(1 for _ in self)


def build_gate_set(
    store: TelemetryStore,
    references: GateReferences,
    config: Optional[GateDerivationConfig] = None,
) -> GateSet:
    """
    Derive every gate of a track once, before replay.

    Minisectors that cannot be derived are dropped; the rest keep their
    order. A missing pit gate leaves pit detection inactive.
    """
    config = config or GateDerivationConfig()
    reference = store.get(references.reference_entity_id)

    start_finish = derive_gate(
        reference, references.start_finish_time, "SF", GateKind.START_FINISH, 0, config
    )

    minisectors = []
    for ts in references.minisector_times:
        gate = derive_gate(
            reference, ts, f"M{len(minisectors) + 1}", GateKind.MINISECTOR,
            len(minisectors), config,
        )
        if gate is not None:
            minisectors.append(gate)

    pit_entry = None
    if references.pit_entry_time is not None:
        pit_ref_id = references.pit_reference_entity_id or references.reference_entity_id
        pit_entry = derive_gate(
            store.get(pit_ref_id), references.pit_entry_time, "PIT", GateKind.PIT_ENTRY, 0, config
        )

    logger.info(
        "Derived gates: start/finish=%s, minisectors=%d/%d, pit entry=%s",
        start_finish is not None, len(minisectors), len(references.minisector_times),
        pit_entry is not None,
    )

    return GateSet(start_finish=start_finish, minisectors=minisectors, pit_entry=pit_entry)
