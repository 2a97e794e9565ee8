"""
Protocol Module: Data schemas for replay inputs and outputs.

Inputs: telemetry samples, entity metadata, tyre stints, retirements.
Outputs: crossing events, gap values, standings snapshots.
"""

from .telemetry import (
    Sample,
    EntityInfo,
    EntityTelemetry,
    TyreStint,
    RetirementEvent,
    TelemetryStore,
)
from .crossing import (
    GateKind,
    CrossingDirection,
    CrossingEvent,
)
from .gap_value import (
    GapKind,
    GapValue,
)
from .standings import (
    EntityStatus,
    StandingRow,
    ReplaySnapshot,
)

__all__ = [
    # Inputs
    'Sample',
    'EntityInfo',
    'EntityTelemetry',
    'TyreStint',
    'RetirementEvent',
    'TelemetryStore',
    # Crossings
    'GateKind',
    'CrossingDirection',
    'CrossingEvent',
    # Gaps
    'GapKind',
    'GapValue',
    # Standings
    'EntityStatus',
    'StandingRow',
    'ReplaySnapshot',
]
