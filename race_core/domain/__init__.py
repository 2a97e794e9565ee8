"""
Domain Module: Race timing and classification logic.

Implements:
- Gate derivation and crossing detection
- Progress ledger, ranking and gaps
- Entity status machine and tyre stints
- The per-tick replay pipeline
"""

from .gates import (
    Gate,
    GateSet,
    GateReferences,
    GateDerivationConfig,
    build_gate_set,
    derive_gate,
    gate_from_direction,
)
from .gate_calculator import (
    GateCrossingDetector,
    GateDetectorConfig,
    create_default_detector,
    find_crossing,
)
from .ledger import (
    ProgressLedger,
    LedgerEntry,
    LedgerUpdate,
)
from .ranking import (
    RankingEngine,
    classify,
    lap_header,
    numeric_lap,
)
from .gap_engine import GapEngine
from .status_machine import (
    StatusStateMachine,
    StatusConfig,
    StatusRecord,
)
from .stints import StintBook, normalize_compound
from .replay import RaceReplay, ReplayConfig, create_replay

__all__ = [
    # Gates
    'Gate',
    'GateSet',
    'GateReferences',
    'GateDerivationConfig',
    'build_gate_set',
    'derive_gate',
    'gate_from_direction',
    # Detection
    'GateCrossingDetector',
    'GateDetectorConfig',
    'create_default_detector',
    'find_crossing',
    # Progress
    'ProgressLedger',
    'LedgerEntry',
    'LedgerUpdate',
    'RankingEngine',
    'classify',
    'lap_header',
    'numeric_lap',
    'GapEngine',
    # Status
    'StatusStateMachine',
    'StatusConfig',
    'StatusRecord',
    'StintBook',
    'normalize_compound',
    # Pipeline
    'RaceReplay',
    'ReplayConfig',
    'create_replay',
]
