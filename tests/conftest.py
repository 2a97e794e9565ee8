"""
Pytest configuration and shared fixtures for race replay tests.

This module provides synthetic circular-track telemetry, hand-built gates
along a straight line and ready-to-run replay configurations.
"""

import sys
import math
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from race_core.metrics import reset_metrics
from race_core.proto import (
    Sample,
    EntityInfo,
    EntityTelemetry,
    GateKind,
    TelemetryStore,
)
from race_core.domain import (
    GateReferences,
    GateSet,
    gate_from_direction,
)
from race_core.domain.replay import ReplayConfig
from race_core.domain.status_machine import StatusConfig
from race_core.playback import ClockConfig


# =============================================================================
# Track Constants
# =============================================================================

# Circular track: radius 500, one lap every 60 s, counter-clockwise
TRACK_RADIUS = 500.0
LAP_PERIOD_S = 60.0
SAMPLE_INTERVAL_S = 0.5
SESSION_START = 1000.0
SESSION_END = 1400.0

# Reference entity "1" passes each gate at these times (quarter laps)
START_FINISH_TIME = 1010.0
MINISECTOR_TIMES = [1025.0, 1040.0, 1055.0]
GREEN_FLAG_TIME = 1032.0

# Pit entry gate sits between the second and third minisector
PIT_ENTRY_TIME = 1047.5

# Time lag of each entity behind the reference entity
ENTITY_LAGS = {"1": 0.0, "2": 2.0, "3": 4.5}


# =============================================================================
# Telemetry Builders
# =============================================================================


def circle_samples(
    lag_s: float = 0.0,
    start: float = SESSION_START,
    end: float = SESSION_END,
    interval: float = SAMPLE_INTERVAL_S,
) -> List[Sample]:
    """
    Samples of an entity driving the circular track.

    The entity is at angle 0 at time `start + lag_s` and follows the
    reference entity's path exactly `lag_s` seconds later.
    """
    omega = 2.0 * math.pi / LAP_PERIOD_S
    samples = []
    n = int(round((end - start) / interval))
    for i in range(n + 1):
        t = start + i * interval
        theta = omega * (t - start - lag_s)
        samples.append(Sample(timestamp=t, x=TRACK_RADIUS * math.cos(theta),
                              y=TRACK_RADIUS * math.sin(theta)))
    return samples


def make_store(
    samples_by_entity: Dict[str, List[Sample]],
    entity_ids: Optional[List[str]] = None,
) -> TelemetryStore:
    """TelemetryStore in declaration order; ids without samples stay empty."""
    ids = entity_ids or list(samples_by_entity)
    return TelemetryStore(
        entities=[EntityInfo(entity_id=eid, label=f"E{eid}") for eid in ids],
        telemetry={
            eid: EntityTelemetry(eid, samples) for eid, samples in samples_by_entity.items()
        },
    )


# =============================================================================
# Metrics Isolation
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_metrics():
    """Give each test a clean global metrics collector."""
    reset_metrics()
    yield
    reset_metrics()


# =============================================================================
# Gate Fixtures
# =============================================================================


@pytest.fixture
def line_gate():
    """Minisector gate at x=100 facing +x, half-length 50."""
    return gate_from_direction("M1", GateKind.MINISECTOR, 0, (100.0, 0.0), (1.0, 0.0), 50.0)


@pytest.fixture
def straight_gate_set():
    """Start/finish at x=0, minisectors at x=100 and x=200, pit entry at x=300."""
    return GateSet(
        start_finish=gate_from_direction("SF", GateKind.START_FINISH, 0, (0.0, 0.0), (1.0, 0.0), 50.0),
        minisectors=[
            gate_from_direction("M1", GateKind.MINISECTOR, 0, (100.0, 0.0), (1.0, 0.0), 50.0),
            gate_from_direction("M2", GateKind.MINISECTOR, 1, (200.0, 0.0), (1.0, 0.0), 50.0),
        ],
        pit_entry=gate_from_direction("PIT", GateKind.PIT_ENTRY, 0, (300.0, 0.0), (1.0, 0.0), 50.0),
    )


# =============================================================================
# Circular Track Fixtures
# =============================================================================


@pytest.fixture
def circle_store() -> TelemetryStore:
    """
    Three entities on the circular track plus entity "9" with no samples.

    Entities "2" and "3" trail "1" by 2 s and 4.5 s.
    """
    samples = {eid: circle_samples(lag) for eid, lag in ENTITY_LAGS.items()}
    return make_store(samples, entity_ids=["1", "2", "3", "9"])


@pytest.fixture
def gate_references() -> GateReferences:
    return GateReferences(
        start_finish_time=START_FINISH_TIME,
        minisector_times=list(MINISECTOR_TIMES),
        reference_entity_id="1",
    )


@pytest.fixture
def replay_config(gate_references) -> ReplayConfig:
    """Real-time playback, three-lap race, green flag at 1032 s."""
    return ReplayConfig(
        gate_references=gate_references,
        race_start_time=GREEN_FLAG_TIME,
        clock=ClockConfig(default_speed=1.0),
        status=StatusConfig(final_lap=3),
    )


def run_until(replay, car_time: float, dt: float = 0.1):
    """Tick a replay until its car clock reaches car_time; return the last snapshot."""
    snapshot = replay.tick(0.0)
    while snapshot.car_time < car_time:
        snapshot = replay.tick(dt)
    return snapshot
