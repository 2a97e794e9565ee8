"""
Unit tests for gate geometry and derivation.

Tests cover:
- Gate validation and signed distance / tangential offset
- Reference sample lookup (exact, nearest within tolerance, none)
- Orientation from the local direction of travel
- Gate set construction and omission of underivable gates
"""

import math

import pytest

from race_core.metrics import get_metrics
from race_core.proto import Sample, EntityTelemetry, GateKind
from race_core.domain import (
    Gate,
    GateReferences,
    GateDerivationConfig,
    build_gate_set,
    derive_gate,
    gate_from_direction,
)
from race_core.domain.gates import find_reference_index
from tests.conftest import circle_samples, make_store, TRACK_RADIUS


class TestGateGeometry:
    """Tests for the Gate value type."""

    def test_from_direction_normalizes(self):
        gate = gate_from_direction("SF", GateKind.START_FINISH, 0, (0, 0), (3.0, 4.0), 10.0)
        assert gate.normal == pytest.approx((0.6, 0.8))
        assert gate.tangent == pytest.approx((-0.8, 0.6))

    def test_signed_distance_and_offset(self, line_gate):
        assert line_gate.signed_distance((90.0, 5.0)) == pytest.approx(-10.0)
        assert line_gate.signed_distance((110.0, 5.0)) == pytest.approx(10.0)
        assert line_gate.tangential_offset((100.0, 30.0)) == pytest.approx(30.0)

    def test_endpoints(self, line_gate):
        a, b = line_gate.endpoints()
        assert a == pytest.approx((100.0, -50.0))
        assert b == pytest.approx((100.0, 50.0))

    def test_invalid_half_length(self):
        with pytest.raises(ValueError):
            Gate("M1", GateKind.MINISECTOR, 0, (0, 0), (0, 1), (1, 0), 0.0)

    def test_non_unit_normal(self):
        with pytest.raises(ValueError):
            Gate("M1", GateKind.MINISECTOR, 0, (0, 0), (0, 1), (2, 0), 5.0)


class TestReferenceLookup:
    """Tests for finding the reference sample."""

    @pytest.fixture
    def telemetry(self):
        return EntityTelemetry("1", circle_samples())

    def test_exact_match(self, telemetry):
        idx = find_reference_index(telemetry, 1010.0, 3.0)
        assert telemetry.times[idx] == 1010.0

    def test_nearest_within_tolerance(self, telemetry):
        idx = find_reference_index(telemetry, 1010.2, 3.0)
        assert telemetry.times[idx] == 1010.0

    def test_none_outside_tolerance(self, telemetry):
        assert find_reference_index(telemetry, 2000.0, 3.0) is None

    def test_empty_telemetry(self):
        assert find_reference_index(EntityTelemetry("1"), 1010.0, 3.0) is None


class TestDeriveGate:
    """Tests for deriving one gate from a reference path."""

    def test_normal_follows_travel_direction(self):
        """Counter-clockwise travel at 60 degrees: normal is the circle tangent."""
        telemetry = EntityTelemetry("1", circle_samples())
        gate = derive_gate(telemetry, 1010.0, "SF", GateKind.START_FINISH)

        theta = math.pi / 3
        assert gate.anchor == pytest.approx(
            (TRACK_RADIUS * math.cos(theta), TRACK_RADIUS * math.sin(theta)))
        assert gate.normal == pytest.approx((-math.sin(theta), math.cos(theta)), abs=1e-3)
        assert gate.half_length == 200.0

    def test_forward_travel_goes_negative_to_positive(self):
        telemetry = EntityTelemetry("1", circle_samples())
        gate = derive_gate(telemetry, 1010.0, "SF", GateKind.START_FINISH)

        before = telemetry.position_at(18)  # t = 1009
        after = telemetry.position_at(22)   # t = 1011
        assert gate.signed_distance(before) < 0
        assert gate.signed_distance(after) > 0

    def test_default_angle_when_stationary(self):
        """Coinciding neighbours fall back to the configured angle."""
        telemetry = EntityTelemetry("1", [Sample(float(t), 5.0, 5.0) for t in range(5)])
        gate = derive_gate(telemetry, 2.0, "M1", GateKind.MINISECTOR,
                           config=GateDerivationConfig(default_angle_deg=73.0))

        theta = math.radians(73.0)
        assert gate.normal == pytest.approx((math.cos(theta), math.sin(theta)))

    def test_missing_reference_omits_gate(self):
        telemetry = EntityTelemetry("1", circle_samples())
        gate = derive_gate(telemetry, 5000.0, "M1", GateKind.MINISECTOR)

        assert gate is None
        assert get_metrics().get_drop_count('gate_not_derived') == 1

    def test_no_telemetry(self):
        assert derive_gate(None, 1010.0, "SF", GateKind.START_FINISH) is None


class TestBuildGateSet:
    """Tests for deriving a complete gate set."""

    def test_full_set(self, circle_store, gate_references):
        gates = build_gate_set(circle_store, gate_references)

        assert gates.start_finish.gate_id == "SF"
        assert [g.gate_id for g in gates.minisectors] == ["M1", "M2", "M3"]
        assert gates.pit_entry is None
        assert len(gates) == 4

    def test_underivable_minisector_dropped(self, circle_store):
        refs = GateReferences(
            start_finish_time=1010.0,
            minisector_times=[1025.0, 9999.0, 1055.0],
            reference_entity_id="1",
        )
        gates = build_gate_set(circle_store, refs)

        assert [g.gate_id for g in gates.minisectors] == ["M1", "M2"]
        assert [g.index for g in gates.minisectors] == [0, 1]
        # Remaining gates keep their order along the lap
        assert gates.minisectors[1].anchor == pytest.approx(
            tuple(EntityTelemetry("1", circle_samples()).position_at(110)))

    def test_pit_gate_uses_pit_reference(self):
        store = make_store({
            "1": circle_samples(),
            "16": circle_samples(lag_s=30.0),
        })
        refs = GateReferences(
            start_finish_time=1010.0,
            pit_entry_time=1040.0,
            reference_entity_id="1",
            pit_reference_entity_id="16",
        )
        gates = build_gate_set(store, refs)

        # Entity 16 is at angle pi/3 at t=1040
        assert gates.pit_entry.kind == GateKind.PIT_ENTRY
        assert gates.pit_entry.anchor == pytest.approx(gates.start_finish.anchor)
