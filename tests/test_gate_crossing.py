"""
Unit tests for gate crossing detection.

Tests cover:
- Pure sign-flip geometry and interpolated crossing time
- Gate extent, forward-only gates and the two-way pit gate
- Debounce per (entity, gate)
- Start-of-timeline suspension
- Start/finish and pit gating flags
"""

import pytest

from race_core.metrics import get_metrics
from race_core.proto import GateKind, CrossingDirection
from race_core.domain import (
    GateCrossingDetector,
    GateDetectorConfig,
    create_default_detector,
    find_crossing,
)

ELAPSED = 100.0  # well past the start-of-timeline delay


def cross_forward(detector, entity_id, t, x=100.0, **kwargs):
    """Move an entity through the gate line at x, crossing at time t."""
    detector.process(entity_id, (x - 0.5, 0.0), t - 0.05, ELAPSED, **kwargs)
    return detector.process(entity_id, (x + 0.5, 0.0), t + 0.05, ELAPSED, **kwargs)


# =============================================================================
# Pure Geometry
# =============================================================================


class TestFindCrossing:
    """Tests for find_crossing()."""

    def test_forward_crossing_interpolated_time(self, line_gate):
        """Crossing time is t0 + r * (t1 - t0)."""
        event = find_crossing(line_gate, (90.0, 0.0), (130.0, 0.0), 0.0, 2.0, "44")

        assert event.direction == CrossingDirection.FORWARD
        assert event.fraction == pytest.approx(0.25)
        assert event.time == pytest.approx(0.5)
        assert event.entity_id == "44"
        assert event.gate_kind == GateKind.MINISECTOR

    def test_backward_crossing(self, line_gate):
        event = find_crossing(line_gate, (110.0, 0.0), (90.0, 0.0), 0.0, 1.0)
        assert event.direction == CrossingDirection.BACKWARD
        assert not event.is_forward

    def test_no_crossing(self, line_gate):
        assert find_crossing(line_gate, (80.0, 0.0), (90.0, 0.0), 0.0, 1.0) is None
        assert find_crossing(line_gate, (110.0, 0.0), (120.0, 0.0), 0.0, 1.0) is None

    def test_landing_on_line_counts(self, line_gate):
        event = find_crossing(line_gate, (90.0, 0.0), (100.0, 0.0), 0.0, 1.0)
        assert event is not None
        assert event.time == pytest.approx(1.0)

    def test_offset_reported(self, line_gate):
        """The event carries the tangential offset; extent is the caller's check."""
        event = find_crossing(line_gate, (90.0, 70.0), (110.0, 70.0), 0.0, 1.0)
        assert event.offset == pytest.approx(70.0)


# =============================================================================
# Detector Rules
# =============================================================================


class TestDetectorRules:
    """Tests for GateCrossingDetector acceptance rules."""

    def test_first_position_has_no_crossing(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        assert detector.process("1", (150.0, 0.0), 0.0, ELAPSED) == []

    def test_accepts_forward_minisector(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        events = cross_forward(detector, "1", 10.0)

        assert len(events) == 1
        assert events[0].gate_id == "M1"
        assert events[0].time == pytest.approx(10.0)
        assert get_metrics().get_counter('crossings_accepted') == 1

    def test_outside_extent_dropped(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        detector.process("1", (99.0, 60.0), 0.0, ELAPSED)
        events = detector.process("1", (101.0, 60.0), 1.0, ELAPSED)

        assert events == []
        assert get_metrics().get_drop_count('outside_gate_extent') == 1

    def test_backward_minisector_ignored(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        detector.process("1", (101.0, 0.0), 0.0, ELAPSED)
        events = detector.process("1", (99.0, 0.0), 1.0, ELAPSED)

        assert events == []
        assert get_metrics().get_drop_count('backward_crossing') == 1

    def test_pit_gate_accepts_both_directions(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        detector.process("1", (301.0, 0.0), 0.0, ELAPSED)
        events = detector.process("1", (299.0, 0.0), 1.0, ELAPSED)

        assert [e.gate_kind for e in events] == [GateKind.PIT_ENTRY]
        assert events[0].direction == CrossingDirection.BACKWARD

    def test_suspended_during_start_delay(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        detector.process("1", (99.0, 0.0), 0.0, 0.2)
        events = detector.process("1", (101.0, 0.0), 0.5, 0.5)

        assert events == []
        assert get_metrics().get_drop_count('detection_suspended') == 1

    def test_start_finish_only_when_evaluated(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        events = cross_forward(detector, "1", 10.0, x=0.0, evaluate_start_finish=False)
        assert events == []

        events = cross_forward(detector, "1", 20.0, x=0.0, evaluate_start_finish=True)
        assert [e.gate_id for e in events] == ["SF"]

    def test_pit_skipped_when_not_evaluated(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        events = cross_forward(detector, "1", 10.0, x=300.0, evaluate_pit=False)
        assert events == []

    def test_multiple_gates_sorted_by_time(self, straight_gate_set):
        """One long step through two minisectors yields both, in time order."""
        detector = create_default_detector(straight_gate_set)
        detector.process("1", (50.0, 0.0), 0.0, ELAPSED)
        events = detector.process("1", (250.0, 0.0), 2.0, ELAPSED)

        assert [e.gate_id for e in events] == ["M1", "M2"]
        assert events[0].time == pytest.approx(0.5)
        assert events[1].time == pytest.approx(1.5)


# =============================================================================
# Debounce
# =============================================================================


class TestDebounce:
    """Tests for per-(entity, gate) debounce."""

    def test_double_crossing_within_interval(self, straight_gate_set):
        """Crossings at 10.0 s and 10.1 s on the same gate count once."""
        detector = GateCrossingDetector(straight_gate_set, GateDetectorConfig(min_crossing_interval_s=4.0))

        first = cross_forward(detector, "A", 10.0)
        second = cross_forward(detector, "A", 10.1)

        assert len(first) == 1
        assert first[0].time == pytest.approx(10.0)
        assert second == []
        assert get_metrics().get_drop_count('debounced') == 1

    def test_discarded_crossing_does_not_restart_interval(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)

        assert len(cross_forward(detector, "A", 10.0)) == 1
        assert cross_forward(detector, "A", 12.0) == []
        assert len(cross_forward(detector, "A", 14.5)) == 1

    def test_debounce_is_per_entity(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        assert len(cross_forward(detector, "A", 10.0)) == 1
        assert len(cross_forward(detector, "B", 10.1)) == 1

    def test_debounce_is_per_gate(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        assert len(cross_forward(detector, "A", 10.0, x=100.0)) == 1
        assert len(cross_forward(detector, "A", 10.5, x=200.0)) == 1

    def test_reset_debounce_by_kind(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        cross_forward(detector, "A", 10.0, x=100.0)
        cross_forward(detector, "A", 10.0, x=0.0)

        detector.reset_debounce(kinds=[GateKind.MINISECTOR])

        assert detector.last_crossing_time("A", "M1") == float('-inf')
        assert detector.last_crossing_time("A", "SF") == pytest.approx(10.0)

    def test_reset_entity_history(self, straight_gate_set):
        detector = create_default_detector(straight_gate_set)
        cross_forward(detector, "A", 10.0)

        detector.reset_entity_history("A")

        assert detector.last_crossing_time("A", "M1") == float('-inf')
        assert detector.process("A", (150.0, 0.0), 11.0, ELAPSED) == []
