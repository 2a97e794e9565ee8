"""
Unit tests for the race clock and playback controls.

Tests cover:
- Advancing by wall-clock deltas at a speed multiplier
- Pause/play/toggle
- Speed clamping and presets
- Board/car absolute times and the green flag flags
"""

import pytest

from race_core.playback import RaceClock, ClockConfig


class TestAdvance:
    """Tests for race time advancement."""

    def test_advance_scales_by_speed(self):
        """Race time advances by dt * speed."""
        clock = RaceClock(start_time=1000.0, race_start_time=1100.0,
                          config=ClockConfig(default_speed=5.0))

        reading = clock.advance(0.5)

        assert reading.race_time == pytest.approx(2.5)
        assert reading.car_time == pytest.approx(1002.5)
        assert reading.board_time == pytest.approx(1002.5)
        assert reading.speed == 5.0

    def test_negative_dt_ignored(self):
        clock = RaceClock(1000.0, 1100.0)
        clock.advance(-1.0)
        assert clock.race_time == 0.0

    def test_paused_clock_does_not_advance(self):
        """A paused clock returns the same absolute times every call."""
        clock = RaceClock(1000.0, 1100.0)
        clock.advance(1.0)
        clock.pause()

        first = clock.advance(1.0)
        second = clock.advance(1.0)

        assert first.race_time == second.race_time
        assert first.car_time == second.car_time
        assert first.dt == 0.0

    def test_toggle(self):
        clock = RaceClock(1000.0, 1100.0)
        assert clock.playing
        assert clock.toggle() is False
        assert clock.toggle() is True

    def test_start_paused(self):
        clock = RaceClock(1000.0, 1100.0, ClockConfig(start_playing=False))
        clock.advance(10.0)
        assert clock.race_time == 0.0
        clock.play()
        clock.advance(1.0)
        assert clock.race_time > 0.0


class TestSpeed:
    """Tests for speed multiplier handling."""

    def test_set_speed_clamped(self):
        """Speed is clamped to [1, 20]."""
        clock = RaceClock(1000.0, 1100.0)

        clock.set_speed(50)
        assert clock.speed == 20.0

        clock.set_speed(0.1)
        assert clock.speed == 1.0

    def test_default_speed_is_preset(self):
        clock = RaceClock(1000.0, 1100.0)
        assert clock.speed == 5.0
        assert clock.preset_index == 2

    def test_select_preset(self):
        clock = RaceClock(1000.0, 1100.0)
        clock.select_preset(4)
        assert clock.speed == 20.0
        assert clock.preset_index == 4

    def test_select_preset_out_of_range(self):
        clock = RaceClock(1000.0, 1100.0)
        with pytest.raises(IndexError):
            clock.select_preset(10)

    def test_non_preset_speed(self):
        clock = RaceClock(1000.0, 1100.0)
        clock.set_speed(3)
        assert clock.preset_index is None


class TestGreenFlag:
    """Tests for board/car clocks relative to the green flag."""

    def test_flags_before_and_after_green(self):
        clock = RaceClock(1000.0, 1010.0, ClockConfig(default_speed=1.0))

        before = clock.advance(5.0)
        assert not before.race_started
        assert not before.after_green

        after = clock.advance(5.0)
        assert after.race_started
        assert after.after_green

    def test_calibration_offset_moves_car_clock_only(self):
        """Cars ahead of the board pass the green flag first."""
        clock = RaceClock(1000.0, 1010.0,
                          ClockConfig(default_speed=1.0, calibration_offset_s=2.0))

        reading = clock.advance(8.5)

        assert reading.board_time == pytest.approx(1008.5)
        assert reading.car_time == pytest.approx(1010.5)
        assert reading.after_green
        assert not reading.race_started

    def test_car_elapsed(self):
        clock = RaceClock(1000.0, 1010.0, ClockConfig(default_speed=1.0))
        clock.advance(0.5)
        assert clock.car_elapsed == pytest.approx(0.5)

    def test_reading_does_not_advance(self):
        clock = RaceClock(1000.0, 1010.0)
        clock.reading(1.0)
        assert clock.race_time == 0.0
