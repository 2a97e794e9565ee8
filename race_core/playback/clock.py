"""
Virtual Race Clock.

Advances a monotonic race time at a playback multiplier while playing and
derives the two absolute clocks used by the replay:
- board time: drives leaderboard, gaps, retirements and the green flag
- car time: drives position interpolation and crossing timestamps

Both are the session start time plus race time; car time additionally
carries a constant calibration offset.
"""

from dataclasses import dataclass
from typing import Optional, Tuple
import logging

logger = logging.getLogger(__name__)


@dataclass
class ClockConfig:
    """
    Configuration for the race clock.

    Attributes:
        speed_presets: Discrete playback multipliers offered to the user
        default_speed: Initial multiplier
        min_speed: Lower clamp for the multiplier
        max_speed: Upper clamp for the multiplier
        calibration_offset_s: Constant offset added to car time (s)
        start_playing: Whether the clock starts in the playing state
    """

    speed_presets: Tuple[float, ...] = (1.0, 2.0, 5.0, 10.0, 20.0)
    default_speed: float = 5.0
    min_speed: float = 1.0
    max_speed: float = 20.0
    calibration_offset_s: float = 0.0
    start_playing: bool = True


@dataclass(frozen=True)
class ClockReading:
    """Clock state after one advance."""

    race_time: float
    board_time: float
    car_time: float
    after_green: bool
    race_started: bool
    dt: float = 0.0
    speed: float = 1.0


class RaceClock:
    """
    Frame-driven race clock.

    Usage:
        clock = RaceClock(start_time=t0, race_start_time=t_green)
        reading = clock.advance(1 / 60)
        if reading.race_started:
            ...

    Pausing stops advancement; advancing a paused clock returns the same
    absolute times every call.
    """

    def __init__(
        self,
        start_time: float,
        race_start_time: float,
        config: Optional[ClockConfig] = None,
        board_start_time: Optional[float] = None,
    ):
        """
        Initialize race clock.

        Args:
            start_time: Absolute time of race time zero for cars
            race_start_time: Absolute green flag time
            config: Clock configuration (uses defaults if None)
            board_start_time: Absolute time of race time zero for the board
                (defaults to start_time)
        """
        self.config = config or ClockConfig()
        self.car_start_time = float(start_time)
        self.board_start_time = float(
            start_time if board_start_time is None else board_start_time
        )
        self.race_start_time = float(race_start_time)

        self.race_time = 0.0
        self.playing = self.config.start_playing
        self._speed = self._clamp_speed(self.config.default_speed)

    def _clamp_speed(self, speed: float) -> float:
        return max(self.config.min_speed, min(self.config.max_speed, float(speed)))

    @property
    def speed(self) -> float:
        """Current playback multiplier."""
        return self._speed

    def set_speed(self, speed: float):
        """Set playback multiplier, clamped to [min_speed, max_speed]."""
        self._speed = self._clamp_speed(speed)
        logger.debug("Playback speed set to %.1fx", self._speed)

    def select_preset(self, index: int):
        """
        Select a speed preset by index.

        Raises:
            IndexError: If index is outside the preset list
        """
        self.set_speed(self.config.speed_presets[index])

    @property
    def preset_index(self) -> Optional[int]:
        """Index of the active preset, or None if the speed is not a preset."""
        for i, preset in enumerate(self.config.speed_presets):
            if preset == self._speed:
                return i
        return None

    def play(self):
        self.playing = True

    def pause(self):
        self.playing = False

    def toggle(self) -> bool:
        """Toggle play/pause, returning the new playing state."""
        self.playing = not self.playing
        return self.playing

    @property
    def board_time(self) -> float:
        return self.board_start_time + self.race_time

    @property
    def car_time(self) -> float:
        return self.car_start_time + self.race_time + self.config.calibration_offset_s

    @property
    def car_elapsed(self) -> float:
        """Car time elapsed since the start of the session timeline."""
        return self.car_time - self.car_start_time

    def reading(self, dt: float = 0.0) -> ClockReading:
        """Read the clock without advancing it."""
        board_time = self.board_time
        car_time = self.car_time
        return ClockReading(
            race_time=self.race_time,
            board_time=board_time,
            car_time=car_time,
            after_green=car_time >= self.race_start_time,
            race_started=board_time >= self.race_start_time,
            dt=dt,
            speed=self._speed,
        )

    def advance(self, dt: float) -> ClockReading:
        """
        Advance by a wall-clock delta.

        Args:
            dt: Wall-clock seconds since the previous frame (negative values
                are treated as zero; reported as zero while paused)

        Returns:
            ClockReading after the advance
        """
        dt = max(0.0, float(dt))
        if not self.playing:
            return self.reading(0.0)
        self.race_time += dt * self._speed
        return self.reading(dt)
