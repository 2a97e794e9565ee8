"""
Race replay headless runner
Loads the recorded session, replays it frame by frame and prints the
leaderboard and the final classification.
"""

import sys
import signal
import logging
import argparse
from typing import Optional

import config
from race_core import ReplayConfig, create_replay
from race_core.io import load_telemetry_store, format_seconds_of_day
from race_core.metrics import get_metrics
from race_core.proto import ReplaySnapshot

# Logging
logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)


class ReplayRunner:
    """Drives a RaceReplay at a fixed frame rate without rendering"""

    def __init__(self, data_dir: str, speed: Optional[float] = None):
        self.running = False

        race = config.RACE_CONFIG
        data = config.DATA_CONFIG

        self.store = load_telemetry_store(
            data_dir,
            [str(e) for e in race["entities"]],
            drivers_csv=data["drivers_csv"],
            location_pattern=data["location_pattern"],
            stints_csv=data["stints_csv"],
        )

        replay_config = ReplayConfig.from_dicts(
            config.TIMING_CONFIG,
            config.GATE_CONFIG,
            config.PLAYBACK_CONFIG,
            race,
        )
        self.replay = create_replay(self.store, replay_config)
        if speed is not None:
            self.replay.set_speed(speed)

        self.end_time = max(
            (t.last_time for t in self.store.telemetry.values() if not t.is_empty),
            default=self.replay.clock.car_time,
        )
        self.frame_count = 0
        self.last_snapshot: Optional[ReplaySnapshot] = None

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        logger.info("Replay runner initialized")

    def _signal_handler(self, signum, frame):
        logger.info(f"Received signal {signum}, stopping...")
        self.running = False

    def _label(self, entity_id: str) -> str:
        info = self.store.info(entity_id)
        return info.display_label if info else entity_id

    def _finished(self, snapshot: ReplaySnapshot) -> bool:
        """All ranked entities classified, or telemetry exhausted"""
        if snapshot.car_time >= self.end_time:
            return True
        return (
            snapshot.race_finish_triggered
            and bool(snapshot.rows)
            and all(row.is_frozen for row in snapshot.rows)
        )

    def start(self, fps: int, print_interval_s: float, max_seconds: Optional[float] = None):
        self.running = True
        dt = 1.0 / fps
        next_print = print_interval_s

        logger.info(
            f"Replaying {len(self.store.entity_ids)} entities at {self.replay.clock.speed:.0f}x, "
            f"{fps} fps"
        )

        while self.running:
            snapshot = self.replay.tick(dt)
            self.frame_count += 1
            self.last_snapshot = snapshot

            if snapshot.race_time >= next_print:
                self._print_leaderboard(snapshot)
                next_print += print_interval_s

            if max_seconds is not None and snapshot.race_time >= max_seconds:
                logger.info("Reached max replay time")
                break
            if self._finished(snapshot):
                logger.info("Replay finished")
                break

        self.stop()

    def _print_leaderboard(self, snapshot: ReplaySnapshot, title: Optional[str] = None):
        title = title or f"LAP {snapshot.header_lap}  {format_seconds_of_day(snapshot.board_time)}"
        print("\n" + "=" * 60)
        print(f"  {title}")
        print("=" * 60)
        for row in snapshot.rows:
            tyre = ""
            if row.compound:
                age = "" if row.tyre_age is None else f" ({row.tyre_age})"
                tyre = f"{row.compound[0]}{age}"
            print(
                f"P{row.position:>2}  {self._label(row.entity_id):<4} "
                f"L{row.lap:>2}  {row.gap_text():>10}  {row.gap_text(to_leader=False):>10}  {tyre}"
            )

    def stop(self):
        self.running = False

        if self.last_snapshot is not None:
            self._print_leaderboard(self.last_snapshot, title="CLASSIFICATION")

        print("\n" + "=" * 60)
        print(f"Frames: {self.frame_count}")
        get_metrics().print_summary()
        print("=" * 60)

        logger.info("Replay runner stopped")


def main():
    """Entry point"""
    parser = argparse.ArgumentParser(description='Race replay (headless)')
    parser.add_argument('--data-dir', type=str, default=config.DATA_CONFIG["data_dir"],
                       help='Directory holding drivers/, location/ and stints/')
    parser.add_argument('--speed', '-s', type=float, default=None,
                       help='Playback speed multiplier (1-20)')
    parser.add_argument('--fps', type=int, default=config.OUTPUT_CONFIG["fps"],
                       help='Simulated frame rate')
    parser.add_argument('--print-interval', type=float,
                       default=config.OUTPUT_CONFIG["print_interval_s"],
                       help='Race seconds between leaderboard prints')
    parser.add_argument('--max-seconds', type=float, default=config.OUTPUT_CONFIG["max_seconds"],
                       help='Stop after this much race time')
    parser.add_argument('--debug', '-d', action='store_true',
                       help='Enable debug logging')

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.fps <= 0:
        parser.error("--fps must be positive")

    try:
        runner = ReplayRunner(args.data_dir, speed=args.speed)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Cannot load session: {e}")
        sys.exit(1)

    runner.start(args.fps, args.print_interval, args.max_seconds)


if __name__ == "__main__":
    main()
