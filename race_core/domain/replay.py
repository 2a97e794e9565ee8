"""
Race Replay Pipeline.

Owns all mutable replay state (ledger, gaps, statuses) and runs the strict
per-tick pipeline:

1. Advance the clock
2. Retirements
3. Green flag baseline (first tick the board passes the green flag)
4. Sample positions, detect crossings, apply them, in declaration order
5. Rank revealed entities
6. Recompute gaps if a gap-relevant crossing happened or the order changed
7. Commit freezes at the current rank
8. Classified order, position-by-lap history, read-only snapshot

Single-threaded and frame-driven; re-evaluating at an unchanged race time
produces the same snapshot.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple
import logging

from race_core.proto import (
    GateKind,
    ReplaySnapshot,
    StandingRow,
    TelemetryStore,
)
from race_core.metrics import get_metrics
from race_core.playback import (
    RaceClock,
    ClockConfig,
    ClockReading,
    PositionSampler,
    PositionSmoother,
    SmootherConfig,
)
from .gates import GateSet, GateReferences, GateDerivationConfig, build_gate_set
from .gate_calculator import GateCrossingDetector, GateDetectorConfig
from .ledger import ProgressLedger, LedgerUpdate
from .ranking import RankingEngine, classify, lap_header
from .gap_engine import GapEngine
from .status_machine import StatusStateMachine, StatusConfig
from .stints import StintBook

logger = logging.getLogger(__name__)


@dataclass
class ReplayConfig:
    """
    Configuration for a replay session.

    Attributes:
        gate_references: Reference timestamps/entities for gate derivation
        race_start_time: Absolute green flag time (defaults to the
            start/finish reference time)
        clock: Clock configuration
        derivation: Gate derivation configuration
        detector: Crossing detector configuration
        smoother: Display smoothing configuration
        status: Status machine configuration
    """

    gate_references: GateReferences
    race_start_time: Optional[float] = None
    clock: ClockConfig = field(default_factory=ClockConfig)
    derivation: GateDerivationConfig = field(default_factory=GateDerivationConfig)
    detector: GateDetectorConfig = field(default_factory=GateDetectorConfig)
    smoother: SmootherConfig = field(default_factory=SmootherConfig)
    status: StatusConfig = field(default_factory=StatusConfig)

    @property
    def green_flag_time(self) -> float:
        if self.race_start_time is not None:
            return self.race_start_time
        return self.gate_references.start_finish_time

    @classmethod
    def from_dicts(
        cls,
        timing: Mapping,
        gate: Mapping,
        playback: Mapping,
        race: Mapping,
    ) -> 'ReplayConfig':
        """
        Build a replay config from the root-level config dicts.

        Args:
            timing: TIMING_CONFIG
            gate: GATE_CONFIG
            playback: PLAYBACK_CONFIG
            race: RACE_CONFIG (timestamps as ISO-8601 strings)
        """
        from race_core.io import parse_iso_to_seconds

        references = GateReferences(
            start_finish_time=parse_iso_to_seconds(race["start_finish_timestamp"]),
            minisector_times=[parse_iso_to_seconds(ts) for ts in race.get("minisector_timestamps", [])],
            pit_entry_time=(
                parse_iso_to_seconds(race["pit_entry_timestamp"])
                if race.get("pit_entry_timestamp") else None
            ),
            reference_entity_id=str(race.get("reference_entity", "1")),
            pit_reference_entity_id=(
                str(race["pit_reference_entity"]) if race.get("pit_reference_entity") else None
            ),
        )

        retirements = {
            str(ev["entity"]): parse_iso_to_seconds(ev["timestamp"])
            for ev in race.get("retirements", [])
        }

        return cls(
            gate_references=references,
            clock=ClockConfig(
                speed_presets=tuple(float(s) for s in playback.get("speed_presets", (1, 2, 5, 10, 20))),
                default_speed=float(playback.get("default_speed", 5.0)),
                calibration_offset_s=float(timing.get("time_offset_s", 0.0)),
            ),
            derivation=GateDerivationConfig(
                half_length=float(gate.get("half_length", 200.0)),
                tolerance_s=float(gate.get("tolerance_s", 3.0)),
                default_angle_deg=float(gate.get("default_angle_deg", 73.0)),
            ),
            detector=GateDetectorConfig(
                min_crossing_interval_s=float(timing.get("min_crossing_interval_s", 4.0)),
                start_delay_s=float(timing.get("lap_count_start_delay_s", 1.0)),
            ),
            smoother=SmootherConfig(
                enabled=bool(playback.get("enable_smooth", True)),
                time_constant_s=float(playback.get("smooth_time_constant_s", 0.12)),
                min_alpha=float(playback.get("smooth_alpha_min", 0.18)),
                max_alpha=float(playback.get("smooth_alpha_max", 0.9)),
            ),
            status=StatusConfig(
                final_lap=int(timing.get("final_lap", 72)),
                pit_starters=frozenset(str(e) for e in race.get("pit_start_entities", [])),
                retirements=retirements,
            ),
        )


class RaceReplay:
    """
    One replay session over pre-recorded telemetry.

    Usage:
        replay = RaceReplay(store, config)
        while running:
            snapshot = replay.tick(frame_dt)
            render(snapshot)

    The snapshot is the only output; presentation must not reach into the
    ledger, gap engine or status machine to mutate them.
    """

    def __init__(
        self,
        store: TelemetryStore,
        config: ReplayConfig,
        gates: Optional[GateSet] = None,
    ):
        """
        Initialize a replay session.

        Args:
            store: Complete telemetry for the session
            config: Replay configuration
            gates: Pre-derived gates (derived from the references if None)
        """
        self.store = store
        self.config = config
        self.metrics = get_metrics()
        self.entity_ids = store.entity_ids

        self.gates = gates if gates is not None else build_gate_set(
            store, config.gate_references, config.derivation
        )

        self.clock = RaceClock(
            start_time=store.earliest_time(),
            race_start_time=config.green_flag_time,
            config=config.clock,
        )
        self.sampler = PositionSampler(store)
        self.smoother = PositionSmoother(config.smoother)
        self.detector = GateCrossingDetector(self.gates, config.detector)
        self.ledger = ProgressLedger(self.entity_ids)
        self.ranking = RankingEngine(self.entity_ids)
        self.gaps = GapEngine()

        retirements = dict(config.status.retirements)
        for event in store.retirements:
            retirements.setdefault(event.entity_id, event.timestamp)
        status_config = StatusConfig(
            final_lap=config.status.final_lap,
            pit_starters=config.status.pit_starters,
            retirements=retirements,
            freeze_retired_when_last=config.status.freeze_retired_when_last,
        )
        self.status = StatusStateMachine(self.entity_ids, status_config)
        self.stints = StintBook(store.stints)

        self.positions_by_lap: Dict[int, Dict[str, int]] = {}
        self._last_recorded_lap = 0

        logger.info(
            "Replay initialized: %d entities, %d gates, green flag at %.3f",
            len(self.entity_ids), len(self.gates), config.green_flag_time,
        )

    # -- playback controls ---------------------------------------------------

    def play(self):
        self.clock.play()

    def pause(self):
        self.clock.pause()

    def toggle(self) -> bool:
        return self.clock.toggle()

    def set_speed(self, speed: float):
        self.clock.set_speed(speed)

    def select_speed_preset(self, index: int):
        self.clock.select_preset(index)

    # -- pipeline ------------------------------------------------------------

    def tick(self, dt: float) -> ReplaySnapshot:
        """
        Advance the clock by one frame and run the pipeline.

        Args:
            dt: Wall-clock seconds since the previous frame

        Returns:
            Read-only snapshot of the replay state
        """
        reading = self.clock.advance(dt)
        self.metrics.increment('ticks')

        self.status.update_retirements(reading.board_time)

        gaps_dirty = False
        if reading.race_started and not self.ledger.baselined:
            self._green_flag()
            gaps_dirty = True

        positions, display, detected_dirty = self._detect(reading)
        gaps_dirty = gaps_dirty or detected_dirty

        order = self.ranking.rank(self.ledger, reading.board_time)
        if gaps_dirty or order != self.gaps.order:
            self.gaps.recompute(order, self.ledger)

        lap_counts = self.lap_counts()
        self.status.evaluate_freezes(order, lap_counts)
        classified = classify(order, self.status.final_positions())
        self._record_lap_history(order, lap_counts)

        return self._snapshot(reading, classified, lap_counts, positions, display)

    def _green_flag(self):
        """Baseline progress and reset sequences, caches and overlays."""
        self.ledger.capture_baseline()
        self.detector.reset_debounce(kinds=(GateKind.MINISECTOR, GateKind.PIT_ENTRY))
        self.gaps.reset_stable()
        self.status.start_race()

    def _detect(self, reading: ClockReading) -> Tuple[Dict, Dict, bool]:
        """Sample, detect and apply crossings for every entity in declaration order."""
        gaps_dirty = False
        positions = {}
        display = {}
        elapsed = self.clock.car_elapsed

        for eid in self.entity_ids:
            pos = self.sampler.position(eid, reading.car_time)
            if pos is None:
                continue

            positions[eid] = (float(pos[0]), float(pos[1]))
            smoothed = self.smoother.update(eid, pos, reading.dt, reading.speed)
            display[eid] = (float(smoothed[0]), float(smoothed[1]))

            events = self.detector.process(
                eid, pos, reading.car_time, elapsed,
                evaluate_start_finish=reading.after_green,
                evaluate_pit=not self.status.record(eid).is_frozen,
            )
            for event in events:
                update = self.ledger.apply(event, reading.after_green)
                self._route(update)
                gaps_dirty = gaps_dirty or update.gaps_dirty

        return positions, display, gaps_dirty

    def _route(self, update: LedgerUpdate):
        """Send ledger side effects to the status machine."""
        eid = update.event.entity_id
        if update.pit_entered:
            self.status.enter_pit(eid)
        if update.pit_cleared:
            self.status.leave_pit(eid)
        if update.lap_completed:
            self.status.on_lap_completed(eid, self.ledger.entry(eid).lap_count)

    def lap_counts(self) -> Dict[str, int]:
        return {entry.entity_id: entry.lap_count for entry in self.ledger}

    def _record_lap_history(self, order: List[str], lap_counts: Dict[str, int]):
        """Snapshot positions once per new leader lap, after the green flag."""
        if not order or not self.ledger.baselined:
            return
        leader = order[0]
        leader_lap = self.status.lap_number(leader, lap_counts.get(leader, 0))
        if leader_lap > 0 and leader_lap != self._last_recorded_lap:
            self.positions_by_lap[leader_lap] = RankingEngine.positions(order)
            self._last_recorded_lap = leader_lap

    def _snapshot(self, reading, classified, lap_counts, positions, display) -> ReplaySnapshot:
        rows = []
        for i, eid in enumerate(classified):
            record = self.status.record(eid)
            lap = self.status.lap_number(eid, lap_counts.get(eid, 0))
            rows.append(StandingRow(
                entity_id=eid,
                position=i + 1,
                status=record.state,
                final_position=record.final_position,
                retired=record.retired,
                lap=lap,
                gap_to_leader=self.gaps.gap_to_leader(eid),
                gap_to_ahead=self.gaps.gap_to_ahead(eid),
                compound=self.stints.current_compound(eid, lap),
                tyre_age=self.stints.current_tyre_age(eid, lap),
            ))

        return ReplaySnapshot(
            race_time=reading.race_time,
            board_time=reading.board_time,
            car_time=reading.car_time,
            race_started=reading.race_started,
            after_green=reading.after_green,
            header_lap=lap_header(lap_counts, self.status.config.pit_starters),
            rows=tuple(rows),
            positions=positions,
            display_positions=display,
            positions_by_lap={lap: dict(snap) for lap, snap in self.positions_by_lap.items()},
            race_finish_triggered=self.status.race_finish_triggered,
        )


def create_replay(store: TelemetryStore, config: ReplayConfig) -> RaceReplay:
    """
    Create a replay session, deriving gates from the configured references.

    Args:
        store: Complete telemetry for the session
        config: Replay configuration

    Returns:
        Configured RaceReplay
    """
    return RaceReplay(store, config)
