"""
Replay diagnostics: counters, drop reasons and histograms.

Counters track the replay itself (ticks, accepted crossings per gate kind,
gap recomputes, reveals, freezes, retirements). Every discarded crossing or
telemetry row is counted under exactly one drop reason, so a replay that
quietly loses data still shows where it went.
"""

import logging
import threading
from typing import Dict, List, Optional
from dataclasses import dataclass
from collections import defaultdict
import statistics

logger = logging.getLogger(__name__)


@dataclass
class CounterSnapshot:
    """Copy of the collector state."""

    counters: Dict[str, int]
    drop_reasons: Dict[str, int]
    histograms: Dict[str, List[float]]

    def total_dropped(self) -> int:
        return sum(self.drop_reasons.values())


class MetricsCollector:
    """
    Thread-safe replay diagnostics.

    Usage:
        collector = MetricsCollector()
        collector.increment('minisector_crossings')
        collector.increment_drop('debounced')
        collector.record_histogram('gap_to_leader_s', 1.23)
    """

    REPLAY_COUNTERS = (
        'ticks',
        'crossings_accepted',
        'minisector_crossings',
        'start_finish_crossings',
        'pit_entry_crossings',
        'gap_recomputes',
        'entities_revealed',
        'entities_frozen',
        'entities_retired',
    )

    DROP_REASONS = {
        'debounced': 'Same gate crossed again inside the minimum interval',
        'outside_gate_extent': 'Crossed the gate line outside its half-length',
        'detection_suspended': 'Crossing during the start-of-timeline delay',
        'backward_crossing': 'Forward-only gate crossed in reverse',
        'non_monotonic_time': 'Duplicate or out-of-order timestamp',
        'gate_not_derived': 'Reference timestamp not found within tolerance',
        'malformed_sample': 'Telemetry row could not be parsed',
        'frozen_entity': 'Transition refused for a frozen entity',
    }

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = defaultdict(int)
        self._drop_reasons: Dict[str, int] = defaultdict(int)
        self._histograms: Dict[str, List[float]] = defaultdict(list)

        for counter in self.REPLAY_COUNTERS:
            self._counters[counter] = 0
        for reason in self.DROP_REASONS:
            self._drop_reasons[reason] = 0

    def increment(self, counter_name: str, value: int = 1):
        with self._lock:
            self._counters[counter_name] += value

    def increment_drop(self, reason: str, value: int = 1):
        """
        Count discarded events under a reason code.

        Unknown reasons are logged and still counted.
        """
        if reason not in self.DROP_REASONS:
            logger.warning("Unknown drop reason '%s'", reason)

        with self._lock:
            self._drop_reasons[reason] += value
            self._counters['events_dropped'] += value

    def get_counter(self, counter_name: str) -> int:
        """Current value of a counter (0 if never incremented)."""
        with self._lock:
            return self._counters.get(counter_name, 0)

    def get_drop_count(self, reason: str) -> int:
        with self._lock:
            return self._drop_reasons.get(reason, 0)

    def record_histogram(self, histogram_name: str, value: float, max_samples: int = 10000):
        """
        Record a value in a histogram.

        Past max_samples the oldest half is discarded.
        """
        with self._lock:
            samples = self._histograms[histogram_name]
            samples.append(value)

            if len(samples) > max_samples:
                self._histograms[histogram_name] = samples[-max_samples//2:]

    def get_histogram_stats(self, histogram_name: str) -> Optional[Dict[str, float]]:
        """
        Summary statistics of a histogram.

        Returns:
            Dict with count, min, max, mean, median, p95; None if empty
        """
        with self._lock:
            samples = sorted(self._histograms.get(histogram_name, []))

        if not samples:
            return None

        count = len(samples)
        return {
            'count': count,
            'min': samples[0],
            'max': samples[-1],
            'mean': statistics.mean(samples),
            'median': statistics.median(samples),
            'p95': samples[min(count - 1, int(count * 0.95))],
        }

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(
                counters=dict(self._counters),
                drop_reasons=dict(self._drop_reasons),
                histograms={k: list(v) for k, v in self._histograms.items()},
            )

    def print_summary(self):
        """Print the end-of-replay diagnostics."""
        snapshot = self.snapshot()

        print("\n" + "=" * 70)
        print("  METRICS SUMMARY")
        print("=" * 70)

        print("\nCOUNTERS:")
        for name, value in sorted(snapshot.counters.items()):
            print(f"  {name:30s}: {value:8d}")

        total_dropped = snapshot.total_dropped()
        if total_dropped > 0:
            print("\nDROP REASONS:")
            for reason, count in sorted(snapshot.drop_reasons.items()):
                if count > 0:
                    pct = (count / total_dropped) * 100
                    description = self.DROP_REASONS.get(reason, '')
                    print(f"  {reason:30s}: {count:8d} ({pct:5.1f}%)  {description}")

        if snapshot.histograms:
            print("\nHISTOGRAMS:")
            for name in sorted(snapshot.histograms):
                stats = self.get_histogram_stats(name)
                if stats:
                    print(f"  {name}: count={stats['count']}, mean={stats['mean']:.3f}, "
                          f"median={stats['median']:.3f}, p95={stats['p95']:.3f}, "
                          f"max={stats['max']:.3f}")

        print("=" * 70 + "\n")
