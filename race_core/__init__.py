"""
Race Replay Core Package.

Replays a recorded motor race from timestamped position samples and derives
lap counts, minisector progress, gaps, pit/retirement status and the final
classification, one frame-driven tick at a time.

Package structure:
- proto: Data schemas (telemetry samples, crossings, gap values, standings)
- playback: Race clock, position sampling, display smoothing
- domain: Gates, crossing detection, ledger, ranking, gaps, status, replay
- io: CSV telemetry loading
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"
__author__ = "Race Replay Team"

from .domain.replay import RaceReplay, ReplayConfig, create_replay

__all__ = ['RaceReplay', 'ReplayConfig', 'create_replay']
