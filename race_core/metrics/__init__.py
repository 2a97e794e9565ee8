"""
Metrics Module: Diagnostics, counters, histograms.

Every discarded crossing, refused transition or skipped telemetry row is
counted under a reason code so a replay never fails silently.

Usage:
    from race_core.metrics import get_metrics

    metrics = get_metrics()
    metrics.increment('crossings_accepted')
    metrics.increment_drop('debounced')
    metrics.record_histogram('gap_to_leader_s', 1.23)
"""

from .counters import MetricsCollector, CounterSnapshot

# Global singleton for easy access
_global_metrics = None


def get_metrics() -> MetricsCollector:
    """
    Get the global metrics collector singleton.

    Returns:
        MetricsCollector instance
    """
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def reset_metrics():
    """Reset global metrics (for testing)."""
    global _global_metrics
    _global_metrics = MetricsCollector()


__all__ = ['MetricsCollector', 'CounterSnapshot', 'get_metrics', 'reset_metrics']
