"""
I/O Module: Recorded session loading.

Implements:
- ISO-8601 timestamp parsing to seconds of the day
- CSV readers for entity metadata, locations and tyre stints
"""

from .timestamps import (
    parse_iso_to_seconds,
    format_seconds_of_day,
)
from .csv_loader import (
    load_entities,
    load_locations,
    load_stints,
    load_telemetry_store,
    normalize_colour,
)

__all__ = [
    'parse_iso_to_seconds',
    'format_seconds_of_day',
    'load_entities',
    'load_locations',
    'load_stints',
    'load_telemetry_store',
    'normalize_colour',
]
