"""
Timestamp parsing.

Telemetry and configuration timestamps are ISO-8601 strings; the replay
works in seconds of the day. Zone-aware timestamps are converted to UTC
first, naive ones are taken as UTC.
"""

import re

import pandas as pd

_BARE_TIME_RE = re.compile(r'^\d{1,2}:\d{2}:\d{2}(\.\d+)?$')


def parse_iso_to_seconds(iso_str: str) -> float:
    """
    Parse an ISO-8601 timestamp to seconds of the day.

    "2024-06-30T13:03:03.203000+00:00" -> 13*3600 + 3*60 + 3.203

    A bare "HH:MM:SS(.fff)" string is accepted as well.

    Raises:
        ValueError: If the string is not an ISO-8601 timestamp
    """
    if iso_str is None:
        raise ValueError("Timestamp is None")

    text = str(iso_str).strip()
    if _BARE_TIME_RE.match(text):
        return pd.to_timedelta(text).total_seconds()

    try:
        ts = pd.to_datetime(text, format='ISO8601', utc=True)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Unparseable timestamp: {iso_str!r}") from e
    if pd.isna(ts):
        raise ValueError(f"Unparseable timestamp: {iso_str!r}")
    return (ts - ts.normalize()).total_seconds()


def to_seconds_of_day(values: pd.Series) -> pd.Series:
    """
    Vectorized ISO-8601 column to seconds of the day.

    Unparseable entries become NaN.
    """
    stamps = pd.to_datetime(values, format='ISO8601', utc=True, errors='coerce')
    return (stamps - stamps.dt.normalize()).dt.total_seconds()


def format_seconds_of_day(seconds: float) -> str:
    """Seconds of the day as HH:MM:SS (floored to whole seconds)."""
    total = int(seconds // 1)
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"
