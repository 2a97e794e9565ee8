"""
CSV Telemetry Loader.

Reads the recorded session into a TelemetryStore:
- drivers.csv:   driver_number, name_acronym, team_name, team_colour
- location CSVs: date, x, y (one file per entity)
- stints.csv:    driver_number, lap_start, lap_end, compound, age,
                 tyre_age_at_start

Malformed rows are skipped and counted; missing files raise.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union
import logging
import re

import numpy as np
import pandas as pd

from race_core.proto import (
    Sample,
    EntityInfo,
    EntityTelemetry,
    TyreStint,
    RetirementEvent,
    TelemetryStore,
)
from race_core.metrics import get_metrics
from race_core.domain.stints import normalize_compound
from .timestamps import parse_iso_to_seconds, to_seconds_of_day

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

DRIVER_COLUMNS = ['driver_number']
LOCATION_COLUMNS = ['date', 'x', 'y']
STINT_COLUMNS = ['driver_number', 'lap_start', 'lap_end']

_HEX_RE = re.compile(r'^#?([0-9A-Fa-f]{6})$')


def normalize_colour(value: Optional[str]) -> Optional[str]:
    """Team colour as '#RRGGBB', or None when not a 6-digit hex value."""
    if not isinstance(value, str) or not value:
        return None
    match = _HEX_RE.match(value.strip())
    if not match:
        return None
    return '#' + match.group(1).upper()


def _read_frame(path: Path, required: List[str], label: str, **kwargs) -> pd.DataFrame:
    """
    Read a CSV as strings and check its columns.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If a required column is missing
    """
    if not path.exists():
        raise FileNotFoundError(f"Telemetry file not found: {path}")
    frame = pd.read_csv(path, dtype=str, **kwargs)
    missing = [c for c in required if c not in frame.columns]
    if missing:
        raise ValueError(f"{label} CSV {path} missing columns: {missing}")
    return frame


def _optional_int(value) -> Optional[int]:
    if value is None or pd.isna(value):
        return None
    return int(value)


def load_entities(path: PathLike, entity_ids: Optional[Sequence[str]] = None) -> List[EntityInfo]:
    """
    Load entity metadata.

    Args:
        path: drivers.csv path
        entity_ids: Declaration order to keep; entities missing from the
            file get default metadata. None keeps the file's order.

    Returns:
        EntityInfo list in declaration order
    """
    frame = _read_frame(Path(path), DRIVER_COLUMNS, "drivers", keep_default_na=False)
    for column in ('name_acronym', 'team_name', 'team_colour'):
        if column not in frame.columns:
            frame[column] = ''
    for column in frame.columns:
        frame[column] = frame[column].str.strip()

    valid = frame[frame['driver_number'] != '']
    dropped = len(frame) - len(valid)
    if dropped:
        get_metrics().increment_drop('malformed_sample', dropped)

    by_id: Dict[str, EntityInfo] = {}
    for row in valid.itertuples(index=False):
        by_id[row.driver_number] = EntityInfo(
            entity_id=row.driver_number,
            label=row.name_acronym,
            team_name=row.team_name,
            color=normalize_colour(row.team_colour),
        )

    if entity_ids is None:
        return list(by_id.values())

    entities = []
    for eid in entity_ids:
        eid = str(eid)
        info = by_id.get(eid)
        if info is None:
            logger.warning("Entity %s missing from %s, using defaults", eid, path)
            info = EntityInfo(entity_id=eid)
        entities.append(info)
    return entities


def load_locations(path: PathLike, entity_id: str) -> EntityTelemetry:
    """
    Load one entity's location samples.

    Rows with an unparseable date or non-numeric x/y are skipped. Samples
    are sorted by time; duplicate timestamps keep the first row.
    """
    metrics = get_metrics()
    frame = _read_frame(Path(path), LOCATION_COLUMNS, "location")

    samples = pd.DataFrame({
        't': to_seconds_of_day(frame['date']),
        'x': pd.to_numeric(frame['x'], errors='coerce'),
        'y': pd.to_numeric(frame['y'], errors='coerce'),
    })
    samples = samples.replace([np.inf, -np.inf], np.nan).dropna()
    malformed = len(frame) - len(samples)

    samples = samples.sort_values('t', kind='mergesort')
    unique = samples.drop_duplicates(subset='t', keep='first')
    duplicates = len(samples) - len(unique)

    if malformed:
        metrics.increment_drop('malformed_sample', malformed)
    if duplicates:
        metrics.increment_drop('non_monotonic_time', duplicates)

    logger.debug("Loaded %d samples for entity %s from %s", len(unique), entity_id, path)
    return EntityTelemetry(entity_id, [
        Sample(timestamp=float(t), x=float(x), y=float(y))
        for t, x, y in unique.itertuples(index=False, name=None)
    ])


def load_stints(path: PathLike) -> List[TyreStint]:
    """
    Load tyre stints.

    Rows without a driver number are skipped; rows without numeric lap
    bounds are skipped and counted as malformed.
    """
    frame = _read_frame(Path(path), STINT_COLUMNS, "stints")
    frame = frame[frame['driver_number'].fillna('').str.strip() != '']

    numeric = pd.DataFrame(index=frame.index)
    for column in ('lap_start', 'lap_end', 'age', 'tyre_age_at_start'):
        values = frame[column] if column in frame.columns else pd.Series(np.nan, index=frame.index)
        numeric[column] = pd.to_numeric(values, errors='coerce')

    valid = numeric.dropna(subset=['lap_start', 'lap_end'])
    malformed = len(numeric) - len(valid)

    stints = []
    for idx, row in valid.iterrows():
        compound = frame.at[idx, 'compound'] if 'compound' in frame.columns else None
        try:
            stints.append(TyreStint(
                entity_id=frame.at[idx, 'driver_number'].strip(),
                lap_start=int(row['lap_start']),
                lap_end=int(row['lap_end']),
                compound=normalize_compound(compound if isinstance(compound, str) else None),
                age=_optional_int(row['age']),
                tyre_age_at_start=_optional_int(row['tyre_age_at_start']) or 0,
            ))
        except ValueError:
            malformed += 1

    if malformed:
        get_metrics().increment_drop('malformed_sample', malformed)
    return stints


def load_telemetry_store(
    data_dir: PathLike,
    entity_ids: Sequence[str],
    drivers_csv: str = "drivers/drivers.csv",
    location_pattern: str = "location/location_driver_{n}.csv",
    stints_csv: Optional[str] = "stints/stints.csv",
    retirements: Optional[Dict[str, str]] = None,
) -> TelemetryStore:
    """
    Load a complete session.

    Args:
        data_dir: Root data directory
        entity_ids: Declaration order of the entities
        drivers_csv: Metadata file, relative to data_dir
        location_pattern: Per-entity location file, '{n}' is the entity id
        stints_csv: Stints file relative to data_dir (optional file)
        retirements: Entity -> ISO retirement timestamp

    Returns:
        TelemetryStore in declaration order

    Raises:
        FileNotFoundError: If the metadata or a location file is missing
        ValueError: If a file lacks its required columns
    """
    root = Path(data_dir)
    ids = [str(e) for e in entity_ids]

    entities = load_entities(root / drivers_csv, ids)
    telemetry = {
        eid: load_locations(root / location_pattern.format(n=eid), eid) for eid in ids
    }

    stints: List[TyreStint] = []
    if stints_csv:
        stints_path = root / stints_csv
        if stints_path.exists():
            stints = load_stints(stints_path)
        else:
            logger.warning("No stints file at %s, tyre data unavailable", stints_path)

    retirement_events = [
        RetirementEvent(entity_id=str(eid), timestamp=parse_iso_to_seconds(ts))
        for eid, ts in (retirements or {}).items()
    ]

    empty = [eid for eid, tel in telemetry.items() if tel.is_empty]
    if empty:
        logger.warning("Entities without samples (never ranked): %s", ", ".join(empty))

    logger.info(
        "Loaded %d entities, %d samples, %d stints from %s",
        len(entities), sum(len(t) for t in telemetry.values()), len(stints), root,
    )
    return TelemetryStore(
        entities=entities,
        telemetry=telemetry,
        stints=stints,
        retirements=retirement_events,
    )
