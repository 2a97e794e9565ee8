"""
Race replay configuration
"""

# Timing rules
TIMING_CONFIG = {
    "final_lap": 72,                    # chequered flag lap
    "min_crossing_interval_s": 4.0,     # debounce per (entity, gate)
    "lap_count_start_delay_s": 1.0,     # detection suspended after timeline start
    "time_offset_s": 0.0,               # car clock calibration offset
}

# Gate derivation
GATE_CONFIG = {
    "half_length": 200.0,               # world units
    "tolerance_s": 3.0,                 # nearest-sample fallback window
    "default_angle_deg": 73.0,          # used when travel direction is unknown
}

# Playback
PLAYBACK_CONFIG = {
    "speed_presets": [1, 2, 5, 10, 20],
    "default_speed": 5,
    "enable_smooth": True,
    "smooth_time_constant_s": 0.12,
    "smooth_alpha_min": 0.18,
    "smooth_alpha_max": 0.9,
}

# Session reference data (2024 Austrian GP)
RACE_CONFIG = {
    "entities": [1, 2, 3, 4, 10, 11, 14, 16, 18, 20, 22, 23, 24, 27, 31, 44, 55, 63, 77, 81],
    "start_finish_timestamp": "2024-06-30T13:03:03.203000+00:00",
    "minisector_timestamps": [
        "2024-06-30T13:00:15.684000+00:00",
        "2024-06-30T13:00:24.503000+00:00",
        "2024-06-30T13:00:33.363000+00:00",
        "2024-06-30T13:00:42.644000+00:00",
        "2024-06-30T13:00:50.383000+00:00",
        "2024-06-30T13:01:01.724000+00:00",
        "2024-06-30T13:01:12.603000+00:00",
        "2024-06-30T13:01:26.043000+00:00",
        "2024-06-30T13:01:35.424000+00:00",
    ],
    "pit_entry_timestamp": "2024-06-30T13:04:15.823000+00:00",
    "reference_entity": "1",            # defines start/finish and minisectors
    "pit_reference_entity": "16",       # defines pit entry
    "pit_start_entities": ["24"],
    "retirements": [
        {"entity": "4", "timestamp": "2024-06-30T14:20:10.005000+00:00"},
    ],
}

# Recorded data files
DATA_CONFIG = {
    "data_dir": "source/data",
    "drivers_csv": "drivers/drivers.csv",
    "location_pattern": "location/location_driver_{n}.csv",
    "stints_csv": "stints/stints.csv",
}

# Headless output
OUTPUT_CONFIG = {
    "fps": 60,
    "print_interval_s": 60.0,           # simulated seconds between leaderboards
    "max_seconds": None,                # stop after this much race time
}

# Logging
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}
