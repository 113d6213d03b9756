"""Default configuration values for FloorScale.

Configuration is organized into groups, one per concern.
"""

DEFAULT_CONFIG = {
    # --- General ---
    "general": {
        "restore_last_session": True,
        "window_width": 1280,
        "window_height": 820,
    },
    # --- Appearance ---
    "appearance": {
        "background": "#f8fafc",
        "calibration_color": "#f59e0b",
        "measurement_color": "#22c55e",
        "temp_calibrate_color": "#f59e0b",
        "temp_measure_color": "#0ea5e9",
        "label_background": "#d90f172a",
        "label_text": "#ffffff",
    },
    # --- Viewport ---
    "viewport": {
        "zoom_min": 0.05,
        "zoom_max": 20.0,
        "wheel_zoom_sensitivity": 0.02,
        "double_click_zoom_factor": 1.5,
        "zoom_step_factor": 1.15,
        "fit_margin": 0.95,
        "fit_max_attempts": 10,
        "frame_interval_ms": 16,
        "min_drag_px": 2.0,
    },
    # --- Measurement ---
    "measurement": {
        "default_reference_length": 4.0,  # meters
        "default_unit": "m",  # m, cm, mm
        "min_line_px": 2.0,
    },
    # --- Persistence ---
    "persistence": {
        "enabled": True,
        "storage_key": "fp-measurement-state-v8",
        "storage_dir": "",  # empty = platform data dir
    },
    # --- Export ---
    "export": {
        "default_directory": "",  # empty = user pictures dir
    },
    # --- Logging ---
    "logging": {
        "log_level": "INFO",  # DEBUG, INFO, WARNING, ERROR, CRITICAL
        "log_to_file": True,
        "log_retention_days": 30,
        "log_max_size_mb": 10,
        "log_console_output": True,
    },
}
