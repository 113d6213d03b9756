"""Configuration manager for FloorScale.

Handles loading, saving, and accessing configuration values.
Configuration is stored as JSON and organized into groups. User values
are merged over the defaults; a user value whose type does not match the
default is dropped so a hand-edited file cannot break the app.
"""

import json
import copy
from pathlib import Path
from typing import Any

from loguru import logger
from platformdirs import user_config_dir

from floorscale.config.defaults import DEFAULT_CONFIG


class ConfigManager:
    """Manages application configuration with grouped settings."""

    CONFIG_FILENAME = "floorscale_config.json"

    def __init__(self, config_dir: str | Path | None = None):
        if config_dir is None:
            self._config_dir = Path(user_config_dir("FloorScale", "FloorScale"))
        else:
            self._config_dir = Path(config_dir)

        self._config_path = self._config_dir / self.CONFIG_FILENAME
        self._data: dict[str, dict[str, Any]] = copy.deepcopy(DEFAULT_CONFIG)

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(self):
        """Load configuration from disk, merging with defaults."""
        self._data = copy.deepcopy(DEFAULT_CONFIG)

        if not self._config_path.exists():
            logger.info("No config file found, using defaults.")
            return

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                user_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load config, using defaults: {e}")
            return

        if not isinstance(user_data, dict):
            logger.warning("Config file is not a JSON object, using defaults.")
            return

        for group, values in user_data.items():
            if not isinstance(values, dict):
                continue
            if group not in self._data:
                self._data[group] = values
                continue
            for key, value in values.items():
                default = DEFAULT_CONFIG[group].get(key)
                if default is not None and not _same_kind(default, value):
                    logger.warning(
                        f"Ignoring config {group}.{key}={value!r}: "
                        f"expected {type(default).__name__}"
                    )
                    continue
                self._data[group][key] = value

        logger.info(f"Configuration loaded from {self._config_path}")

    def save(self):
        """Save current configuration to disk."""
        self._config_dir.mkdir(parents=True, exist_ok=True)

        with open(self._config_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2)

        logger.info(f"Configuration saved to {self._config_path}")

    def get(self, group: str, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return self._data.get(group, {}).get(key, default)

    def set(self, group: str, key: str, value: Any):
        """Set a configuration value."""
        self._data.setdefault(group, {})[key] = value

    def get_group(self, group: str) -> dict[str, Any]:
        """Get all values in a configuration group."""
        return dict(self._data.get(group, {}))

    def colors(self) -> dict[str, str]:
        """Canvas palette from the appearance group, keyed by scene role."""
        group = self.get_group("appearance")
        return {
            "background": group["background"],
            "calibration": group["calibration_color"],
            "measurement": group["measurement_color"],
            "temp_calibrate": group["temp_calibrate_color"],
            "temp_measure": group["temp_measure_color"],
            "label_background": group["label_background"],
            "label_text": group["label_text"],
        }


def _same_kind(default: Any, value: Any) -> bool:
    """Whether *value* may replace *default*. Ints are accepted for floats."""
    if isinstance(default, bool) or isinstance(value, bool):
        return isinstance(default, bool) and isinstance(value, bool)
    if isinstance(default, float):
        return isinstance(value, (int, float))
    return isinstance(value, type(default))
