"""PNG export for FloorScale.

Saves the current canvas contents (image, lines and labels at the current
zoom and pan) as a timestamped PNG file.
"""

import time
from pathlib import Path

from loguru import logger
from platformdirs import user_pictures_dir

EXPORT_PREFIX = "floorplan-annotated"


def export_file_name(timestamp_ms: int | None = None) -> str:
    """File name for an export, e.g. floorplan-annotated-1718000000000.png."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{EXPORT_PREFIX}-{timestamp_ms}.png"


def default_export_dir(configured: str = "") -> Path:
    if configured:
        return Path(configured)
    return Path(user_pictures_dir())


def export_png(image, directory: str | Path, timestamp_ms: int | None = None) -> Path | None:
    """Save a rendered QImage into *directory*. Returns the path, or None on failure."""
    directory = Path(directory)
    output_path = directory / export_file_name(timestamp_ms)
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Export failed: {e}")
        return None
    if not image.save(str(output_path), "PNG"):
        logger.error(f"Export failed: could not write {output_path}")
        return None
    logger.info(f"Exported to: {output_path}")
    return output_path
