"""Logging setup for FloorScale.

All modules log through loguru via `from loguru import logger`. This
module configures loguru's sinks: a colored console sink and a rotating
file sink in the user's log directory.

Usage:
    from floorscale.core.logging import setup_logging
    setup_logging(config)
"""

import sys
from pathlib import Path

from loguru import logger
from platformdirs import user_log_dir

from floorscale.config.manager import ConfigManager


_LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

_LOG_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
    "{level: <8} | "
    "{name}:{function}:{line} | "
    "{message}"
)

LOG_FILENAME = "floorscale.log"


def get_log_dir() -> Path:
    """Return the directory where log files are stored."""
    return Path(user_log_dir("FloorScale", "FloorScale"))


def setup_logging(config: ConfigManager, log_dir: Path | None = None) -> Path | None:
    """Configure loguru sinks from the logging config group.

    Returns the log file path, or None when file logging is off.
    """
    level = config.get("logging", "log_level", "INFO")
    log_to_file = config.get("logging", "log_to_file", True)
    console_output = config.get("logging", "log_console_output", True)
    retention_days = config.get("logging", "log_retention_days", 30)
    max_size_mb = config.get("logging", "log_max_size_mb", 10)

    logger.remove()

    if console_output and sys.stderr is not None:
        logger.add(sys.stderr, format=_LOG_FORMAT, level=level, colorize=True)

    log_path = None
    if log_to_file:
        log_dir = log_dir or get_log_dir()
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"File logging disabled: {e}")
        else:
            log_path = log_dir / LOG_FILENAME
            logger.add(
                str(log_path),
                format=_LOG_FILE_FORMAT,
                level="DEBUG",  # Always capture DEBUG to file for diagnostics
                rotation=f"{max_size_mb} MB",
                retention=f"{retention_days} days",
                encoding="utf-8",
            )
            logger.info(f"Log file: {log_path}")

    logger.info(f"Logging initialized (console={level})")
    return log_path
