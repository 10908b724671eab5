"""
Centralized logging configuration for car-audio
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import LoggingConfig, get_data_dir


def get_log_file_path() -> Path:
    """Get the path to the log file."""
    return get_data_dir() / "car-audio.log"


def setup_logging(
    config: Optional[LoggingConfig] = None,
    log_file_path: Optional[Path] = None,
) -> Path:
    """
    Configure loguru sinks for the application.

    Replaces loguru's default stderr handler with a rotating file sink and,
    when console_output is enabled, a simpler stderr sink.

    Args:
        config: Logging section of the loaded configuration
        log_file_path: Override for the log file (default: config value or data dir)

    Returns:
        Path of the log file in use
    """
    config = config or LoggingConfig()
    if log_file_path is None:
        log_file_path = Path(config.log_file) if config.log_file else get_log_file_path()
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    logger.remove()

    logger.add(
        log_file_path,
        rotation=f"{config.max_file_size_mb} MB",
        retention=config.backup_count,
        level="DEBUG",  # Capture all levels to file
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        encoding="utf-8",
        enqueue=False,
    )

    if config.console_output:
        logger.add(
            sys.stderr,
            level=config.level.upper(),
            format="{level}: {message}",
        )

    logger.info(
        f"Logging initialized: {log_file_path} (level={config.level}, "
        f"max_size={config.max_file_size_mb}MB, backups={config.backup_count})"
    )
    return log_file_path
