"""Logging configuration and setup utilities for rclone-mount-sync.

Console output is always available; a rotating log file under the user's
state directory can be enabled for troubleshooting rclone invocations.
"""

import logging
import logging.config
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

APP_NAME = "rclone-mount-sync"
CONSOLE_FORMAT = "%(message)s"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class LoggerConfigError(Exception):
    """Custom exception for logger configuration errors."""


@dataclass
class LoggingConfig:
    """Configuration for logging setup."""

    log_name: str = "rclone_mount_sync"
    log_level: str = "INFO"
    log_dir: Path | None = None
    log_filename: str | None = None
    max_bytes: int = 2 * 1024 * 1024  # 2 MB
    backup_count: int = 3
    enable_console: bool = True
    enable_file: bool = False


def validate_log_level(log_level: str) -> int:
    """Validate and return the numeric log level."""
    numeric_level = getattr(logging, log_level.upper(), None)
    if not isinstance(numeric_level, int):
        error_msg = f"Invalid log level: {log_level}"
        raise LoggerConfigError(error_msg)
    return numeric_level


def get_default_log_dir() -> Path:
    """Get the log directory, honouring XDG_STATE_HOME."""
    state_home = os.environ.get("XDG_STATE_HOME")
    base = Path(state_home) if state_home else Path.home() / ".local" / "state"
    return base / APP_NAME / "logs"


def _file_handler(config: LoggingConfig, level: int) -> dict[str, Any]:
    log_dir = config.log_dir or get_default_log_dir()
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        error_msg = f"Failed to create log directory {log_dir}: {e}"
        raise LoggerConfigError(error_msg) from e

    filename = config.log_filename or f"{config.log_name}.log"
    return {
        "level": level,
        "class": "logging.handlers.RotatingFileHandler",
        "filename": str(log_dir / filename),
        "maxBytes": config.max_bytes,
        "backupCount": config.backup_count,
        "formatter": "file",
        "encoding": "utf8",
    }


def create_logging_config(config: LoggingConfig) -> dict[str, Any]:
    """Create a dictConfig mapping for the given logging configuration."""
    level = validate_log_level(config.log_level)

    handlers: dict[str, dict[str, Any]] = {}
    if config.enable_console:
        handlers["console"] = {
            "level": level,
            "class": "logging.StreamHandler",
            "formatter": "console",
        }
    if config.enable_file:
        handlers["file"] = _file_handler(config, level)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": CONSOLE_FORMAT},
            "file": {"format": FILE_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": handlers,
        "loggers": {
            config.log_name: {
                "handlers": list(handlers),
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(config: LoggingConfig) -> logging.Logger:
    """Configure logging for the application.

    Args:
        config: Logging configuration object

    Returns:
        Configured logger instance

    """
    try:
        logging.config.dictConfig(create_logging_config(config))
        logger = logging.getLogger(config.log_name)
        logger.debug(
            f"Logging configured for '{config.log_name}' at level {config.log_level}",
        )
    except (LoggerConfigError, ValueError, KeyError):
        logging.basicConfig(level=logging.INFO, format=CONSOLE_FORMAT)
        logger = logging.getLogger(config.log_name)
        logger.exception("Failed to configure logging. Using fallback configuration.")

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger, falling back to basic configuration when none is set up."""
    logger = logging.getLogger(name)
    if not logger.hasHandlers():
        logging.basicConfig(level=logging.INFO, format=FILE_FORMAT)
    return logger
