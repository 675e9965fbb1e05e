"""Logging setup for rclone-mount-sync."""

from .logger_setup import LoggerConfigError, LoggingConfig, configure_logging, get_logger

__all__ = ["LoggerConfigError", "LoggingConfig", "configure_logging", "get_logger"]
