"""Settings management for rclone-mount-sync."""

import logging
import os
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

from rclone_mount_sync.exceptions import ConfigurationError
from rclone_mount_sync.logging.logger_setup import (
    APP_NAME,
    LoggerConfigError,
    validate_log_level,
)
from rclone_mount_sync.rclone.client import RcloneClient
from rclone_mount_sync.rclone.retry import RetryConfig


@dataclass
class AppSettings:
    """Application-wide settings."""

    rclone_binary_path: str | None = None
    rclone_config_path: str | None = None
    log_level: str = "INFO"
    log_file_enabled: bool = False
    log_dir: Path | None = None
    remotes_timeout: float = 30.0
    retry: RetryConfig = field(default_factory=RetryConfig)

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        for field_name in ("rclone_binary_path", "rclone_config_path"):
            value = getattr(self, field_name)
            if value is not None and not str(value).strip():
                error_msg = f"Setting '{field_name}' cannot be blank"
                raise ConfigurationError(error_msg)
        try:
            validate_log_level(self.log_level)
        except LoggerConfigError as e:
            error_msg = f"Invalid log_level: {self.log_level}"
            raise ConfigurationError(error_msg, original_error=e) from e
        if self.remotes_timeout <= 0:
            error_msg = "remotes_timeout must be positive"
            raise ConfigurationError(error_msg)


class SettingsManager:
    """Loads and saves settings as YAML."""

    @staticmethod
    def default_settings_path() -> Path:
        """Return the settings path, honouring XDG_CONFIG_HOME."""
        config_home = os.environ.get("XDG_CONFIG_HOME")
        base = Path(config_home) if config_home else Path.home() / ".config"
        return base / APP_NAME / "config.yaml"

    @staticmethod
    def load_settings(settings_path: Path) -> AppSettings:
        """Load and validate settings from a YAML file.

        A missing file yields the defaults.

        Raises:
            ConfigurationError: If the file cannot be read or holds invalid values

        """
        try:
            with settings_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            return AppSettings()
        except yaml.YAMLError as e:
            error_msg = f"Invalid settings file format: {e}"
            raise ConfigurationError(error_msg, original_error=e) from e
        except OSError as e:
            error_msg = f"Error loading settings: {e}"
            raise ConfigurationError(error_msg, original_error=e) from e

        if not isinstance(data, dict):
            error_msg = f"Settings file must contain a mapping: {settings_path}"
            raise ConfigurationError(error_msg)

        try:
            log_dir = data.get("log_dir")
            return AppSettings(
                rclone_binary_path=data.get("rclone_binary_path"),
                rclone_config_path=data.get("rclone_config_path"),
                log_level=str(data.get("log_level", "INFO")),
                log_file_enabled=bool(data.get("log_file_enabled", False)),
                log_dir=Path(log_dir).expanduser() if log_dir else None,
                remotes_timeout=float(data.get("remotes_timeout", 30.0)),
                retry=RetryConfig.from_dict(data.get("retry")),
            )
        except ConfigurationError:
            raise
        except (TypeError, ValueError) as e:
            error_msg = f"Settings validation failed: {e}"
            raise ConfigurationError(error_msg, original_error=e) from e

    @staticmethod
    def save_settings(settings: AppSettings, settings_path: Path) -> None:
        """Write settings to a YAML file, creating parent directories."""
        data = asdict(settings)
        data["log_dir"] = str(settings.log_dir) if settings.log_dir else None
        try:
            settings_path.parent.mkdir(parents=True, exist_ok=True)
            with settings_path.open("w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, sort_keys=False)
        except OSError as e:
            error_msg = f"Failed to save settings to {settings_path}: {e}"
            raise ConfigurationError(error_msg, original_error=e) from e

    @staticmethod
    def get_default_settings() -> dict[str, Any]:
        """Get a template settings dictionary."""
        return {
            "rclone_binary_path": None,
            "rclone_config_path": None,
            "log_level": "INFO",
            "log_file_enabled": False,
            "log_dir": None,
            "remotes_timeout": 30.0,
            "retry": asdict(RetryConfig()),
        }


def load_environment(env_file: Path | None = None) -> dict[str, str]:
    """Return the process environment overlaid with an optional .env file."""
    environment = dict(os.environ)
    if env_file is None:
        return environment
    if not env_file.exists():
        error_msg = f"Environment file not found: {env_file}"
        raise ConfigurationError(error_msg)
    for key, value in dotenv_values(env_file).items():
        if value is not None:
            environment[key] = value
    return environment


def create_client(
    settings: AppSettings,
    env: Mapping[str, str] | None = None,
    logger: logging.Logger | None = None,
) -> RcloneClient:
    """Build an rclone client; settings paths win over environment overrides."""
    return RcloneClient(
        binary_path=settings.rclone_binary_path,
        config_path=settings.rclone_config_path,
        retry_config=settings.retry,
        logger=logger,
        env=env,
    )
