"""Tests for the settings config_manager module."""

from pathlib import Path

import pytest
import yaml

from rclone_mount_sync.exceptions import ConfigurationError
from rclone_mount_sync.rclone.retry import RetryConfig
from rclone_mount_sync.settings import (
    AppSettings,
    SettingsManager,
    create_client,
    load_environment,
)


class TestAppSettings:
    """Test cases for AppSettings validation."""

    def test_defaults(self) -> None:
        """Test the default settings."""
        settings = AppSettings()

        assert settings.rclone_binary_path is None
        assert settings.log_level == "INFO"
        assert settings.retry == RetryConfig()

    def test_invalid_log_level(self) -> None:
        """Test that unknown log levels are rejected."""
        with pytest.raises(ConfigurationError, match="Invalid log_level"):
            AppSettings(log_level="LOUD")

    def test_blank_binary_path(self) -> None:
        """Test that blank paths are rejected."""
        with pytest.raises(ConfigurationError, match="rclone_binary_path"):
            AppSettings(rclone_binary_path="  ")

    def test_non_positive_timeout(self) -> None:
        """Test that the remotes timeout must be positive."""
        with pytest.raises(ConfigurationError, match="remotes_timeout"):
            AppSettings(remotes_timeout=0)


class TestSettingsManager:
    """Test cases for SettingsManager functionality."""

    def test_missing_file_yields_defaults(self, tmp_path: Path) -> None:
        """Test that a missing settings file is not an error."""
        settings = SettingsManager.load_settings(tmp_path / "absent.yaml")
        assert settings == AppSettings()

    def test_load_settings(self, tmp_path: Path) -> None:
        """Test loading a complete settings file."""
        settings_file = tmp_path / "config.yaml"
        settings_file.write_text(
            "rclone_binary_path: /opt/rclone/rclone\n"
            "rclone_config_path: /etc/rclone.conf\n"
            "log_level: DEBUG\n"
            "log_file_enabled: true\n"
            f"log_dir: {tmp_path / 'logs'}\n"
            "remotes_timeout: 12\n"
            "retry:\n"
            "  max_retries: 5\n"
            "  initial_delay: 1.0\n",
        )

        settings = SettingsManager.load_settings(settings_file)

        assert settings.rclone_binary_path == "/opt/rclone/rclone"
        assert settings.rclone_config_path == "/etc/rclone.conf"
        assert settings.log_level == "DEBUG"
        assert settings.log_file_enabled is True
        assert settings.log_dir == tmp_path / "logs"
        assert settings.remotes_timeout == 12.0
        assert settings.retry.max_retries == 5
        assert settings.retry.initial_delay == 1.0
        assert settings.retry.max_delay == 30.0

    def test_empty_file_yields_defaults(self, tmp_path: Path) -> None:
        """Test that an empty YAML document means defaults."""
        settings_file = tmp_path / "config.yaml"
        settings_file.write_text("")

        assert SettingsManager.load_settings(settings_file) == AppSettings()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that malformed YAML raises ConfigurationError."""
        settings_file = tmp_path / "config.yaml"
        settings_file.write_text("log_level: [unclosed\n")

        with pytest.raises(ConfigurationError, match="Invalid settings file format"):
            SettingsManager.load_settings(settings_file)

    def test_non_mapping(self, tmp_path: Path) -> None:
        """Test that a YAML list is rejected."""
        settings_file = tmp_path / "config.yaml"
        settings_file.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="must contain a mapping"):
            SettingsManager.load_settings(settings_file)

    def test_invalid_retry_values(self, tmp_path: Path) -> None:
        """Test that an invalid retry policy is rejected."""
        settings_file = tmp_path / "config.yaml"
        settings_file.write_text("retry:\n  multiplier: 1.0\n")

        with pytest.raises(ConfigurationError):
            SettingsManager.load_settings(settings_file)

    def test_invalid_timeout_type(self, tmp_path: Path) -> None:
        """Test that a non-numeric timeout is rejected."""
        settings_file = tmp_path / "config.yaml"
        settings_file.write_text("remotes_timeout: soon\n")

        with pytest.raises(ConfigurationError, match="Settings validation failed"):
            SettingsManager.load_settings(settings_file)

    def test_save_and_reload(self, tmp_path: Path) -> None:
        """Test that saved settings load back unchanged."""
        settings_file = tmp_path / "nested" / "config.yaml"
        settings = AppSettings(
            rclone_config_path="/etc/rclone.conf",
            log_level="WARNING",
            retry=RetryConfig(max_retries=1),
        )

        SettingsManager.save_settings(settings, settings_file)

        assert SettingsManager.load_settings(settings_file) == settings

    def test_default_settings_template(self) -> None:
        """Test that the template is valid YAML-serializable data."""
        template = SettingsManager.get_default_settings()

        assert template["retry"]["max_retries"] == 3
        assert yaml.safe_load(yaml.safe_dump(template)) == template

    def test_default_settings_path(self, monkeypatch) -> None:
        """Test the XDG settings location."""
        monkeypatch.setenv("XDG_CONFIG_HOME", "/tmp/cfg")
        assert SettingsManager.default_settings_path() == Path(
            "/tmp/cfg/rclone-mount-sync/config.yaml",
        )


class TestEnvironment:
    """Test cases for environment loading and client creation."""

    def test_env_file_overlays_environment(self, tmp_path: Path, monkeypatch) -> None:
        """Test that .env values win over the process environment."""
        monkeypatch.setenv("RCLONE_CONFIG", "/from/process.conf")
        env_file = tmp_path / ".env"
        env_file.write_text("RCLONE_CONFIG=/from/dotenv.conf\n")

        env = load_environment(env_file)

        assert env["RCLONE_CONFIG"] == "/from/dotenv.conf"

    def test_no_env_file(self, monkeypatch) -> None:
        """Test that the process environment is returned as is."""
        monkeypatch.setenv("RCLONE_BINARY_PATH", "/usr/local/bin/rclone")
        assert load_environment()["RCLONE_BINARY_PATH"] == "/usr/local/bin/rclone"

    def test_missing_env_file(self, tmp_path: Path) -> None:
        """Test that a missing .env file is an error."""
        with pytest.raises(ConfigurationError, match="Environment file not found"):
            load_environment(tmp_path / "missing.env")

    def test_create_client_settings_win(self) -> None:
        """Test that settings paths override environment variables."""
        settings = AppSettings(rclone_binary_path="/opt/rclone")
        env = {"RCLONE_BINARY_PATH": "/env/rclone", "RCLONE_CONFIG": "/env.conf"}

        client = create_client(settings, env)

        assert client.binary_path == "/opt/rclone"
        assert client.config_path == "/env.conf"
        assert client.retry_config is settings.retry
