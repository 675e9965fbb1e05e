"""Application settings."""

from .config_manager import AppSettings, SettingsManager, create_client, load_environment

__all__ = ["AppSettings", "SettingsManager", "create_client", "load_environment"]
