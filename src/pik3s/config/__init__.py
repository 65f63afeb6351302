"""Configuration loading."""

from .manager import DEFAULT_CONFIG_PATH, ConfigManager

__all__ = ["ConfigManager", "DEFAULT_CONFIG_PATH"]
