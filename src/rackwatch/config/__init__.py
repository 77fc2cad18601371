"""Configuration management for rackwatch."""

from rackwatch.config.loader import ConfigurationError, get_config, load_config, reload_config
from rackwatch.config.settings import RackwatchSettings

__all__ = [
    "ConfigurationError",
    "RackwatchSettings",
    "get_config",
    "load_config",
    "reload_config",
]
