"""Configuration loading: YAML file, RACKWATCH_ environment overrides, validation."""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Dict, List, Optional

import structlog
import yaml
from pydantic import ValidationError

from rackwatch.config.settings import RackwatchSettings

ENV_PREFIX = "RACKWATCH_"


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


# Thread-safe global config storage
_config: Optional[RackwatchSettings] = None
_config_lock = threading.Lock()


def env_var_for(field_name: str) -> str:
    """Environment variable overriding a setting, e.g. RACKWATCH_POLL_INTERVAL."""
    return f"{ENV_PREFIX}{field_name.upper()}"


def load_yaml_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Read the YAML configuration file, if one is configured.

    Keys that are not rackwatch settings are reported and otherwise
    ignored, so a misspelled ``poll_intervall`` does not pass silently.

    Args:
        config_path: Path to YAML config file. If None, checks CONFIG_PATH env var.

    Returns:
        Dict of configuration values from YAML, or empty dict if no file.

    Raises:
        ConfigurationError: If the file is missing, unreadable, not YAML,
            or not a mapping of setting names
    """
    path = config_path or os.environ.get("CONFIG_PATH")

    if not path:
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            f"Configuration file not found: {path}\n"
            "Ensure CONFIG_PATH points to a valid YAML file, or remove it to use environment variables only."
        )
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}")
    except PermissionError:
        raise ConfigurationError(f"Cannot read configuration file {path}: permission denied")
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file {path} must be a mapping of setting names to values"
        )

    unknown = sorted(str(key) for key in data if key not in RackwatchSettings.model_fields)
    if unknown:
        structlog.get_logger().warning("config_keys_unknown", path=path, keys=unknown)
    return data


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[str]:
    """Format Pydantic validation errors into messages naming the setting to fix."""
    messages: List[str] = []
    for error in errors:
        loc = ".".join(str(part) for part in error.get("loc", []))
        msg = error.get("msg", "Invalid value")
        input_val = error.get("input")

        if loc and loc in RackwatchSettings.model_fields:
            hint = f" (set {env_var_for(loc)} or '{loc}:' in the config file)"
        else:
            hint = ""

        if input_val is not None:
            messages.append(f"Configuration error: '{loc}' {msg}, got: {input_val}{hint}")
        else:
            messages.append(f"Configuration error: '{loc}' {msg}{hint}")

    return messages


def load_config(config_path: Optional[str] = None) -> RackwatchSettings:
    """Load and validate configuration.

    Args:
        config_path: Optional path to YAML config file (sets CONFIG_PATH env).

    Returns:
        Validated RackwatchSettings instance.

    Raises:
        ConfigurationError: If configuration file cannot be read.
        SystemExit: If validation fails (exits with code 1 after printing errors).
    """
    global _config

    if config_path:
        os.environ["CONFIG_PATH"] = config_path

    # Surface unreadable YAML here; the settings source swallows it
    load_yaml_config()

    try:
        settings = RackwatchSettings()
    except ValidationError as e:
        for msg in format_validation_errors(e.errors()):
            print(msg, file=sys.stderr)
        sys.exit(1)

    with _config_lock:
        _config = settings
    return settings


def get_config() -> RackwatchSettings:
    """Get the current configuration.

    Raises:
        ConfigurationError: If configuration has not been loaded.
    """
    with _config_lock:
        if _config is None:
            raise ConfigurationError("Configuration not loaded. Call load_config() first.")
        return _config


def reload_config() -> RackwatchSettings:
    """Reload configuration from disk.

    Used by the SIGHUP handler; the next cycle is rebuilt from the new
    settings.
    """
    global _config
    with _config_lock:
        _config = None
    return load_config()
