"""Pydantic settings models for rackwatch configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, Type

import yaml
from pydantic import Field, field_validator, model_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads values from a YAML file.

    The YAML file path is determined by the CONFIG_PATH environment variable.
    """

    def get_field_value(
        self, field: Any, field_name: str
    ) -> Tuple[Any, str, bool]:
        """Get field value from YAML config."""
        yaml_config = self._load_yaml_config()
        field_value = yaml_config.get(field_name)
        return field_value, field_name, False

    def _load_yaml_config(self) -> Dict[str, Any]:
        """Load YAML configuration file."""
        config_path = os.environ.get("CONFIG_PATH")
        if not config_path:
            return {}

        try:
            with open(config_path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
                return data if isinstance(data, dict) else {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError):
            # Errors are reported by loader.py
            return {}

    def __call__(self) -> Dict[str, Any]:
        """Return the YAML config values."""
        return self._load_yaml_config()


class RackwatchSettings(BaseSettings):
    """rackwatch service configuration.

    Configuration is loaded in the following precedence (highest to lowest):
    1. Environment variables (RACKWATCH_ prefix)
    2. .env file
    3. YAML configuration file (via CONFIG_PATH)
    4. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="RACKWATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Data locations
    data_dir: str = Field(
        default="./data",
        description="Directory holding the active alert table and alert history",
    )
    thresholds_path: Optional[str] = Field(
        default=None,
        description="YAML file with global thresholds and per-rack overrides "
        "(defaults to <data_dir>/thresholds.yaml)",
    )
    maintenance_path: Optional[str] = Field(
        default=None,
        description="YAML file with active maintenance entries "
        "(defaults to <data_dir>/maintenance.yaml)",
    )
    readings_path: Optional[str] = Field(
        default=None,
        description="JSON file with the latest readings from the telemetry collector "
        "(defaults to <data_dir>/readings.json)",
    )

    # Polling
    poll_interval: int = Field(
        default=60,
        description="Seconds between evaluation cycles",
        gt=0,
    )
    timezone: str = Field(
        default="UTC",
        description="Timezone for the scheduler",
    )

    # Alert reconciliation
    batch_size: int = Field(
        default=10,
        description="PDUs written to the alert table per batch",
        gt=0,
    )
    batch_pause: float = Field(
        default=0.1,
        description="Seconds to pause between alert batches",
        ge=0.0,
        le=10.0,
    )
    reconcile_workers: int = Field(
        default=1,
        description="Threads writing alerts within a batch",
        ge=1,
        le=32,
    )
    evaluation_workers: int = Field(
        default=1,
        description="Threads classifying readings",
        ge=1,
        le=32,
    )
    history_enabled: bool = Field(
        default=True,
        description="Archive resolved alerts to the history file",
    )

    # Health file
    health_file: str = Field(
        default="/tmp/rackwatch-health",
        description="Path of the health status file read by container health checks",
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format: json (production) or text (development)",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: Type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> Tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to set precedence.

        Order (first = highest priority):
        1. init_settings (constructor arguments)
        2. env_settings (environment variables with RACKWATCH_ prefix)
        3. dotenv_settings (.env file)
        4. yaml_settings (CONFIG_PATH YAML file)
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "WARN", "ERROR", "CRITICAL"}
        normalized = v.upper()
        if normalized == "WARN":
            normalized = "WARNING"
        if normalized not in valid_levels:
            raise ValueError(
                f"Invalid log level '{v}'. Must be one of: DEBUG, INFO, WARNING, ERROR"
            )
        return normalized

    @field_validator("data_dir")
    @classmethod
    def validate_data_dir(cls, v: str) -> str:
        """Validate data_dir is not empty."""
        if not v or not v.strip():
            raise ValueError("data_dir cannot be empty")
        return v.strip()

    @model_validator(mode="after")
    def default_paths_under_data_dir(self) -> "RackwatchSettings":
        """Place unset data files under data_dir."""
        base = Path(self.data_dir)
        if not self.thresholds_path:
            self.thresholds_path = str(base / "thresholds.yaml")
        if not self.maintenance_path:
            self.maintenance_path = str(base / "maintenance.yaml")
        if not self.readings_path:
            self.readings_path = str(base / "readings.json")
        return self
