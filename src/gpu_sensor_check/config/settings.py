"""Pydantic settings models for GPU Sensor Check configuration."""

from __future__ import annotations

import os
from typing import Any, Dict, List, Literal, Tuple, Type, Union

import yaml
from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

CONFIG_PATH_ENV = "GPU_SENSOR_CONFIG_PATH"


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads values from a YAML file.

    The YAML file path is determined by the GPU_SENSOR_CONFIG_PATH
    environment variable.
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
        config_path = os.environ.get(CONFIG_PATH_ENV)
        if not config_path:
            return {}

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
                return data if isinstance(data, dict) else {}
        except (FileNotFoundError, yaml.YAMLError, PermissionError):
            # Errors are reported by loader.py
            return {}

    def __call__(self) -> Dict[str, Any]:
        """Return the YAML config values."""
        return self._load_yaml_config()


class ProbeSettings(BaseSettings):
    """GPU Sensor Check configuration settings.

    Configuration is loaded in the following precedence (highest to lowest):
    1. Environment variables (GPU_SENSOR_ prefix)
    2. YAML configuration file (via --config / GPU_SENSOR_CONFIG_PATH)
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_prefix="GPU_SENSOR_",
        extra="ignore",
    )

    log_level: str = Field(
        default="WARNING",
        description="Logging level: DEBUG, INFO, WARNING, ERROR",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format on stderr: json or text",
    )
    thresholds: Dict[str, List[Union[int, float]]] = Field(
        default_factory=dict,
        description=(
            "Threshold overrides by sensor name: [warning, critical] for range "
            "sensors, [expected] for PCIeLinkGen and PCIeLinkWidth"
        ),
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
        1. init_settings (constructor arguments - used by tests)
        2. env_settings (environment variables with GPU_SENSOR_ prefix)
        3. yaml_settings (GPU_SENSOR_CONFIG_PATH YAML file)
        """
        return (
            init_settings,
            env_settings,
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

    @field_validator("thresholds", mode="before")
    @classmethod
    def wrap_single_values(cls, v: Any) -> Any:
        """Accept ``PCIeLinkGen: 3`` as shorthand for ``PCIeLinkGen: [3]``."""
        if v is None:
            return {}
        if isinstance(v, dict):
            return {
                name: value if isinstance(value, (list, tuple)) else [value]
                for name, value in v.items()
            }
        return v

    @field_validator("thresholds")
    @classmethod
    def validate_thresholds(
        cls, v: Dict[str, List[Union[int, float]]]
    ) -> Dict[str, List[Union[int, float]]]:
        """Each sensor takes one or two numbers."""
        for name, values in v.items():
            if not 1 <= len(values) <= 2:
                raise ValueError(
                    f"Threshold for '{name}' must have 1 or 2 values, got {len(values)}"
                )
        return v
