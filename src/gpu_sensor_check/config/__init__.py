"""Configuration management for GPU Sensor Check."""

from gpu_sensor_check.config.loader import load_config, load_yaml_config
from gpu_sensor_check.config.settings import ProbeSettings
from gpu_sensor_check.exceptions import ConfigurationError

__all__ = [
    "ConfigurationError",
    "ProbeSettings",
    "load_config",
    "load_yaml_config",
]
