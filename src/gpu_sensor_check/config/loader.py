"""Configuration loading with YAML and environment override support."""

from __future__ import annotations

import os
from typing import Any, Dict, List, Optional

import yaml
from pydantic import ValidationError

from gpu_sensor_check.config.settings import CONFIG_PATH_ENV, ProbeSettings
from gpu_sensor_check.exceptions import ConfigurationError


def load_yaml_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML file if specified.

    Args:
        config_path: Path to YAML config file. If None, checks GPU_SENSOR_CONFIG_PATH.

    Returns:
        Dict of configuration values from YAML, or empty dict if no file.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or not YAML.
    """
    path = config_path or os.environ.get(CONFIG_PATH_ENV)

    if not path:
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigurationError(
            f"Configuration file not found: {path}",
            hint="Pass an existing YAML file to --config.",
        )
    except IsADirectoryError:
        raise ConfigurationError(f"Configuration path is a directory: {path}")
    except PermissionError:
        raise ConfigurationError(f"Cannot read configuration file {path}: permission denied")
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(
            f"Configuration file {path} must contain a mapping, got {type(data).__name__}"
        )
    return data


def format_validation_errors(errors: List[Dict[str, Any]]) -> List[str]:
    """Format Pydantic validation errors into user-friendly messages."""
    messages: List[str] = []
    for error in errors:
        loc = ".".join(str(part) for part in error.get("loc", []))
        msg = error.get("msg", "Invalid value")
        input_val = error.get("input")

        if input_val is not None and not isinstance(input_val, (dict, list)):
            messages.append(f"'{loc}' {msg}, got: {input_val}")
        else:
            messages.append(f"'{loc}' {msg}")

    return messages


def load_config(config_path: Optional[str] = None) -> ProbeSettings:
    """Load and validate configuration.

    Configuration is loaded with the following precedence:
    1. Environment variables (highest priority)
    2. YAML configuration file
    3. Default values (lowest priority)

    Args:
        config_path: Optional path to YAML config file (sets GPU_SENSOR_CONFIG_PATH).

    Returns:
        Validated ProbeSettings instance.

    Raises:
        ConfigurationError: If the file cannot be read or validation fails.
    """
    if config_path:
        os.environ[CONFIG_PATH_ENV] = config_path

    # Validate the file up front for better errors; the settings source reads it again
    _ = load_yaml_config()

    try:
        return ProbeSettings()
    except ValidationError as e:
        error_messages = format_validation_errors(e.errors())
        raise ConfigurationError("Invalid configuration: " + "; ".join(error_messages))
