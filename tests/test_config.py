"""Tests for YAML configuration loading and settings validation."""

import pytest

from gpu_sensor_check.config import ConfigurationError, ProbeSettings, load_config
from gpu_sensor_check.config.loader import format_validation_errors, load_yaml_config


@pytest.fixture
def write_config(tmp_path):
    def _write(content: str):
        path = tmp_path / "gpu.yaml"
        path.write_text(content)
        return str(path)

    return _write


class TestLoadYamlConfig:
    """Tests for load_yaml_config()."""

    def test_no_path_returns_empty(self, config_env) -> None:
        assert load_yaml_config() == {}

    def test_missing_file(self, config_env, tmp_path) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            load_yaml_config(str(tmp_path / "missing.yaml"))

        assert "not found" in str(exc_info.value)

    def test_directory(self, config_env, tmp_path) -> None:
        with pytest.raises(ConfigurationError):
            load_yaml_config(str(tmp_path))

    def test_invalid_yaml(self, config_env, write_config) -> None:
        path = write_config("thresholds: [unclosed\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_yaml_config(path)

        assert "Invalid YAML" in str(exc_info.value)

    def test_non_mapping(self, config_env, write_config) -> None:
        with pytest.raises(ConfigurationError):
            load_yaml_config(write_config("- just\n- a list\n"))

    def test_empty_file(self, config_env, write_config) -> None:
        assert load_yaml_config(write_config("")) == {}


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults(self, config_env) -> None:
        settings = load_config()

        assert settings.log_level == "WARNING"
        assert settings.log_format == "text"
        assert settings.thresholds == {}

    def test_thresholds_from_file(self, config_env, write_config) -> None:
        path = write_config(
            "thresholds:\n"
            "  GPUTemperature: [70, 80]\n"
            "  PCIeLinkGen: 3\n"
        )

        settings = load_config(path)

        assert settings.thresholds == {"GPUTemperature": [70, 80], "PCIeLinkGen": [3]}

    def test_log_level_from_file(self, config_env, write_config) -> None:
        settings = load_config(write_config("log_level: debug\n"))
        assert settings.log_level == "DEBUG"

    def test_environment_overrides_file(self, config_env, monkeypatch, write_config) -> None:
        monkeypatch.setenv("GPU_SENSOR_LOG_LEVEL", "ERROR")

        settings = load_config(write_config("log_level: debug\n"))

        assert settings.log_level == "ERROR"

    def test_too_many_threshold_values(self, config_env, write_config) -> None:
        path = write_config("thresholds:\n  GPUTemperature: [70, 80, 90]\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert "Invalid configuration" in str(exc_info.value)

    def test_non_numeric_threshold(self, config_env, write_config) -> None:
        with pytest.raises(ConfigurationError):
            load_config(write_config("thresholds:\n  GPUTemperature: [hot, 80]\n"))

    def test_invalid_log_format(self, config_env, write_config) -> None:
        with pytest.raises(ConfigurationError):
            load_config(write_config("log_format: xml\n"))

    def test_unknown_keys_ignored(self, config_env, write_config) -> None:
        settings = load_config(write_config("poll_interval: 5\n"))
        assert settings.thresholds == {}


class TestProbeSettings:
    """Tests for ProbeSettings validators."""

    def test_warn_alias(self, config_env) -> None:
        assert ProbeSettings(log_level="warn").log_level == "WARNING"

    def test_invalid_log_level(self, config_env) -> None:
        with pytest.raises(ValueError):
            ProbeSettings(log_level="LOUD")

    def test_null_thresholds(self, config_env) -> None:
        assert ProbeSettings(thresholds=None).thresholds == {}


class TestFormatValidationErrors:
    def test_includes_location_and_input(self) -> None:
        messages = format_validation_errors(
            [{"loc": ("thresholds", "GPUTemperature", 0), "msg": "Input should be a valid number", "input": "hot"}]
        )
        assert messages == ["'thresholds.GPUTemperature.0' Input should be a valid number, got: hot"]
