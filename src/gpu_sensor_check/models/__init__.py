"""Data models for the GPU sensor check."""

from gpu_sensor_check.models.enums import Status, ValueKind
from gpu_sensor_check.models.result import EvaluationResult
from gpu_sensor_check.models.snapshot import (
    EXCLUDED_KEYS,
    NOT_AVAILABLE,
    DebugInfo,
    DeviceSnapshot,
    PerformanceRecord,
    classify_value,
)

__all__ = [
    "DebugInfo",
    "DeviceSnapshot",
    "EXCLUDED_KEYS",
    "EvaluationResult",
    "NOT_AVAILABLE",
    "PerformanceRecord",
    "Status",
    "ValueKind",
    "classify_value",
]
