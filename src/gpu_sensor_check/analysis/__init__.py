"""Threshold evaluation and report formatting for device snapshots."""

from gpu_sensor_check.analysis.classifier import build_performance_record
from gpu_sensor_check.analysis.evaluator import SensorEvaluator
from gpu_sensor_check.analysis.formatter import ReportFormatter
from gpu_sensor_check.analysis.thresholds import (
    CRITICAL_SLOTS,
    WARNING_SLOTS,
    EqualityThreshold,
    RangeThreshold,
    ThresholdTable,
    parse_override_list,
)

__all__ = [
    "CRITICAL_SLOTS",
    "EqualityThreshold",
    "RangeThreshold",
    "ReportFormatter",
    "SensorEvaluator",
    "ThresholdTable",
    "WARNING_SLOTS",
    "build_performance_record",
    "parse_override_list",
]
