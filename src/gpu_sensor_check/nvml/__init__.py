"""NVML access layer producing device snapshots."""

from gpu_sensor_check.nvml.collector import (
    THROTTLE_REASONS,
    NvmlSession,
    decode_throttle_reasons,
)

__all__ = ["NvmlSession", "THROTTLE_REASONS", "decode_throttle_reasons"]
