"""
GPU Sensor Check - Monitoring probe for NVIDIA GPU hardware telemetry.

This package queries a GPU through NVML, evaluates the readings against
warning and critical thresholds, and prints a status line with
machine-parsable performance data for a monitoring scheduler.

Features:
- Range thresholds with positional and YAML overrides
- Fixed policy checks for ECC, persistence, inforom, throttling and PCIe link
- Verbosity-dependent detail and debug output
- Structured logging (stderr) that never pollutes the report
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
