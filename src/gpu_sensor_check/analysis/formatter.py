"""Report formatter for the monitoring scheduler.

Renders an evaluation result into the plugin output grammar::

    <Status> - <product name> [s = Critical (v)] [s = Warning (v)] |s=v;w;c; s=v

followed, at higher verbosity, by a debug block and a detail dump of the
whole snapshot.
"""

from typing import Any, List, Mapping, Optional

from gpu_sensor_check.analysis.thresholds import ThresholdTable
from gpu_sensor_check.models.enums import Status, ValueKind
from gpu_sensor_check.models.result import EvaluationResult
from gpu_sensor_check.models.snapshot import (
    NOT_AVAILABLE,
    DebugInfo,
    DeviceSnapshot,
    PerformanceRecord,
    classify_value,
    find_sensor,
    format_number,
    is_all_unavailable,
    visible_items,
)

PRODUCT_NAME = "productName"
UNKNOWN_PRODUCT = "Unknown GPU"
END_OF_DEBUG = "==================== End of debug output ===================="


def _display_value(value: Any) -> str:
    kind = classify_value(value)
    if kind is ValueKind.NUMBER:
        return format_number(value)
    if kind is ValueKind.NESTED:
        # Flag mappings (throttle reasons) show their active entries
        return ", ".join(key for key, state in visible_items(value) if state == "active")
    return str(value)


class ReportFormatter:
    """Formatter for one evaluated device.

    Attributes:
        verbosity: 0 (summary only) to 3 (debug)
        show_unavailable: Include "N/A" sensors in the detail dump
    """

    def __init__(self, verbosity: int = 0, show_unavailable: bool = False):
        self.verbosity = max(0, min(3, verbosity))
        self.show_unavailable = show_unavailable

    def format_report(
        self,
        snapshot: DeviceSnapshot,
        record: PerformanceRecord,
        result: EvaluationResult,
        thresholds: ThresholdTable,
        debug_info: Optional[DebugInfo] = None,
    ) -> str:
        """Render the full report printed on stdout.

        Args:
            snapshot: Device snapshot that was evaluated
            record: Performance record of the snapshot
            result: Finalized evaluation result
            thresholds: Threshold table used for the evaluation
            debug_info: Run information for the debug block (verbosity 3)

        Returns:
            Report text without a trailing newline
        """
        lines = [
            self.format_status_line(snapshot, record, result)
            + "|"
            + self.format_perf_data(record, thresholds)
        ]
        if self.verbosity >= 3:
            lines.extend(self.format_debug(debug_info or DebugInfo()))
        if self.verbosity >= 2:
            lines.extend(self.format_details(snapshot))
        if self.verbosity >= 3:
            lines.append(END_OF_DEBUG)
        return "\n".join(lines)

    def format_status_line(
        self,
        snapshot: DeviceSnapshot,
        record: PerformanceRecord,
        result: EvaluationResult,
    ) -> str:
        """Render ``<Status> - <product> `` plus the offending sensors."""
        product = snapshot.get(PRODUCT_NAME)
        if not isinstance(product, str) or product == NOT_AVAILABLE:
            product = UNKNOWN_PRODUCT

        parts = [f"{result.status.value} - {product} "]
        for sensor in result.sorted_critical:
            parts.append(self._format_entry(sensor, Status.CRITICAL, snapshot, record))
        for sensor in result.sorted_warning:
            parts.append(self._format_entry(sensor, Status.WARNING, snapshot, record))
        return "".join(parts)

    def _format_entry(
        self,
        sensor: str,
        level: Status,
        snapshot: DeviceSnapshot,
        record: PerformanceRecord,
    ) -> str:
        entry = f"[{sensor} = {level.value}"
        if self.verbosity >= 1:
            value = record[sensor] if sensor in record else find_sensor(snapshot, sensor)
            if value is not None:
                entry += f" ({_display_value(value)})"
        return entry + "] "

    @staticmethod
    def format_perf_data(record: PerformanceRecord, thresholds: ThresholdTable) -> str:
        """Render ``name=value[;warn;crit;]`` entries sorted case-insensitively."""
        entries = []
        for sensor in sorted(record, key=str.lower):
            entry = f"{sensor}={format_number(record[sensor])}"
            threshold = thresholds.get(sensor)
            if threshold is not None:
                entry += threshold.perf_suffix()
            entries.append(entry)
        return " ".join(entries)

    def format_details(self, snapshot: DeviceSnapshot) -> List[str]:
        """Render one dash-prefixed line per snapshot key.

        Nested mappings become a header line followed by tab-indented
        children. A mapping whose leaves are all unavailable collapses to a
        single "N/A" line; unavailable entries are omitted unless
        show_unavailable is set.
        """
        if is_all_unavailable(snapshot):
            return [NOT_AVAILABLE] if self.show_unavailable else []
        return self._detail_lines(snapshot, depth=0)

    def _detail_lines(self, mapping: Mapping, depth: int) -> List[str]:
        indent = "\t" * depth
        lines: List[str] = []
        for key, value in sorted(visible_items(mapping), key=lambda item: item[0].lower()):
            if is_all_unavailable(value):
                if self.show_unavailable:
                    lines.append(f"{indent}-{key}: {NOT_AVAILABLE}")
                continue
            if classify_value(value) is ValueKind.NESTED:
                lines.append(f"{indent}-{key}:")
                lines.extend(self._detail_lines(value, depth + 1))
            else:
                lines.append(f"{indent}-{key}: {_display_value(value)}")
        return lines

    @staticmethod
    def format_debug(debug_info: DebugInfo) -> List[str]:
        """Render the debug block shown at verbosity 3."""
        return [
            f"Debug: driver version = {debug_info.driver_version}",
            f"Debug: NVML version = {debug_info.nvml_version}",
            f"Debug: device count = {debug_info.device_count}",
            f"Debug: device name = {debug_info.device_name}",
        ]
