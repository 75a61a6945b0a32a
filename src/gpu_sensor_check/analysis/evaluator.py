"""Sensor evaluator reducing a device snapshot to one status.

Continuous sensors are compared against the range thresholds of the
threshold table. Discrete sensors follow fixed per-family rules. Both
passes can only raise the status; the two results are then merged.
"""

from typing import Any, Iterator, Optional, Tuple

import structlog

from gpu_sensor_check.analysis.thresholds import (
    EqualityThreshold,
    RangeThreshold,
    ThresholdTable,
)
from gpu_sensor_check.models.enums import ValueKind
from gpu_sensor_check.models.result import EvaluationResult
from gpu_sensor_check.models.snapshot import (
    DeviceSnapshot,
    PerformanceRecord,
    classify_value,
    find_sensor,
    parse_number,
    visible_items,
)

DOUBLE_BIT_ECC_SUFFIX = "AggDbl"
PERSISTENCE_MODE = "persistenceMode"
INFOROM_VALID = "inforomValid"
THROTTLE_REASONS = "clocksThrottleReasons"
PCIE_LINK_SENSORS = ("PCIeLinkGen", "PCIeLinkWidth")

# Throttle reasons that indicate a hardware problem
CRITICAL_THROTTLE_REASONS = frozenset({"HwSlowdown", "Unknown"})
THROTTLE_ACTIVE = "active"


def _walk(snapshot: DeviceSnapshot) -> Iterator[Tuple[str, Any]]:
    """Yield every (key, value) leaf or mapping of *snapshot*, depth first."""
    for key, value in visible_items(snapshot):
        yield key, value
        if classify_value(value) is ValueKind.NESTED:
            yield from _walk(value)


def _as_number(value: Any) -> Optional[float]:
    kind = classify_value(value)
    if kind is ValueKind.NUMBER:
        return value
    if kind is ValueKind.TEXT:
        return parse_number(value)
    return None


def _is_unavailable(value: Any) -> bool:
    return value is None or classify_value(value) is ValueKind.UNAVAILABLE


class SensorEvaluator:
    """Evaluator for one device snapshot.

    Holds no state between calls: evaluating the same snapshot twice
    yields equal results.
    """

    def __init__(self, thresholds: Optional[ThresholdTable] = None):
        """Initialize the evaluator with an optional threshold table.

        Args:
            thresholds: Threshold table. Defaults to the built-in table.
        """
        self._thresholds = thresholds if thresholds is not None else ThresholdTable.defaults()

    @property
    def thresholds(self) -> ThresholdTable:
        return self._thresholds

    def evaluate(self, snapshot: DeviceSnapshot, record: PerformanceRecord) -> EvaluationResult:
        """Evaluate continuous and discrete sensors and merge the results.

        Args:
            snapshot: Full device snapshot
            record: Performance record derived from the snapshot

        Returns:
            EvaluationResult with overall status and offending sensors
        """
        result = self.aggregate(
            self.evaluate_performance(record),
            self.evaluate_discrete(snapshot),
        )
        structlog.get_logger().debug(
            "evaluation_complete",
            status=result.status.value,
            warning=result.sorted_warning,
            critical=result.sorted_critical,
        )
        return result

    @staticmethod
    def aggregate(*results: EvaluationResult) -> EvaluationResult:
        """Merge partial results, keeping the warning and critical sets disjoint."""
        merged = EvaluationResult()
        for result in results:
            merged = merged.merge(result)
        return merged

    def evaluate_performance(
        self,
        record: PerformanceRecord,
        result: Optional[EvaluationResult] = None,
    ) -> EvaluationResult:
        """Compare performance data against the range thresholds.

        Sensors without a range threshold are reported but never flagged.
        The critical comparison runs after the warning one so it can
        promote the sensor.
        """
        result = result if result is not None else EvaluationResult()
        for sensor, value in record.items():
            threshold = self._thresholds.get(sensor)
            if not isinstance(threshold, RangeThreshold):
                continue
            if value >= threshold.warning:
                result.mark_warning(sensor)
            if value >= threshold.critical:
                result.mark_critical(sensor)
        return result

    def evaluate_discrete(
        self,
        snapshot: DeviceSnapshot,
        result: Optional[EvaluationResult] = None,
    ) -> EvaluationResult:
        """Apply the fixed policy rules to the discrete sensors.

        All checks run independently; each can only raise the status.
        """
        result = result if result is not None else EvaluationResult()
        self._check_double_bit_ecc(snapshot, result)
        self._check_persistence_mode(snapshot, result)
        self._check_inforom(snapshot, result)
        self._check_throttle_reasons(snapshot, result)
        self._check_pcie_link(snapshot, result)
        return result

    def _check_double_bit_ecc(self, snapshot: DeviceSnapshot, result: EvaluationResult) -> None:
        """Any double-bit ECC error is critical."""
        for sensor, value in _walk(snapshot):
            if not sensor.endswith(DOUBLE_BIT_ECC_SUFFIX) or _is_unavailable(value):
                continue
            count = _as_number(value)
            if count is not None and count > 0:
                result.mark_critical(sensor)

    def _check_persistence_mode(self, snapshot: DeviceSnapshot, result: EvaluationResult) -> None:
        """Disabled persistence mode is a warning."""
        value = find_sensor(snapshot, PERSISTENCE_MODE)
        if _is_unavailable(value):
            return
        if value != "enabled":
            result.mark_warning(PERSISTENCE_MODE)

    def _check_inforom(self, snapshot: DeviceSnapshot, result: EvaluationResult) -> None:
        """An inforom that fails validation is critical."""
        value = find_sensor(snapshot, INFOROM_VALID)
        if _is_unavailable(value):
            return
        if value != "valid":
            result.mark_critical(INFOROM_VALID)

    def _check_throttle_reasons(self, snapshot: DeviceSnapshot, result: EvaluationResult) -> None:
        """Hardware slowdown or unknown throttling is critical."""
        value = find_sensor(snapshot, THROTTLE_REASONS)
        if _is_unavailable(value) or classify_value(value) is not ValueKind.NESTED:
            return
        active = {reason for reason, state in value.items() if state == THROTTLE_ACTIVE}
        if active & CRITICAL_THROTTLE_REASONS:
            result.mark_critical(THROTTLE_REASONS)

    def _check_pcie_link(self, snapshot: DeviceSnapshot, result: EvaluationResult) -> None:
        """A PCIe link generation or width other than the configured one is critical."""
        for sensor in PCIE_LINK_SENSORS:
            threshold = self._thresholds.get(sensor)
            if not isinstance(threshold, EqualityThreshold):
                continue
            value = find_sensor(snapshot, sensor)
            if _is_unavailable(value):
                continue
            if _as_number(value) != threshold.expected:
                result.mark_critical(sensor)
