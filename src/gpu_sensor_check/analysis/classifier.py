"""Sensor classifier building the performance record from a snapshot."""

from typing import Iterable, Optional

from gpu_sensor_check.models.enums import ValueKind
from gpu_sensor_check.models.snapshot import (
    DeviceSnapshot,
    PerformanceRecord,
    classify_value,
    parse_number,
    visible_items,
)


def build_performance_record(
    snapshot: DeviceSnapshot,
    sensor_filter: Optional[Iterable[str]] = None,
) -> PerformanceRecord:
    """Flatten the numeric sensors of *snapshot* into a performance record.

    The filter only applies to top-level keys; once a nested mapping is
    entered all of its keys are visited. Unavailable and text values are
    skipped. Decimals are rounded to 2 places, integers kept exactly.

    Args:
        snapshot: Device snapshot to flatten
        sensor_filter: Optional top-level sensor names to keep

    Returns:
        Mapping of sensor name to numeric value
    """
    wanted = set(sensor_filter or ())
    record: PerformanceRecord = {}
    for key, value in visible_items(snapshot):
        if wanted and key not in wanted:
            continue
        _collect(key, value, record)
    return record


def _collect(key: str, value, record: PerformanceRecord) -> None:
    kind = classify_value(value)
    if kind is ValueKind.NESTED:
        for child_key, child_value in visible_items(value):
            _collect(child_key, child_value, record)
    elif kind is ValueKind.NUMBER:
        record[key] = value if isinstance(value, int) else round(value, 2)
    elif kind is ValueKind.TEXT:
        number = parse_number(value)
        if number is None:
            return
        record[key] = number if isinstance(number, int) else round(number, 2)
