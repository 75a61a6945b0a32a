"""Threshold table configuration.

Defines the warning/critical thresholds for continuous sensors, the
equality values for the PCIe link checks, and the two ways of overriding
them: positional command-line lists and a name-keyed mapping.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import structlog

from gpu_sensor_check.exceptions import ConfigurationError
from gpu_sensor_check.models.snapshot import format_number, parse_number

Number = Union[int, float]

# Positions of the -w list; the -c list has the same slots plus the PCIe ones
WARNING_SLOTS: Tuple[str, ...] = (
    "GPUTemperature",
    "usedMemory",
    "fanSpeed",
    "ECCMemAggSgl",
    "ECCL1AggSgl",
    "ECCL2AggSgl",
    "ECCRegAggSgl",
    "ECCTexAggSgl",
    "PWRUsage",
)
CRITICAL_SLOTS: Tuple[str, ...] = WARNING_SLOTS + ("PCIeLinkGen", "PCIeLinkWidth")

# Marks a position that keeps its default value
DEFAULT_PLACEHOLDER = "d"


@dataclass(frozen=True)
class RangeThreshold:
    """Warning/critical pair. A value >= the level triggers it.

    Attributes:
        warning: Value at which the sensor becomes Warning
        critical: Value at which the sensor becomes Critical
    """

    warning: Number
    critical: Number

    def perf_suffix(self) -> str:
        return f";{format_number(self.warning)};{format_number(self.critical)};"


@dataclass(frozen=True)
class EqualityThreshold:
    """Expected value of a sensor. Any other value is Critical."""

    expected: Number

    def perf_suffix(self) -> str:
        return f";;{format_number(self.expected)};"


Threshold = Union[RangeThreshold, EqualityThreshold]


def _default_entries() -> Dict[str, Threshold]:
    ecc_single = RangeThreshold(warning=1, critical=2)
    return {
        "GPUTemperature": RangeThreshold(warning=85, critical=100),
        "usedMemory": RangeThreshold(warning=95, critical=99),
        "fanSpeed": RangeThreshold(warning=80, critical=95),
        "ECCMemAggSgl": ecc_single,
        "ECCL1AggSgl": ecc_single,
        "ECCL2AggSgl": ecc_single,
        "ECCRegAggSgl": ecc_single,
        "ECCTexAggSgl": ecc_single,
        "PWRUsage": RangeThreshold(warning=150, critical=200),
        "PCIeLinkGen": EqualityThreshold(expected=2),
        "PCIeLinkWidth": EqualityThreshold(expected=16),
    }


def parse_override_list(text: str, slots: Sequence[str], option: str) -> List[Optional[Number]]:
    """Parse a comma-separated positional override list.

    Args:
        text: Raw list such as ``"80,d,70"``
        slots: Sensor names in position order
        option: Option name used in error messages

    Returns:
        One entry per given position: the number, or None for the placeholder.
        Positions beyond the list keep their defaults.

    Raises:
        ConfigurationError: If the list is longer than *slots* or holds a
            value that is neither a number nor the placeholder.
    """
    parts = [part.strip() for part in text.split(",")]
    if len(parts) > len(slots):
        raise ConfigurationError(
            f"{option} accepts at most {len(slots)} values, got {len(parts)}",
            hint=f"Positions are: {', '.join(slots)}",
        )

    values: List[Optional[Number]] = []
    for slot, part in zip(slots, parts):
        if part == DEFAULT_PLACEHOLDER:
            values.append(None)
            continue
        number = parse_number(part)
        if number is None:
            raise ConfigurationError(
                f"{option}: invalid value '{part}' for {slot}",
                hint=f"Use a number or '{DEFAULT_PLACEHOLDER}' to keep the default.",
            )
        values.append(number)
    return values


class ThresholdTable:
    """Per-run table of sensor thresholds.

    Starts from the built-in defaults and is changed only through the
    override methods. Sensors absent from the table are never evaluated.
    """

    def __init__(self, entries: Optional[Mapping[str, Threshold]] = None):
        self._entries: Dict[str, Threshold] = dict(entries or {})

    @classmethod
    def defaults(cls) -> "ThresholdTable":
        """Create a table seeded with the built-in thresholds."""
        return cls(_default_entries())

    def get(self, sensor: str) -> Optional[Threshold]:
        return self._entries.get(sensor)

    def __contains__(self, sensor: object) -> bool:
        return sensor in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ThresholdTable):
            return NotImplemented
        return self._entries == other._entries

    def items(self) -> Iterator[Tuple[str, Threshold]]:
        return iter(self._entries.items())

    def apply_warning_overrides(self, values: Sequence[Optional[Number]]) -> None:
        """Override warning levels by position (see WARNING_SLOTS)."""
        for sensor, value in zip(WARNING_SLOTS, values):
            if value is None:
                continue
            current = self._entries[sensor]
            assert isinstance(current, RangeThreshold)
            self._entries[sensor] = replace(current, warning=value)

    def apply_critical_overrides(self, values: Sequence[Optional[Number]]) -> None:
        """Override critical levels by position (see CRITICAL_SLOTS).

        For the PCIe slots the value replaces the expected link value.
        """
        for sensor, value in zip(CRITICAL_SLOTS, values):
            if value is None:
                continue
            current = self._entries[sensor]
            if isinstance(current, EqualityThreshold):
                self._entries[sensor] = EqualityThreshold(expected=value)
            else:
                self._entries[sensor] = replace(current, critical=value)

    def apply_mapping(self, overrides: Mapping[str, Sequence[Number]]) -> None:
        """Override thresholds by sensor name.

        Range sensors take ``[warning, critical]``, equality sensors take
        ``[expected]``. Sensors without a default may be added with a
        ``[warning, critical]`` pair.

        Raises:
            ConfigurationError: If a value list has the wrong length.
        """
        log = structlog.get_logger()
        for sensor, values in overrides.items():
            values = list(values)
            current = self._entries.get(sensor)
            if isinstance(current, EqualityThreshold):
                if len(values) != 1:
                    raise ConfigurationError(
                        f"Threshold for {sensor} takes a single expected value, got {values}"
                    )
                self._entries[sensor] = EqualityThreshold(expected=values[0])
            else:
                if len(values) != 2:
                    raise ConfigurationError(
                        f"Threshold for {sensor} takes [warning, critical], got {values}"
                    )
                self._entries[sensor] = RangeThreshold(warning=values[0], critical=values[1])
            log.debug("thresholds_overridden", sensor=sensor, values=values)
