"""Device snapshot value model.

A snapshot is a nested, read-only mapping from sensor name to a number,
a text value, the ``"N/A"`` marker, or another mapping. Values are
classified into a :class:`ValueKind` before any decision is made on them.
"""

import re
from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from pydantic import BaseModel, Field

from gpu_sensor_check.models.enums import ValueKind

NOT_AVAILABLE = "N/A"

# Opaque keys never shown to the user nor compared against thresholds
EXCLUDED_KEYS = frozenset({"deviceHandle"})

DeviceSnapshot = Mapping
PerformanceRecord = Dict[str, Union[int, float]]


def classify_value(value: Any) -> ValueKind:
    """Return the variant a snapshot value belongs to.

    Raises:
        TypeError: If the value is none of the supported shapes.
    """
    if isinstance(value, bool):
        raise TypeError(f"Unsupported snapshot value: {value!r}")
    if isinstance(value, (int, float)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        if value == NOT_AVAILABLE:
            return ValueKind.UNAVAILABLE
        return ValueKind.TEXT
    if isinstance(value, Mapping):
        return ValueKind.NESTED
    raise TypeError(f"Unsupported snapshot value: {value!r}")


def visible_items(snapshot: Mapping) -> Iterator[Tuple[str, Any]]:
    """Yield (key, value) pairs of *snapshot* outside the exclusion set."""
    for key, value in snapshot.items():
        if key in EXCLUDED_KEYS:
            continue
        yield key, value


def is_all_unavailable(value: Any) -> bool:
    """Check if *value* is unavailable, or a mapping whose leaves all are.

    An empty mapping counts as unavailable.
    """
    kind = classify_value(value)
    if kind is ValueKind.UNAVAILABLE:
        return True
    if kind is ValueKind.NESTED:
        return all(is_all_unavailable(child) for _, child in visible_items(value))
    return False


def find_sensor(snapshot: Mapping, name: str) -> Optional[Any]:
    """Find *name* at the top level or inside nested mappings.

    Returns the first match in insertion order, or None if absent.
    """
    for key, value in visible_items(snapshot):
        if key == name:
            return value
        if classify_value(value) is ValueKind.NESTED:
            found = find_sensor(value, name)
            if found is not None:
                return found
    return None


class DebugInfo(BaseModel):
    """Run-level information printed in the debug block."""

    driver_version: str = Field(default=NOT_AVAILABLE, description="Driver version")
    nvml_version: str = Field(default=NOT_AVAILABLE, description="NVML library version")
    device_count: int = Field(default=0, description="Number of GPUs found", ge=0)
    device_name: str = Field(default=NOT_AVAILABLE, description="Selected device name")


_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_DECIMAL_RE = re.compile(r"^[+-]?(?:\d+\.\d*|\.\d+)(?:[eE][+-]?\d+)?$")


def parse_number(text: str) -> Optional[Union[int, float]]:
    """Parse *text* as an integer or decimal number.

    Returns:
        int for integer patterns, float for decimal patterns, None otherwise.
    """
    stripped = text.strip()
    if _INTEGER_RE.match(stripped):
        return int(stripped)
    if _DECIMAL_RE.match(stripped):
        return float(stripped)
    return None


def format_number(value: Union[int, float]) -> str:
    """Render a number the way it appears in performance data."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
