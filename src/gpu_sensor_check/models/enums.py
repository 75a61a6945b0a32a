"""Shared enumerations for the GPU sensor check models."""

from enum import Enum


class Status(str, Enum):
    """Monitoring status of a device or sensor.

    OK < WARNING < CRITICAL is the evaluation order. UNKNOWN is only used
    when a run aborts before evaluation (usage or collection errors).
    """

    OK = "OK"
    WARNING = "Warning"
    CRITICAL = "Critical"
    UNKNOWN = "Unknown"

    @property
    def exit_code(self) -> int:
        """Process exit code understood by the monitoring scheduler."""
        return _EXIT_CODES[self]

    @property
    def rank(self) -> int:
        """Position in the severity order."""
        return _EXIT_CODES[self]

    def raise_to(self, other: "Status") -> "Status":
        """Return the more severe of this status and *other*."""
        return other if other.rank > self.rank else self


_EXIT_CODES = {
    Status.OK: 0,
    Status.WARNING: 1,
    Status.CRITICAL: 2,
    Status.UNKNOWN: 3,
}


class ValueKind(str, Enum):
    """Shape of a single value inside a device snapshot."""

    NUMBER = "number"
    TEXT = "text"
    UNAVAILABLE = "unavailable"
    NESTED = "nested"
