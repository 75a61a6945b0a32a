"""Evaluation result shared by the evaluator stages of one run."""

from dataclasses import dataclass, field
from typing import List, Set

from gpu_sensor_check.models.enums import Status


@dataclass
class EvaluationResult:
    """Aggregate severity plus the sensors responsible for it.

    A sensor name is in at most one of the two sets. Promoting a sensor to
    critical removes it from the warning set; a sensor already critical is
    never demoted back to warning.
    """

    status: Status = Status.OK
    warning_sensors: Set[str] = field(default_factory=set)
    critical_sensors: Set[str] = field(default_factory=set)

    def mark_warning(self, sensor: str) -> None:
        """Flag *sensor* as warning unless it is already critical."""
        if sensor in self.critical_sensors:
            return
        self.warning_sensors.add(sensor)
        self.status = self.status.raise_to(Status.WARNING)

    def mark_critical(self, sensor: str) -> None:
        """Flag *sensor* as critical, dropping any warning mark for it."""
        self.warning_sensors.discard(sensor)
        self.critical_sensors.add(sensor)
        self.status = self.status.raise_to(Status.CRITICAL)

    def merge(self, other: "EvaluationResult") -> "EvaluationResult":
        """Return a new result combining this one with *other*."""
        merged = EvaluationResult(status=self.status.raise_to(other.status))
        merged.critical_sensors = self.critical_sensors | other.critical_sensors
        merged.warning_sensors = (
            self.warning_sensors | other.warning_sensors
        ) - merged.critical_sensors
        return merged

    @property
    def sorted_critical(self) -> List[str]:
        return sorted(self.critical_sensors)

    @property
    def sorted_warning(self) -> List[str]:
        return sorted(self.warning_sensors)
