"""Shared enumerations for the rackwatch models."""

from enum import Enum


class Status(str, Enum):
    """Classification status of a reading, ordered by severity."""

    NORMAL = "normal"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Severity rank used to pick the most severe status."""
        return _STATUS_RANK[self]

    def worst(self, other: "Status") -> "Status":
        """Return the more severe of two statuses."""
        return other if other.rank > self.rank else self


_STATUS_RANK = {
    Status.NORMAL: 0,
    Status.WARNING: 1,
    Status.CRITICAL: 2,
}


class MetricType(str, Enum):
    """Metric family a reason code belongs to."""

    AMPERAGE = "amperage"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    VOLTAGE = "voltage"


class Phase(str, Enum):
    """Electrical phase used to select amperage thresholds."""

    SINGLE = "single_phase"
    THREE = "3_phase"


class ResolutionType(str, Enum):
    """How an active alert left the alert table."""

    AUTO = "auto"
