"""Closed vocabulary of classification reason codes.

Each reason code maps to exactly one metric type and one reading field.
Reason strings are part of the external contract and match the threshold
keys they were derived from, plus the zero-current code.
"""

from enum import Enum
from typing import Dict, Optional

import structlog

from rackwatch.models.enums import MetricType, Status
from rackwatch.models.reading import MetricReading

log = structlog.get_logger()


class ReasonCode(str, Enum):
    """Machine-readable reason a reading was classified above normal."""

    CRITICAL_AMPERAGE_ZERO_READING = "critical_amperage_zero_reading"
    CRITICAL_AMPERAGE_LOW_SINGLE_PHASE = "critical_amperage_low_single_phase"
    CRITICAL_AMPERAGE_HIGH_SINGLE_PHASE = "critical_amperage_high_single_phase"
    WARNING_AMPERAGE_LOW_SINGLE_PHASE = "warning_amperage_low_single_phase"
    WARNING_AMPERAGE_HIGH_SINGLE_PHASE = "warning_amperage_high_single_phase"
    CRITICAL_AMPERAGE_LOW_3_PHASE = "critical_amperage_low_3_phase"
    CRITICAL_AMPERAGE_HIGH_3_PHASE = "critical_amperage_high_3_phase"
    WARNING_AMPERAGE_LOW_3_PHASE = "warning_amperage_low_3_phase"
    WARNING_AMPERAGE_HIGH_3_PHASE = "warning_amperage_high_3_phase"

    CRITICAL_TEMPERATURE_LOW = "critical_temperature_low"
    CRITICAL_TEMPERATURE_HIGH = "critical_temperature_high"
    WARNING_TEMPERATURE_LOW = "warning_temperature_low"
    WARNING_TEMPERATURE_HIGH = "warning_temperature_high"

    CRITICAL_HUMIDITY_LOW = "critical_humidity_low"
    CRITICAL_HUMIDITY_HIGH = "critical_humidity_high"
    WARNING_HUMIDITY_LOW = "warning_humidity_low"
    WARNING_HUMIDITY_HIGH = "warning_humidity_high"

    CRITICAL_VOLTAGE_LOW = "critical_voltage_low"
    CRITICAL_VOLTAGE_HIGH = "critical_voltage_high"
    WARNING_VOLTAGE_LOW = "warning_voltage_low"
    WARNING_VOLTAGE_HIGH = "warning_voltage_high"

    @property
    def metric_type(self) -> MetricType:
        """Metric family this reason belongs to."""
        return _METRIC_BY_REASON[self]

    @property
    def severity(self) -> Status:
        """Severity this reason raises a reading to."""
        return Status.CRITICAL if self in _CRITICAL_REASONS else Status.WARNING

    @property
    def is_critical(self) -> bool:
        return self in _CRITICAL_REASONS

    @property
    def alert_field(self) -> str:
        """Name of the reading field holding the offending value."""
        return _FIELD_BY_METRIC[self.metric_type]

    def value_from(self, reading: MetricReading) -> Optional[float]:
        """Extract the offending value for this reason from a reading."""
        return getattr(reading, self.alert_field)


_AMPERAGE_REASONS = frozenset({
    ReasonCode.CRITICAL_AMPERAGE_ZERO_READING,
    ReasonCode.CRITICAL_AMPERAGE_LOW_SINGLE_PHASE,
    ReasonCode.CRITICAL_AMPERAGE_HIGH_SINGLE_PHASE,
    ReasonCode.WARNING_AMPERAGE_LOW_SINGLE_PHASE,
    ReasonCode.WARNING_AMPERAGE_HIGH_SINGLE_PHASE,
    ReasonCode.CRITICAL_AMPERAGE_LOW_3_PHASE,
    ReasonCode.CRITICAL_AMPERAGE_HIGH_3_PHASE,
    ReasonCode.WARNING_AMPERAGE_LOW_3_PHASE,
    ReasonCode.WARNING_AMPERAGE_HIGH_3_PHASE,
})

_TEMPERATURE_REASONS = frozenset({
    ReasonCode.CRITICAL_TEMPERATURE_LOW,
    ReasonCode.CRITICAL_TEMPERATURE_HIGH,
    ReasonCode.WARNING_TEMPERATURE_LOW,
    ReasonCode.WARNING_TEMPERATURE_HIGH,
})

_HUMIDITY_REASONS = frozenset({
    ReasonCode.CRITICAL_HUMIDITY_LOW,
    ReasonCode.CRITICAL_HUMIDITY_HIGH,
    ReasonCode.WARNING_HUMIDITY_LOW,
    ReasonCode.WARNING_HUMIDITY_HIGH,
})

_VOLTAGE_REASONS = frozenset({
    ReasonCode.CRITICAL_VOLTAGE_LOW,
    ReasonCode.CRITICAL_VOLTAGE_HIGH,
    ReasonCode.WARNING_VOLTAGE_LOW,
    ReasonCode.WARNING_VOLTAGE_HIGH,
})

_METRIC_BY_REASON: Dict[ReasonCode, MetricType] = {
    **{reason: MetricType.AMPERAGE for reason in _AMPERAGE_REASONS},
    **{reason: MetricType.TEMPERATURE for reason in _TEMPERATURE_REASONS},
    **{reason: MetricType.HUMIDITY for reason in _HUMIDITY_REASONS},
    **{reason: MetricType.VOLTAGE for reason in _VOLTAGE_REASONS},
}

_CRITICAL_REASONS = frozenset({
    ReasonCode.CRITICAL_AMPERAGE_ZERO_READING,
    ReasonCode.CRITICAL_AMPERAGE_LOW_SINGLE_PHASE,
    ReasonCode.CRITICAL_AMPERAGE_HIGH_SINGLE_PHASE,
    ReasonCode.CRITICAL_AMPERAGE_LOW_3_PHASE,
    ReasonCode.CRITICAL_AMPERAGE_HIGH_3_PHASE,
    ReasonCode.CRITICAL_TEMPERATURE_LOW,
    ReasonCode.CRITICAL_TEMPERATURE_HIGH,
    ReasonCode.CRITICAL_HUMIDITY_LOW,
    ReasonCode.CRITICAL_HUMIDITY_HIGH,
    ReasonCode.CRITICAL_VOLTAGE_LOW,
    ReasonCode.CRITICAL_VOLTAGE_HIGH,
})

_FIELD_BY_METRIC: Dict[MetricType, str] = {
    MetricType.AMPERAGE: "current",
    MetricType.TEMPERATURE: "temperature",
    MetricType.HUMIDITY: "humidity",
    MetricType.VOLTAGE: "voltage",
}


def parse_reason(code: str) -> Optional[ReasonCode]:
    """Look up a reason code, returning None for codes outside the vocabulary.

    Args:
        code: Reason string as attached to a classified reading

    Returns:
        The matching ReasonCode, or None (logged as a warning) if unknown
    """
    try:
        return ReasonCode(code)
    except ValueError:
        log.warning("reason_code_unmapped", reason=code)
        return None
