"""Metric classifier for rack readings.

Evaluates each metric of a reading independently against its effective
thresholds, then reduces the outcomes to one overall status and an
ordered list of reason codes. Classification is a pure function of the
reading and the thresholds.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from rackwatch.evaluation.reasons import ReasonCode
from rackwatch.models.enums import MetricType, Phase, Status
from rackwatch.models.reading import MetricReading
from rackwatch.models.thresholds import (
    AMPERAGE_KEYS,
    HUMIDITY_KEYS,
    TEMPERATURE_KEYS,
    VOLTAGE_KEYS,
    Bounds,
    EffectiveThresholds,
    MetricThresholdKeys,
)

# Phase labels seen in telemetry, after normalization
_SINGLE_PHASE_LABELS = {"single_phase", "single", "1_phase", "1phase", "monofasico"}
_THREE_PHASE_LABELS = {"3_phase", "3phase", "three_phase", "trifasico"}


def normalize_phase(raw: Optional[str]) -> Phase:
    """Map a raw phase label to a Phase.

    Matching ignores case and punctuation ("3-Phase", "Three Phase").
    Unrecognized or missing labels default to single phase.
    """
    if not raw:
        return Phase.SINGLE
    label = re.sub(r"[^a-z0-9]+", "_", raw.strip().lower()).strip("_")
    if label in _THREE_PHASE_LABELS:
        return Phase.THREE
    return Phase.SINGLE


@dataclass(frozen=True)
class MetricOutcome:
    """Result of checking one metric."""

    status: Status
    reason: Optional[ReasonCode] = None
    threshold: Optional[float] = None


@dataclass(frozen=True)
class ClassificationResult:
    """Overall classification of one reading.

    Attributes:
        status: Most severe status across all metrics
        reasons: Every triggered reason code, in metric order
        thresholds_exceeded: Threshold value crossed, per reason code
        unconfigured: Metrics skipped because their thresholds are incomplete
    """

    status: Status = Status.NORMAL
    reasons: Tuple[str, ...] = ()
    thresholds_exceeded: Mapping[str, float] = field(default_factory=dict)
    unconfigured: Tuple[MetricType, ...] = ()


class MetricClassifier:
    """Classifies readings as normal, warning or critical."""

    def classify(
        self, reading: MetricReading, thresholds: EffectiveThresholds
    ) -> ClassificationResult:
        """Classify a reading against its effective thresholds.

        Args:
            reading: The sample to classify
            thresholds: Effective thresholds for the reading's rack

        Returns:
            ClassificationResult with status, reasons and crossed thresholds
        """
        status = Status.NORMAL
        reasons: List[str] = []
        exceeded: Dict[str, float] = {}
        unconfigured: List[MetricType] = []

        checks = (
            (MetricType.AMPERAGE, self._check_amperage),
            (MetricType.TEMPERATURE, self._check_temperature),
            (MetricType.HUMIDITY, self._check_humidity),
            (MetricType.VOLTAGE, self._check_voltage),
        )
        for metric, check in checks:
            outcome = check(reading, thresholds)
            if outcome is _UNCONFIGURED:
                unconfigured.append(metric)
                continue
            if outcome is None or outcome.reason is None:
                continue

            status = status.worst(outcome.status)
            reasons.append(outcome.reason.value)
            if outcome.threshold is not None:
                exceeded[outcome.reason.value] = outcome.threshold

        return ClassificationResult(
            status=status,
            reasons=tuple(reasons),
            thresholds_exceeded=exceeded,
            unconfigured=tuple(unconfigured),
        )

    def _check_amperage(
        self, reading: MetricReading, thresholds: EffectiveThresholds
    ) -> Optional[MetricOutcome]:
        """Check current against the thresholds for the reading's phase.

        A zero reading is critical regardless of the low threshold.
        """
        if reading.current is None:
            return None

        keys = AMPERAGE_KEYS[normalize_phase(reading.phase)]
        bounds = thresholds.bounds(keys)
        if bounds is None:
            return _UNCONFIGURED

        if reading.current == 0:
            return MetricOutcome(
                status=Status.CRITICAL,
                reason=ReasonCode.CRITICAL_AMPERAGE_ZERO_READING,
                threshold=bounds.critical_low,
            )

        return _compare(reading.current, keys, bounds)

    def _check_temperature(
        self, reading: MetricReading, thresholds: EffectiveThresholds
    ) -> Optional[MetricOutcome]:
        if reading.temperature is None:
            return None

        bounds = thresholds.bounds(TEMPERATURE_KEYS)
        if bounds is None:
            return _UNCONFIGURED
        return _compare(reading.temperature, TEMPERATURE_KEYS, bounds)

    def _check_humidity(
        self, reading: MetricReading, thresholds: EffectiveThresholds
    ) -> Optional[MetricOutcome]:
        if reading.humidity is None:
            return None

        bounds = thresholds.bounds(HUMIDITY_KEYS)
        if bounds is None:
            return _UNCONFIGURED
        return _compare(reading.humidity, HUMIDITY_KEYS, bounds)

    def _check_voltage(
        self, reading: MetricReading, thresholds: EffectiveThresholds
    ) -> Optional[MetricOutcome]:
        """Check voltage against its thresholds.

        Negative readings are skipped. A zero-valued threshold counts as
        not configured, so an empty configuration never raises sitewide
        alerts. 0 V itself is compared like any other value.
        """
        voltage = reading.voltage
        if voltage is None or voltage < 0:
            return None

        bounds = thresholds.bounds(VOLTAGE_KEYS)
        if bounds is None or any(value <= 0 for value in bounds):
            return _UNCONFIGURED
        return _compare(voltage, VOLTAGE_KEYS, bounds)


# Sentinel for a metric skipped because its thresholds are incomplete
_UNCONFIGURED = MetricOutcome(status=Status.NORMAL)


def _compare(
    value: float,
    keys: MetricThresholdKeys,
    bounds: Bounds,
) -> MetricOutcome:
    """Apply the critical-then-warning boundary checks.

    Boundaries are inclusive: a value equal to a threshold triggers it.
    """
    if value <= bounds.critical_low:
        key, threshold, status = keys.critical_low, bounds.critical_low, Status.CRITICAL
    elif value >= bounds.critical_high:
        key, threshold, status = keys.critical_high, bounds.critical_high, Status.CRITICAL
    elif value <= bounds.warning_low:
        key, threshold, status = keys.warning_low, bounds.warning_low, Status.WARNING
    elif value >= bounds.warning_high:
        key, threshold, status = keys.warning_high, bounds.warning_high, Status.WARNING
    else:
        return MetricOutcome(status=Status.NORMAL)

    return MetricOutcome(
        status=status,
        reason=ReasonCode(key),
        threshold=threshold,
    )
