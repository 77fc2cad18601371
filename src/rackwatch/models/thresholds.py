"""Threshold settings and the fixed threshold key vocabulary.

Every metric is bounded by four keys: a critical and a warning value on
each side. Amperage keys are selected per electrical phase.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field

from rackwatch.models.enums import Phase


class ThresholdSetting(BaseModel):
    """One named threshold value, global or as a per-rack override."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(..., description="Threshold key, e.g. critical_voltage_low")
    value: float = Field(..., description="Threshold value")
    unit: Optional[str] = Field(default=None, description="Unit label (A, V, C, %)")


class MetricThresholdKeys(NamedTuple):
    """The four threshold keys bounding one metric."""

    critical_low: str
    critical_high: str
    warning_low: str
    warning_high: str


AMPERAGE_KEYS: Dict[Phase, MetricThresholdKeys] = {
    Phase.SINGLE: MetricThresholdKeys(
        critical_low="critical_amperage_low_single_phase",
        critical_high="critical_amperage_high_single_phase",
        warning_low="warning_amperage_low_single_phase",
        warning_high="warning_amperage_high_single_phase",
    ),
    Phase.THREE: MetricThresholdKeys(
        critical_low="critical_amperage_low_3_phase",
        critical_high="critical_amperage_high_3_phase",
        warning_low="warning_amperage_low_3_phase",
        warning_high="warning_amperage_high_3_phase",
    ),
}

TEMPERATURE_KEYS = MetricThresholdKeys(
    critical_low="critical_temperature_low",
    critical_high="critical_temperature_high",
    warning_low="warning_temperature_low",
    warning_high="warning_temperature_high",
)

HUMIDITY_KEYS = MetricThresholdKeys(
    critical_low="critical_humidity_low",
    critical_high="critical_humidity_high",
    warning_low="warning_humidity_low",
    warning_high="warning_humidity_high",
)

VOLTAGE_KEYS = MetricThresholdKeys(
    critical_low="critical_voltage_low",
    critical_high="critical_voltage_high",
    warning_low="warning_voltage_low",
    warning_high="warning_voltage_high",
)


class Bounds(NamedTuple):
    """Threshold values bounding one metric, in MetricThresholdKeys order."""

    critical_low: float
    critical_high: float
    warning_low: float
    warning_high: float


THRESHOLD_KEYS: FrozenSet[str] = frozenset(
    key
    for keys in (*AMPERAGE_KEYS.values(), TEMPERATURE_KEYS, HUMIDITY_KEYS, VOLTAGE_KEYS)
    for key in keys
)


@dataclass(frozen=True)
class EffectiveThresholds:
    """Per-rack threshold values after merging overrides into the globals.

    Derived every cycle and never persisted.
    """

    values: Mapping[str, float] = field(default_factory=dict)
    rack_id: Optional[str] = None

    def get(self, key: str) -> Optional[float]:
        """Return the value for a key, or None when not configured."""
        return self.values.get(key)

    def bounds(self, keys: MetricThresholdKeys) -> Optional["Bounds"]:
        """Return the four values for a metric, or None if any is missing."""
        found = [self.values.get(key) for key in keys]
        if any(value is None for value in found):
            return None
        return Bounds(*found)

    @classmethod
    def from_settings(
        cls, settings: Iterable[ThresholdSetting], rack_id: Optional[str] = None
    ) -> "EffectiveThresholds":
        """Build an effective set from settings; later keys win."""
        return cls(values={s.key: s.value for s in settings}, rack_id=rack_id)


# Factory defaults, used when no global thresholds are configured
DEFAULT_THRESHOLDS: List[ThresholdSetting] = [
    ThresholdSetting(key="critical_temperature_low", value=5.0, unit="C"),
    ThresholdSetting(key="critical_temperature_high", value=40.0, unit="C"),
    ThresholdSetting(key="warning_temperature_low", value=10.0, unit="C"),
    ThresholdSetting(key="warning_temperature_high", value=30.0, unit="C"),
    ThresholdSetting(key="critical_humidity_low", value=20.0, unit="%"),
    ThresholdSetting(key="critical_humidity_high", value=80.0, unit="%"),
    ThresholdSetting(key="warning_humidity_low", value=30.0, unit="%"),
    ThresholdSetting(key="warning_humidity_high", value=70.0, unit="%"),
    ThresholdSetting(key="critical_amperage_low_single_phase", value=1.0, unit="A"),
    ThresholdSetting(key="critical_amperage_high_single_phase", value=25.0, unit="A"),
    ThresholdSetting(key="warning_amperage_low_single_phase", value=2.0, unit="A"),
    ThresholdSetting(key="warning_amperage_high_single_phase", value=20.0, unit="A"),
    ThresholdSetting(key="critical_amperage_low_3_phase", value=1.0, unit="A"),
    ThresholdSetting(key="critical_amperage_high_3_phase", value=30.0, unit="A"),
    ThresholdSetting(key="warning_amperage_low_3_phase", value=2.0, unit="A"),
    ThresholdSetting(key="warning_amperage_high_3_phase", value=25.0, unit="A"),
    ThresholdSetting(key="critical_voltage_low", value=200.0, unit="V"),
    ThresholdSetting(key="critical_voltage_high", value=250.0, unit="V"),
    ThresholdSetting(key="warning_voltage_low", value=210.0, unit="V"),
    ThresholdSetting(key="warning_voltage_high", value=240.0, unit="V"),
]


def settings_from_mapping(values: Mapping[str, Any]) -> List[ThresholdSetting]:
    """Build settings from a {key: value} or {key: {value, unit}} mapping."""
    settings: List[ThresholdSetting] = []
    for key, raw in values.items():
        if isinstance(raw, Mapping):
            settings.append(
                ThresholdSetting(key=str(key), value=raw.get("value"), unit=raw.get("unit"))
            )
        else:
            settings.append(ThresholdSetting(key=str(key), value=raw))
    return settings
