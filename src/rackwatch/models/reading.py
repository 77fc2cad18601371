"""Reading models for PDU telemetry samples and their classification.

MetricReading normalizes one sample from the telemetry layer, accepting the
camelCase keys that layer emits. ClassifiedReading is the same sample with
its status and reason codes attached.
"""

import math
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from rackwatch.models.enums import Status

# Markers the telemetry layer uses for a sensor that did not report
_NOT_AVAILABLE = {"", "n/a", "na", "not available", "not-available", "none", "null"}


def _parse_metric(value: Any) -> Optional[float]:
    """Parse a metric value, returning None when absent or unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        if value.strip().lower() in _NOT_AVAILABLE:
            return None
        try:
            value = float(value.strip())
        except ValueError:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


class MetricReading(BaseModel):
    """One rack/PDU sample from a polling cycle.

    Metric values are None when the sensor is absent or reported
    "N/A". Readings are immutable once created.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    # Identifiers
    pdu_id: str = Field(
        ...,
        validation_alias=AliasChoices("pdu_id", "pduId", "id"),
        description="PDU identifier",
    )
    rack_id: str = Field(
        default="",
        validation_alias=AliasChoices("rack_id", "rackId"),
        description="Rack identifier (defaults to the PDU id)",
    )
    chain_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("chain_id", "chainId", "chain"),
        description="Chain the rack belongs to",
    )

    # Descriptive fields
    name: str = Field(default="", description="Rack or PDU display name")
    country: Optional[str] = None
    site: Optional[str] = None
    datacenter: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("datacenter", "dc"),
    )
    phase: Optional[str] = Field(default=None, description="Raw phase label")
    node: Optional[str] = None
    serial: Optional[str] = None

    # Metric values
    current: Optional[float] = Field(default=None, description="Current in amperes")
    voltage: Optional[float] = Field(default=None, description="Voltage in volts")
    temperature: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices(
            "temperature", "sensorTemperature", "sensor_temperature"
        ),
        description="Temperature in Celsius",
    )
    humidity: Optional[float] = Field(
        default=None,
        validation_alias=AliasChoices("humidity", "sensorHumidity", "sensor_humidity"),
        description="Relative humidity in percent",
    )

    @model_validator(mode="before")
    @classmethod
    def default_rack_to_pdu(cls, data: Any) -> Any:
        """Use the PDU id as rack id when the sample carries no rack id."""
        if not isinstance(data, dict):
            return data
        if data.get("rack_id") or data.get("rackId"):
            return data
        pdu_id = data.get("pdu_id") or data.get("pduId") or data.get("id")
        if pdu_id is None:
            return data
        return {**data, "rack_id": pdu_id}

    @field_validator("current", "voltage", "temperature", "humidity", mode="before")
    @classmethod
    def parse_metric(cls, v: Any) -> Optional[float]:
        """Normalize "N/A", empty and unparseable values to None."""
        return _parse_metric(v)

    @field_validator("chain_id", mode="before")
    @classmethod
    def blank_chain_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v


class ClassifiedReading(MetricReading):
    """A reading with its classification attached.

    thresholds_exceeded maps each triggered reason code to the threshold
    value that was crossed; it feeds the alert table.
    """

    status: Status = Status.NORMAL
    reasons: List[str] = Field(default_factory=list)
    thresholds_exceeded: Dict[str, float] = Field(default_factory=dict)
    in_maintenance: bool = False

    @classmethod
    def from_reading(
        cls,
        reading: MetricReading,
        status: Status = Status.NORMAL,
        reasons: Optional[List[str]] = None,
        thresholds_exceeded: Optional[Dict[str, float]] = None,
        in_maintenance: bool = False,
    ) -> "ClassifiedReading":
        """Attach a classification to a reading."""
        return cls(
            **reading.model_dump(),
            status=status,
            reasons=list(reasons or []),
            thresholds_exceeded=dict(thresholds_exceeded or {}),
            in_maintenance=in_maintenance,
        )

    @property
    def is_critical(self) -> bool:
        """Check if this reading is critical with at least one reason."""
        return self.status == Status.CRITICAL and len(self.reasons) > 0
