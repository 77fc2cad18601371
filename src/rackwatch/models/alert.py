"""Persisted alert models: active critical alerts and their history."""

from datetime import datetime
from typing import Optional, Tuple

from pydantic import BaseModel, Field

from rackwatch.models.enums import MetricType, ResolutionType

AlertKey = Tuple[str, str, str]


class AlertRecord(BaseModel):
    """One currently-unresolved critical condition for a PDU.

    Keyed by (pdu_id, metric_type, alert_reason). alert_started_at is set
    when the record is created and never changes; last_updated_at is
    refreshed every cycle the condition persists.
    """

    pdu_id: str
    rack_id: str
    metric_type: MetricType
    alert_reason: str
    alert_field: str
    alert_value: Optional[float] = None
    threshold_exceeded: Optional[float] = None
    alert_started_at: datetime
    last_updated_at: datetime

    # Descriptive fields copied from the reading at creation time
    name: str = ""
    country: Optional[str] = None
    site: Optional[str] = None
    datacenter: Optional[str] = None
    phase: Optional[str] = None
    chain_id: Optional[str] = None
    node: Optional[str] = None
    serial: Optional[str] = None

    @property
    def key(self) -> AlertKey:
        """Unique key of this alert in the active table."""
        return alert_key(self.pdu_id, self.metric_type, self.alert_reason)


class AlertHistoryRecord(AlertRecord):
    """An alert that left the active table."""

    resolved_at: datetime
    resolution_type: ResolutionType = ResolutionType.AUTO
    duration_minutes: int = Field(default=0, ge=0)

    @classmethod
    def from_resolved(
        cls,
        record: AlertRecord,
        resolved_at: datetime,
        resolution_type: ResolutionType = ResolutionType.AUTO,
    ) -> "AlertHistoryRecord":
        """Archive an active alert at the moment it was resolved."""
        elapsed = (resolved_at - record.alert_started_at).total_seconds()
        return cls(
            **record.model_dump(),
            resolved_at=resolved_at,
            resolution_type=resolution_type,
            duration_minutes=max(0, int(elapsed // 60)),
        )


def alert_key(pdu_id: str, metric_type: MetricType, alert_reason: str) -> AlertKey:
    """Build the (pdu_id, metric_type, alert_reason) lookup key."""
    return (pdu_id, MetricType(metric_type).value, alert_reason)
