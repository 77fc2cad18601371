"""Data models for rackwatch readings, thresholds and alerts."""

from rackwatch.models.alert import AlertHistoryRecord, AlertKey, AlertRecord, alert_key
from rackwatch.models.enums import MetricType, Phase, ResolutionType, Status
from rackwatch.models.reading import ClassifiedReading, MetricReading
from rackwatch.models.thresholds import (
    DEFAULT_THRESHOLDS,
    THRESHOLD_KEYS,
    Bounds,
    EffectiveThresholds,
    MetricThresholdKeys,
    ThresholdSetting,
    settings_from_mapping,
)

__all__ = [
    "AlertHistoryRecord",
    "AlertKey",
    "AlertRecord",
    "alert_key",
    "MetricType",
    "Phase",
    "ResolutionType",
    "Status",
    "ClassifiedReading",
    "MetricReading",
    "DEFAULT_THRESHOLDS",
    "THRESHOLD_KEYS",
    "Bounds",
    "EffectiveThresholds",
    "MetricThresholdKeys",
    "ThresholdSetting",
    "settings_from_mapping",
]
