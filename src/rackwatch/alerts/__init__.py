"""Active critical alert tracking."""

from rackwatch.alerts.lifecycle import AlertLifecycleManager, ReconcileSummary

__all__ = ["AlertLifecycleManager", "ReconcileSummary"]
