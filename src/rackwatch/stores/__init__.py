"""Store protocols and in-memory implementations.

File-backed stores live in rackwatch.stores.file.
"""

from rackwatch.stores.base import (
    AlertHistoryStore,
    AlertPredicate,
    AlertStore,
    MaintenanceStore,
    ThresholdStore,
)
from rackwatch.stores.memory import (
    MemoryAlertHistoryStore,
    MemoryAlertStore,
    MemoryMaintenanceStore,
    MemoryThresholdStore,
)

__all__ = [
    "AlertHistoryStore",
    "AlertPredicate",
    "AlertStore",
    "MaintenanceStore",
    "ThresholdStore",
    "MemoryAlertHistoryStore",
    "MemoryAlertStore",
    "MemoryMaintenanceStore",
    "MemoryThresholdStore",
]
