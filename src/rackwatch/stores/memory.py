"""In-memory store implementations.

Used by tests and by embedders that keep their own persistence. The alert
store is guarded by a lock so a worker pool can write to it.
"""

import threading
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from rackwatch.models.alert import AlertHistoryRecord, AlertKey, AlertRecord, alert_key
from rackwatch.models.enums import MetricType
from rackwatch.models.thresholds import ThresholdSetting
from rackwatch.stores.base import AlertPredicate


class MemoryThresholdStore:
    """Threshold store backed by plain dicts."""

    def __init__(
        self,
        global_settings: Optional[Iterable[ThresholdSetting]] = None,
        overrides: Optional[Mapping[str, Iterable[ThresholdSetting]]] = None,
    ) -> None:
        self.global_settings: List[ThresholdSetting] = list(global_settings or [])
        self.overrides: Dict[str, List[ThresholdSetting]] = {
            rack_id: list(items) for rack_id, items in (overrides or {}).items()
        }
        self.override_calls: List[List[str]] = []

    def list_global(self) -> List[ThresholdSetting]:
        return list(self.global_settings)

    def list_overrides(self, rack_ids: Sequence[str]) -> Dict[str, List[ThresholdSetting]]:
        self.override_calls.append(list(rack_ids))
        return {
            rack_id: list(self.overrides[rack_id])
            for rack_id in rack_ids
            if rack_id in self.overrides
        }


class MemoryMaintenanceStore:
    """Maintenance store holding precomputed rack and chain sets."""

    def __init__(
        self,
        rack_ids: Optional[Iterable[str]] = None,
        chain_ids: Optional[Iterable[str]] = None,
    ) -> None:
        self.rack_ids: Set[str] = set(rack_ids or ())
        self.chain_ids: Set[str] = set(chain_ids or ())

    def list_rack_ids(self) -> Set[str]:
        return set(self.rack_ids)

    def list_chain_ids(self) -> Set[str]:
        return set(self.chain_ids)


class MemoryAlertStore:
    """Active alert table keyed by (pdu_id, metric_type, alert_reason)."""

    def __init__(self, records: Optional[Iterable[AlertRecord]] = None) -> None:
        self._lock = threading.Lock()
        self._records: Dict[AlertKey, AlertRecord] = {}
        for record in records or ():
            self._records[record.key] = record

    def find(self, pdu_id: str, metric_type: MetricType, reason: str) -> Optional[AlertRecord]:
        with self._lock:
            record = self._records.get(alert_key(pdu_id, metric_type, reason))
            return record.model_copy() if record is not None else None

    def upsert(self, record: AlertRecord) -> None:
        with self._lock:
            self._records[record.key] = record.model_copy()

    def delete_where(self, predicate: AlertPredicate) -> List[AlertRecord]:
        with self._lock:
            doomed = [key for key, record in self._records.items() if predicate(record)]
            return [self._records.pop(key) for key in doomed]

    def list_active(self) -> List[AlertRecord]:
        with self._lock:
            return [record.model_copy() for record in self._records.values()]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


class MemoryAlertHistoryStore:
    """Resolved alerts kept in a list."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.records: List[AlertHistoryRecord] = []

    def append(self, records: Sequence[AlertHistoryRecord]) -> None:
        with self._lock:
            self.records.extend(records)
