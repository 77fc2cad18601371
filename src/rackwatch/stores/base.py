"""Store protocols consumed by the rackwatch core.

The core never owns persistence; it reads thresholds and maintenance
membership, and reconciles the active-alert table through these
interfaces. Implementations raise StoreError (or StoreUnavailableError)
on failure.
"""

from typing import Callable, Dict, List, Optional, Protocol, Sequence, Set

from rackwatch.models.alert import AlertHistoryRecord, AlertRecord
from rackwatch.models.enums import MetricType
from rackwatch.models.thresholds import ThresholdSetting

AlertPredicate = Callable[[AlertRecord], bool]


class ThresholdStore(Protocol):
    """Read access to global thresholds and per-rack overrides."""

    def list_global(self) -> List[ThresholdSetting]:
        ...

    def list_overrides(self, rack_ids: Sequence[str]) -> Dict[str, List[ThresholdSetting]]:
        """Return overrides for all given racks in one lookup.

        Racks without overrides may be absent from the result.
        """
        ...


class MaintenanceStore(Protocol):
    """Read access to the racks and chains excluded from evaluation."""

    def list_rack_ids(self) -> Set[str]:
        ...

    def list_chain_ids(self) -> Set[str]:
        ...


class AlertStore(Protocol):
    """The persisted table of active critical alerts."""

    def find(self, pdu_id: str, metric_type: MetricType, reason: str) -> Optional[AlertRecord]:
        ...

    def upsert(self, record: AlertRecord) -> None:
        ...

    def delete_where(self, predicate: AlertPredicate) -> List[AlertRecord]:
        """Delete every record matching predicate and return the deleted records."""
        ...

    def list_active(self) -> List[AlertRecord]:
        ...


class AlertHistoryStore(Protocol):
    """Append-only archive of resolved alerts."""

    def append(self, records: Sequence[AlertHistoryRecord]) -> None:
        ...
