"""File-backed stores.

Thresholds and maintenance entries are read from YAML files maintained by
operators. The active alert table is a JSON document written atomically
(temp file + rename) so a crash mid-write never leaves a partial table.
Resolved alerts are appended to a JSON Lines history file.
"""

import json
import shutil
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set

import structlog
import yaml
from pydantic import ValidationError

from rackwatch.evaluation.maintenance import MaintenanceEntry, chains_in_maintenance
from rackwatch.exceptions import StoreError, StoreUnavailableError
from rackwatch.models.alert import AlertHistoryRecord, AlertKey, AlertRecord, alert_key
from rackwatch.models.enums import MetricType
from rackwatch.models.thresholds import (
    DEFAULT_THRESHOLDS,
    THRESHOLD_KEYS,
    ThresholdSetting,
    settings_from_mapping,
)
from rackwatch.stores.base import AlertPredicate

log = structlog.get_logger()


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping, raising StoreUnavailableError if unreadable."""
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except FileNotFoundError:
        raise StoreUnavailableError(f"File not found: {path}")
    except PermissionError:
        raise StoreUnavailableError(f"Cannot read {path}: permission denied")
    except (yaml.YAMLError, UnicodeDecodeError) as e:
        raise StoreUnavailableError(f"Invalid YAML in {path}: {e}")
    except OSError as e:
        raise StoreUnavailableError(f"Cannot read {path}: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise StoreUnavailableError(f"Expected a mapping at the top of {path}")
    return data


class YamlThresholdStore:
    """Thresholds from a YAML file.

    Layout::

        global:
          critical_voltage_low: 200
          critical_voltage_high: {value: 250, unit: V}
        racks:
          R-0042:
            critical_voltage_low: 190

    The file is re-read on every call so edits apply from the next cycle.
    A file without a ``global`` section uses the factory defaults.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def list_global(self) -> List[ThresholdSetting]:
        data = _read_yaml(self.path)
        section = data.get("global")
        if section is None:
            log.info("thresholds_using_defaults", path=str(self.path))
            return list(DEFAULT_THRESHOLDS)
        return self._parse_section(section, "global")

    def list_overrides(self, rack_ids: Sequence[str]) -> Dict[str, List[ThresholdSetting]]:
        racks = _read_yaml(self.path).get("racks") or {}
        if not isinstance(racks, dict):
            raise StoreError(f"'racks' in {self.path} must be a mapping")

        by_id = {str(rack_id): section for rack_id, section in racks.items()}
        return {
            rack_id: self._parse_section(by_id[rack_id], f"racks.{rack_id}")
            for rack_id in rack_ids
            if by_id.get(rack_id)
        }

    def _parse_section(self, section: Any, where: str) -> List[ThresholdSetting]:
        if not isinstance(section, dict):
            raise StoreError(f"'{where}' in {self.path} must be a mapping")
        unknown = sorted(str(key) for key in section if str(key) not in THRESHOLD_KEYS)
        if unknown:
            log.warning("threshold_keys_unknown", path=str(self.path), section=where, keys=unknown)
        try:
            return settings_from_mapping(section)
        except ValidationError as e:
            raise StoreError(f"Invalid threshold in '{where}' of {self.path}: {e}")


class YamlMaintenanceStore:
    """Maintenance entries from a YAML file.

    Layout::

        entries:
          - id: mnt-2024-031
            reason: chain rewiring
            racks:
              - {rack_id: R-0001, chain: C-07}
              - {rack_id: R-0002, chain: C-07}

    Every listed rack is excluded. A chain is excluded as a whole only
    when one entry lists more than one of its racks.
    """

    def __init__(self, path: str) -> None:
        self.path = Path(path)

    def list_entries(self) -> List[MaintenanceEntry]:
        if not self.path.exists():
            log.debug("maintenance_file_not_found", path=str(self.path))
            return []

        raw_entries = _read_yaml(self.path).get("entries") or []
        if not isinstance(raw_entries, list):
            raise StoreError(f"'entries' in {self.path} must be a list")
        try:
            return [MaintenanceEntry.model_validate(item) for item in raw_entries]
        except ValidationError as e:
            raise StoreError(f"Invalid maintenance entry in {self.path}: {e}")

    def list_rack_ids(self) -> Set[str]:
        return {rack.rack_id for entry in self.list_entries() for rack in entry.racks}

    def list_chain_ids(self) -> Set[str]:
        return chains_in_maintenance(self.list_entries())


class JsonAlertStore:
    """Active alert table persisted as a JSON document.

    The table is loaded once and kept in memory; every mutation rewrites
    the file atomically.
    """

    ALERTS_FILENAME = "active_alerts.json"
    SCHEMA_VERSION = "1.0"

    def __init__(self, data_dir: str) -> None:
        self.data_dir = Path(data_dir)
        self.alerts_file = self.data_dir / self.ALERTS_FILENAME
        self._lock = threading.RLock()
        self._records: Optional[Dict[AlertKey, AlertRecord]] = None

    def _load(self) -> Dict[AlertKey, AlertRecord]:
        """Load the table on first use.

        Raises:
            StoreUnavailableError: If the file exists but cannot be parsed
        """
        if self._records is not None:
            return self._records

        if not self.alerts_file.exists():
            log.debug("alert_table_not_found", path=str(self.alerts_file))
            self._records = {}
            return self._records

        try:
            data = json.loads(self.alerts_file.read_text(encoding="utf-8"))
            records = [AlertRecord.model_validate(item) for item in data.get("alerts", [])]
        except (json.JSONDecodeError, UnicodeDecodeError, AttributeError, ValidationError) as e:
            log.error("alert_table_corrupted", path=str(self.alerts_file), error=str(e))
            raise StoreUnavailableError(f"Alert table {self.alerts_file} is corrupted: {e}")
        except OSError as e:
            raise StoreUnavailableError(f"Cannot read alert table {self.alerts_file}: {e}")

        self._records = {record.key: record for record in records}
        return self._records

    def _flush(self, records: Dict[AlertKey, AlertRecord]) -> None:
        """Write the table atomically via temp file + rename."""
        payload = {
            "schema_version": self.SCHEMA_VERSION,
            "alerts": [record.model_dump(mode="json") for record in records.values()],
        }
        content = json.dumps(payload, indent=2) + "\n"

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.data_dir,
                prefix=".tmp-alerts-",
                suffix=".json",
            )
        except OSError as e:
            raise StoreError(f"Cannot write alert table in {self.data_dir}: {e}")

        try:
            with open(temp_fd, "w", encoding="utf-8") as f:
                f.write(content)
            shutil.move(temp_path, self.alerts_file)
        except OSError as e:
            Path(temp_path).unlink(missing_ok=True)
            raise StoreError(f"Cannot write alert table {self.alerts_file}: {e}")

    def find(self, pdu_id: str, metric_type: MetricType, reason: str) -> Optional[AlertRecord]:
        with self._lock:
            record = self._load().get(alert_key(pdu_id, metric_type, reason))
            return record.model_copy() if record is not None else None

    def upsert(self, record: AlertRecord) -> None:
        with self._lock:
            records = dict(self._load())
            records[record.key] = record.model_copy()
            self._flush(records)
            self._records = records

    def delete_where(self, predicate: AlertPredicate) -> List[AlertRecord]:
        with self._lock:
            current = self._load()
            remaining = {key: r for key, r in current.items() if not predicate(r)}
            deleted = [r for key, r in current.items() if key not in remaining]
            if deleted:
                self._flush(remaining)
                self._records = remaining
            return deleted

    def list_active(self) -> List[AlertRecord]:
        with self._lock:
            return [record.model_copy() for record in self._load().values()]


class JsonlAlertHistoryStore:
    """Resolved alerts appended to a JSON Lines file."""

    HISTORY_FILENAME = "alerts_history.jsonl"

    def __init__(self, data_dir: str) -> None:
        self.data_dir = Path(data_dir)
        self.history_file = self.data_dir / self.HISTORY_FILENAME
        self._lock = threading.Lock()

    def append(self, records: Sequence[AlertHistoryRecord]) -> None:
        if not records:
            return
        lines = "".join(record.model_dump_json() + "\n" for record in records)
        with self._lock:
            try:
                self.data_dir.mkdir(parents=True, exist_ok=True)
                with open(self.history_file, "a", encoding="utf-8") as f:
                    f.write(lines)
            except OSError as e:
                raise StoreError(f"Cannot append to {self.history_file}: {e}")

    def read_all(self) -> List[AlertHistoryRecord]:
        """Read every archived alert, skipping unparseable lines."""
        if not self.history_file.exists():
            return []
        records: List[AlertHistoryRecord] = []
        for line_no, line in enumerate(
            self.history_file.read_text(encoding="utf-8").splitlines(), start=1
        ):
            if not line.strip():
                continue
            try:
                records.append(AlertHistoryRecord.model_validate_json(line))
            except ValidationError as e:
                log.warning(
                    "history_line_invalid",
                    path=str(self.history_file),
                    line=line_no,
                    error=str(e),
                )
        return records
