"""Tests for the file-backed stores."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from rackwatch.alerts import AlertLifecycleManager
from rackwatch.evaluation import MaintenanceSnapshot
from rackwatch.exceptions import StoreError, StoreUnavailableError
from rackwatch.models import (
    DEFAULT_THRESHOLDS,
    AlertHistoryRecord,
    AlertRecord,
    MetricType,
    ThresholdSetting,
)
from rackwatch.stores.file import (
    JsonAlertStore,
    JsonlAlertHistoryStore,
    YamlMaintenanceStore,
    YamlThresholdStore,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def _record(pdu_id: str, reason: str = "critical_voltage_low") -> AlertRecord:
    return AlertRecord(
        pdu_id=pdu_id,
        rack_id=f"R-{pdu_id}",
        metric_type=MetricType.VOLTAGE,
        alert_reason=reason,
        alert_field="voltage",
        alert_value=0.0,
        threshold_exceeded=200.0,
        alert_started_at=T0,
        last_updated_at=T0,
    )


class TestYamlThresholdStore:
    """Tests for YamlThresholdStore."""

    def test_reads_global_and_overrides(self, tmp_path: Path) -> None:
        path = tmp_path / "thresholds.yaml"
        path.write_text(
            "global:\n"
            "  critical_voltage_low: 200\n"
            "  critical_voltage_high: {value: 250, unit: V}\n"
            "racks:\n"
            "  R-1:\n"
            "    critical_voltage_low: 190\n"
            "  42:\n"
            "    critical_voltage_low: 180\n"
            "  R-3:\n"
            "    critical_voltage_low: 170\n"
        )
        store = YamlThresholdStore(str(path))

        assert store.list_global() == [
            ThresholdSetting(key="critical_voltage_low", value=200.0),
            ThresholdSetting(key="critical_voltage_high", value=250.0, unit="V"),
        ]
        overrides = store.list_overrides(["R-1", "42", "R-9"])
        assert set(overrides) == {"R-1", "42"}
        assert overrides["42"] == [ThresholdSetting(key="critical_voltage_low", value=180.0)]

    def test_missing_global_uses_defaults(self, tmp_path: Path, capsys) -> None:
        path = tmp_path / "thresholds.yaml"
        path.write_text("racks: {}\n")

        assert YamlThresholdStore(str(path)).list_global() == DEFAULT_THRESHOLDS
        assert "thresholds_using_defaults" in capsys.readouterr().out

    def test_unknown_key_warned(self, tmp_path: Path, capsys) -> None:
        """Misspelled keys are kept but reported."""
        path = tmp_path / "thresholds.yaml"
        path.write_text("global:\n  critical_voltage_low: 200\n  critical_voltge_high: 250\n")

        settings = YamlThresholdStore(str(path)).list_global()

        assert [s.key for s in settings] == ["critical_voltage_low", "critical_voltge_high"]
        out = capsys.readouterr().out
        assert "threshold_keys_unknown" in out
        assert "critical_voltge_high" in out

    def test_missing_file_unavailable(self, tmp_path: Path) -> None:
        with pytest.raises(StoreUnavailableError, match="not found"):
            YamlThresholdStore(str(tmp_path / "missing.yaml")).list_global()

    def test_invalid_yaml_unavailable(self, tmp_path: Path) -> None:
        path = tmp_path / "thresholds.yaml"
        path.write_text("global: [unclosed\n")

        with pytest.raises(StoreUnavailableError, match="Invalid YAML"):
            YamlThresholdStore(str(path)).list_global()

    def test_undecodable_file_unavailable(self, tmp_path: Path) -> None:
        path = tmp_path / "thresholds.yaml"
        path.write_bytes(b"global:\n  critical_voltage_low: \xff\n")

        with pytest.raises(StoreUnavailableError, match="Invalid YAML"):
            YamlThresholdStore(str(path)).list_global()

    def test_directory_unavailable(self, tmp_path: Path) -> None:
        with pytest.raises(StoreUnavailableError, match="Cannot read"):
            YamlThresholdStore(str(tmp_path)).list_global()

    def test_non_numeric_value_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "thresholds.yaml"
        path.write_text("global:\n  critical_voltage_low: low\n")

        with pytest.raises(StoreError, match="Invalid threshold"):
            YamlThresholdStore(str(path)).list_global()

    def test_edits_apply_on_next_read(self, tmp_path: Path) -> None:
        """The file is re-read on every call."""
        path = tmp_path / "thresholds.yaml"
        path.write_text("global:\n  critical_voltage_low: 200\n")
        store = YamlThresholdStore(str(path))
        store.list_global()

        path.write_text("global:\n  critical_voltage_low: 205\n")

        assert store.list_global()[0].value == 205.0


class TestYamlMaintenanceStore:
    """Tests for YamlMaintenanceStore."""

    def test_missing_file_means_no_maintenance(self, tmp_path: Path) -> None:
        store = YamlMaintenanceStore(str(tmp_path / "maintenance.yaml"))

        assert store.list_rack_ids() == set()
        assert store.list_chain_ids() == set()

    def test_racks_and_chains(self, tmp_path: Path) -> None:
        path = tmp_path / "maintenance.yaml"
        path.write_text(
            "entries:\n"
            "  - id: m1\n"
            "    racks:\n"
            "      - {rack_id: R-1, chain: C-7}\n"
            "      - {rack_id: R-2, chain: C-7}\n"
            "  - id: m2\n"
            "    racks:\n"
            "      - {rack_id: R-3, chain: C-9}\n"
        )
        store = YamlMaintenanceStore(str(path))

        assert store.list_rack_ids() == {"R-1", "R-2", "R-3"}
        assert store.list_chain_ids() == {"C-7"}

    def test_invalid_entries_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "maintenance.yaml"
        path.write_text("entries:\n  - reason: no id\n")

        with pytest.raises(StoreError):
            YamlMaintenanceStore(str(path)).list_rack_ids()

    def test_entries_read_once_per_snapshot(self, tmp_path: Path) -> None:
        """Rack and chain sets come from one read of the file."""
        path = tmp_path / "maintenance.yaml"
        path.write_text(
            "entries:\n"
            "  - id: m1\n"
            "    racks:\n"
            "      - {rack_id: R-1, chain: C-7}\n"
            "      - {rack_id: R-2, chain: C-7}\n"
        )
        store = YamlMaintenanceStore(str(path))

        with patch.object(store, "list_entries", wraps=store.list_entries) as list_entries:
            snapshot = MaintenanceSnapshot.load(store)

        assert list_entries.call_count == 1
        assert snapshot.rack_ids == frozenset({"R-1", "R-2"})
        assert snapshot.chain_ids == frozenset({"C-7"})


class TestJsonAlertStore:
    """Tests for JsonAlertStore."""

    def test_upsert_persists(self, tmp_path: Path) -> None:
        """Records survive a fresh store instance."""
        JsonAlertStore(str(tmp_path)).upsert(_record("P-1"))

        reloaded = JsonAlertStore(str(tmp_path))
        record = reloaded.find("P-1", MetricType.VOLTAGE, "critical_voltage_low")

        assert record == _record("P-1")
        data = json.loads((tmp_path / "active_alerts.json").read_text())
        assert data["schema_version"] == "1.0"
        assert len(data["alerts"]) == 1

    def test_upsert_replaces_same_key(self, tmp_path: Path) -> None:
        store = JsonAlertStore(str(tmp_path))
        store.upsert(_record("P-1"))
        store.upsert(
            _record("P-1").model_copy(update={"last_updated_at": T0 + timedelta(minutes=1)})
        )

        [record] = store.list_active()
        assert record.last_updated_at == T0 + timedelta(minutes=1)

    def test_delete_where(self, tmp_path: Path) -> None:
        store = JsonAlertStore(str(tmp_path))
        store.upsert(_record("P-1"))
        store.upsert(_record("P-2"))

        deleted = store.delete_where(lambda r: r.pdu_id == "P-1")

        assert [r.pdu_id for r in deleted] == ["P-1"]
        assert [r.pdu_id for r in JsonAlertStore(str(tmp_path)).list_active()] == ["P-2"]

    def test_no_temp_files_left(self, tmp_path: Path) -> None:
        store = JsonAlertStore(str(tmp_path))
        store.upsert(_record("P-1"))

        assert list(tmp_path.glob(".tmp-*")) == []

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        assert JsonAlertStore(str(tmp_path / "new")).list_active() == []

    def test_corrupted_file_unavailable(self, tmp_path: Path, capsys) -> None:
        (tmp_path / "active_alerts.json").write_text("{not json")

        with pytest.raises(StoreUnavailableError, match="corrupted"):
            JsonAlertStore(str(tmp_path)).list_active()
        assert "alert_table_corrupted" in capsys.readouterr().out

    def test_undecodable_file_unavailable(self, tmp_path: Path) -> None:
        (tmp_path / "active_alerts.json").write_bytes(b'{"alerts": [\xff]}')

        with pytest.raises(StoreUnavailableError, match="corrupted"):
            JsonAlertStore(str(tmp_path)).list_active()

    def test_undecodable_file_abandons_reconcile(self, tmp_path: Path) -> None:
        (tmp_path / "active_alerts.json").write_bytes(b'{"alerts": [\xff]}')
        manager = AlertLifecycleManager(JsonAlertStore(str(tmp_path)), sleep=MagicMock())

        summary = manager.reconcile([])

        assert summary.abandoned
        assert (tmp_path / "active_alerts.json").read_bytes() == b'{"alerts": [\xff]}'


class TestJsonlAlertHistoryStore:
    """Tests for JsonlAlertHistoryStore."""

    def test_append_and_read(self, tmp_path: Path) -> None:
        store = JsonlAlertHistoryStore(str(tmp_path))
        resolved = T0 + timedelta(minutes=30)

        store.append([AlertHistoryRecord.from_resolved(_record("P-1"), resolved)])
        store.append([AlertHistoryRecord.from_resolved(_record("P-2"), resolved)])

        records = store.read_all()
        assert [r.pdu_id for r in records] == ["P-1", "P-2"]
        assert records[0].duration_minutes == 30

    def test_empty_append_creates_nothing(self, tmp_path: Path) -> None:
        store = JsonlAlertHistoryStore(str(tmp_path))

        store.append([])

        assert not (tmp_path / "alerts_history.jsonl").exists()
        assert store.read_all() == []

    def test_bad_line_skipped(self, tmp_path: Path, capsys) -> None:
        store = JsonlAlertHistoryStore(str(tmp_path))
        store.append([AlertHistoryRecord.from_resolved(_record("P-1"), T0)])
        with open(tmp_path / "alerts_history.jsonl", "a") as f:
            f.write("{broken\n")

        assert len(store.read_all()) == 1
        assert "history_line_invalid" in capsys.readouterr().out
