"""Tests for AlertLifecycleManager reconciliation."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional
from unittest.mock import MagicMock

import pytest

from rackwatch.alerts import AlertLifecycleManager
from rackwatch.exceptions import StoreError, StoreUnavailableError
from rackwatch.models import AlertRecord, ClassifiedReading, MetricType, Status
from rackwatch.stores.memory import MemoryAlertHistoryStore, MemoryAlertStore

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for deterministic timestamps."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def _critical(
    pdu_id: str, rack_id: str = "", reasons: Optional[List[str]] = None, **fields
) -> ClassifiedReading:
    reasons = reasons if reasons is not None else ["critical_voltage_low"]
    return ClassifiedReading(
        pdu_id=pdu_id,
        rack_id=rack_id or f"R-{pdu_id}",
        status=Status.CRITICAL,
        reasons=reasons,
        thresholds_exceeded={reason: 200.0 for reason in reasons},
        **fields,
    )


def _normal(pdu_id: str, rack_id: str = "", **fields) -> ClassifiedReading:
    return ClassifiedReading(pdu_id=pdu_id, rack_id=rack_id or f"R-{pdu_id}", **fields)


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


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryAlertStore:
    return MemoryAlertStore()


@pytest.fixture
def history() -> MemoryAlertHistoryStore:
    return MemoryAlertHistoryStore()


@pytest.fixture
def manager(store, history, clock) -> AlertLifecycleManager:
    return AlertLifecycleManager(store, history_store=history, clock=clock, sleep=MagicMock())


class TestAlertLifecycle:
    """Tests for create, refresh and resolve."""

    def test_refresh_versus_creation(self, manager, store, history, clock) -> None:
        """0 V opens at T0, 5 V refreshes, 225 V resolves."""
        summary = manager.reconcile([_critical("P-1", voltage=0)])

        assert summary.created == 1
        record = store.find("P-1", MetricType.VOLTAGE, "critical_voltage_low")
        assert record.alert_started_at == T0
        assert record.last_updated_at == T0
        assert record.alert_value == 0.0
        assert record.alert_field == "voltage"
        assert record.threshold_exceeded == 200.0

        clock.now = T0 + timedelta(minutes=1)
        summary = manager.reconcile([_critical("P-1", voltage=5)])

        assert summary.created == 0
        assert summary.refreshed == 1
        record = store.find("P-1", MetricType.VOLTAGE, "critical_voltage_low")
        assert record.alert_started_at == T0
        assert record.last_updated_at == T0 + timedelta(minutes=1)
        assert record.alert_value == 5.0

        clock.now = T0 + timedelta(minutes=2)
        summary = manager.reconcile([_normal("P-1", voltage=225)])

        assert summary.deleted == 1
        assert len(store) == 0
        assert len(history.records) == 1
        assert history.records[0].duration_minutes == 2

    def test_descriptive_fields_copied(self, manager, store) -> None:
        manager.reconcile(
            [_critical("P-1", voltage=0, name="Rack 1", site="LIS", datacenter="DC1", chain_id="C-7")]
        )

        [record] = store.list_active()
        assert record.name == "Rack 1"
        assert record.site == "LIS"
        assert record.datacenter == "DC1"
        assert record.chain_id == "C-7"

    def test_partial_resolution(self, manager, store) -> None:
        """Only the reason that cleared is removed."""
        manager.reconcile(
            [_critical("P-1", reasons=["critical_voltage_low", "critical_temperature_high"])]
        )
        assert len(store) == 2

        manager.reconcile([_critical("P-1", reasons=["critical_temperature_high"])])

        [remaining] = store.list_active()
        assert remaining.alert_reason == "critical_temperature_high"
        assert remaining.metric_type == MetricType.TEMPERATURE

    def test_warning_reasons_not_persisted(self, manager, store) -> None:
        """Warnings never enter the alert table."""
        summary = manager.reconcile(
            [_critical("P-1", reasons=["warning_temperature_high", "critical_voltage_low"])]
        )

        assert summary.created == 1
        assert [r.alert_reason for r in store.list_active()] == ["critical_voltage_low"]

    def test_maintenance_rack_records_deleted(self, store, history, clock) -> None:
        """A rack entering maintenance loses its records on the next reconcile."""
        store.upsert(_record("P-1"))
        manager = AlertLifecycleManager(store, history_store=history, clock=clock)

        summary = manager.reconcile([_critical("P-1", rack_id="R-1")], frozenset({"R-1"}))

        assert summary.created == 0
        assert summary.deleted == 1
        assert len(store) == 0

    def test_missing_pdu_resolved(self, manager, store) -> None:
        """A PDU absent from the cycle has all its records deleted."""
        store.upsert(_record("P-9"))

        summary = manager.reconcile([_critical("P-1")])

        assert summary.deleted == 1
        assert [r.pdu_id for r in store.list_active()] == ["P-1"]

    def test_duplicate_readings_write_one_record(self, manager, store) -> None:
        """Two readings for the same key produce one record."""
        summary = manager.reconcile([_critical("P-1", voltage=0), _critical("P-1", voltage=3)])

        assert summary.created == 1
        assert summary.refreshed == 1
        [record] = store.list_active()
        assert record.alert_value == 3.0

    def test_reconcile_is_idempotent(self, manager, store) -> None:
        readings = [_critical("P-1"), _critical("P-2")]

        manager.reconcile(readings)
        first = {r.key for r in store.list_active()}
        manager.reconcile(readings)

        assert {r.key for r in store.list_active()} == first


class TestReasonMapping:
    """Tests for unmapped reason codes."""

    def test_unmapped_reason_skipped(self, manager, store, capsys) -> None:
        summary = manager.reconcile(
            [_critical("P-1", reasons=["critical_voltage_low", "critical_bogus"])]
        )

        assert summary.skipped == 1
        assert summary.created == 1
        assert "reason_code_unmapped" in capsys.readouterr().out

    def test_only_unmapped_reasons_clears_pdu(self, manager, store) -> None:
        """A critical PDU with no mappable reason keeps no records."""
        store.upsert(_record("P-1"))

        summary = manager.reconcile([_critical("P-1", reasons=["critical_bogus"])])

        assert summary.deleted == 1
        assert len(store) == 0


class TestBatching:
    """Tests for batched writes."""

    def test_batches_and_pauses(self, store, clock) -> None:
        """25 critical PDUs in batches of 10 pause twice."""
        sleep = MagicMock()
        manager = AlertLifecycleManager(store, batch_size=10, batch_pause=0.1, clock=clock, sleep=sleep)

        summary = manager.reconcile([_critical(f"P-{i}") for i in range(25)])

        assert summary.batches == 3
        assert summary.created == 25
        assert sleep.call_count == 2
        sleep.assert_called_with(0.1)

    def test_no_pause_for_single_batch(self, store, clock) -> None:
        sleep = MagicMock()
        manager = AlertLifecycleManager(store, batch_size=10, clock=clock, sleep=sleep)

        manager.reconcile([_critical(f"P-{i}") for i in range(10)])

        sleep.assert_not_called()

    def test_parallel_writers_match_sequential(self, clock) -> None:
        readings = [
            _critical(f"P-{i}", reasons=["critical_voltage_low", "critical_temperature_high"])
            for i in range(12)
        ]
        sequential, parallel = MemoryAlertStore(), MemoryAlertStore()

        AlertLifecycleManager(sequential, clock=clock, sleep=MagicMock()).reconcile(readings)
        AlertLifecycleManager(parallel, workers=4, clock=clock, sleep=MagicMock()).reconcile(readings)

        assert {r.key for r in sequential.list_active()} == {r.key for r in parallel.list_active()}
        assert len(parallel) == 24

    def test_invalid_batch_size(self, store) -> None:
        with pytest.raises(ValueError):
            AlertLifecycleManager(store, batch_size=0)


class TestStoreFailures:
    """Tests for alert store failures."""

    def test_write_failure_counted(self, clock, capsys) -> None:
        """One failing write is counted and the rest still land."""

        class FlakyStore(MemoryAlertStore):
            def upsert(self, record):
                if record.pdu_id == "P-2":
                    raise StoreError("write timeout")
                super().upsert(record)

        store = FlakyStore()
        manager = AlertLifecycleManager(store, clock=clock, sleep=MagicMock())

        summary = manager.reconcile([_critical("P-1"), _critical("P-2"), _critical("P-3")])

        assert summary.errors == 1
        assert summary.created == 2
        assert summary.processed == 2
        assert len(store) == 2
        assert "alert_write_failed" in capsys.readouterr().out

    def test_unreachable_table_abandons_cycle(self, clock) -> None:
        """Nothing is written when the table cannot be read."""
        store = MagicMock()
        store.list_active.side_effect = StoreUnavailableError("database down")
        manager = AlertLifecycleManager(store, clock=clock, sleep=MagicMock())

        summary = manager.reconcile([_critical("P-1")])

        assert summary.abandoned
        store.upsert.assert_not_called()
        store.delete_where.assert_not_called()

    def test_cleanup_failure_flagged(self, clock) -> None:
        class NoDelete(MemoryAlertStore):
            def delete_where(self, predicate):
                raise StoreError("delete rejected")

        store = NoDelete([_record("P-9")])
        summary = AlertLifecycleManager(store, clock=clock, sleep=MagicMock()).reconcile(
            [_critical("P-1")]
        )

        assert summary.cleanup_failed
        assert summary.created == 1
        assert len(store) == 2

    def test_history_failure_does_not_raise(self, store, clock, capsys) -> None:
        history = MagicMock()
        history.append.side_effect = StoreError("disk full")
        store.upsert(_record("P-1"))
        manager = AlertLifecycleManager(store, history_store=history, clock=clock)

        summary = manager.reconcile([])

        assert summary.deleted == 1
        assert summary.archived == 0
        assert "alert_history_write_failed" in capsys.readouterr().out
