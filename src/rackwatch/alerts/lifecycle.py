"""Active alert lifecycle: reconcile classified readings with the alert table.

Each cycle the set of critical (pdu, metric, reason) conditions is
recomputed from scratch. New conditions are inserted, persisting ones are
refreshed, and everything else in the table is deleted. Because the table
is rebuilt against a fresh set, a missed or abandoned cycle heals itself
on the next one.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set

import structlog

from rackwatch.evaluation.reasons import ReasonCode, parse_reason
from rackwatch.exceptions import StoreError
from rackwatch.models.alert import AlertHistoryRecord, AlertKey, AlertRecord, alert_key
from rackwatch.models.reading import ClassifiedReading
from rackwatch.stores.base import AlertHistoryStore, AlertStore

log = structlog.get_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReconcileSummary:
    """Counts for one reconciliation, surfaced to logging."""

    critical_pdus: int = 0
    active_before: int = 0
    processed: int = 0
    created: int = 0
    refreshed: int = 0
    errors: int = 0
    skipped: int = 0
    deleted: int = 0
    archived: int = 0
    batches: int = 0
    cleanup_failed: bool = False
    abandoned: bool = False

    def as_log_fields(self) -> Dict[str, object]:
        return {
            "critical_pdus": self.critical_pdus,
            "active_before": self.active_before,
            "processed": self.processed,
            "created": self.created,
            "refreshed": self.refreshed,
            "errors": self.errors,
            "skipped": self.skipped,
            "deleted": self.deleted,
            "archived": self.archived,
            "batches": self.batches,
            "cleanup_failed": self.cleanup_failed,
        }


@dataclass(frozen=True)
class _AlertWork:
    """One (reading, critical reason) pair to write."""

    reading: ClassifiedReading
    reason: ReasonCode

    @property
    def key(self) -> AlertKey:
        return alert_key(self.reading.pdu_id, self.reason.metric_type, self.reason.value)


class AlertLifecycleManager:
    """Keeps the active alert table in step with the latest classification.

    Args:
        store: Active alert table
        history_store: Optional archive for alerts that get resolved
        batch_size: PDUs written per batch
        batch_pause: Seconds to wait between batches
        workers: Threads writing alerts within a batch
        clock: Returns the current UTC time
        sleep: Called with batch_pause between batches
    """

    DEFAULT_BATCH_SIZE = 10
    DEFAULT_BATCH_PAUSE = 0.1

    def __init__(
        self,
        store: AlertStore,
        history_store: Optional[AlertHistoryStore] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_pause: float = DEFAULT_BATCH_PAUSE,
        workers: int = 1,
        clock: Optional[Callable[[], datetime]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self._store = store
        self._history_store = history_store
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self._workers = max(1, workers)
        self._clock = clock or _utcnow
        self._sleep = sleep
        # Serializes whole reconciliations so cleanup never races a write
        self._lock = threading.Lock()

    def reconcile(
        self,
        readings: Iterable[ClassifiedReading],
        maintenance_rack_set: FrozenSet[str] = frozenset(),
    ) -> ReconcileSummary:
        """Apply one cycle's classification to the alert table.

        Args:
            readings: Classified readings of the cycle
            maintenance_rack_set: Racks in maintenance; never alerted

        Returns:
            ReconcileSummary; abandoned is True when the alert table could
            not be read and nothing was written
        """
        with self._lock:
            return self._reconcile(list(readings), maintenance_rack_set)

    def _reconcile(
        self,
        readings: List[ClassifiedReading],
        maintenance_rack_set: FrozenSet[str],
    ) -> ReconcileSummary:
        summary = ReconcileSummary()
        now = self._clock()

        critical = [
            r for r in readings if r.is_critical and r.rack_id not in maintenance_rack_set
        ]
        summary.critical_pdus = len({r.pdu_id for r in critical})

        try:
            summary.active_before = len(self._store.list_active())
        except StoreError as e:
            summary.abandoned = True
            log.error(
                "alert_reconcile_abandoned",
                error=str(e),
                message="Alert table unavailable, retrying next cycle",
            )
            return summary

        current_reasons: Dict[str, Set[str]] = {r.pdu_id: set() for r in critical}

        for start in range(0, len(critical), self.batch_size):
            batch = critical[start : start + self.batch_size]
            work = self._collect_work(batch, current_reasons, summary)
            self._write_batch(work, now, summary)
            summary.batches += 1

            if start + self.batch_size < len(critical):
                self._sleep(self.batch_pause)

        self._cleanup(current_reasons, now, summary)

        log.info("alerts_reconciled", **summary.as_log_fields())
        return summary

    def _collect_work(
        self,
        batch: Sequence[ClassifiedReading],
        current_reasons: Dict[str, Set[str]],
        summary: ReconcileSummary,
    ) -> Dict[AlertKey, List[_AlertWork]]:
        """Group a batch's critical reasons by alert key."""
        grouped: Dict[AlertKey, List[_AlertWork]] = {}
        for reading in batch:
            for code in reading.reasons:
                reason = parse_reason(code)
                if reason is None:
                    summary.skipped += 1
                    continue
                if not reason.is_critical:
                    continue
                current_reasons[reading.pdu_id].add(reason.value)
                item = _AlertWork(reading=reading, reason=reason)
                grouped.setdefault(item.key, []).append(item)
        return grouped

    def _write_batch(
        self,
        grouped: Dict[AlertKey, List[_AlertWork]],
        now: datetime,
        summary: ReconcileSummary,
    ) -> None:
        """Write one batch; all work for a key runs in the same task."""
        groups = list(grouped.values())
        if self._workers > 1 and len(groups) > 1:
            with ThreadPoolExecutor(max_workers=self._workers) as pool:
                outcomes = list(pool.map(lambda g: self._write_group(g, now), groups))
        else:
            outcomes = [self._write_group(group, now) for group in groups]

        for results in outcomes:
            for result in results:
                if result == "created":
                    summary.created += 1
                    summary.processed += 1
                elif result == "refreshed":
                    summary.refreshed += 1
                    summary.processed += 1
                else:
                    summary.errors += 1

    def _write_group(self, group: Sequence[_AlertWork], now: datetime) -> List[str]:
        results: List[str] = []
        for item in group:
            try:
                results.append(self._apply(item, now))
            except Exception as e:
                log.error(
                    "alert_write_failed",
                    pdu_id=item.reading.pdu_id,
                    reason=item.reason.value,
                    error=str(e),
                )
                results.append("error")
        return results

    def _apply(self, item: _AlertWork, now: datetime) -> str:
        """Insert or refresh the record for one critical condition.

        Returns:
            "created" or "refreshed"
        """
        reading, reason = item.reading, item.reason
        value = reason.value_from(reading)
        threshold = reading.thresholds_exceeded.get(reason.value)

        existing = self._store.find(reading.pdu_id, reason.metric_type, reason.value)
        if existing is not None:
            self._store.upsert(
                existing.model_copy(
                    update={
                        "alert_value": value,
                        "threshold_exceeded": threshold,
                        "last_updated_at": now,
                    }
                )
            )
            return "refreshed"

        self._store.upsert(
            AlertRecord(
                pdu_id=reading.pdu_id,
                rack_id=reading.rack_id,
                metric_type=reason.metric_type,
                alert_reason=reason.value,
                alert_field=reason.alert_field,
                alert_value=value,
                threshold_exceeded=threshold,
                alert_started_at=now,
                last_updated_at=now,
                name=reading.name,
                country=reading.country,
                site=reading.site,
                datacenter=reading.datacenter,
                phase=reading.phase,
                chain_id=reading.chain_id,
                node=reading.node,
                serial=reading.serial,
            )
        )
        log.info(
            "alert_opened",
            pdu_id=reading.pdu_id,
            rack_id=reading.rack_id,
            reason=reason.value,
            value=value,
        )
        return "created"

    def _cleanup(
        self,
        current_reasons: Dict[str, Set[str]],
        now: datetime,
        summary: ReconcileSummary,
    ) -> None:
        """Delete every record not backed by a current critical reason."""

        def resolved(record: AlertRecord) -> bool:
            reasons = current_reasons.get(record.pdu_id)
            return reasons is None or record.alert_reason not in reasons

        try:
            deleted = self._store.delete_where(resolved)
        except StoreError as e:
            summary.cleanup_failed = True
            log.error("alert_cleanup_failed", error=str(e))
            return

        summary.deleted = len(deleted)
        for record in deleted:
            log.info(
                "alert_resolved",
                pdu_id=record.pdu_id,
                reason=record.alert_reason,
                started_at=record.alert_started_at.isoformat(),
            )

        if self._history_store is None or not deleted:
            return

        try:
            self._history_store.append(
                [AlertHistoryRecord.from_resolved(record, now) for record in deleted]
            )
            summary.archived = len(deleted)
        except StoreError as e:
            log.warning("alert_history_write_failed", count=len(deleted), error=str(e))
