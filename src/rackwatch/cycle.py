"""One polling cycle: snapshot, evaluate, reconcile."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import structlog

from rackwatch.alerts.lifecycle import AlertLifecycleManager, ReconcileSummary
from rackwatch.evaluation.evaluator import EvaluationSummary, RackEvaluator
from rackwatch.evaluation.maintenance import MaintenanceSnapshot
from rackwatch.evaluation.thresholds import ThresholdSnapshot
from rackwatch.exceptions import CycleAbortedError, StoreError
from rackwatch.models.reading import ClassifiedReading, MetricReading
from rackwatch.stores.base import MaintenanceStore, ThresholdStore

log = structlog.get_logger()


@dataclass
class CycleResult:
    """Outcome of one polling cycle."""

    readings: List[ClassifiedReading] = field(default_factory=list)
    evaluation: EvaluationSummary = field(default_factory=EvaluationSummary)
    reconcile: ReconcileSummary = field(default_factory=ReconcileSummary)

    @property
    def succeeded(self) -> bool:
        return not self.reconcile.abandoned


class MonitoringCycle:
    """Runs the evaluator and the alert lifecycle once per poll.

    Threshold and maintenance data are read once at the start of the
    cycle; changes made mid-cycle apply from the next one.
    """

    def __init__(
        self,
        threshold_store: ThresholdStore,
        maintenance_store: MaintenanceStore,
        lifecycle: AlertLifecycleManager,
        evaluator: Optional[RackEvaluator] = None,
    ) -> None:
        self._threshold_store = threshold_store
        self._maintenance_store = maintenance_store
        self._lifecycle = lifecycle
        self._evaluator = evaluator or RackEvaluator()

    def snapshot(
        self, readings: Sequence[MetricReading]
    ) -> Tuple[ThresholdSnapshot, MaintenanceSnapshot]:
        """Read the threshold and maintenance snapshots for a batch.

        Raises:
            CycleAbortedError: If either store cannot be read
        """
        try:
            thresholds = ThresholdSnapshot.load(
                self._threshold_store, (r.rack_id for r in readings)
            )
        except StoreError as e:
            raise CycleAbortedError("reading thresholds", e)

        try:
            maintenance = MaintenanceSnapshot.load(self._maintenance_store)
        except StoreError as e:
            raise CycleAbortedError("reading maintenance entries", e)

        return thresholds, maintenance

    def run(self, readings: Sequence[MetricReading]) -> CycleResult:
        """Evaluate a batch of readings and reconcile the alert table.

        Args:
            readings: Samples from the current poll

        Returns:
            CycleResult with the classified readings and both summaries

        Raises:
            CycleAbortedError: If the snapshots cannot be read; nothing
                has been written in that case
        """
        log.info("cycle_starting", readings=len(readings))
        thresholds, maintenance = self.snapshot(readings)

        classified = self._evaluator.evaluate(readings, thresholds, maintenance)
        reconcile = self._lifecycle.reconcile(classified, maintenance.rack_ids)

        result = CycleResult(
            readings=classified,
            evaluation=self._evaluator.last_summary,
            reconcile=reconcile,
        )
        log.info(
            "cycle_complete",
            succeeded=result.succeeded,
            critical=result.evaluation.critical,
            active_alerts_created=reconcile.created,
            active_alerts_deleted=reconcile.deleted,
        )
        return result
