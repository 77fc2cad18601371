"""Rack evaluator: resolves thresholds, applies maintenance and classifies.

Processes a whole batch of readings for one polling cycle. A failure on
one rack never stops the rest of the batch.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set

import structlog

from rackwatch.evaluation.classifier import MetricClassifier
from rackwatch.evaluation.maintenance import MaintenanceGate, MaintenanceSnapshot
from rackwatch.evaluation.thresholds import ThresholdResolver, ThresholdSnapshot
from rackwatch.models.enums import MetricType, Status
from rackwatch.models.reading import ClassifiedReading, MetricReading

log = structlog.get_logger()


@dataclass
class EvaluationSummary:
    """Counts for one evaluation pass, surfaced to logging."""

    total: int = 0
    normal: int = 0
    warning: int = 0
    critical: int = 0
    in_maintenance: int = 0
    threshold_fallbacks: int = 0
    errors: int = 0
    unconfigured: Dict[str, Set[str]] = field(default_factory=dict)

    def as_log_fields(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "normal": self.normal,
            "warning": self.warning,
            "critical": self.critical,
            "in_maintenance": self.in_maintenance,
            "threshold_fallbacks": self.threshold_fallbacks,
            "errors": self.errors,
        }


@dataclass
class _Evaluated:
    reading: ClassifiedReading
    fallback: bool = False
    error: bool = False
    unconfigured: Sequence[MetricType] = ()


class RackEvaluator:
    """Evaluates a batch of readings against thresholds and maintenance.

    Args:
        resolver: Threshold resolver (defaults to ThresholdResolver())
        classifier: Metric classifier (defaults to MetricClassifier())
        gate: Maintenance gate (defaults to MaintenanceGate())
        workers: Threads used to classify readings; 1 classifies inline
    """

    def __init__(
        self,
        resolver: Optional[ThresholdResolver] = None,
        classifier: Optional[MetricClassifier] = None,
        gate: Optional[MaintenanceGate] = None,
        workers: int = 1,
    ) -> None:
        self._resolver = resolver or ThresholdResolver()
        self._classifier = classifier or MetricClassifier()
        self._gate = gate or MaintenanceGate()
        self._workers = max(1, workers)
        self.last_summary = EvaluationSummary()

    def evaluate(
        self,
        readings: Sequence[MetricReading],
        thresholds: ThresholdSnapshot,
        maintenance: MaintenanceSnapshot,
    ) -> List[ClassifiedReading]:
        """Classify every reading in the batch.

        Readings whose rack or chain is in maintenance are returned as
        normal with no reasons and are not classified.

        Args:
            readings: Samples from one polling cycle
            thresholds: Threshold snapshot for the cycle
            maintenance: Maintenance snapshot for the cycle

        Returns:
            Classified readings, in input order
        """
        if self._workers > 1 and len(readings) > 1:
            with ThreadPoolExecutor(max_workers=self._workers) as pool:
                results = list(
                    pool.map(lambda r: self._evaluate_one(r, thresholds, maintenance), readings)
                )
        else:
            results = [self._evaluate_one(r, thresholds, maintenance) for r in readings]

        summary = self._summarize(results)
        self.last_summary = summary

        for metric, racks in sorted(summary.unconfigured.items()):
            log.warning(
                "thresholds_incomplete",
                metric=metric,
                racks=len(racks),
                sample=sorted(racks)[:5],
            )
        log.info("evaluation_complete", **summary.as_log_fields())

        return [result.reading for result in results]

    def _evaluate_one(
        self,
        reading: MetricReading,
        thresholds: ThresholdSnapshot,
        maintenance: MaintenanceSnapshot,
    ) -> _Evaluated:
        """Evaluate one reading, containing any failure to this reading."""
        if self._gate.excludes(maintenance, reading.rack_id, reading.chain_id):
            return _Evaluated(
                reading=ClassifiedReading.from_reading(reading, in_maintenance=True)
            )

        fallback = False
        try:
            effective = self._resolver.resolve_snapshot(thresholds, reading.rack_id)
        except Exception as e:
            log.warning(
                "threshold_resolution_failed",
                rack_id=reading.rack_id,
                error=str(e),
                message="Falling back to global thresholds",
            )
            effective = self._resolver.global_only(thresholds, reading.rack_id)
            fallback = True

        try:
            result = self._classifier.classify(reading, effective)
        except Exception as e:
            log.error(
                "classification_failed",
                pdu_id=reading.pdu_id,
                rack_id=reading.rack_id,
                error=str(e),
            )
            return _Evaluated(
                reading=ClassifiedReading.from_reading(reading),
                fallback=fallback,
                error=True,
            )

        return _Evaluated(
            reading=ClassifiedReading.from_reading(
                reading,
                status=result.status,
                reasons=list(result.reasons),
                thresholds_exceeded=dict(result.thresholds_exceeded),
            ),
            fallback=fallback,
            unconfigured=result.unconfigured,
        )

    def _summarize(self, results: Sequence[_Evaluated]) -> EvaluationSummary:
        summary = EvaluationSummary(total=len(results))
        for result in results:
            reading = result.reading
            if reading.in_maintenance:
                summary.in_maintenance += 1
            if reading.status == Status.CRITICAL:
                summary.critical += 1
            elif reading.status == Status.WARNING:
                summary.warning += 1
            else:
                summary.normal += 1
            if result.fallback:
                summary.threshold_fallbacks += 1
            if result.error:
                summary.errors += 1
            for metric in result.unconfigured:
                summary.unconfigured.setdefault(metric.value, set()).add(reading.rack_id)
        return summary
