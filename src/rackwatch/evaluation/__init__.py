"""Threshold resolution, maintenance exclusion and metric classification."""

from rackwatch.evaluation.classifier import (
    ClassificationResult,
    MetricClassifier,
    normalize_phase,
)
from rackwatch.evaluation.evaluator import EvaluationSummary, RackEvaluator
from rackwatch.evaluation.maintenance import (
    MaintenanceEntry,
    MaintenanceGate,
    MaintenanceRack,
    MaintenanceSnapshot,
    chains_in_maintenance,
)
from rackwatch.evaluation.reasons import ReasonCode, parse_reason
from rackwatch.evaluation.thresholds import ThresholdResolver, ThresholdSnapshot

__all__ = [
    "ClassificationResult",
    "MetricClassifier",
    "normalize_phase",
    "EvaluationSummary",
    "RackEvaluator",
    "MaintenanceEntry",
    "MaintenanceGate",
    "MaintenanceRack",
    "MaintenanceSnapshot",
    "chains_in_maintenance",
    "ReasonCode",
    "parse_reason",
    "ThresholdResolver",
    "ThresholdSnapshot",
]
