"""Evaluation, metric summaries and per-fold result aggregation."""

from .aggregation import ResultAggregator
from .evaluator import BinaryEvaluator, MultiClassEvaluator, RegressionEvaluator
from .metrics import ClassificationMetrics, RegressionMetrics, summarize_metric_tables

__all__ = [
    "ResultAggregator",
    "BinaryEvaluator",
    "MultiClassEvaluator",
    "RegressionEvaluator",
    "ClassificationMetrics",
    "RegressionMetrics",
    "summarize_metric_tables",
]
