"""Typed views over metric tables and fold summaries."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Union

import numpy as np
import pandas as pd

from cvkit.core.exceptions import SchemaError

OVERALL_METRICS = "OverallMetrics"
CONFUSION_MATRIX = "ConfusionMatrix"

AVERAGE = "Average"
STD = "Std"

MetricsLike = Union[Mapping[str, pd.DataFrame], pd.DataFrame]


def _single_row(metrics: MetricsLike, table: str = OVERALL_METRICS) -> pd.Series:
    overall = metrics if isinstance(metrics, pd.DataFrame) else metrics.get(table)
    if overall is None:
        raise SchemaError(f"Metrics have no '{table}' table")
    if len(overall) == 0:
        raise SchemaError("The overall metrics table has no rows")
    if len(overall) > 1:
        raise SchemaError(
            f"The overall metrics table has {len(overall)} rows; expected a single row"
        )
    return overall.iloc[0]


def _get(row: pd.Series, name: str) -> float:
    return float(row[name]) if name in row.index else float("nan")


@dataclass(frozen=True)
class RegressionMetrics:
    """Regression metrics of one fold."""

    l1: float
    l2: float
    rms: float
    loss_fn: float
    r_squared: float

    @classmethod
    def from_metrics(cls, metrics: MetricsLike) -> "RegressionMetrics":
        row = _single_row(metrics)
        return cls(
            l1=_get(row, "L1"),
            l2=_get(row, "L2"),
            rms=_get(row, "RMS"),
            loss_fn=_get(row, "LossFn"),
            r_squared=_get(row, "RSquared"),
        )


@dataclass(frozen=True)
class ClassificationMetrics:
    """Binary or multiclass metrics of one fold.

    Fields that do not apply to the evaluated task are NaN.
    """

    accuracy: float
    log_loss: float
    auc: float = float("nan")
    f1_score: float = float("nan")
    positive_precision: float = float("nan")
    positive_recall: float = float("nan")
    accuracy_macro: float = float("nan")
    confusion_matrix: Optional[pd.DataFrame] = None

    @classmethod
    def from_metrics(cls, metrics: MetricsLike) -> "ClassificationMetrics":
        row = _single_row(metrics)
        confusion = None
        if not isinstance(metrics, pd.DataFrame):
            confusion = metrics.get(CONFUSION_MATRIX)
        accuracy = _get(row, "Accuracy") if "Accuracy" in row.index else _get(row, "AccuracyMicro")
        return cls(
            accuracy=accuracy,
            log_loss=_get(row, "LogLoss"),
            auc=_get(row, "AUC"),
            f1_score=_get(row, "F1Score"),
            positive_precision=_get(row, "PositivePrecision"),
            positive_recall=_get(row, "PositiveRecall"),
            accuracy_macro=_get(row, "AccuracyMacro"),
            confusion_matrix=confusion,
        )


def summarize_metric_tables(tables: Sequence[pd.DataFrame]) -> pd.DataFrame:
    """Stack one-row metric tables by fold and append Average and Std rows."""
    if not tables:
        return pd.DataFrame()
    rows = [_single_row(table).rename(f"Fold {i}") for i, table in enumerate(tables)]
    per_fold = pd.DataFrame(rows)
    numeric = per_fold.select_dtypes(include=[np.number])
    summary = pd.DataFrame(
        [numeric.mean(axis=0).rename(AVERAGE), numeric.std(axis=0, ddof=0).rename(STD)]
    )
    return pd.concat([per_fold, summary], axis=0)
