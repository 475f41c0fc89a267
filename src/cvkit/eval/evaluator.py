"""Reference evaluators for regression, binary and multiclass predictions."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    f1_score,
    log_loss,
    mean_absolute_error,
    mean_squared_error,
    precision_score,
    r2_score,
    recall_score,
    roc_auc_score,
)

from cvkit.core.exceptions import SchemaError
from cvkit.core.interfaces import IEvaluator
from cvkit.core.schema import PREDICTED_LABEL, PROBABILITY, SCORE, DataView, RoleMappedData
from cvkit.core.utils import LoggerFactory
from cvkit.eval.metrics import CONFUSION_MATRIX, OVERALL_METRICS, summarize_metric_tables
from cvkit.eval.writer import write_summary

_EPS = 1e-15


class BaseEvaluator(IEvaluator):
    """Shared reporting for the reference evaluators."""

    def __init__(self):
        self.logger = LoggerFactory.get_logger(self.__class__.__name__)

    @staticmethod
    def _label(data: RoleMappedData) -> np.ndarray:
        label = data.label()
        if label is None:
            raise SchemaError("Evaluation requires a label column")
        return label.to_numpy()

    @staticmethod
    def _column(data: RoleMappedData, name: str) -> np.ndarray:
        if name not in data.frame.columns:
            raise SchemaError(f"Scored data has no '{name}' column")
        return data.frame[name].to_numpy()

    def _per_instance(self, data: RoleMappedData, metrics: Dict[str, np.ndarray]) -> DataView:
        frame = data.frame.assign(**metrics)
        return DataView(frame=frame, slot_names=dict(data.slot_names))

    def print_fold_results(self, metrics: Dict[str, pd.DataFrame]) -> None:
        overall = metrics[OVERALL_METRICS]
        for name, value in overall.iloc[0].items():
            self.logger.info(f"{name}: {value:.4f}" if isinstance(value, float) else f"{name}: {value}")

    def print_overall_results(self, metrics: Sequence[Dict[str, pd.DataFrame]],
                              summary_filename: Optional[Union[str, Path]] = None) -> pd.DataFrame:
        summary = summarize_metric_tables([m[OVERALL_METRICS] for m in metrics])
        self.logger.info(f"Overall metrics across {len(metrics)} folds:\n{summary.to_string()}")
        if summary_filename:
            write_summary(summary, summary_filename)
        return summary


class RegressionEvaluator(BaseEvaluator):
    """L1, L2, RMS and R squared of a scalar ``Score``."""

    def evaluate(self, data: RoleMappedData) -> Dict[str, pd.DataFrame]:
        y = self._label(data).astype(float)
        score = self._column(data, SCORE).astype(float)
        weights = data.weights()
        l2 = mean_squared_error(y, score, sample_weight=weights)
        overall = pd.DataFrame([{
            "L1": mean_absolute_error(y, score, sample_weight=weights),
            "L2": l2,
            "RMS": float(np.sqrt(l2)),
            "LossFn": l2,
            "RSquared": r2_score(y, score, sample_weight=weights) if len(y) > 1 else float("nan"),
        }])
        return {OVERALL_METRICS: overall}

    def get_per_instance_metrics(self, data: RoleMappedData) -> DataView:
        residual = self._column(data, SCORE).astype(float) - self._label(data).astype(float)
        return self._per_instance(data, {"L1": np.abs(residual), "L2": residual ** 2})


class BinaryEvaluator(BaseEvaluator):
    """Threshold and ranking metrics of a binary ``Probability``.

    The positive class is the second category of a categorical
    ``PredictedLabel`` (the predictor's training classes). Without categories
    it is the larger of the label values seen.
    """

    def evaluate(self, data: RoleMappedData) -> Dict[str, pd.DataFrame]:
        y = self._label(data)
        proba = self._column(data, PROBABILITY).astype(float)
        predicted = self._column(data, PREDICTED_LABEL)
        weights = data.weights()
        negative, positive = self._classes(data)

        y_pos = (y == positive).astype(int)
        pred_pos = (predicted == positive).astype(int)
        both = np.unique(y_pos).size == 2
        overall = pd.DataFrame([{
            "AUC": roc_auc_score(y_pos, proba, sample_weight=weights) if both else float("nan"),
            "Accuracy": accuracy_score(y_pos, pred_pos, sample_weight=weights),
            "PositivePrecision": precision_score(y_pos, pred_pos, sample_weight=weights, zero_division=0),
            "PositiveRecall": recall_score(y_pos, pred_pos, sample_weight=weights, zero_division=0),
            "NegativePrecision": precision_score(1 - y_pos, 1 - pred_pos, sample_weight=weights,
                                                 zero_division=0),
            "NegativeRecall": recall_score(1 - y_pos, 1 - pred_pos, sample_weight=weights,
                                           zero_division=0),
            "F1Score": f1_score(y_pos, pred_pos, sample_weight=weights, zero_division=0),
            "LogLoss": log_loss(y_pos, np.clip(proba, _EPS, 1 - _EPS), sample_weight=weights,
                                labels=[0, 1]),
        }])
        confusion = pd.crosstab(
            pd.Series(y_pos, name="Truth").map({1: positive, 0: negative}),
            pd.Series(pred_pos, name="Predicted").map({1: positive, 0: negative}),
        ).reindex(index=[positive, negative], columns=[positive, negative], fill_value=0)
        return {OVERALL_METRICS: overall, CONFUSION_MATRIX: confusion}

    def _classes(self, data: RoleMappedData):
        y = self._label(data)
        predicted = data.frame[PREDICTED_LABEL] if PREDICTED_LABEL in data.frame.columns else None
        if predicted is not None and isinstance(predicted.dtype, pd.CategoricalDtype):
            classes = list(predicted.cat.categories)
            if len(classes) != 2:
                raise SchemaError(f"Binary evaluation got {len(classes)} predictor classes")
            unknown = set(pd.unique(y)) - set(classes)
            if unknown:
                raise SchemaError(f"Labels not seen in training: {sorted(map(str, unknown))}")
            return classes[0], classes[1]

        values = np.unique(np.concatenate([np.asarray(y), self._column(data, PREDICTED_LABEL)]))
        if len(values) > 2:
            raise SchemaError(f"Binary evaluation got {len(values)} distinct labels")
        if len(values) == 1:
            return None, values[0]
        return values[0], values[1]

    def get_per_instance_metrics(self, data: RoleMappedData) -> DataView:
        y = self._label(data)
        proba = np.clip(self._column(data, PROBABILITY).astype(float), _EPS, 1 - _EPS)
        _, positive = self._classes(data)
        loss = np.where(y == positive, -np.log2(proba), -np.log2(1 - proba))
        return self._per_instance(data, {"LogLoss": loss})


class MultiClassEvaluator(BaseEvaluator):
    """Accuracy and log-loss of a vector ``Score`` whose slots are class names."""

    def _true_class_proba(self, data: RoleMappedData, y: np.ndarray) -> np.ndarray:
        slots = list(data.slot_names.get(SCORE, ()))
        index = {name: j for j, name in enumerate(slots)}
        scores = self._column(data, SCORE)
        proba = np.array([
            cell[index[str(label)]] if str(label) in index else 0.0
            for cell, label in zip(scores, y)
        ], dtype=float)
        return np.clip(proba, _EPS, 1.0)

    def evaluate(self, data: RoleMappedData) -> Dict[str, pd.DataFrame]:
        y = self._label(data)
        predicted = self._column(data, PREDICTED_LABEL)
        weights = data.weights()
        correct = (predicted == y).astype(float)
        per_class = [correct[y == c].mean() for c in np.unique(y)]
        loss = -np.log(self._true_class_proba(data, y))
        overall = pd.DataFrame([{
            "AccuracyMicro": float(np.average(correct, weights=weights)),
            "AccuracyMacro": float(np.mean(per_class)) if per_class else float("nan"),
            "LogLoss": float(np.average(loss, weights=weights)),
        }])
        confusion = pd.crosstab(pd.Series(y, name="Truth"), pd.Series(predicted, name="Predicted"))
        return {OVERALL_METRICS: overall, CONFUSION_MATRIX: confusion}

    def get_per_instance_metrics(self, data: RoleMappedData) -> DataView:
        y = self._label(data)
        return self._per_instance(data, {"LogLoss": -np.log(self._true_class_proba(data, y))})
