"""Scorers that append prediction columns to a test view."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Sequence, Tuple

import numpy as np
import pandas as pd

from cvkit.core.exceptions import SchemaError
from cvkit.core.interfaces import BINARY, MULTICLASS, REGRESSION, IPredictor, IScorer
from cvkit.core.schema import (
    PREDICTED_LABEL,
    PROBABILITY,
    SCORE,
    DataView,
    RoleMappedData,
    RoleMappedSchema,
)
from cvkit.core.utils import unique_column_name


@dataclass(frozen=True)
class BoundMapper:
    """A predictor whose feature columns were resolved against a test schema."""

    predictor: IPredictor
    schema: RoleMappedSchema
    feature_columns: Tuple[str, ...]


class BaseScorer(IScorer):
    """Resolves features and hides input columns that clash with outputs."""

    kind: str = REGRESSION
    output_columns: Tuple[str, ...] = (SCORE,)

    def bind(self, predictor: IPredictor, schema: RoleMappedSchema,
             columns: Sequence[str]) -> BoundMapper:
        features = tuple(getattr(predictor, "feature_names", None) or schema.features)
        missing = [f for f in features if f not in set(columns)]
        if missing:
            raise SchemaError(f"Predictor features missing from test data: {', '.join(missing)}")
        return BoundMapper(predictor, schema, features)

    def score(self, mapper: BoundMapper, data: RoleMappedData) -> DataView:
        X = data.frame.loc[:, list(mapper.feature_columns)].to_numpy(dtype=float)
        outputs, slot_names = self._outputs(mapper.predictor, X)

        frame = data.frame
        hidden = []
        renames = {}
        for name in outputs:
            if name in frame.columns:
                renames[name] = unique_column_name(set(frame.columns) | set(outputs), name)
                hidden.append(renames[name])
        if renames:
            frame = frame.rename(columns=renames)
        frame = frame.assign(**outputs)
        return DataView(frame=frame, slot_names=slot_names, hidden_columns=frozenset(hidden))

    def _outputs(self, predictor: IPredictor, X: np.ndarray) -> Tuple[Dict[str, object], Dict]:
        return {SCORE: predictor.predict(X)}, {}


class RegressionScorer(BaseScorer):
    """Adds a scalar ``Score``."""


class BinaryScorer(BaseScorer):
    """Adds ``Score``, ``Probability`` and ``PredictedLabel``.

    ``Probability`` is the probability of the second training class.
    ``PredictedLabel`` is categorical over both training classes, so the
    positive class stays known on folds whose rows hold a single class.
    """

    kind = BINARY
    output_columns = (SCORE, PROBABILITY, PREDICTED_LABEL)

    def _outputs(self, predictor, X):
        proba = predictor.predict_proba(X)
        classes = np.asarray(predictor.classes)
        predicted = pd.Categorical(classes[proba.argmax(axis=1)], categories=classes)
        return {
            SCORE: predictor.predict(X),
            PROBABILITY: proba[:, 1],
            PREDICTED_LABEL: predicted,
        }, {}


class MultiClassScorer(BaseScorer):
    """Adds a vector ``Score`` of class probabilities and ``PredictedLabel``.

    The slots of ``Score`` are named after the classes seen in training, so
    folds that saw different classes produce ``Score`` vectors of different
    widths.
    """

    kind = MULTICLASS
    output_columns = (SCORE, PREDICTED_LABEL)

    def _outputs(self, predictor, X):
        proba = predictor.predict_proba(X)
        classes = np.asarray(predictor.classes)
        scores = pd.Series(list(proba), dtype=object)
        return {
            SCORE: scores.to_numpy(),
            PREDICTED_LABEL: classes[proba.argmax(axis=1)],
        }, {SCORE: tuple(str(c) for c in classes)}
