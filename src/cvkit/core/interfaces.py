"""Core interfaces for the fold orchestration pipeline following SOLID principles."""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

import joblib
import numpy as np
import pandas as pd

from cvkit.core.schema import DataView, RoleMappedData, RoleMappedSchema

T = TypeVar("T")

REGRESSION = "regression"
BINARY = "binary"
MULTICLASS = "multiclass"


class ITransformer(ABC):
    """Interface for data transformation components."""

    @abstractmethod
    def fit(self, X: pd.DataFrame, y: Optional[pd.Series] = None) -> "ITransformer":
        """Fit transformer to training data."""
        pass

    @abstractmethod
    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Transform input data."""
        pass

    def fit_transform(self, X: pd.DataFrame, y: Optional[pd.Series] = None) -> pd.DataFrame:
        """Fit and transform in one step."""
        return self.fit(X, y).transform(X)


class IPredictor(ABC):
    """Interface for trained predictors."""

    kind: str = REGRESSION

    @abstractmethod
    def predict(self, X: np.ndarray) -> np.ndarray:
        """Raw scores, one per row."""
        pass

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        """Class probabilities, one row per instance."""
        raise NotImplementedError(f"{self.__class__.__name__} does not produce probabilities")

    @property
    def classes(self) -> List[Any]:
        return []

    def save(self, path: Union[str, Path]) -> None:
        """Save predictor to disk."""
        joblib.dump(self, path)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "IPredictor":
        """Load predictor from disk."""
        return joblib.load(path)


class ITrainer(ABC):
    """Interface for model training components."""

    supports_validation: bool = False
    needs_normalization: bool = False

    @abstractmethod
    def train(self, train_data: RoleMappedData,
              validation_data: Optional[RoleMappedData] = None,
              prior_predictor: Optional[IPredictor] = None) -> IPredictor:
        """Train a predictor from role-mapped data."""
        pass


class IScorer(ABC):
    """Interface for scoring components.

    ``bind`` resolves the predictor's inputs against a test schema once;
    ``score`` then produces the scored view.
    """

    @abstractmethod
    def bind(self, predictor: IPredictor, schema: RoleMappedSchema,
             columns: Sequence[str]) -> Any:
        """Bind a predictor to a schema, returning a mapper."""
        pass

    @abstractmethod
    def score(self, mapper: Any, data: RoleMappedData) -> DataView:
        """Append score columns to the test data."""
        pass


class IEvaluator(ABC):
    """Interface for model evaluation components."""

    @abstractmethod
    def evaluate(self, data: RoleMappedData) -> Dict[str, pd.DataFrame]:
        """Evaluate scored data and return named metric tables."""
        pass

    @abstractmethod
    def get_per_instance_metrics(self, data: RoleMappedData) -> DataView:
        """Per-row predictions and metrics."""
        pass

    @abstractmethod
    def print_fold_results(self, metrics: Dict[str, pd.DataFrame]) -> None:
        """Report the metrics of one fold."""
        pass

    @abstractmethod
    def print_overall_results(self, metrics: Sequence[Dict[str, pd.DataFrame]],
                              summary_filename: Optional[Union[str, Path]] = None) -> pd.DataFrame:
        """Report metrics across folds, optionally writing a summary file."""
        pass


class IDataAdapter(ABC):
    """Interface for binding column roles and per-fold transforms."""

    @abstractmethod
    def create_role_mapped_data(self, frame: pd.DataFrame, trainer: ITrainer) -> RoleMappedData:
        """Fit transforms on train data and bind roles."""
        pass

    @abstractmethod
    def apply_transforms(self, frame: pd.DataFrame, train_data: RoleMappedData) -> RoleMappedData:
        """Replay the transforms fitted on ``train_data`` on another frame."""
        pass


class IFoldExecutor(ABC):
    """Interface for running one task per fold."""

    @abstractmethod
    def run(self, tasks: Sequence[Callable[[], T]]) -> List[T]:
        """Run every task and return results in task order."""
        pass
