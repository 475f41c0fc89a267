"""Column transforms fitted on a fold's training rows and replayed elsewhere."""

from __future__ import annotations

from typing import Any, List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.preprocessing import MinMaxScaler, StandardScaler

from cvkit.core.interfaces import ITransformer
from cvkit.core.utils import LoggerFactory

_MISSING = "__MISSING__"


class BaseTransform(BaseEstimator, TransformerMixin, ITransformer):
    """
    Base for all column transforms.

    Provides a logger, the fitted-state guard, and the names of columns a
    transform creates (``get_feature_names``).
    """

    def __init__(self, *, name: Optional[str] = None):
        self.logger = LoggerFactory.get_logger(name or self.__class__.__name__)
        self.is_fitted: bool = False
        self._new_cols: List[str] = []

    def fit(self, X: pd.DataFrame, y: Optional[pd.Series] = None) -> "BaseTransform":
        self._validate_X(X)
        self.is_fitted = True
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        self._require_fitted()
        self._validate_X(X)
        return X

    def fit_transform(self, X: pd.DataFrame, y: Optional[pd.Series] = None) -> pd.DataFrame:
        return self.fit(X, y).transform(X)

    def get_feature_names(self) -> List[str]:
        """Names of columns this transform creates (if any)."""
        return list(self._new_cols)

    def _require_fitted(self) -> None:
        if not self.is_fitted:
            raise ValueError(f"{self.__class__.__name__} must be fitted before transform")

    def _validate_X(self, X: Any) -> None:
        if not isinstance(X, pd.DataFrame):
            raise TypeError(
                f"{self.__class__.__name__} expects a pandas DataFrame, got {type(X).__name__}"
            )


class MissingValueImputer(BaseTransform):
    """Fill missing values with statistics learned on the fitting rows.

    Numeric columns get the mean or median, other columns the most frequent
    value (or ``"Unknown"`` when a column is entirely missing).
    """

    def __init__(self, columns: Optional[Sequence[str]] = None, strategy: str = "median"):
        super().__init__()
        if strategy not in ("mean", "median"):
            raise ValueError(f"Unknown imputation strategy '{strategy}'")
        self.columns = list(columns) if columns is not None else None
        self.strategy = strategy
        self.fill_values_: dict = {}

    def fit(self, X: pd.DataFrame, y: Optional[pd.Series] = None) -> "MissingValueImputer":
        super().fit(X, y)
        columns = self.columns if self.columns is not None else list(X.columns)
        self.fill_values_ = {}
        for col in columns:
            series = X[col]
            if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
                value = series.mean() if self.strategy == "mean" else series.median()
                self.fill_values_[col] = 0.0 if pd.isna(value) else value
            elif not isinstance(series.dtype, pd.CategoricalDtype):
                mode = series.mode(dropna=True)
                self.fill_values_[col] = mode.iloc[0] if len(mode) else "Unknown"
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        super().transform(X)
        present = {c: v for c, v in self.fill_values_.items() if c in X.columns}
        return X.fillna(value=present) if present else X


class OneHotEncoderTransform(BaseTransform):
    """One indicator column per category seen while fitting.

    Categories unseen at fit time map to all zeros.
    """

    def __init__(self, columns: Sequence[str], drop_original: bool = True):
        super().__init__()
        self.columns = list(columns)
        self.drop_original = drop_original
        self.categories_: dict = {}

    def fit(self, X: pd.DataFrame, y: Optional[pd.Series] = None) -> "OneHotEncoderTransform":
        super().fit(X, y)
        self.categories_ = {
            col: [str(c) for c in pd.Index(X[col].astype("string").fillna(_MISSING).unique())]
            for col in self.columns
        }
        self._new_cols = [f"{col}_{c}" for col, cats in self.categories_.items() for c in cats]
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        super().transform(X)
        X = X.copy()
        for col, cats in self.categories_.items():
            values = X[col].astype("string").fillna(_MISSING)
            for cat in cats:
                X[f"{col}_{cat}"] = (values == cat).astype(int).to_numpy()
        if self.drop_original:
            X = X.drop(columns=list(self.categories_))
        return X


class ColumnDropper(BaseTransform):
    """Drop the named columns when present."""

    def __init__(self, columns: Sequence[str]):
        super().__init__()
        self.columns = list(columns)

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        super().transform(X)
        return X.drop(columns=[c for c in self.columns if c in X.columns])


class FeatureNormalizer(BaseTransform):
    """Scale feature columns with an sklearn scaler fitted on the training rows."""

    def __init__(self, columns: Sequence[str], method: str = "standard"):
        super().__init__()
        if method not in ("standard", "minmax"):
            raise ValueError(f"Unknown normalization method '{method}'")
        self.columns = list(columns)
        self.method = method
        self.scaler_ = None

    def fit(self, X: pd.DataFrame, y: Optional[pd.Series] = None) -> "FeatureNormalizer":
        super().fit(X, y)
        self.scaler_ = StandardScaler() if self.method == "standard" else MinMaxScaler()
        if self.columns:
            self.scaler_.fit(X[self.columns].to_numpy(dtype=float))
        self.logger.debug(f"Normalizer fitted on {len(self.columns)} columns")
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        super().transform(X)
        if not self.columns:
            return X
        X = X.copy()
        scaled = self.scaler_.transform(X[self.columns].to_numpy(dtype=float))
        X[self.columns] = np.asarray(scaled, dtype=float)
        return X


class TransformChain(BaseTransform):
    """Chain of transforms fitted and applied in order."""

    def __init__(self, transforms: Sequence[ITransformer]):
        super().__init__()
        self.transforms = list(transforms)

    def fit(self, X: pd.DataFrame, y: Optional[pd.Series] = None) -> "TransformChain":
        """Fit all transforms sequentially."""
        X_current = X
        for i, transform in enumerate(self.transforms):
            self.logger.debug(f"Fitting transform {i + 1}/{len(self.transforms)}: {type(transform).__name__}")
            X_current = transform.fit_transform(X_current, y)
        self.is_fitted = True
        return self

    def transform(self, X: pd.DataFrame) -> pd.DataFrame:
        """Apply all transforms sequentially."""
        self._require_fitted()
        X_current = X
        for transform in self.transforms:
            X_current = transform.transform(X_current)
        return X_current

    def __len__(self) -> int:
        return len(self.transforms)
