"""Split-column resolution and deterministic k-fold partitioning."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from pandas.api.types import is_float_dtype

from cvkit.core.exceptions import ConfigurationError
from cvkit.core.utils import LoggerFactory, unique_column_name

CONTINUOUS = "continuous"
KEY = "key"

HASH_BITS = 30
STRATIFICATION_COLUMN = "StratificationColumn"


@dataclass(frozen=True)
class SplitKey:
    """The column that decides fold membership."""

    column: str
    kind: str
    cardinality: Optional[int] = None


@dataclass(frozen=True)
class FoldPartition:
    """Train and test row indices of one fold, both ascending."""

    fold: int
    train: np.ndarray
    test: np.ndarray


def hash_to_key(values, bits: int = HASH_BITS) -> np.ndarray:
    """Hash arbitrary values into the key range ``[0, 2**bits)``."""
    hashed = pd.util.hash_array(np.asarray(values))
    mask = np.uint64((1 << bits) - 1)
    return (hashed & mask).astype(np.int64)


class SplitColumnResolver:
    """Picks (or builds) the split column for a frame.

    Preference order: the explicit stratification column, a categorical group
    column, then a synthesized row counter. Columns that cannot be ranged
    directly are hashed into a 30-bit key space under a fresh name.
    """

    def __init__(self, stratification_column: Optional[str] = None,
                 group_column: Optional[str] = None, hash_bits: int = HASH_BITS):
        self.stratification_column = stratification_column
        self.group_column = group_column
        self.hash_bits = hash_bits
        self.logger = LoggerFactory.get_logger(__name__)

    def resolve(self, frame: pd.DataFrame) -> Tuple[pd.DataFrame, SplitKey]:
        """Return the frame (possibly with an added column) and its split key."""
        column = self.stratification_column
        if column:
            if column not in frame.columns:
                raise ConfigurationError(f"Column '{column}' does not exist")
            series = frame[column]
            if is_float_dtype(series.dtype):
                key = SplitKey(column, CONTINUOUS)
                self._check(frame, key)
                return frame, key
            if isinstance(series.dtype, pd.CategoricalDtype):
                key = SplitKey(column, KEY, len(series.cat.categories))
                self._check(frame, key)
                return frame, key
            self.logger.info("Hashing the stratification column")
            name = unique_column_name(frame.columns, column)
            return self._with_hashed(frame, name, series.to_numpy())

        group = self.group_column
        if group and group in frame.columns and isinstance(frame[group].dtype, pd.CategoricalDtype):
            key = SplitKey(group, KEY, len(frame[group].cat.categories))
            self._check(frame, key)
            return frame, key

        name = unique_column_name(frame.columns, STRATIFICATION_COLUMN)
        counter = np.arange(len(frame), dtype=np.int64)
        return self._with_hashed(frame, name, counter)

    def _with_hashed(self, frame: pd.DataFrame, name: str,
                     values: np.ndarray) -> Tuple[pd.DataFrame, SplitKey]:
        frame = frame.assign(**{name: hash_to_key(values, self.hash_bits)})
        return frame, SplitKey(name, KEY, 1 << self.hash_bits)

    @staticmethod
    def _check(frame: pd.DataFrame, key: SplitKey) -> None:
        series = frame[key.column]
        if key.kind == KEY:
            if (series.cat.codes < 0).any():
                raise ConfigurationError(f"Split column '{key.column}' has missing values")
            return
        values = series.to_numpy(dtype=float)
        if np.isnan(values).any():
            raise ConfigurationError(f"Split column '{key.column}' has missing values")
        if (values < 0).any() or (values > 1).any():
            raise ConfigurationError(f"Split column '{key.column}' has values outside [0, 1]")


def resolve_split_column(frame: pd.DataFrame, stratification_column: Optional[str] = None,
                         group_column: Optional[str] = None) -> Tuple[pd.DataFrame, SplitKey]:
    """Shortcut for ``SplitColumnResolver(...).resolve(frame)``."""
    return SplitColumnResolver(stratification_column, group_column).resolve(frame)


class DatasetPartitioner:
    """Assigns every row to exactly one of ``num_folds`` contiguous key ranges.

    Fold ``i`` holds rows whose split fraction ``f`` satisfies
    ``i/n <= f < (i+1)/n``; the last fold also keeps ``f == 1``. A key code
    ``c`` of cardinality ``K`` has fraction ``c/K``.
    """

    def __init__(self, frame: pd.DataFrame, split_key: SplitKey, num_folds: int):
        if num_folds < 2:
            raise ConfigurationError("Number of folds must be greater than or equal to 2.")
        if split_key.column not in frame.columns:
            raise ConfigurationError(f"Column '{split_key.column}' does not exist")
        self.split_key = split_key
        self.num_folds = num_folds
        self.logger = LoggerFactory.get_logger(__name__)
        self._assignments = self._assign(frame[split_key.column])
        empty = np.flatnonzero(np.bincount(self._assignments, minlength=num_folds) == 0)
        if empty.size:
            raise ConfigurationError(
                f"Fold {empty[0]} has no test rows: {len(frame)} rows over {num_folds} folds "
                f"on '{split_key.column}'"
            )

    def _assign(self, series: pd.Series) -> np.ndarray:
        n = self.num_folds
        assignments = np.full(len(series), -1, dtype=np.int64)
        if self.split_key.kind == KEY:
            codes = series.cat.codes.to_numpy() if isinstance(series.dtype, pd.CategoricalDtype) \
                else series.to_numpy()
            codes = codes.astype(np.int64)
            cardinality = self.split_key.cardinality
            # Integer comparison: i*K <= c*n < (i+1)*K
            scaled = codes * n
            for i in range(n):
                in_fold = (scaled >= i * cardinality) & (scaled < (i + 1) * cardinality)
                assignments[in_fold] = i
        else:
            values = series.to_numpy(dtype=float)
            for i in range(n):
                lo, hi = i / n, (i + 1) / n
                in_fold = (values >= lo) & ((values < hi) if i < n - 1 else (values <= hi))
                assignments[in_fold] = i
        if (assignments < 0).any():
            raise ConfigurationError(
                f"Split column '{self.split_key.column}' has values outside the key range"
            )
        return assignments

    @property
    def assignments(self) -> np.ndarray:
        return self._assignments

    def get_n_splits(self) -> int:
        """Return number of splits."""
        return self.num_folds

    def split(self, fold: int) -> FoldPartition:
        """Train (range complement) and test (range) rows of one fold."""
        if not 0 <= fold < self.num_folds:
            raise IndexError(f"Fold {fold} out of range for {self.num_folds} folds")
        in_test = self._assignments == fold
        return FoldPartition(fold, np.flatnonzero(~in_test), np.flatnonzero(in_test))

    def split_all(self) -> List[FoldPartition]:
        partitions = [self.split(i) for i in range(self.num_folds)]
        self.logger.info(f"Generated {len(partitions)} folds on '{self.split_key.column}'")
        return partitions

    def validate(self, partitions: Optional[List[FoldPartition]] = None) -> None:
        """Check that test sets partition the rows and each train is its complement."""
        partitions = partitions if partitions is not None else self.split_all()
        n_rows = len(self._assignments)
        seen = np.zeros(n_rows, dtype=np.int64)
        for part in partitions:
            seen[part.test] += 1
            if len(part.train) + len(part.test) != n_rows or np.intersect1d(part.train, part.test).size:
                raise ConfigurationError(f"Fold {part.fold}: train is not the complement of test")
            self.logger.debug(f"Fold {part.fold} - Train: {len(part.train)}, Test: {len(part.test)}")
        if not (seen == 1).all():
            raise ConfigurationError("Test sets do not partition the dataset")
