"""Immutable row/group-indexed dataset shared by folds and bagging providers."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np
import pandas as pd

from cvkit.core.exceptions import ConfigurationError


class Dataset:
    """Read-only rows grouped into ordered groups ("queries").

    Groups are contiguous row ranges described by ``boundaries``: group ``q``
    spans rows ``boundaries[q]`` to ``boundaries[q + 1] - 1``. The wrapped
    frame is a private copy and is never mutated, so any number of folds or
    threads may read it at once.
    """

    def __init__(self, frame: pd.DataFrame, group_column: Optional[str] = None,
                 boundaries: Optional[Sequence[int]] = None):
        self._frame = frame.reset_index(drop=True).copy()
        n_rows = len(self._frame)

        if boundaries is not None:
            bounds = np.asarray(boundaries, dtype=np.int64)
        elif group_column is not None:
            if group_column not in self._frame.columns:
                raise ConfigurationError(f"Group column '{group_column}' does not exist")
            bounds = self._boundaries_from_column(self._frame[group_column].to_numpy())
        else:
            bounds = np.arange(n_rows + 1, dtype=np.int64)

        if len(bounds) < 1 or bounds[0] != 0 or bounds[-1] != n_rows or np.any(np.diff(bounds) < 0):
            raise ConfigurationError(
                f"Group boundaries must be monotonic and span [0, {n_rows}]"
            )
        bounds.setflags(write=False)
        self._boundaries = bounds
        self.group_column = group_column

    @staticmethod
    def _boundaries_from_column(values: np.ndarray) -> np.ndarray:
        n_rows = len(values)
        if n_rows == 0:
            return np.zeros(1, dtype=np.int64)
        starts = np.flatnonzero(np.r_[True, values[1:] != values[:-1]])
        return np.append(starts, n_rows).astype(np.int64)

    @property
    def frame(self) -> pd.DataFrame:
        return self._frame

    @property
    def num_rows(self) -> int:
        return len(self._frame)

    @property
    def num_groups(self) -> int:
        return len(self._boundaries) - 1

    @property
    def boundaries(self) -> np.ndarray:
        return self._boundaries

    @property
    def group_sizes(self) -> np.ndarray:
        return np.diff(self._boundaries)

    def take(self, indices: Sequence[int]) -> pd.DataFrame:
        """Rows at ``indices`` as a new frame, in the given order."""
        return self._frame.iloc[np.asarray(indices, dtype=np.int64)].reset_index(drop=True)

    def __len__(self) -> int:
        return self.num_rows

    def __repr__(self) -> str:
        return f"Dataset(num_rows={self.num_rows}, num_groups={self.num_groups})"
