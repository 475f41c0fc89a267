"""Regression tree ensembles with scalable leaf outputs."""

from __future__ import annotations

from typing import Iterable, List, Optional

import numpy as np
from sklearn.tree import DecisionTreeRegressor


class RegressionTree:
    """A fitted sklearn regression tree whose node outputs can be rescaled.

    Outputs are held in a private copy of the tree's node values so that
    rescaling never touches the underlying estimator.
    """

    def __init__(self, estimator: DecisionTreeRegressor):
        self.estimator = estimator
        self._node_values = estimator.tree_.value[:, 0, 0].astype(float).copy()
        self._is_leaf = estimator.tree_.children_left == -1

    @property
    def num_leaves(self) -> int:
        return int(self._is_leaf.sum())

    @property
    def leaf_values(self) -> np.ndarray:
        return self._node_values[self._is_leaf].copy()

    def scale_outputs_by(self, factor: float) -> None:
        self._node_values *= factor

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self._node_values[self.estimator.apply(X)]


class TreeEnsemble:
    """An additive ensemble: the prediction is the sum of tree outputs."""

    def __init__(self, trees: Optional[Iterable[RegressionTree]] = None):
        self._trees: List[RegressionTree] = list(trees or [])

    @property
    def num_trees(self) -> int:
        return len(self._trees)

    def add_tree(self, tree: RegressionTree) -> None:
        self._trees.append(tree)

    def get_tree_at(self, index: int) -> RegressionTree:
        return self._trees[index]

    def __iter__(self):
        return iter(self._trees)

    def predict(self, X: np.ndarray) -> np.ndarray:
        output = np.zeros(len(X), dtype=float)
        for tree in self._trees:
            output += tree.predict(X)
        return output
