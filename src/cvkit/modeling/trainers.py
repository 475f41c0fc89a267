"""Reference trainers and predictors backed by scikit-learn."""

from __future__ import annotations

import copy
from abc import abstractmethod
from typing import Any, List, Optional, Sequence

import numpy as np
from sklearn.base import BaseEstimator
from sklearn.ensemble import RandomForestClassifier
from sklearn.linear_model import LogisticRegression, Ridge
from sklearn.tree import DecisionTreeRegressor

from cvkit.core.exceptions import ConfigurationError, SchemaError
from cvkit.core.interfaces import BINARY, MULTICLASS, REGRESSION, IPredictor, ITrainer
from cvkit.core.schema import RoleMappedData
from cvkit.core.utils import LoggerFactory
from cvkit.data.dataset import Dataset
from cvkit.modeling.bagging import BaggingPartitionProvider, RankingBaggingProvider
from cvkit.modeling.ensemble import RegressionTree, TreeEnsemble


class SklearnPredictor(IPredictor):
    """Predictor wrapping a fitted sklearn estimator."""

    def __init__(self, estimator: BaseEstimator, kind: str, feature_names: Sequence[str]):
        self.estimator = estimator
        self.kind = kind
        self.feature_names = list(feature_names)

    def predict(self, X: np.ndarray) -> np.ndarray:
        if self.kind == REGRESSION:
            return self.estimator.predict(X)
        if self.kind == BINARY:
            if hasattr(self.estimator, "decision_function"):
                return self.estimator.decision_function(X)
            return self.estimator.predict_proba(X)[:, 1]
        return self.estimator.predict_proba(X)

    def predict_proba(self, X: np.ndarray) -> np.ndarray:
        if self.kind == REGRESSION:
            return super().predict_proba(X)
        return self.estimator.predict_proba(X)

    @property
    def classes(self) -> List[Any]:
        return list(getattr(self.estimator, "classes_", []))


class TreeEnsemblePredictor(IPredictor):
    """Regression predictor summing the outputs of a tree ensemble."""

    kind = REGRESSION

    def __init__(self, ensemble: TreeEnsemble, feature_names: Sequence[str]):
        self.ensemble = ensemble
        self.feature_names = list(feature_names)

    def predict(self, X: np.ndarray) -> np.ndarray:
        return self.ensemble.predict(X)


def _label_values(data: RoleMappedData) -> np.ndarray:
    label = data.label()
    if label is None:
        raise SchemaError("Training requires a label column")
    return label.to_numpy()


class SklearnTrainer(ITrainer):
    """Base trainer: builds an sklearn estimator from defaults plus params."""

    default_params: dict = {}
    supports_continued_training = False

    def __init__(self, **params):
        self.params = params
        self.logger = LoggerFactory.get_logger(self.__class__.__name__)

    @abstractmethod
    def _create_estimator(self, **params) -> BaseEstimator:
        """Create the actual sklearn estimator instance."""
        pass

    def _kind_for(self, y: np.ndarray) -> str:
        return REGRESSION

    def train(self, train_data: RoleMappedData,
              validation_data: Optional[RoleMappedData] = None,
              prior_predictor: Optional[IPredictor] = None) -> IPredictor:
        X = train_data.features()
        y = _label_values(train_data)
        kind = self._kind_for(y)

        if prior_predictor is not None and self.supports_continued_training:
            estimator = copy.deepcopy(prior_predictor.estimator)
            estimator.set_params(warm_start=True, **self.params)
            self.logger.info("Continuing training from the input model")
        else:
            params = dict(self.default_params)
            params.update(self.params)
            estimator = self._create_estimator(**params)

        estimator.fit(X, y, sample_weight=train_data.weights())
        self.logger.info(f"Fitted {estimator.__class__.__name__} on {len(X)} samples")
        return SklearnPredictor(estimator, kind, train_data.schema.features)


class RidgeTrainer(SklearnTrainer):
    """Ridge regression."""

    default_params = {"alpha": 1.0}
    needs_normalization = True

    def _create_estimator(self, **params) -> BaseEstimator:
        return Ridge(**params)


class _ClassifierTrainer(SklearnTrainer):

    def _kind_for(self, y: np.ndarray) -> str:
        n_classes = len(np.unique(y))
        if n_classes < 2:
            raise SchemaError("Classification requires at least two label values")
        return BINARY if n_classes == 2 else MULTICLASS


class LogisticTrainer(_ClassifierTrainer):
    """Logistic regression for binary or multiclass labels."""

    default_params = {"random_state": 42, "max_iter": 1000, "C": 1.0}
    needs_normalization = True
    supports_continued_training = True

    def _create_estimator(self, **params) -> BaseEstimator:
        return LogisticRegression(**params)


class RandomForestTrainer(_ClassifierTrainer):
    """Random forest classifier."""

    default_params = {"n_estimators": 100, "random_state": 42, "min_samples_leaf": 1}

    def _create_estimator(self, **params) -> BaseEstimator:
        return RandomForestClassifier(**params)


class BaggedTreeTrainer(ITrainer):
    """Regression trees trained on bags drawn by a bagging provider.

    Each run of ``bag_size`` consecutive trees shares one bag and is boosted
    on that bag's residuals; the final ensemble is averaged over bags by
    scaling every tree's leaves once.
    """

    supports_validation = True

    def __init__(self, num_trees: int = 20, bag_size: int = 1, max_leaves: int = 20,
                 train_fraction: float = 0.7, random_seed: int = 123,
                 group_level: bool = False, min_samples_leaf: int = 1):
        if max_leaves < 2:
            raise ConfigurationError("max_leaves must be at least 2 for tree training")
        if bag_size <= 0 or num_trees % bag_size:
            raise ConfigurationError(
                f"num_trees ({num_trees}) must be a positive multiple of bag_size ({bag_size})"
            )
        self.num_trees = num_trees
        self.bag_size = bag_size
        self.max_leaves = max_leaves
        self.train_fraction = train_fraction
        self.random_seed = random_seed
        self.group_level = group_level
        self.min_samples_leaf = min_samples_leaf
        self.logger = LoggerFactory.get_logger(self.__class__.__name__)

    def _create_provider(self, data: RoleMappedData) -> BaggingPartitionProvider:
        if self.group_level:
            if not data.schema.group:
                raise SchemaError("Group-level bagging requires a group column")
            dataset = Dataset(data.frame, group_column=data.schema.group)
            return RankingBaggingProvider(dataset, self.max_leaves, random_seed=self.random_seed,
                                          train_fraction=self.train_fraction,
                                          bag_size=self.bag_size)
        return BaggingPartitionProvider(Dataset(data.frame), self.max_leaves,
                                        random_seed=self.random_seed,
                                        train_fraction=self.train_fraction,
                                        bag_size=self.bag_size)

    def train(self, train_data: RoleMappedData,
              validation_data: Optional[RoleMappedData] = None,
              prior_predictor: Optional[IPredictor] = None) -> IPredictor:
        X = train_data.features()
        y = _label_values(train_data).astype(float)
        weights = train_data.weights()
        provider = self._create_provider(train_data)

        ensemble = TreeEnsemble()
        for t in range(self.num_trees):
            if t % self.bag_size == 0:
                if t > 0:
                    provider.generate_new_bag()
                rows = provider.current_train_partition.documents
                target = y[rows].copy()
            estimator = DecisionTreeRegressor(max_leaf_nodes=self.max_leaves,
                                              min_samples_leaf=self.min_samples_leaf,
                                              random_state=self.random_seed)
            estimator.fit(X[rows], target,
                          sample_weight=weights[rows] if weights is not None else None)
            tree = RegressionTree(estimator)
            target = target - tree.predict(X[rows])
            ensemble.add_tree(tree)

        provider.scale_ensemble_leaves(self.num_trees, self.bag_size, ensemble)
        predictor = TreeEnsemblePredictor(ensemble, train_data.schema.features)
        self.logger.info(f"Trained {ensemble.num_trees} trees on {len(X)} samples")

        if validation_data is not None:
            residual = predictor.predict(validation_data.features()) - \
                _label_values(validation_data).astype(float)
            self.logger.info(f"Validation RMSE: {np.sqrt(np.mean(residual ** 2)):.4f}")
        return predictor
