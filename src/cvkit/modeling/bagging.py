"""Bag / out-of-bag partitions for ensemble tree training.

Every bag is drawn from one ``numpy.random.Generator`` that is threaded
explicitly through the provider. Draws are consumed in row (or group) order,
so the sequence of bags depends only on the seed and the number of calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np

from cvkit.core.config import BaggingConfig
from cvkit.core.exceptions import ConfigurationError
from cvkit.core.utils import LoggerFactory
from cvkit.data.dataset import Dataset
from cvkit.modeling.ensemble import TreeEnsemble


class Partition:
    """Row indices handed to a tree learner, with per-leaf bookkeeping.

    ``documents`` is ascending. After ``initialize`` all documents sit in
    leaf 0; a learner splitting leaves rewrites ``leaf_begin``/``leaf_count``.
    """

    def __init__(self, documents: np.ndarray, max_leaves: int):
        self.documents = np.asarray(documents, dtype=np.int64)
        self.max_leaves = max_leaves
        self.leaf_begin = np.zeros(max_leaves, dtype=np.int64)
        self.leaf_count = np.zeros(max_leaves, dtype=np.int64)

    def initialize(self) -> "Partition":
        self.leaf_begin[:] = 0
        self.leaf_count[:] = 0
        self.leaf_count[0] = len(self.documents)
        return self

    @property
    def num_documents(self) -> int:
        return len(self.documents)

    def documents_in_leaf(self, leaf: int) -> np.ndarray:
        begin = self.leaf_begin[leaf]
        return self.documents[begin:begin + self.leaf_count[leaf]]

    def __len__(self) -> int:
        return self.num_documents

    def __repr__(self) -> str:
        return f"Partition(num_documents={self.num_documents}, max_leaves={self.max_leaves})"


@dataclass(frozen=True)
class BagSplit:
    """One bag and its out-of-bag complement."""

    train: Partition
    out_of_bag: Partition
    train_groups: Optional[np.ndarray] = None
    out_of_bag_groups: Optional[np.ndarray] = None


def _check_bagging_args(max_leaves: int, train_fraction: float, bag_size: int) -> None:
    if max_leaves <= 0:
        raise ConfigurationError(f"max_leaves must be positive, got {max_leaves}")
    if not 0.0 < train_fraction < 1.0:
        raise ConfigurationError(f"train_fraction must be in (0, 1), got {train_fraction}")
    if bag_size <= 0:
        raise ConfigurationError(f"bag_size must be positive, got {bag_size}")


def draw_bag(rng: np.random.Generator, dataset: Dataset, train_fraction: float,
             max_leaves: int, group_level: bool = False) -> BagSplit:
    """Draw one bag.

    Row level takes one uniform draw per row; group level takes one draw per
    group and moves all rows of the group together. A unit goes to the bag
    when its draw is below ``train_fraction``.
    """
    if group_level:
        draws = rng.random(dataset.num_groups)
        groups_in = draws < train_fraction
        rows_in = np.repeat(groups_in, dataset.group_sizes)
        train_groups = np.flatnonzero(groups_in)
        oob_groups = np.flatnonzero(~groups_in)
    else:
        rows_in = rng.random(dataset.num_rows) < train_fraction
        train_groups = oob_groups = None

    return BagSplit(
        train=Partition(np.flatnonzero(rows_in), max_leaves).initialize(),
        out_of_bag=Partition(np.flatnonzero(~rows_in), max_leaves).initialize(),
        train_groups=train_groups,
        out_of_bag_groups=oob_groups,
    )


def next_bag(rng_state: Dict[str, Any], dataset: Dataset, train_fraction: float,
             max_leaves: int, group_level: bool = False) -> Tuple[Dict[str, Any], BagSplit]:
    """Pure form of ``draw_bag``: (generator state) -> (new state, bag)."""
    bit_generator = np.random.PCG64()
    bit_generator.state = rng_state
    split = draw_bag(np.random.Generator(bit_generator), dataset, train_fraction,
                     max_leaves, group_level)
    return bit_generator.state, split


class BaggingPartitionProvider:
    """Row-level bag provider; draws the first bag on construction."""

    group_level = False

    def __init__(self, dataset: Dataset, max_leaves: int, random_seed: int = 123,
                 train_fraction: float = 0.7, bag_size: int = 1,
                 rng: Optional[np.random.Generator] = None):
        _check_bagging_args(max_leaves, train_fraction, bag_size)
        self.dataset = dataset
        self.max_leaves = max_leaves
        self.train_fraction = train_fraction
        self.bag_size = bag_size
        self._rng = rng if rng is not None else np.random.default_rng(random_seed)
        self.logger = LoggerFactory.get_logger(__name__)
        self._current: Optional[BagSplit] = None
        self.generate_new_bag()

    @classmethod
    def from_config(cls, dataset: Dataset, config: BaggingConfig,
                    rng: Optional[np.random.Generator] = None) -> "BaggingPartitionProvider":
        """Provider of the right level for ``config``."""
        provider_cls = RankingBaggingProvider if config.group_level else BaggingPartitionProvider
        return provider_cls(dataset, config.max_leaves, random_seed=config.random_seed,
                            train_fraction=config.train_fraction, bag_size=config.bag_size,
                            rng=rng)

    @property
    def rng_state(self) -> Dict[str, Any]:
        return self._rng.bit_generator.state

    def generate_new_bag(self) -> BagSplit:
        self._current = draw_bag(self._rng, self.dataset, self.train_fraction,
                                 self.max_leaves, self.group_level)
        self.logger.debug(
            f"Drew bag: {self._current.train.num_documents} in bag, "
            f"{self._current.out_of_bag.num_documents} out of bag"
        )
        return self._current

    @property
    def current_bag(self) -> BagSplit:
        return self._current

    @property
    def current_train_partition(self) -> Partition:
        return self._current.train

    @property
    def current_out_of_bag_partition(self) -> Partition:
        return self._current.out_of_bag

    @staticmethod
    def get_bag_count(num_trees: int, bag_size: int) -> int:
        if bag_size <= 0:
            raise ConfigurationError(f"bag_size must be positive, got {bag_size}")
        return num_trees // bag_size

    @classmethod
    def scale_ensemble_leaves(cls, num_trees: int, bag_size: int, ensemble: TreeEnsemble) -> None:
        """Divide every tree's outputs by the bag count.

        Not idempotent: call once per trained ensemble.
        """
        bag_count = cls.get_bag_count(num_trees, bag_size)
        if bag_count == 0:
            raise ConfigurationError(
                f"No complete bag: {num_trees} trees with bag_size {bag_size}"
            )
        for tree in ensemble:
            tree.scale_outputs_by(1.0 / bag_count)


class RankingBaggingProvider(BaggingPartitionProvider):
    """Group-level bag provider; a group is never split across bag and OOB."""

    group_level = True

    @property
    def current_train_groups(self) -> np.ndarray:
        return self._current.train_groups

    @property
    def current_out_of_bag_groups(self) -> np.ndarray:
        return self._current.out_of_bag_groups
