"""Tests for bag / out-of-bag partitions and ensemble leaf scaling."""

from unittest.mock import patch

import numpy as np
import pandas as pd
import pytest
from sklearn.tree import DecisionTreeRegressor

from cvkit.core.config import BaggingConfig
from cvkit.core.exceptions import ConfigurationError
from cvkit.core.schema import RoleMappedData, RoleMappedSchema
from cvkit.data.dataset import Dataset
from cvkit.modeling.bagging import (
    BaggingPartitionProvider,
    Partition,
    RankingBaggingProvider,
    draw_bag,
    next_bag,
)
from cvkit.modeling.ensemble import RegressionTree, TreeEnsemble
from cvkit.modeling.trainers import BaggedTreeTrainer


def _constant_tree(value: float) -> RegressionTree:
    estimator = DecisionTreeRegressor().fit(np.zeros((4, 1)), np.full(4, value))
    return RegressionTree(estimator)


class TestPartition:
    """Test partition bookkeeping."""

    def test_initialize_places_all_documents_in_first_leaf(self):
        partition = Partition(np.array([1, 4, 7]), max_leaves=5).initialize()
        assert partition.leaf_count.tolist() == [3, 0, 0, 0, 0]
        assert partition.leaf_begin.tolist() == [0, 0, 0, 0, 0]
        np.testing.assert_array_equal(partition.documents_in_leaf(0), [1, 4, 7])
        assert len(partition) == 3


class TestRowLevelBagging:
    """Test the row-level provider."""

    @pytest.mark.parametrize("seed", [0, 1, 123])
    @pytest.mark.parametrize("fraction", [0.1, 0.5, 0.9])
    def test_bag_and_oob_partition_rows(self, seed, fraction):
        dataset = Dataset(pd.DataFrame({"x": np.arange(200)}))
        provider = BaggingPartitionProvider(dataset, max_leaves=8, random_seed=seed,
                                            train_fraction=fraction)
        for _ in range(3):
            bag = provider.current_train_partition.documents
            oob = provider.current_out_of_bag_partition.documents
            assert np.intersect1d(bag, oob).size == 0
            np.testing.assert_array_equal(np.sort(np.r_[bag, oob]), np.arange(200))
            assert np.all(np.diff(bag) > 0) and np.all(np.diff(oob) > 0)
            provider.generate_new_bag()

    def test_same_seed_reproduces_bag_sequence(self):
        dataset = Dataset(pd.DataFrame({"x": np.arange(50)}))
        first = BaggingPartitionProvider(dataset, 4, random_seed=7)
        second = BaggingPartitionProvider(dataset, 4, random_seed=7)
        for _ in range(4):
            np.testing.assert_array_equal(first.current_train_partition.documents,
                                          second.current_train_partition.documents)
            first.generate_new_bag()
            second.generate_new_bag()

    def test_one_draw_per_row(self):
        dataset = Dataset(pd.DataFrame({"x": np.arange(30)}))
        rng = np.random.default_rng(5)
        split = draw_bag(rng, dataset, 0.6, 4)

        reference = np.random.default_rng(5).random(31)
        np.testing.assert_array_equal(split.train.documents, np.flatnonzero(reference[:30] < 0.6))
        assert rng.random() == reference[30]

    def test_next_bag_threads_state_explicitly(self):
        dataset = Dataset(pd.DataFrame({"x": np.arange(40)}))
        provider = BaggingPartitionProvider(dataset, 4, random_seed=11)
        state = np.random.default_rng(11).bit_generator.state

        state, first = next_bag(state, dataset, 0.7, 4)
        np.testing.assert_array_equal(first.train.documents, provider.current_train_partition.documents)
        assert state == provider.rng_state

        _, second = next_bag(state, dataset, 0.7, 4)
        provider.generate_new_bag()
        np.testing.assert_array_equal(second.train.documents, provider.current_train_partition.documents)

    @pytest.mark.parametrize("max_leaves,fraction,bag_size", [
        (0, 0.5, 1), (-1, 0.5, 1), (4, 0.0, 1), (4, 1.0, 1), (4, 0.5, 0), (4, 0.5, -2),
    ])
    def test_invalid_arguments_fail_at_construction(self, max_leaves, fraction, bag_size):
        dataset = Dataset(pd.DataFrame({"x": np.arange(5)}))
        with pytest.raises(ConfigurationError):
            BaggingPartitionProvider(dataset, max_leaves, train_fraction=fraction, bag_size=bag_size)


class TestGroupLevelBagging:
    """Test the group-level provider."""

    @pytest.mark.parametrize("seed", [0, 3, 99])
    def test_groups_are_never_split(self, grouped_frame, seed):
        dataset = Dataset(grouped_frame, group_column="GroupId")
        provider = RankingBaggingProvider(dataset, 4, random_seed=seed, train_fraction=0.5)

        bag = provider.current_train_partition.documents
        oob = provider.current_out_of_bag_partition.documents
        np.testing.assert_array_equal(np.sort(np.r_[bag, oob]), np.arange(dataset.num_rows))
        bag_groups = set(grouped_frame["GroupId"].iloc[bag])
        oob_groups = set(grouped_frame["GroupId"].iloc[oob])
        assert not bag_groups & oob_groups
        assert bag_groups == set(provider.current_train_groups)
        assert oob_groups == set(provider.current_out_of_bag_groups)

    def test_one_draw_per_group(self, grouped_frame):
        dataset = Dataset(grouped_frame, group_column="GroupId")
        rng = np.random.default_rng(4)
        split = draw_bag(rng, dataset, 0.5, 4, group_level=True)
        draws = np.random.default_rng(4).random(dataset.num_groups)
        np.testing.assert_array_equal(split.train_groups, np.flatnonzero(draws < 0.5))

    def test_from_config_picks_group_level(self, grouped_frame):
        dataset = Dataset(grouped_frame, group_column="GroupId")
        provider = BaggingPartitionProvider.from_config(dataset, BaggingConfig(group_level=True, bag_size=3))
        assert isinstance(provider, RankingBaggingProvider)
        assert provider.bag_size == 3


class TestScaleEnsembleLeaves:
    """Test the one-shot averaging of bagged trees."""

    def test_bag_count(self):
        assert BaggingPartitionProvider.get_bag_count(8, 2) == 4
        assert BaggingPartitionProvider.get_bag_count(9, 2) == 4
        with pytest.raises(ConfigurationError):
            BaggingPartitionProvider.get_bag_count(8, 0)

    def test_scaling_is_not_idempotent(self):
        ensemble = TreeEnsemble([_constant_tree(8.0)])
        BaggingPartitionProvider.scale_ensemble_leaves(8, 2, ensemble)
        np.testing.assert_allclose(ensemble.get_tree_at(0).leaf_values, [2.0])
        BaggingPartitionProvider.scale_ensemble_leaves(8, 2, ensemble)
        np.testing.assert_allclose(ensemble.get_tree_at(0).leaf_values, [0.5])

    def test_zero_bag_count_raises(self):
        with pytest.raises(ConfigurationError):
            BaggingPartitionProvider.scale_ensemble_leaves(1, 2, TreeEnsemble([_constant_tree(1.0)]))

    def test_trainer_scales_exactly_once(self):
        frame = pd.DataFrame({"x": np.arange(60, dtype=float), "Label": np.full(60, 8.0)})
        data = RoleMappedData.create(frame, RoleMappedSchema(label="Label", features=("x",)))
        trainer = BaggedTreeTrainer(num_trees=4, bag_size=2, max_leaves=4)

        with patch.object(BaggingPartitionProvider, "scale_ensemble_leaves",
                          wraps=BaggingPartitionProvider.scale_ensemble_leaves) as spy:
            predictor = trainer.train(data)

        spy.assert_called_once()
        assert spy.call_args.args[:2] == (4, 2)
        np.testing.assert_allclose(predictor.predict(frame[["x"]].to_numpy()), 8.0)

    def test_trainer_rejects_partial_bags(self):
        with pytest.raises(ConfigurationError):
            BaggedTreeTrainer(num_trees=5, bag_size=2)
