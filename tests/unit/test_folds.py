"""Tests for split-column resolution and fold partitioning."""

import numpy as np
import pandas as pd
import pytest

from cvkit.core.exceptions import ConfigurationError
from cvkit.cv.folds import (
    CONTINUOUS,
    KEY,
    DatasetPartitioner,
    SplitColumnResolver,
    SplitKey,
    hash_to_key,
    resolve_split_column,
)


def _assert_exact_partition(partitions, n_rows):
    seen = np.zeros(n_rows, dtype=int)
    for part in partitions:
        assert np.intersect1d(part.train, part.test).size == 0
        assert len(part.train) + len(part.test) == n_rows
        assert np.all(np.diff(part.test) > 0)
        assert np.all(np.diff(part.train) > 0)
        seen[part.test] += 1
    assert np.all(seen == 1)


class TestSplitColumnResolver:
    """Test how the split column is chosen or built."""

    def test_float_column_is_continuous(self, regression_frame):
        frame, key = resolve_split_column(regression_frame, "Split")
        assert key == SplitKey("Split", CONTINUOUS)
        assert frame is regression_frame

    def test_categorical_column_is_key(self):
        frame = pd.DataFrame({"c": pd.Categorical(["a", "b", "c", "a"])})
        _, key = resolve_split_column(frame, "c")
        assert key.kind == KEY
        assert key.cardinality == 3

    def test_integer_column_is_hashed_to_fresh_column(self, caplog):
        frame = pd.DataFrame({"id": np.arange(50), "id_001": np.zeros(50)})
        with caplog.at_level("INFO"):
            out, key = resolve_split_column(frame, "id")
        assert key.column == "id_002"
        assert key.kind == KEY
        assert key.cardinality == 2 ** 30
        assert out[key.column].between(0, 2 ** 30 - 1).all()
        assert "id_002" not in frame.columns
        assert "Hashing the stratification column" in caplog.text

    def test_missing_column_raises(self, regression_frame):
        with pytest.raises(ConfigurationError, match="does not exist"):
            resolve_split_column(regression_frame, "Nope")

    def test_missing_split_values_raise(self):
        frame = pd.DataFrame({"s": [0.1, np.nan, 0.5]})
        with pytest.raises(ConfigurationError, match="missing"):
            resolve_split_column(frame, "s")

    def test_out_of_range_values_raise(self):
        frame = pd.DataFrame({"s": [0.1, 1.5, 0.5]})
        with pytest.raises(ConfigurationError, match="outside"):
            resolve_split_column(frame, "s")

    def test_categorical_group_column_used_when_no_explicit_column(self):
        frame = pd.DataFrame({"GroupId": pd.Categorical([1, 1, 2, 3]), "x": [0, 1, 2, 3]})
        _, key = SplitColumnResolver(group_column="GroupId").resolve(frame)
        assert key == SplitKey("GroupId", KEY, 3)

    def test_counter_is_synthesized_and_hashed(self):
        frame = pd.DataFrame({"x": range(10), "StratificationColumn": range(10)})
        out, key = SplitColumnResolver().resolve(frame)
        assert key.column == "StratificationColumn_001"
        assert key.cardinality == 2 ** 30
        np.testing.assert_array_equal(out[key.column], hash_to_key(np.arange(10)))

    def test_hash_is_deterministic(self):
        values = np.array(["a", "b", "c"], dtype=object)
        np.testing.assert_array_equal(hash_to_key(values), hash_to_key(values.copy()))


class TestDatasetPartitioner:
    """Test fold assignment."""

    def test_five_folds_over_uniform_key(self, regression_frame):
        partitioner = DatasetPartitioner(regression_frame, SplitKey("Split", CONTINUOUS), 5)
        partitions = partitioner.split_all()

        _assert_exact_partition(partitions, 100)
        for part in partitions:
            assert 60 <= len(part.train) <= 95
        partitioner.validate(partitions)

    def test_continuous_bucket_boundaries(self):
        frame = pd.DataFrame({"s": [0.0, 0.25, 0.49999, 0.5, 0.75, 1.0]})
        partitioner = DatasetPartitioner(frame, SplitKey("s", CONTINUOUS), 2)
        np.testing.assert_array_equal(partitioner.split(0).test, [0, 1, 2])
        np.testing.assert_array_equal(partitioner.split(1).test, [3, 4, 5])

    def test_key_split_by_ordinal(self):
        frame = pd.DataFrame({"k": pd.Categorical(["d", "a", "c", "b"], categories=["a", "b", "c", "d"])})
        partitioner = DatasetPartitioner(frame, SplitKey("k", KEY, 4), 2)
        np.testing.assert_array_equal(partitioner.split(0).test, [1, 3])
        np.testing.assert_array_equal(partitioner.split(1).test, [0, 2])

    def test_hashed_key_partitions_all_rows(self):
        frame, key = resolve_split_column(pd.DataFrame({"x": range(1000)}))
        partitions = DatasetPartitioner(frame, key, 7).split_all()
        _assert_exact_partition(partitions, 1000)
        assert all(len(p.test) > 0 for p in partitions)

    def test_fewer_than_two_folds_raise(self, regression_frame):
        with pytest.raises(ConfigurationError, match="greater than or equal to 2"):
            DatasetPartitioner(regression_frame, SplitKey("Split", CONTINUOUS), 1)

    def test_fold_without_test_rows_raises(self):
        frame = pd.DataFrame({"s": [0.1, 0.2, 0.3]})
        with pytest.raises(ConfigurationError, match="Fold 1 has no test rows"):
            DatasetPartitioner(frame, SplitKey("s", CONTINUOUS), 2)

    def test_fold_out_of_range(self, regression_frame):
        partitioner = DatasetPartitioner(regression_frame, SplitKey("Split", CONTINUOUS), 3)
        with pytest.raises(IndexError):
            partitioner.split(3)
        assert partitioner.get_n_splits() == 3
