"""Tests for column transforms and the tabular data adapter."""

import numpy as np
import pandas as pd
import pytest

from cvkit.core.exceptions import SchemaError
from cvkit.features.adapter import TabularDataAdapter
from cvkit.features.transforms import (
    ColumnDropper,
    FeatureNormalizer,
    MissingValueImputer,
    OneHotEncoderTransform,
    TransformChain,
)
from cvkit.modeling.trainers import BaggedTreeTrainer, RidgeTrainer


class TestTransforms:
    """Test individual transforms."""

    def test_imputer_uses_fitting_rows_only(self):
        train = pd.DataFrame({"a": [1.0, np.nan, 3.0], "c": ["x", "x", None]})
        test = pd.DataFrame({"a": [np.nan], "c": [None]})
        imputer = MissingValueImputer(strategy="median").fit(train)
        out = imputer.transform(test)
        assert out["a"].tolist() == [2.0]
        assert out["c"].tolist() == ["x"]

    def test_one_hot_unseen_category_is_all_zero(self):
        encoder = OneHotEncoderTransform(["c"]).fit(pd.DataFrame({"c": ["a", "b"]}))
        out = encoder.transform(pd.DataFrame({"c": ["b", "z"]}))
        assert list(out.columns) == ["c_a", "c_b"]
        assert out.to_numpy().tolist() == [[0, 1], [0, 0]]
        assert encoder.get_feature_names() == ["c_a", "c_b"]

    def test_dropper_ignores_absent_columns(self):
        out = ColumnDropper(["a", "zzz"]).fit_transform(pd.DataFrame({"a": [1], "b": [2]}))
        assert list(out.columns) == ["b"]

    def test_transform_before_fit_raises(self):
        with pytest.raises(ValueError, match="fitted"):
            FeatureNormalizer(["a"]).transform(pd.DataFrame({"a": [1.0]}))

    def test_rejects_non_frame_input(self):
        with pytest.raises(TypeError):
            ColumnDropper(["a"]).fit(np.zeros((2, 2)))

    def test_chain_applies_in_order(self):
        chain = TransformChain([
            MissingValueImputer(["a"], strategy="mean"),
            FeatureNormalizer(["a"], method="minmax"),
        ])
        out = chain.fit_transform(pd.DataFrame({"a": [0.0, np.nan, 4.0]}))
        assert out["a"].tolist() == [0.0, 0.5, 1.0]
        assert len(chain) == 2


class TestTabularDataAdapter:
    """Test role binding and per-fold fitting."""

    def test_default_features_are_numeric_non_role_columns(self):
        frame = pd.DataFrame({
            "Label": [1.0, 2.0], "Weight": [1.0, 1.0], "Name": [0, 1],
            "x": [0.1, 0.2], "txt": ["a", "b"], "cat": pd.Categorical(["u", "v"]),
            "StratificationColumn": [5, 6],
        })
        adapter = TabularDataAdapter(weight_column="Weight", name_column="Name",
                                     group_column="GroupId", normalize_features="no",
                                     exclude_columns=["StratificationColumn"])
        data = adapter.create_role_mapped_data(frame, RidgeTrainer())
        assert data.schema.features == ("x",)
        assert data.schema.weight == "Weight"
        assert data.schema.group is None

    def test_auto_normalization_follows_trainer(self, regression_frame):
        adapter = TabularDataAdapter(exclude_columns=["Split"])
        normalized = adapter.create_role_mapped_data(regression_frame, RidgeTrainer())
        raw = adapter.create_role_mapped_data(regression_frame, BaggedTreeTrainer())

        assert isinstance(normalized.transforms[-1], FeatureNormalizer)
        assert normalized.frame["x1"].mean() == pytest.approx(0.0, abs=1e-12)
        assert raw.transforms == ()
        pd.testing.assert_series_equal(raw.frame["x1"], regression_frame["x1"])

    def test_transforms_fit_on_train_rows_and_replay(self, regression_frame):
        template = FeatureNormalizer(["x1"])
        adapter = TabularDataAdapter(exclude_columns=["Split"], transforms=[template],
                                     normalize_features="no")
        train, test = regression_frame.iloc[:50], regression_frame.iloc[50:]

        train_data = adapter.create_role_mapped_data(train, RidgeTrainer())
        test_data = adapter.apply_transforms(test, train_data)

        assert not template.is_fitted
        fitted = train_data.transforms[0]
        expected = (test["x1"] - train["x1"].mean()) / train["x1"].std(ddof=0)
        np.testing.assert_allclose(test_data.frame["x1"], expected)
        assert fitted.scaler_.n_samples_seen_ == 50

    def test_test_rows_without_label_keep_remaining_roles(self, regression_frame):
        adapter = TabularDataAdapter(exclude_columns=["Split"], normalize_features="no")
        train_data = adapter.create_role_mapped_data(regression_frame, RidgeTrainer())
        test_data = adapter.apply_transforms(regression_frame.drop(columns=["Label"]), train_data)
        assert test_data.schema.label is None
        assert test_data.schema.features == ("x1", "x2", "x3")

    def test_missing_explicit_feature_raises(self, regression_frame):
        adapter = TabularDataAdapter(feature_columns=["x1", "nope"], normalize_features="no")
        with pytest.raises(SchemaError, match="nope"):
            adapter.create_role_mapped_data(regression_frame, RidgeTrainer())

    def test_unknown_normalization_option(self):
        with pytest.raises(ValueError):
            TabularDataAdapter(normalize_features="sometimes")
