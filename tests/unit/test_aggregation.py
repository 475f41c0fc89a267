"""Tests for merging per-fold results."""

import numpy as np
import pandas as pd
import pytest

from cvkit.core.schema import DataView, RoleMappedSchema
from cvkit.cv.orchestrator import FoldResult
from cvkit.eval.aggregation import ResultAggregator


def _vector_view(width, rows=5, slots=None, name="Score"):
    cells = pd.Series([np.arange(width, dtype=float) + r for r in range(rows)], dtype=object)
    frame = pd.DataFrame({"Name": np.arange(rows), name: cells})
    slot_names = {name: tuple(slots)} if slots else {}
    return DataView(frame=frame, slot_names=slot_names)


def _result(fold, view):
    metrics = {"OverallMetrics": pd.DataFrame([{"L1": float(fold + 1), "L2": 2.0 * (fold + 1)}])}
    return FoldResult(fold=fold, metrics=metrics, score_schema=view.describe(),
                      per_instance=view, train_schema=RoleMappedSchema())


class TestAppendPerInstance:
    """Test schema reconciliation and concatenation."""

    def test_mismatched_widths_become_variable_length(self, caplog):
        views = [_vector_view(4, rows=3), _vector_view(4, rows=4), _vector_view(6, rows=5)]
        with caplog.at_level("WARNING"):
            merged = ResultAggregator().append_per_instance(views)

        assert merged.num_rows == 12
        assert "Score" not in merged.columns
        assert merged.columns == ["Name", "Score_VarLength"]
        assert [len(cell) for cell in merged.frame["Score_VarLength"]] == [4] * 7 + [6] * 5
        assert "Detected columns of variable length: Score" in caplog.text

    def test_identical_widths_append_directly(self, caplog):
        slots = ("a", "b", "c")
        views = [_vector_view(3, rows=r, slots=slots) for r in (2, 3, 4)]
        with caplog.at_level("WARNING"):
            merged = ResultAggregator().append_per_instance(views)

        assert merged.num_rows == 9
        assert merged.columns == ["Name", "Score"]
        assert merged.slot_names == {"Score": slots}
        assert merged.describe()["Score"].width == 3
        assert "variable length" not in caplog.text

    def test_slot_name_drift_marks_column_variable(self):
        views = [_vector_view(2, slots=("a", "b")), _vector_view(2, slots=("a", "c"))]
        merged = ResultAggregator().append_per_instance(views)
        assert "Score_VarLength" in merged.columns
        assert "Score" not in merged.slot_names

    def test_hidden_columns_are_dropped(self):
        frame = pd.DataFrame({"Name": [0, 1], "Score_001": [9.0, 9.0], "Score": [0.1, 0.2]})
        view = DataView(frame=frame, hidden_columns=frozenset({"Score_001"}))
        merged = ResultAggregator().append_per_instance([view, view])
        assert merged.columns == ["Name", "Score"]

    def test_key_columns_reconciled_to_plain_values(self):
        first = DataView(frame=pd.DataFrame({"k": pd.Categorical(["a", "b"])}))
        second = DataView(frame=pd.DataFrame({"k": pd.Categorical(["c", "b"], categories=["b", "c"])}))
        merged = ResultAggregator().append_per_instance([first, second])

        assert merged.frame["k"].tolist() == ["a", "b", "c", "b"]
        assert not isinstance(merged.frame["k"].dtype, pd.CategoricalDtype)
        assert merged.key_values["k"] == ("a", "b", "c")

    def test_vector_key_columns_use_each_fold_value_space(self):
        def view(codes, values):
            cells = pd.Series([np.array(c) for c in codes], dtype=object)
            return DataView(frame=pd.DataFrame({"k": cells}), key_values={"k": values})

        merged = ResultAggregator().append_per_instance([
            view([[0, 1]], ("x", "y")),
            view([[1, 0]], ("y", "z")),
        ])
        assert [list(cell) for cell in merged.frame["k"]] == [["x", "y"], ["z", "y"]]
        assert merged.key_values["k"] == ("x", "y", "z")


class TestFoldIndex:
    """Test the fold-index column."""

    def test_inserted_after_name_column(self):
        view = DataView(frame=pd.DataFrame({"a": [1], "Name": [0], "Score": [0.5]}))
        out = ResultAggregator(name_column="Name").add_fold_index(view, 3)
        assert out.columns == ["a", "Name", "FoldIndex", "Score"]
        assert out.frame["FoldIndex"].tolist() == [3]

    def test_first_column_is_anchor_without_name(self):
        view = DataView(frame=pd.DataFrame({"a": [1, 2], "Score": [0.5, 0.6]}))
        out = ResultAggregator().add_fold_index(view, 0)
        assert out.columns == ["a", "FoldIndex", "Score"]


class TestCollate:
    """Test output routing."""

    def test_single_collated_file(self, tmp_path):
        results = [_result(i, _vector_view(2, rows=3)) for i in range(3)]
        paths = ResultAggregator(name_column="Name").collate(
            results, tmp_path / "out.csv", collate=True, add_fold_index=True
        )
        assert paths == [tmp_path / "out.csv"]
        written = pd.read_csv(paths[0])
        assert len(written) == 9
        assert list(written.columns) == ["Name", "FoldIndex", "Score.0", "Score.1"]
        assert written["FoldIndex"].tolist() == [0] * 3 + [1] * 3 + [2] * 3

    def test_per_fold_files(self, tmp_path):
        results = [_result(i, _vector_view(2, rows=3)) for i in range(3)]
        paths = ResultAggregator().collate(results, tmp_path / "out.csv", collate=False)
        assert [p.name for p in paths] == ["out.fold000.csv", "out.fold001.csv", "out.fold002.csv"]
        assert all(p.exists() for p in paths)

    def test_variable_length_written_space_separated(self, tmp_path):
        results = [_result(0, _vector_view(2, rows=1)), _result(1, _vector_view(3, rows=1))]
        path, = ResultAggregator().collate(results, tmp_path / "out.tsv")
        written = pd.read_csv(path, sep="\t")
        assert written["Score_VarLength"].tolist() == ["0.0 1.0", "0.0 1.0 2.0"]

    def test_vector_column_missing_from_a_fold(self, tmp_path, caplog):
        with_vector = _vector_view(2, rows=2, name="V")
        without = DataView(frame=pd.DataFrame({"Name": [7, 8]}))
        aggregator = ResultAggregator()
        with caplog.at_level("WARNING"):
            merged = aggregator.append_per_instance([with_vector, without])

        assert merged.columns == ["Name", "V_VarLength"]
        assert "Detected columns of variable length: V" in caplog.text

        path = aggregator.collate([_result(0, with_vector), _result(1, without)], tmp_path / "out.csv")[0]
        written = pd.read_csv(path)
        assert written["V_VarLength"].tolist()[:2] == ["0.0 1.0", "1.0 2.0"]
        assert written["V_VarLength"].iloc[2:].isna().all()

    def test_summarize_metrics(self):
        results = [_result(i, _vector_view(2)) for i in range(2)]
        summary = ResultAggregator().summarize_metrics(results)
        assert list(summary.index) == ["Fold 0", "Fold 1", "Average", "Std"]
        assert summary.loc["Average", "L1"] == pytest.approx(1.5)
        assert summary.loc["Std", "L2"] == pytest.approx(1.0)
