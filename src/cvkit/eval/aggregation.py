"""Reconcile and merge per-fold results."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from cvkit.core.schema import VAR_LENGTH_SUFFIX, DataView, SchemaDescriptor, is_vector_cell
from cvkit.core.utils import LoggerFactory, construct_per_fold_name, unique_column_name
from cvkit.eval.metrics import OVERALL_METRICS, summarize_metric_tables
from cvkit.eval.writer import save_per_instance

FOLD_INDEX = "FoldIndex"


class ResultAggregator:
    """Merges per-instance views of all folds and routes them to output files.

    Merging tolerates schema drift between folds: vector columns whose width
    or slot names differ become list-valued ``<name>_VarLength`` columns, and
    key columns are reconciled onto one value space before being converted to
    plain values.
    """

    def __init__(self, name_column: Optional[str] = None, fold_index_column: str = FOLD_INDEX):
        self.name_column = name_column
        self.fold_index_column = fold_index_column
        self.logger = LoggerFactory.get_logger(__name__)

    # ---------------------------
    # Schema reconciliation
    # ---------------------------
    @staticmethod
    def find_variable_length_columns(schemas: Sequence[SchemaDescriptor]) -> List[str]:
        """Vector columns whose width or slot names are not the same in every fold.

        A vector column missing from some folds counts as variable-length.
        """
        first_seen: Dict[str, Tuple[Optional[int], Tuple[str, ...]]] = {}
        variable: List[str] = []
        for schema in schemas:
            for column in schema:
                if not column.is_vector or column.name in variable:
                    continue
                shape = (column.width, column.slot_names)
                if column.width is None:
                    variable.append(column.name)
                elif column.name not in first_seen:
                    first_seen[column.name] = shape
                elif first_seen[column.name] != shape:
                    variable.append(column.name)
        for name in first_seen:
            if name not in variable and not all(name in schema for schema in schemas):
                variable.append(name)
        return variable

    @staticmethod
    def _union_key_values(views: Sequence[DataView], column: str) -> Tuple[Any, ...]:
        values: Dict[Any, None] = {}
        for view in views:
            if column not in view.frame.columns:
                continue
            series = view.frame[column]
            if isinstance(series.dtype, pd.CategoricalDtype):
                values.update(dict.fromkeys(series.cat.categories))
            elif column in view.key_values:
                values.update(dict.fromkeys(view.key_values[column]))
        return tuple(values)

    @staticmethod
    def _key_to_values(view: DataView, column: str) -> pd.Series:
        series = view.frame[column]
        if isinstance(series.dtype, pd.CategoricalDtype):
            return pd.Series(series.to_numpy(dtype=object), index=series.index, name=column)
        if column in view.key_values:
            lookup = np.asarray(view.key_values[column], dtype=object)
            cells = [lookup[np.asarray(cell, dtype=np.int64)] for cell in series]
            return pd.Series(cells, index=series.index, name=column, dtype=object)
        return series

    @staticmethod
    def _to_var_length(frame: pd.DataFrame, column: str) -> pd.DataFrame:
        position = frame.columns.get_loc(column)
        cells = [list(cell) if is_vector_cell(cell) else cell for cell in frame[column]]
        frame = frame.drop(columns=[column])
        frame.insert(position, column + VAR_LENGTH_SUFFIX, pd.Series(cells, index=frame.index, dtype=object))
        return frame

    def append_per_instance(self, views: Sequence[DataView]) -> DataView:
        """Concatenate per-fold views in fold order into one view."""
        if not views:
            return DataView(frame=pd.DataFrame())
        visible = [view.drop_hidden() for view in views]
        schemas = [view.describe() for view in visible]

        variable = self.find_variable_length_columns(schemas)
        if variable:
            self.logger.warning(
                f"Detected columns of variable length: {', '.join(variable)}. "
                "Consider setting collate_metrics to False for meaningful per-fold results."
            )

        key_columns = [c.name for c in schemas[0] if c.is_key]
        key_values = {column: self._union_key_values(visible, column) for column in key_columns}

        frames = []
        for view in visible:
            frame = view.frame.copy()
            for column in key_columns:
                if column in frame.columns:
                    frame[column] = self._key_to_values(view, column)
            for column in variable:
                if column in frame.columns:
                    frame = self._to_var_length(frame, column)
            frames.append(frame)

        merged = pd.concat(frames, axis=0, ignore_index=True, sort=False)
        slot_names = {
            name: slots for name, slots in visible[0].slot_names.items()
            if name not in variable and name in merged.columns
        }
        self.logger.info(f"Merged {len(views)} fold views into {len(merged)} rows")
        return DataView(frame=merged, slot_names=slot_names, key_values=key_values)

    # ---------------------------
    # Fold index and output routing
    # ---------------------------
    def add_fold_index(self, view: DataView, fold: int) -> DataView:
        """Insert a constant fold-index column after the anchor column.

        The anchor is the name column when the view has one, else the first
        column.
        """
        frame = view.frame.copy()
        column = unique_column_name(frame.columns, self.fold_index_column)
        if self.name_column and self.name_column in frame.columns:
            position = frame.columns.get_loc(self.name_column) + 1
        else:
            position = 1 if len(frame.columns) else 0
        frame.insert(position, column, np.full(len(frame), fold, dtype=np.int32))
        return view.with_frame(frame)

    def collate(self, results: Sequence[Any], output_path: Union[str, Path],
                collate: bool = True, add_fold_index: bool = False) -> List[Path]:
        """Write per-instance results to one file, or one file per fold."""
        with_views = [r for r in results if r.per_instance is not None]
        if not with_views:
            self.logger.warning("No per-instance results to write")
            return []

        views = [
            self.add_fold_index(r.per_instance, r.fold) if add_fold_index else r.per_instance
            for r in with_views
        ]
        if collate:
            return [save_per_instance(self.append_per_instance(views), output_path)]

        paths = []
        for result, view in zip(with_views, views):
            path = construct_per_fold_name(output_path, result.fold)
            paths.append(save_per_instance(view.drop_hidden(), path))
        return paths

    def summarize_metrics(self, results: Sequence[Any], table: str = OVERALL_METRICS) -> pd.DataFrame:
        """Fold-by-fold metrics table with Average and Std rows."""
        return summarize_metric_tables([r.metrics[table] for r in results])
