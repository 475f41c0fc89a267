"""Writers for per-instance results and metric summaries."""

from __future__ import annotations

from pathlib import Path
from typing import Union

import numpy as np
import pandas as pd

from cvkit.core.schema import VAR_LENGTH_SUFFIX, DataView, is_vector_cell, is_vector_column, vector_width
from cvkit.core.utils import LoggerFactory

logger = LoggerFactory.get_logger(__name__)


def _separator(path: Path) -> str:
    return "\t" if path.suffix.lower() in (".tsv", ".txt") else ","


def flatten_vectors(view: DataView) -> pd.DataFrame:
    """Expand fixed-width vector columns into one column per slot.

    Slot ``j`` of column ``c`` becomes ``c.<slot name>`` (or ``c.j`` without
    slot names). Variable-length vectors are kept as one space-separated
    string column. Rows without a vector leave their cells empty.
    """
    columns = {}
    for name in view.frame.columns:
        series = view.frame[name]
        if not is_vector_column(series):
            columns[name] = series.to_numpy()
            continue
        width = None if name.endswith(VAR_LENGTH_SUFFIX) else vector_width(series)
        if width is None:
            columns[name] = np.array(
                [" ".join(str(v) for v in cell) if is_vector_cell(cell) else "" for cell in series],
                dtype=object,
            )
            continue
        slots = view.slot_names.get(name) or tuple(str(j) for j in range(width))
        matrix = np.vstack([
            np.asarray(cell) if is_vector_cell(cell) else np.full(width, np.nan) for cell in series
        ])
        for j, slot in enumerate(slots):
            columns[f"{name}.{slot}"] = matrix[:, j]
    return pd.DataFrame(columns)


def save_per_instance(view: DataView, path: Union[str, Path]) -> Path:
    """Write a per-instance view to a CSV (or TSV for .tsv/.txt) file."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    flatten_vectors(view).to_csv(path, sep=_separator(path), index=False)
    logger.info(f"Saved {view.num_rows} per-instance rows to {path}")
    return path


def write_summary(summary: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Write a fold-by-fold metrics summary, fold labels as the first column."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    summary.to_csv(path, sep=_separator(path), index=True, index_label="Fold")
    logger.info(f"Saved metrics summary to {path}")
    return path
