"""Data loading for cross-validation inputs."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import pandas as pd

from cvkit.core.utils import LoggerFactory


class TabularDataLoader:
    """Loads delimited text files into DataFrames."""

    def __init__(self, sep: Optional[str] = None):
        self.sep = sep
        self.logger = LoggerFactory.get_logger(__name__)

    def load(self, path: Union[str, Path]) -> pd.DataFrame:
        """Load data from a CSV or TSV file."""
        file_path = Path(path)
        if not file_path.exists():
            raise FileNotFoundError(f"Data file not found: {file_path}")

        sep = self.sep or ("\t" if file_path.suffix.lower() in (".tsv", ".txt") else ",")
        try:
            df = pd.read_csv(file_path, sep=sep)
        except Exception as e:
            self.logger.error(f"Failed to load {file_path}: {e}")
            raise
        self.logger.info(f"Loaded data from {file_path}: {df.shape}")
        return df
