"""Fold model artifacts stored with joblib."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Tuple, Union

import joblib

from cvkit.core.interfaces import IPredictor
from cvkit.core.schema import RoleMappedData, RoleMappedSchema
from cvkit.core.utils import LoggerFactory

logger = LoggerFactory.get_logger(__name__)


@dataclass(frozen=True)
class ModelArtifact:
    """A trained predictor with the role schema and transforms it was trained with."""

    predictor: IPredictor
    schema: RoleMappedSchema
    transforms: Tuple[Any, ...] = ()


def save_model(path: Union[str, Path], predictor: IPredictor, train_data: RoleMappedData) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(ModelArtifact(predictor, train_data.schema, tuple(train_data.transforms)), path)
    logger.info(f"Saved model to {path}")
    return path


def load_model(path: Union[str, Path]) -> ModelArtifact:
    """Load a model artifact; a bare pickled predictor is accepted too."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Model file not found: {path}")
    loaded = joblib.load(path)
    if isinstance(loaded, IPredictor):
        return ModelArtifact(loaded, RoleMappedSchema())
    return loaded
