"""Role binding and per-fold column transforms."""

from .adapter import TabularDataAdapter
from .transforms import (
    ColumnDropper,
    FeatureNormalizer,
    MissingValueImputer,
    OneHotEncoderTransform,
    TransformChain,
)

__all__ = [
    "TabularDataAdapter",
    "ColumnDropper",
    "FeatureNormalizer",
    "MissingValueImputer",
    "OneHotEncoderTransform",
    "TransformChain",
]
