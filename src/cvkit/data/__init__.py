"""Dataset containers and loaders."""

from .dataset import Dataset
from .loader import TabularDataLoader

__all__ = ["Dataset", "TabularDataLoader"]
