"""Cross-validation: split resolution, fold scheduling and orchestration."""

from .command import CrossValidationCommand, CrossValidationRun
from .folds import (
    DatasetPartitioner,
    FoldPartition,
    SplitColumnResolver,
    SplitKey,
    hash_to_key,
    resolve_split_column,
)
from .orchestrator import FoldOrchestrator, FoldResult
from .scheduling import SequentialFoldExecutor, ThreadPoolFoldExecutor, create_executor

__all__ = [
    "CrossValidationCommand",
    "CrossValidationRun",
    "DatasetPartitioner",
    "FoldPartition",
    "SplitColumnResolver",
    "SplitKey",
    "hash_to_key",
    "resolve_split_column",
    "FoldOrchestrator",
    "FoldResult",
    "SequentialFoldExecutor",
    "ThreadPoolFoldExecutor",
    "create_executor",
]
