from __future__ import annotations

from typing import List, Optional


class CvKitError(Exception):
    """Base exception for cvkit user-facing errors."""


class ConfigurationError(CvKitError, ValueError):
    """Raised for invalid settings detected before any fold executes."""


class SchemaError(CvKitError):
    """Raised when column roles cannot be bound against a schema."""


class FoldExecutionError(CvKitError):
    """Raised when a fold fails in one of its stages.

    The first fault reported is the one with the lowest fold index; ``faults``
    carries every fault that was observed before the run was aborted.
    """

    def __init__(self, fold: int, stage: str, message: str,
                 faults: Optional[List["FoldExecutionError"]] = None):
        super().__init__(f"Fold {fold} failed during {stage}: {message}")
        self.fold = fold
        self.stage = stage
        self.faults: List[FoldExecutionError] = faults if faults is not None else [self]
