"""Core interfaces, schemas, configuration and utilities."""

from .config import (
    BaggingConfig,
    ComponentConfig,
    CrossValidationConfig,
    FaultPolicy,
    load_bagging_config,
    load_cv_config,
)
from .exceptions import ConfigurationError, CvKitError, FoldExecutionError, SchemaError
from .interfaces import (
    IDataAdapter,
    IEvaluator,
    IFoldExecutor,
    IPredictor,
    IScorer,
    ITrainer,
    ITransformer,
)
from .schema import ColumnDescriptor, DataView, RoleMappedData, RoleMappedSchema, SchemaDescriptor
from .utils import ConfigManager, LoggerFactory, Timer, construct_per_fold_name

__all__ = [
    "BaggingConfig",
    "ComponentConfig",
    "CrossValidationConfig",
    "FaultPolicy",
    "load_bagging_config",
    "load_cv_config",
    "ConfigurationError",
    "CvKitError",
    "FoldExecutionError",
    "SchemaError",
    "IDataAdapter",
    "IEvaluator",
    "IFoldExecutor",
    "IPredictor",
    "IScorer",
    "ITrainer",
    "ITransformer",
    "ColumnDescriptor",
    "DataView",
    "RoleMappedData",
    "RoleMappedSchema",
    "SchemaDescriptor",
    "ConfigManager",
    "LoggerFactory",
    "Timer",
    "construct_per_fold_name",
]
