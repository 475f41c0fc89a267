"""Configuration schemas for cross-validation and bagging runs."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator

from cvkit.core.exceptions import ConfigurationError
from cvkit.core.utils import ConfigManager


class FaultPolicy(str, Enum):
    """How the fold executor reacts when a fold raises."""

    FAIL_FAST = "fail_fast"
    COLLECT_ALL = "collect_all"


class ComponentConfig(BaseModel):
    """A registered component referenced by name, with constructor params."""

    name: str = Field(..., description="Registry name of the component")
    params: Dict[str, Any] = Field(default_factory=dict, description="Constructor parameters")


class CrossValidationConfig(BaseModel):
    """Schema for a k-fold cross-validation run."""

    model_config = {'protected_namespaces': ()}

    num_folds: int = Field(2, description="Number of folds in k-fold cross-validation")
    use_threads: bool = Field(True, description="Run folds concurrently on worker threads")
    max_workers: Optional[int] = Field(None, description="Worker thread cap; defaults to num_folds")
    fault_policy: FaultPolicy = Field(FaultPolicy.FAIL_FAST, description="Fold fault policy")

    trainer: ComponentConfig = Field(default_factory=lambda: ComponentConfig(name="ridge"))
    scorer: Optional[ComponentConfig] = Field(None, description="Scorer; inferred from predictor when unset")
    evaluator: Optional[ComponentConfig] = Field(None, description="Evaluator; inferred from predictor when unset")

    label_column: Optional[str] = Field("Label", description="Column to use for labels")
    feature_columns: Optional[List[str]] = Field(None, description="Feature columns; numeric non-role columns when unset")
    weight_column: Optional[str] = Field("Weight", description="Column to use for example weight")
    group_column: Optional[str] = Field("GroupId", description="Column to use for grouping")
    name_column: Optional[str] = Field("Name", description="Name column")
    stratification_column: Optional[str] = Field(None, description="Column to use for stratification")
    custom_columns: Dict[str, str] = Field(default_factory=dict, description="Custom role -> column name")

    normalize_features: Literal["auto", "yes", "no"] = Field("auto", description="Feature normalization option")
    pre_transforms: List[ComponentConfig] = Field(default_factory=list, description="Transforms applied before splitting")
    transforms: List[ComponentConfig] = Field(default_factory=list, description="Transforms fitted per fold on train data")

    validation_file: Optional[str] = Field(None, description="The validation data file")
    input_model_file: Optional[str] = Field(None, description="Model file holding a predictor to continue from")
    continue_train: bool = Field(False, description="Use the input model as the initial model state")
    output_model_file: Optional[str] = Field(None, description="Base path for per-fold model files")

    output_data_file: Optional[str] = Field(None, description="File to save per-instance predictions and metrics to")
    output_example_fold_index: bool = Field(False, description="Add the fold index to per-instance output")
    collate_metrics: bool = Field(True, description="Collate per-instance output or store it in per-fold files")
    summary_filename: Optional[str] = Field(None, description="Results summary filename")

    @field_validator("num_folds")
    @classmethod
    def _check_num_folds(cls, value: int) -> int:
        if value < 2:
            raise ValueError("Number of folds must be greater than or equal to 2.")
        return value

    @field_validator("max_workers")
    @classmethod
    def _check_max_workers(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value < 1:
            raise ValueError("max_workers must be positive")
        return value

    @property
    def save_per_instance(self) -> bool:
        return bool(self.output_data_file and self.output_data_file.strip())

    def to_dict(self, include_none: bool = False) -> dict:
        """Return this config as a plain dictionary."""
        return self.model_dump(mode="json", exclude_none=not include_none)


class BaggingConfig(BaseModel):
    """Schema for bag/out-of-bag partition generation."""

    train_fraction: float = Field(0.7, description="Fraction of rows (or groups) drawn into each bag")
    random_seed: int = Field(123, description="Seed of the bagging random stream")
    max_leaves: int = Field(20, description="Maximum number of leaves per tree; sizes partitions")
    bag_size: int = Field(1, description="Number of consecutive trees trained on the same bag")
    group_level: bool = Field(False, description="Bag whole groups instead of rows")

    @field_validator("train_fraction")
    @classmethod
    def _check_fraction(cls, value: float) -> float:
        if not 0.0 < value < 1.0:
            raise ValueError("train_fraction must be in the open interval (0, 1)")
        return value

    @field_validator("max_leaves", "bag_size")
    @classmethod
    def _check_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be positive")
        return value


def _validate(schema, data: Dict[str, Any]):
    try:
        return schema(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {schema.__name__}: {e}") from e


def load_cv_config(source: Union[str, Path, Dict[str, Any]],
                   config_manager: Optional[ConfigManager] = None) -> CrossValidationConfig:
    """Build a CrossValidationConfig from a mapping or a YAML file.

    A YAML file may either hold the settings at top level or under a ``cv`` key.
    """
    if isinstance(source, dict):
        data = source
    else:
        manager = config_manager or ConfigManager()
        data = manager.load_config(source)
    data = data.get("cv", data)
    return _validate(CrossValidationConfig, data)


def load_bagging_config(source: Union[str, Path, Dict[str, Any]],
                        config_manager: Optional[ConfigManager] = None) -> BaggingConfig:
    """Build a BaggingConfig from a mapping or a YAML file (optionally under ``bagging``)."""
    if isinstance(source, dict):
        data = source
    else:
        manager = config_manager or ConfigManager()
        data = manager.load_config(source)
    data = data.get("bagging", data)
    return _validate(BaggingConfig, data)
