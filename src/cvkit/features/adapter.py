"""Binds column roles and fits per-fold transforms on training rows."""

from __future__ import annotations

import copy
from typing import Dict, List, Optional, Sequence

import pandas as pd
from pandas.api.types import is_numeric_dtype

from cvkit.core.interfaces import IDataAdapter, ITrainer, ITransformer
from cvkit.core.schema import RoleMappedData, RoleMappedSchema
from cvkit.core.utils import LoggerFactory
from cvkit.features.transforms import FeatureNormalizer


class TabularDataAdapter(IDataAdapter):
    """Role binding over pandas frames.

    Transforms are templates: each fold fits its own deep copy on that fold's
    training rows, and the fitted copies are replayed on test and validation
    rows, so nothing learned from held-out rows leaks into training.
    """

    def __init__(self, label_column: Optional[str] = "Label",
                 feature_columns: Optional[Sequence[str]] = None,
                 weight_column: Optional[str] = None,
                 group_column: Optional[str] = None,
                 name_column: Optional[str] = None,
                 custom_columns: Optional[Dict[str, str]] = None,
                 transforms: Sequence[ITransformer] = (),
                 normalize_features: str = "auto",
                 exclude_columns: Sequence[str] = ()):
        if normalize_features not in ("auto", "yes", "no"):
            raise ValueError(f"Unknown normalization option '{normalize_features}'")
        self.label_column = label_column
        self.feature_columns = list(feature_columns) if feature_columns is not None else None
        self.weight_column = weight_column
        self.group_column = group_column
        self.name_column = name_column
        self.custom_columns = dict(custom_columns or {})
        self.transforms = list(transforms)
        self.normalize_features = normalize_features
        self.exclude_columns = set(exclude_columns)
        self.logger = LoggerFactory.get_logger(__name__)

    @classmethod
    def from_config(cls, config, transforms: Sequence[ITransformer] = (),
                    exclude_columns: Sequence[str] = ()) -> "TabularDataAdapter":
        return cls(
            label_column=config.label_column,
            feature_columns=config.feature_columns,
            weight_column=config.weight_column,
            group_column=config.group_column,
            name_column=config.name_column,
            custom_columns=config.custom_columns,
            transforms=transforms,
            normalize_features=config.normalize_features,
            exclude_columns=exclude_columns,
        )

    def _resolve_roles(self, frame: pd.DataFrame) -> RoleMappedSchema:
        columns = set(frame.columns)

        def present(column: Optional[str]) -> Optional[str]:
            return column if column and column in columns else None

        label = present(self.label_column)
        weight = present(self.weight_column)
        group = present(self.group_column)
        name = present(self.name_column)
        custom = tuple((role, col) for role, col in self.custom_columns.items())

        if self.feature_columns is not None:
            features = tuple(self.feature_columns)
        else:
            taken = {label, weight, group, name} | {c for _, c in custom} | self.exclude_columns
            features = tuple(
                c for c in frame.columns
                if c not in taken and is_numeric_dtype(frame[c])
                and not isinstance(frame[c].dtype, pd.CategoricalDtype)
            )
        return RoleMappedSchema(label=label, features=features, weight=weight,
                                group=group, name=name, custom=custom)

    def create_role_mapped_data(self, frame: pd.DataFrame, trainer: ITrainer) -> RoleMappedData:
        y = frame[self.label_column] if self.label_column in frame.columns else None
        fitted: List[ITransformer] = []
        current = frame
        for template in self.transforms:
            transform = copy.deepcopy(template)
            current = transform.fit_transform(current, y)
            fitted.append(transform)

        schema = self._resolve_roles(current)
        normalize = self.normalize_features == "yes" or (
            self.normalize_features == "auto" and trainer.needs_normalization
        )
        if normalize and schema.features:
            schema.check(current.columns)
            normalizer = FeatureNormalizer(list(schema.features))
            current = normalizer.fit_transform(current)
            fitted.append(normalizer)
            self.logger.info(f"Normalizing {len(schema.features)} feature columns")

        return RoleMappedData.create(current, schema, tuple(fitted))

    def apply_transforms(self, frame: pd.DataFrame, train_data: RoleMappedData) -> RoleMappedData:
        current = frame
        for transform in train_data.transforms:
            current = transform.transform(current)
        return RoleMappedData.create_opt(current, train_data.schema, train_data.transforms)
