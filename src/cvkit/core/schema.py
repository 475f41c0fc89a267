"""Explicit column descriptors and role-mapped data containers.

Every view handed between fold stages is a pandas DataFrame plus the small
amount of metadata pandas cannot carry by itself: slot names of vector
columns, category values of vector-valued key columns, and which columns are
hidden. A vector column is an object column whose cells are 1-D numpy arrays;
a scalar key column is a pandas ``Categorical``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from cvkit.core.exceptions import SchemaError

SCALAR = "scalar"
VECTOR = "vector"
KEY = "key"
VECTOR_KEY = "vector_key"

# Columns appended by scorers
SCORE = "Score"
PROBABILITY = "Probability"
PREDICTED_LABEL = "PredictedLabel"

# Suffix of merged vector columns whose width differs between folds
VAR_LENGTH_SUFFIX = "_VarLength"


@dataclass(frozen=True)
class ColumnDescriptor:
    """Description of one column of a view."""

    name: str
    kind: str
    dtype: str
    width: Optional[int] = None
    key_cardinality: Optional[int] = None
    slot_names: Tuple[str, ...] = ()
    hidden: bool = False

    @property
    def is_vector(self) -> bool:
        return self.kind in (VECTOR, VECTOR_KEY)

    @property
    def is_key(self) -> bool:
        return self.kind in (KEY, VECTOR_KEY)


@dataclass(frozen=True)
class SchemaDescriptor:
    """Ordered column descriptors of a view."""

    columns: Tuple[ColumnDescriptor, ...]

    def __iter__(self):
        return iter(self.columns)

    def __len__(self) -> int:
        return len(self.columns)

    def __contains__(self, name: str) -> bool:
        return any(c.name == name for c in self.columns)

    def __getitem__(self, name: str) -> ColumnDescriptor:
        for column in self.columns:
            if column.name == name:
                return column
        raise KeyError(name)

    @property
    def names(self) -> List[str]:
        return [c.name for c in self.columns]

    def visible(self) -> "SchemaDescriptor":
        return SchemaDescriptor(tuple(c for c in self.columns if not c.hidden))


def is_vector_cell(value: Any) -> bool:
    return isinstance(value, (np.ndarray, list, tuple))


def is_vector_column(series: pd.Series) -> bool:
    """True when the non-missing cells of an object column are sequences."""
    if series.dtype != object:
        return False
    present = series.dropna()
    return len(present) > 0 and is_vector_cell(present.iloc[0])


def vector_width(series: pd.Series) -> Optional[int]:
    """Common length of the non-missing cells of a vector column, or None if they differ."""
    lengths = {len(v) for v in series if is_vector_cell(v)}
    if len(lengths) == 1:
        return lengths.pop()
    return None


@dataclass(frozen=True)
class DataView:
    """A DataFrame with the column metadata needed to merge fold outputs."""

    frame: pd.DataFrame
    slot_names: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)
    key_values: Mapping[str, Tuple[Any, ...]] = field(default_factory=dict)
    hidden_columns: FrozenSet[str] = frozenset()

    @property
    def num_rows(self) -> int:
        return len(self.frame)

    @property
    def columns(self) -> List[str]:
        return list(self.frame.columns)

    def describe(self) -> SchemaDescriptor:
        """Compute the columnar descriptor of this view."""
        descriptors = []
        for name in self.frame.columns:
            series = self.frame[name]
            hidden = name in self.hidden_columns
            if isinstance(series.dtype, pd.CategoricalDtype):
                categories = series.cat.categories
                descriptors.append(ColumnDescriptor(
                    name=name, kind=KEY, dtype=str(categories.dtype),
                    key_cardinality=len(categories), hidden=hidden,
                ))
            elif is_vector_column(series):
                width = vector_width(series)
                item_dtype = str(np.asarray(series.dropna().iloc[0]).dtype)
                if name in self.key_values:
                    descriptors.append(ColumnDescriptor(
                        name=name, kind=VECTOR_KEY, dtype=item_dtype, width=width,
                        key_cardinality=len(self.key_values[name]),
                        slot_names=tuple(self.slot_names.get(name, ())), hidden=hidden,
                    ))
                else:
                    descriptors.append(ColumnDescriptor(
                        name=name, kind=VECTOR, dtype=item_dtype, width=width,
                        slot_names=tuple(self.slot_names.get(name, ())), hidden=hidden,
                    ))
            else:
                descriptors.append(ColumnDescriptor(
                    name=name, kind=SCALAR, dtype=str(series.dtype), hidden=hidden,
                ))
        return SchemaDescriptor(tuple(descriptors))

    def drop_hidden(self) -> "DataView":
        if not self.hidden_columns:
            return self
        return DataView(
            frame=self.frame.drop(columns=[c for c in self.frame.columns if c in self.hidden_columns]),
            slot_names={k: v for k, v in self.slot_names.items() if k not in self.hidden_columns},
            key_values={k: v for k, v in self.key_values.items() if k not in self.hidden_columns},
        )

    def with_frame(self, frame: pd.DataFrame, **changes) -> "DataView":
        return replace(self, frame=frame, **changes)


@dataclass(frozen=True)
class RoleMappedSchema:
    """Semantic column roles bound to column names."""

    label: Optional[str] = None
    features: Tuple[str, ...] = ()
    weight: Optional[str] = None
    group: Optional[str] = None
    name: Optional[str] = None
    custom: Tuple[Tuple[str, str], ...] = ()

    def column_role_names(self) -> List[Tuple[str, str]]:
        """List of (role, column) pairs, features expanded one per column."""
        pairs: List[Tuple[str, str]] = []
        if self.label:
            pairs.append(("label", self.label))
        pairs.extend(("feature", f) for f in self.features)
        if self.weight:
            pairs.append(("weight", self.weight))
        if self.group:
            pairs.append(("group", self.group))
        if self.name:
            pairs.append(("name", self.name))
        pairs.extend(self.custom)
        return pairs

    def restrict_to(self, columns: Sequence[str]) -> "RoleMappedSchema":
        """Drop every role whose column is absent from ``columns``."""
        present = set(columns)

        def keep(column: Optional[str]) -> Optional[str]:
            return column if column in present else None

        return RoleMappedSchema(
            label=keep(self.label),
            features=tuple(f for f in self.features if f in present),
            weight=keep(self.weight),
            group=keep(self.group),
            name=keep(self.name),
            custom=tuple((r, c) for r, c in self.custom if c in present),
        )

    def check(self, columns: Sequence[str]) -> None:
        """Raise SchemaError if a bound column is missing from ``columns``."""
        missing = [c for _, c in self.column_role_names() if c not in set(columns)]
        if missing:
            raise SchemaError(f"Columns not found in schema: {', '.join(missing)}")


@dataclass(frozen=True)
class RoleMappedData:
    """A frame paired with its role schema and the fitted train-side transforms."""

    frame: pd.DataFrame
    schema: RoleMappedSchema
    transforms: Tuple[Any, ...] = ()
    slot_names: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def create(cls, frame: pd.DataFrame, schema: RoleMappedSchema,
               transforms: Tuple[Any, ...] = ()) -> "RoleMappedData":
        schema.check(frame.columns)
        return cls(frame=frame, schema=schema, transforms=transforms)

    @classmethod
    def create_opt(cls, frame: pd.DataFrame, schema: RoleMappedSchema,
                   transforms: Tuple[Any, ...] = (),
                   slot_names: Optional[Mapping[str, Tuple[str, ...]]] = None) -> "RoleMappedData":
        """Like create, but roles whose columns are missing are dropped."""
        return cls(frame=frame, schema=schema.restrict_to(frame.columns),
                   transforms=transforms, slot_names=dict(slot_names or {}))

    @property
    def num_rows(self) -> int:
        return len(self.frame)

    def features(self) -> np.ndarray:
        if not self.schema.features:
            raise SchemaError("No feature columns are bound")
        return self.frame.loc[:, list(self.schema.features)].to_numpy(dtype=float)

    def label(self) -> Optional[pd.Series]:
        return self.frame[self.schema.label] if self.schema.label else None

    def weights(self) -> Optional[np.ndarray]:
        if not self.schema.weight:
            return None
        return self.frame[self.schema.weight].to_numpy(dtype=float)

    def describe(self) -> SchemaDescriptor:
        return DataView(self.frame).describe()
