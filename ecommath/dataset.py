"""
Typed dataset for ecommath.

A Dataset is a pandas DataFrame paired with a Schema: an ordered list of
named columns, each continuous, binary (0/1) or categorical. The frame is
validated once, on construction; afterwards the typed accessors hand out
NamedMatrix slices restricted to one column-type group.
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ecommath.errors import EmptyInput, ShapeMismatch, TypeMismatch
from ecommath.math.named_matrix import NamedMatrix
from ecommath.utils.general import is_numeric_column

logger = logging.getLogger(__name__)


class ColumnType(str, Enum):
    CONTINUOUS = 'continuous'
    BINARY = 'binary'
    CATEGORICAL = 'categorical'


@dataclass(frozen=True)
class ColumnSpec:
    """A named, typed column."""
    name: str
    kind: ColumnType


class Schema:
    """
    Ordered set of typed columns.
    """

    def __init__(self, columns: Iterable[ColumnSpec]):
        self._columns = list(columns)
        names = [c.name for c in self._columns]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate column names in schema: {names}")
        self._by_name = {c.name: c for c in self._columns}

    @classmethod
    def from_dict(cls, spec: Dict[str, Union[str, ColumnType]]) -> 'Schema':
        """
        Build a schema from a {name: type} mapping, keeping its order.

        Args:
            spec: Mapping of column name to 'continuous', 'binary' or 'categorical'

        Returns:
            A new Schema
        """
        return cls(ColumnSpec(name, ColumnType(kind)) for name, kind in spec.items())

    @classmethod
    def infer(cls, frame: pd.DataFrame) -> 'Schema':
        """
        Infer column types from a frame.

        Numeric columns whose values are all 0 or 1 are binary, other numeric
        columns are continuous, everything else is categorical.

        Args:
            frame: Frame to inspect

        Returns:
            Inferred Schema
        """
        columns = []
        for name in frame.columns:
            column = frame[name]
            if is_numeric_column(column):
                values = column.dropna().astype(float)
                if len(values) > 0 and values.isin([0.0, 1.0]).all():
                    columns.append(ColumnSpec(name, ColumnType.BINARY))
                else:
                    columns.append(ColumnSpec(name, ColumnType.CONTINUOUS))
            else:
                columns.append(ColumnSpec(name, ColumnType.CATEGORICAL))
        return cls(columns)

    @property
    def columns(self) -> List[ColumnSpec]:
        return list(self._columns)

    def names(self, kind: Optional[ColumnType] = None) -> List[str]:
        """
        Column names, optionally restricted to one type.
        """
        return [c.name for c in self._columns if kind is None or c.kind == kind]

    def kind_of(self, name: str) -> ColumnType:
        return self._by_name[name].kind

    def to_dict(self) -> Dict[str, str]:
        return {c.name: c.kind.value for c in self._columns}

    def __len__(self) -> int:
        return len(self._columns)

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __repr__(self) -> str:
        return f"Schema({self.to_dict()})"


class Dataset:
    """
    A validated, rectangular, typed table of records.
    """

    def __init__(self, frame: pd.DataFrame, schema: Optional[Schema] = None):
        """
        Validate a frame against a schema.

        Args:
            frame: Source data; its index labels the records
            schema: Column types (inferred from the frame when omitted)

        Raises:
            EmptyInput: if the frame has no rows or the schema no columns
            ShapeMismatch: if schema columns are missing from the frame
            TypeMismatch: on null cells or values that do not match their type
        """
        if schema is None:
            schema = Schema.infer(frame)

        missing = [name for name in schema.names() if name not in frame.columns]
        if missing:
            raise ShapeMismatch(f"Columns missing from dataset: {missing}")

        if len(schema) == 0:
            raise EmptyInput("Dataset schema has no columns")
        if len(frame) == 0:
            raise EmptyInput("Dataset has no rows")

        frame = frame[schema.names()].copy()
        self._validate(frame, schema)

        for name in schema.names(ColumnType.CONTINUOUS):
            frame[name] = frame[name].astype(float)
        for name in schema.names(ColumnType.BINARY):
            frame[name] = frame[name].astype(int)

        self._frame = frame
        self._schema = schema

        logger.debug(f"Dataset validated: {len(frame)} rows, {len(schema)} columns")

    @staticmethod
    def _validate(frame: pd.DataFrame, schema: Schema) -> None:
        nulls = [name for name in frame.columns if frame[name].isna().any()]
        if nulls:
            raise TypeMismatch(f"Null values in column(s) {nulls}")

        for spec in schema.columns:
            column = frame[spec.name]
            if spec.kind in (ColumnType.CONTINUOUS, ColumnType.BINARY):
                if not is_numeric_column(column):
                    raise TypeMismatch(f"Column '{spec.name}' must be numeric")
                values = column.astype(float).to_numpy()
                if not np.all(np.isfinite(values)):
                    raise TypeMismatch(f"Column '{spec.name}' has non-finite values")
                if spec.kind == ColumnType.BINARY and not np.all((values == 0) | (values == 1)):
                    raise TypeMismatch(f"Column '{spec.name}' must only contain 0/1 values")

    @classmethod
    def from_records(cls, records: Sequence[Dict[str, Any]],
                     schema: Optional[Schema] = None,
                     index: Optional[Sequence[Any]] = None) -> 'Dataset':
        """
        Build a Dataset from a sequence of {feature: value} records.

        Records missing a schema column are rejected; the dataset must be
        rectangular.
        """
        if len(records) == 0:
            raise EmptyInput("Dataset has no rows")
        keys = set(records[0])
        for i, record in enumerate(records):
            if set(record) != keys:
                raise ShapeMismatch(f"Record {i} does not have the same columns as record 0")
        frame = pd.DataFrame.from_records(list(records), index=index)
        return cls(frame, schema)

    @property
    def schema(self) -> Schema:
        return self._schema

    @property
    def frame(self) -> pd.DataFrame:
        """A copy of the validated frame."""
        return self._frame.copy()

    @property
    def record_ids(self) -> List[Any]:
        return list(self._frame.index)

    def __len__(self) -> int:
        return len(self._frame)

    def __repr__(self) -> str:
        return f"Dataset(rows={len(self)}, schema={self._schema!r})"

    def _slice(self, names: List[str], what: str) -> NamedMatrix:
        if not names:
            raise EmptyInput(f"Dataset has no {what} columns")
        return NamedMatrix(self._frame[names])

    def continuous(self) -> NamedMatrix:
        """Continuous columns as a float NamedMatrix."""
        return self._slice(self._schema.names(ColumnType.CONTINUOUS), 'continuous')

    def binary(self) -> NamedMatrix:
        """Binary columns as a 0/1 NamedMatrix."""
        return self._slice(self._schema.names(ColumnType.BINARY), 'binary')

    def categorical(self) -> NamedMatrix:
        """Categorical columns as labels."""
        return self._slice(self._schema.names(ColumnType.CATEGORICAL), 'categorical')

    def nominal(self) -> NamedMatrix:
        """Binary and categorical columns together, as labels."""
        names = [c.name for c in self._schema.columns if c.kind != ColumnType.CONTINUOUS]
        return self._slice(names, 'binary or categorical')

    def indicators(self) -> NamedMatrix:
        """
        Binary columns plus one-hot indicators of every categorical column.

        Indicator columns are named '<column>=<level>', levels in sorted order.
        """
        binary_names = self._schema.names(ColumnType.BINARY)
        categorical_names = self._schema.names(ColumnType.CATEGORICAL)
        if not binary_names and not categorical_names:
            raise EmptyInput("Dataset has no binary or categorical columns")

        parts = [self._frame[binary_names]] if binary_names else []
        for name in categorical_names:
            column = self._frame[name].astype(str)
            dummies = pd.get_dummies(column, prefix=name, prefix_sep='=', dtype=int)
            parts.append(dummies[sorted(dummies.columns)])
        return NamedMatrix(pd.concat(parts, axis=1))

    def slice_for(self, group: str) -> Union[NamedMatrix, 'Dataset']:
        """
        Return the slice a metric's column-type group operates on.

        Args:
            group: 'continuous', 'indicators', 'nominal' or 'mixed'

        Returns:
            A NamedMatrix slice, or the dataset itself for 'mixed'
        """
        if group == 'continuous':
            return self.continuous()
        if group == 'indicators':
            return self.indicators()
        if group == 'nominal':
            return self.nominal()
        if group == 'mixed':
            return self
        raise ValueError(f"Unknown column group: {group}")

    def sample(self, n: int, seed: Optional[int] = None) -> 'Dataset':
        """
        Draw a random subset of records without replacement.

        Args:
            n: Number of records (capped at the dataset size)
            seed: Random seed

        Returns:
            A new Dataset over the sampled records, in sampled order
        """
        if n <= 0:
            raise ValueError(f"Sample size must be positive, got {n}")
        n = min(n, len(self))
        return Dataset(self._frame.sample(n=n, random_state=seed), self._schema)


def load_snapshot(path: str,
                  schema: Optional[Schema] = None,
                  index_col: Optional[Union[int, str]] = None) -> Dataset:
    """
    Read a tabular snapshot from CSV or Parquet into a validated Dataset.

    Args:
        path: Path to a .csv or .parquet file
        schema: Column types (inferred when omitted)
        index_col: Column holding record ids

    Returns:
        A validated Dataset
    """
    ext = os.path.splitext(path)[1].lower()
    if ext == '.csv':
        frame = pd.read_csv(path, index_col=index_col)
    elif ext in ('.parquet', '.pq'):
        frame = pd.read_parquet(path)
        if index_col is not None:
            frame = frame.set_index(index_col)
    else:
        raise ValueError(f"Unsupported snapshot format: {path}")

    logger.info(f"Loaded snapshot {path}: {frame.shape[0]} rows, {frame.shape[1]} columns")
    return Dataset(frame, schema)
