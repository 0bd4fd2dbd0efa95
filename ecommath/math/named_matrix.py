"""
Named Matrix implementation for the ecommath package.

This module provides a data structure for matrices with named rows and columns.
Dataset slices, distance matrices, correlation matrices and loading matrices
are all passed around as NamedMatrix objects so the reporting layer always
gets labels along with the numbers.
"""

import numpy as np
import pandas as pd
from typing import List, Dict, Union, Optional, Tuple, Any, Mapping, Sequence


class IndexHash:
    """
    Maintains an ordered index of names with fast lookup.
    """

    def __init__(self, names: Optional[List[Any]] = None):
        """
        Initialize an IndexHash with optional initial names.

        Args:
            names: Optional list of initial names
        """
        self._names = [] if names is None else list(names)
        self._index_hash = {name: idx for idx, name in enumerate(self._names)}

    def get_names(self) -> List[Any]:
        """Return the ordered list of names."""
        return self._names.copy()

    def index(self, name: Any) -> Optional[int]:
        """
        Get the index for a given name, or None if not found.

        Args:
            name: The name to look up

        Returns:
            The index if found, None otherwise
        """
        return self._index_hash.get(name)

    def subset(self, names: List[Any]) -> 'IndexHash':
        """
        Create a subset of the index with only the specified names.

        Args:
            names: List of names to include in the subset

        Returns:
            A new IndexHash containing only the specified names
        """
        valid_names = [name for name in names if name in self._index_hash]
        return IndexHash(valid_names)

    def __len__(self) -> int:
        """Return the number of names in the index."""
        return len(self._names)

    def __contains__(self, name: Any) -> bool:
        """Check if a name is in the index."""
        return name in self._index_hash

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IndexHash):
            return NotImplemented
        return self._names == other._names


class NamedMatrix:
    """
    A matrix with named rows and columns.

    Uses a pandas DataFrame as the underlying storage. A matrix created with
    ``read_only=True`` hands out non-writeable arrays and copies of its frame,
    so results such as distance matrices cannot be mutated after creation.
    """

    def __init__(self,
                 matrix: Optional[Union[np.ndarray, pd.DataFrame]] = None,
                 rownames: Optional[List[Any]] = None,
                 colnames: Optional[List[Any]] = None,
                 read_only: bool = False):
        """
        Initialize a NamedMatrix with optional initial data.

        Args:
            matrix: Initial matrix data (numpy array or pandas DataFrame)
            rownames: List of row names
            colnames: List of column names
            read_only: Whether the matrix should refuse mutation
        """
        if matrix is None:
            self._matrix = pd.DataFrame(
                index=[] if rownames is None else list(rownames),
                columns=[] if colnames is None else list(colnames)
            )
        elif isinstance(matrix, pd.DataFrame):
            self._matrix = matrix.copy()
            if rownames is not None:
                self._matrix.index = list(rownames)
            if colnames is not None:
                self._matrix.columns = list(colnames)
        else:
            matrix = np.asarray(matrix)
            if matrix.ndim != 2:
                raise ValueError(f"Expected a 2-D matrix, got {matrix.ndim} dimension(s)")
            rows = list(rownames) if rownames is not None else list(range(matrix.shape[0]))
            cols = list(colnames) if colnames is not None else list(range(matrix.shape[1]))
            self._matrix = pd.DataFrame(matrix, index=rows, columns=cols)

        self._row_index = IndexHash(list(self._matrix.index))
        self._col_index = IndexHash(list(self._matrix.columns))
        self._read_only = read_only

    @property
    def matrix(self) -> pd.DataFrame:
        """Get the underlying DataFrame (a copy for read-only matrices)."""
        if self._read_only:
            return self._matrix.copy()
        return self._matrix

    @property
    def values(self) -> np.ndarray:
        """Get the matrix as a numpy array."""
        values = self._matrix.to_numpy()
        if self._read_only:
            values = values.view()
            values.flags.writeable = False
        return values

    @property
    def shape(self) -> Tuple[int, int]:
        """Return (number of rows, number of columns)."""
        return self._matrix.shape

    @property
    def read_only(self) -> bool:
        return self._read_only

    def rownames(self) -> List[Any]:
        """Get the list of row names."""
        return self._row_index.get_names()

    def colnames(self) -> List[Any]:
        """Get the list of column names."""
        return self._col_index.get_names()

    def freeze(self) -> 'NamedMatrix':
        """
        Return a read-only copy of this matrix.
        """
        return NamedMatrix(self._matrix, read_only=True)

    def get(self, row: Any, col: Any) -> Any:
        """
        Get a single value by row and column name.

        Args:
            row: Row name
            col: Column name

        Returns:
            The stored value
        """
        if row not in self._row_index:
            raise KeyError(f"Row name '{row}' not found")
        if col not in self._col_index:
            raise KeyError(f"Column name '{col}' not found")
        return self._matrix.iat[self._row_index.index(row), self._col_index.index(col)]

    def rowname_subset(self, rownames: List[Any]) -> 'NamedMatrix':
        """
        Create a subset of the matrix with only the specified rows.

        Args:
            rownames: List of row names to include

        Returns:
            A new NamedMatrix with only the specified rows
        """
        valid_rows = [row for row in rownames if row in self._row_index]
        positions = [self._row_index.index(row) for row in valid_rows]
        return NamedMatrix(self._matrix.iloc[positions], read_only=self._read_only)

    def colname_subset(self, colnames: List[Any]) -> 'NamedMatrix':
        """
        Create a subset of the matrix with only the specified columns.

        Args:
            colnames: List of column names to include

        Returns:
            A new NamedMatrix with only the specified columns
        """
        valid_cols = [col for col in colnames if col in self._col_index]
        positions = [self._col_index.index(col) for col in valid_cols]
        return NamedMatrix(self._matrix.iloc[:, positions], read_only=self._read_only)

    def reorder(self, rownames: List[Any], colnames: Optional[List[Any]] = None) -> 'NamedMatrix':
        """
        Reorder rows (and columns) by name.

        Args:
            rownames: New row order; must be a permutation of the row names
            colnames: New column order (defaults to rownames for square matrices)

        Returns:
            A new, reordered NamedMatrix
        """
        if colnames is None:
            colnames = rownames
        if sorted(map(str, rownames)) != sorted(map(str, self.rownames())):
            raise KeyError("Row order must be a permutation of the row names")
        if sorted(map(str, colnames)) != sorted(map(str, self.colnames())):
            raise KeyError("Column order must be a permutation of the column names")
        return self.rowname_subset(rownames).colname_subset(colnames)

    def get_row_by_name(self, row_name: Any) -> np.ndarray:
        """
        Get a row of the matrix by name.

        Args:
            row_name: The name of the row

        Returns:
            The row as a numpy array
        """
        if row_name not in self._row_index:
            raise KeyError(f"Row name '{row_name}' not found")
        return self.values[self._row_index.index(row_name)]

    def get_col_by_name(self, col_name: Any) -> np.ndarray:
        """
        Get a column of the matrix by name.

        Args:
            col_name: The name of the column

        Returns:
            The column as a numpy array
        """
        if col_name not in self._col_index:
            raise KeyError(f"Column name '{col_name}' not found")
        return self.values[:, self._col_index.index(col_name)]

    def transpose(self) -> 'NamedMatrix':
        """
        Transpose the matrix, swapping row and column names.
        """
        return NamedMatrix(self._matrix.T, read_only=self._read_only)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to plain python structures for export.

        Returns:
            Dictionary with 'rows', 'cols' and 'values' keys
        """
        return {
            'rows': self.rownames(),
            'cols': self.colnames(),
            'values': self._matrix.to_numpy().tolist()
        }

    def __repr__(self) -> str:
        """
        String representation of the NamedMatrix.
        """
        return f"NamedMatrix(rows={len(self.rownames())}, cols={len(self.colnames())})"

    def __str__(self) -> str:
        """
        Human-readable string representation.
        """
        return (f"NamedMatrix with {len(self.rownames())} rows and "
                f"{len(self.colnames())} columns\n{self._matrix}")


# Utility functions

def create_named_matrix(matrix_data: Optional[Union[np.ndarray, List[List[Any]]]] = None,
                        rownames: Optional[List[Any]] = None,
                        colnames: Optional[List[Any]] = None,
                        read_only: bool = False) -> NamedMatrix:
    """
    Create a NamedMatrix from data.

    Args:
        matrix_data: Initial matrix data (numpy array or nested lists)
        rownames: List of row names
        colnames: List of column names
        read_only: Whether the matrix should refuse mutation

    Returns:
        A new NamedMatrix
    """
    if matrix_data is not None and not isinstance(matrix_data, np.ndarray):
        matrix_data = np.array(matrix_data)
    return NamedMatrix(matrix_data, rownames, colnames, read_only=read_only)


def as_named_matrix(data: Any) -> NamedMatrix:
    """
    Coerce supported inputs into a NamedMatrix.

    Accepts a NamedMatrix, a DataFrame, a 2-D array or nested list, or a
    sequence of records (mappings from feature name to value).

    Args:
        data: Input data

    Returns:
        A NamedMatrix view of the data

    Raises:
        TypeError: for a Dataset, which has no single numeric view
    """
    from ecommath.dataset import Dataset
    if isinstance(data, Dataset):
        raise TypeError(
            "A Dataset must be sliced before use as a matrix: call "
            "distance_matrix(dataset, metric) or pass dataset.continuous()"
        )
    if isinstance(data, NamedMatrix):
        return data
    if isinstance(data, pd.DataFrame):
        return NamedMatrix(data)
    if isinstance(data, Sequence) and len(data) > 0 and all(isinstance(r, Mapping) for r in data):
        return NamedMatrix(pd.DataFrame.from_records(list(data)))
    if isinstance(data, Sequence) and len(data) == 0:
        return NamedMatrix(np.empty((0, 0)))
    return NamedMatrix(np.asarray(data))
