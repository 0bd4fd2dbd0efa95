"""
General utility functions for the ecommath package.

Small array helpers shared by the dataset, distance and diagnostics modules.
"""

import numbers
import numpy as np
import pandas as pd
from typing import List

from ecommath.errors import EmptyInput, ShapeMismatch, TypeMismatch


def require_rows(values: np.ndarray, what: str = 'input') -> None:
    """
    Fail with EmptyInput when a 2-D array has no rows or no columns.

    Args:
        values: Array to check
        what: Description used in the error message
    """
    if values.ndim != 2:
        raise ShapeMismatch(f"{what} must be two-dimensional, got shape {values.shape}")
    if values.shape[0] == 0:
        raise EmptyInput(f"{what} has no rows")
    if values.shape[1] == 0:
        raise EmptyInput(f"{what} has no columns")


def is_numeric_column(column: pd.Series) -> bool:
    """
    Check whether every value of a column is a real number.

    Args:
        column: Column to check

    Returns:
        True if the column can be used in a numeric computation
    """
    if pd.api.types.is_bool_dtype(column) or pd.api.types.is_numeric_dtype(column):
        return not pd.api.types.is_complex_dtype(column)
    if pd.api.types.is_object_dtype(column):
        return all(isinstance(v, (numbers.Real, np.bool_)) for v in column)
    return False


def to_float_array(frame: pd.DataFrame, what: str = 'input') -> np.ndarray:
    """
    Convert a frame of numeric columns to a float array.

    Args:
        frame: Frame to convert
        what: Description used in error messages

    Returns:
        2-D float array

    Raises:
        TypeMismatch: if any column holds non-numeric or non-finite values
    """
    bad = [col for col in frame.columns if not is_numeric_column(frame[col])]
    if bad:
        raise TypeMismatch(f"{what} has non-numeric values in column(s) {bad}")

    values = frame.to_numpy(dtype=float)
    if not np.all(np.isfinite(values)):
        raise TypeMismatch(f"{what} contains missing or non-finite values")
    return values


def to_binary_array(frame: pd.DataFrame, what: str = 'input') -> np.ndarray:
    """
    Convert a frame of 0/1 columns to a boolean array.

    Raises:
        TypeMismatch: if any value is not 0 or 1
    """
    values = to_float_array(frame, what)
    if not np.all((values == 0) | (values == 1)):
        raise TypeMismatch(f"{what} must only contain 0/1 values")
    return values.astype(bool)


def upper_triangle(matrix: np.ndarray) -> np.ndarray:
    """
    Return the strict upper triangle of a square matrix as a flat vector.

    Args:
        matrix: Square matrix

    Returns:
        Vector of the n(n-1)/2 entries above the diagonal, row-major
    """
    rows, cols = np.triu_indices(matrix.shape[0], k=1)
    return matrix[rows, cols]


def mirror_upper(matrix: np.ndarray) -> np.ndarray:
    """
    Build a symmetric matrix with zero diagonal from the upper triangle.

    Args:
        matrix: Square matrix; only entries above the diagonal are used

    Returns:
        Symmetric matrix with zero diagonal
    """
    upper = np.triu(matrix, k=1)
    return upper + upper.T


def is_symmetric(matrix: np.ndarray, atol: float = 1e-12) -> bool:
    """
    Check whether a matrix is square and symmetric within tolerance.
    """
    matrix = np.asarray(matrix)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        return False
    return bool(np.allclose(matrix, matrix.T, rtol=0.0, atol=atol))


def require_square_symmetric(matrix: np.ndarray, what: str = 'matrix',
                             atol: float = 1e-10) -> np.ndarray:
    """
    Validate a square symmetric float matrix.

    Raises:
        EmptyInput: for a 0x0 matrix
        ShapeMismatch: if the matrix is not square or not symmetric
        TypeMismatch: if the matrix holds non-finite values
    """
    matrix = np.asarray(matrix, dtype=float)
    if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1]:
        raise ShapeMismatch(f"{what} must be square, got shape {matrix.shape}")
    if matrix.shape[0] == 0:
        raise EmptyInput(f"{what} is empty")
    if not np.all(np.isfinite(matrix)):
        raise TypeMismatch(f"{what} contains non-finite values")
    if not is_symmetric(matrix, atol=atol):
        raise ShapeMismatch(f"{what} must be symmetric")
    return matrix


def component_names(n: int, prefix: str = 'PC') -> List[str]:
    """Return ['PC1', 'PC2', ...] style labels."""
    return [f"{prefix}{i + 1}" for i in range(n)]
