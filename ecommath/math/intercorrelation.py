"""
Intercorrelation diagnostics for ecommath.

Six scalar summaries of a correlation matrix R, used to judge whether a
dataset is worth reducing with PCA. All are closed-form functions of the
eigenvalues of R, its determinant, and the diagonal of its inverse.

With P variables, eigenvalues l_1 >= ... >= l_P and r_jj the diagonal of
R^-1:

1. multivariate dispersion      (1 - l_min / l_max) ** (P + 2)
2. KMO-like measure             1 - P / sum(1 / l_i)
3. Bartlett's determinant test  1 - sqrt(det(R))
4. multivariate kurtosis        (l_max / P) ** 1.5
5. multicollinearity index      (1 - l_min / P) ** 5
6. average variable dependency  mean(1 - 1 / r_jj)

A singular R is valid input for measures 1, 3, 4 and 5 (det(R) = 0, so
measure 3 is 1). Measures 2 and 6 need R^-1 and raise SingularCorrelation.
"""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, Union

import numpy as np

from ecommath.errors import SingularCorrelation, TypeMismatch
from ecommath.math.corr import correlation_matrix
from ecommath.math.named_matrix import NamedMatrix
from ecommath.utils.general import require_square_symmetric

logger = logging.getLogger(__name__)

DEFAULT_SINGULAR_TOLERANCE = 1e-10

MatrixLike = Union[NamedMatrix, np.ndarray]


def _as_correlation(r: MatrixLike, atol: float = 1e-8) -> np.ndarray:
    values = r.values if isinstance(r, NamedMatrix) else r
    values = require_square_symmetric(values, 'correlation matrix')
    if not np.allclose(np.diag(values), 1.0, rtol=0.0, atol=atol):
        raise TypeMismatch("correlation matrix must have a unit diagonal; "
                           "pass a correlation matrix, not a covariance matrix")
    if np.any(np.abs(values) > 1.0 + atol):
        raise TypeMismatch("correlation matrix entries must lie in [-1, 1]")
    return values


def correlation_eigenvalues(r: MatrixLike) -> np.ndarray:
    """
    Eigenvalues of a correlation matrix in descending order.
    """
    values = _as_correlation(r)
    return np.linalg.eigvalsh(values)[::-1]


def _eigenvalues(r: MatrixLike, eigenvalues: Optional[np.ndarray]) -> np.ndarray:
    if eigenvalues is None:
        return correlation_eigenvalues(r)
    return np.sort(np.asarray(eigenvalues, dtype=float))[::-1]


def is_singular(eigenvalues: np.ndarray, tolerance: float = DEFAULT_SINGULAR_TOLERANCE) -> bool:
    """
    Whether the smallest eigenvalue is zero relative to the largest.
    """
    return bool(eigenvalues[-1] <= tolerance * max(eigenvalues[0], 1.0))


def multivariate_dispersion(r: MatrixLike, eigenvalues: Optional[np.ndarray] = None) -> float:
    lam = _eigenvalues(r, eigenvalues)
    p = len(lam)
    lam_min = max(lam[-1], 0.0)
    return float((1.0 - lam_min / lam[0]) ** (p + 2))


def kmo_like_measure(r: MatrixLike,
                     eigenvalues: Optional[np.ndarray] = None,
                     tolerance: float = DEFAULT_SINGULAR_TOLERANCE) -> float:
    """
    1 - P / sum(1 / l_i).

    Raises:
        SingularCorrelation: if R has a zero eigenvalue
    """
    lam = _eigenvalues(r, eigenvalues)
    if is_singular(lam, tolerance):
        raise SingularCorrelation("Correlation matrix is singular; KMO-like measure is undefined")
    return float(1.0 - len(lam) / np.sum(1.0 / lam))


def bartlett_determinant_test(r: MatrixLike,
                              eigenvalues: Optional[np.ndarray] = None,
                              tolerance: float = DEFAULT_SINGULAR_TOLERANCE) -> float:
    """
    1 - sqrt(det(R)). A singular R has determinant 0 and scores 1.
    """
    values = _as_correlation(r)
    lam = _eigenvalues(values, eigenvalues)
    if is_singular(lam, tolerance):
        return 1.0
    det = max(float(np.linalg.det(values)), 0.0)
    return float(1.0 - np.sqrt(det))


def multivariate_kurtosis(r: MatrixLike, eigenvalues: Optional[np.ndarray] = None) -> float:
    lam = _eigenvalues(r, eigenvalues)
    return float((lam[0] / len(lam)) ** 1.5)


def multicollinearity_index(r: MatrixLike, eigenvalues: Optional[np.ndarray] = None) -> float:
    lam = _eigenvalues(r, eigenvalues)
    lam_min = max(lam[-1], 0.0)
    return float((1.0 - lam_min / len(lam)) ** 5)


def inverse_diagonal(r: MatrixLike, tolerance: float = DEFAULT_SINGULAR_TOLERANCE) -> np.ndarray:
    """
    Diagonal of R^-1.

    Raises:
        SingularCorrelation: if R cannot be inverted
    """
    values = _as_correlation(r)
    if is_singular(correlation_eigenvalues(values), tolerance):
        raise SingularCorrelation("Correlation matrix is singular and has no inverse")
    try:
        return np.diag(np.linalg.inv(values)).copy()
    except np.linalg.LinAlgError as e:
        raise SingularCorrelation(f"Correlation matrix is singular: {e}") from e


def average_variable_dependency(r: MatrixLike,
                                diagonal: Optional[np.ndarray] = None,
                                tolerance: float = DEFAULT_SINGULAR_TOLERANCE) -> float:
    """
    mean over j of (1 - 1 / r_jj); each term is the squared multiple
    correlation of variable j on the others.
    """
    if diagonal is None:
        diagonal = inverse_diagonal(r, tolerance)
    return float(np.mean(1.0 - 1.0 / np.asarray(diagonal, dtype=float)))


@dataclass(frozen=True)
class IntercorrelationSummary:
    """The six intercorrelation measures of one correlation matrix."""
    multivariate_dispersion: float
    kmo_like_measure: float
    bartlett_determinant_test: float
    multivariate_kurtosis: float
    multicollinearity_index: float
    average_variable_dependency: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def intercorrelation_diagnostics(r: MatrixLike,
                                 eigenvalues: Optional[np.ndarray] = None,
                                 tolerance: float = DEFAULT_SINGULAR_TOLERANCE) -> IntercorrelationSummary:
    """
    Compute all six measures for a correlation matrix.

    Args:
        r: P x P correlation matrix
        eigenvalues: Precomputed eigenvalues of r (any order)
        tolerance: Relative size below which an eigenvalue counts as zero

    Returns:
        IntercorrelationSummary

    Raises:
        SingularCorrelation: if r is singular
    """
    values = _as_correlation(r)
    lam = _eigenvalues(values, eigenvalues)
    if len(lam) != values.shape[0]:
        raise ValueError(f"Expected {values.shape[0]} eigenvalues, got {len(lam)}")

    summary = IntercorrelationSummary(
        multivariate_dispersion=multivariate_dispersion(values, lam),
        kmo_like_measure=kmo_like_measure(values, lam, tolerance),
        bartlett_determinant_test=bartlett_determinant_test(values, lam, tolerance),
        multivariate_kurtosis=multivariate_kurtosis(values, lam),
        multicollinearity_index=multicollinearity_index(values, lam),
        average_variable_dependency=average_variable_dependency(values, tolerance=tolerance)
    )
    logger.debug(f"Intercorrelation diagnostics for {values.shape[0]} variables: {summary}")
    return summary


def diagnose_dataset(data: Any,
                     method: str = 'pearson',
                     tolerance: float = DEFAULT_SINGULAR_TOLERANCE) -> IntercorrelationSummary:
    """
    Compute the correlation matrix of a continuous slice, then its diagnostics.
    """
    return intercorrelation_diagnostics(correlation_matrix(data, method), tolerance=tolerance)
