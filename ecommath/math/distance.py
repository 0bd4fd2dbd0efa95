"""
Pairwise distance matrices for ecommath.

This module computes dissimilarity matrices between the rows of a dataset
slice under several metrics:

- continuous data: euclidean, manhattan, canberra, mahalanobis
- binary data: jaccard
- binary or categorical data: sokal-michener (simple matching)
- mixed data: gower

Every square result is a read-only NamedMatrix labelled by the input rows,
exactly symmetric with a zero diagonal. Work is vectorized: scipy's pdist
and cdist where their definition matches, numpy broadcasting one row block
at a time otherwise, so memory stays O(N^2) rather than O(N^2 * P).

Zero-denominator policy:
- canberra: a feature where both values are 0 contributes 0 to the sum
- jaccard: two all-zero vectors are at distance 0
- gower: a continuous feature with zero range contributes 0
"""

import logging
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

import gower
import numpy as np
from scipy.spatial.distance import cdist, pdist, squareform

from ecommath.dataset import ColumnType, Dataset
from ecommath.errors import ShapeMismatch, SingularCovariance, TypeMismatch
from ecommath.math.named_matrix import NamedMatrix, as_named_matrix
from ecommath.utils.general import (
    mirror_upper, require_rows, to_binary_array, to_float_array
)

logger = logging.getLogger(__name__)

# Which slice of a Dataset each metric operates on
METRIC_GROUPS = {
    'euclidean': 'continuous',
    'manhattan': 'continuous',
    'canberra': 'continuous',
    'mahalanobis': 'continuous',
    'jaccard': 'indicators',
    'sokal-michener': 'nominal',
    'gower': 'mixed',
}

_ALIASES = {
    'cityblock': 'manhattan',
    'l1': 'manhattan',
    'l2': 'euclidean',
    'sokal_michener': 'sokal-michener',
    'sokalmichener': 'sokal-michener',
    'simple-matching': 'sokal-michener',
    'matching': 'sokal-michener',
}


def normalize_metric(metric: str) -> str:
    """
    Map a metric name or alias onto its canonical name.

    Args:
        metric: Metric name, case-insensitive

    Returns:
        Canonical metric name
    """
    name = metric.strip().lower()
    name = _ALIASES.get(name, name)
    if name not in METRIC_GROUPS:
        raise ValueError(f"Unknown distance metric: {metric}")
    return name


def _numeric(nmat: NamedMatrix, what: str) -> np.ndarray:
    values = to_float_array(nmat.matrix, what)
    require_rows(values, what)
    return values


def _binary(nmat: NamedMatrix, what: str) -> np.ndarray:
    require_rows(np.empty(nmat.shape), what)
    return to_binary_array(nmat.matrix, what)


def _labels(nmat: NamedMatrix, what: str) -> np.ndarray:
    values = nmat.matrix
    require_rows(np.empty(values.shape), what)
    if values.isna().any().any():
        raise TypeMismatch(f"{what} contains null values")
    return values.to_numpy(dtype=object)


def _rowwise(values: np.ndarray, other: np.ndarray,
             kernel: Callable[[np.ndarray, np.ndarray], np.ndarray]) -> np.ndarray:
    """
    Apply a row-vs-block kernel to every row of values.

    Args:
        values: Left-hand rows (N x P)
        other: Right-hand rows (M x P)
        kernel: Maps (row, other) to the M distances from row

    Returns:
        N x M distance array
    """
    out = np.empty((values.shape[0], other.shape[0]), dtype=float)
    for i, row in enumerate(values):
        out[i] = kernel(row, other)
    return out


def _matching_kernel(row: np.ndarray, other: np.ndarray) -> np.ndarray:
    mismatches = (other != row).sum(axis=1)
    return mismatches / row.shape[0]


def _jaccard(values: np.ndarray, other: np.ndarray) -> np.ndarray:
    left = values.astype(float)
    right = other.astype(float)
    both = left @ right.T
    either = left.sum(axis=1)[:, None] + right.sum(axis=1)[None, :] - both
    return np.divide(either - both, either,
                     out=np.zeros_like(either), where=either > 0)


def inverse_covariance(values: np.ndarray,
                       regularization: float = 0.0,
                       max_condition: float = 1e12) -> np.ndarray:
    """
    Invert the sample covariance matrix of the columns of values.

    Args:
        values: N x P data
        regularization: Ridge term added to the covariance diagonal
        max_condition: Largest condition number accepted as invertible

    Returns:
        P x P inverse covariance

    Raises:
        SingularCovariance: if the covariance cannot be inverted reliably
    """
    n_rows, n_cols = values.shape
    if regularization <= 0 and n_rows <= n_cols:
        raise SingularCovariance(
            f"Covariance of {n_rows} rows and {n_cols} columns is singular; "
            "need more rows than columns"
        )

    cov = np.atleast_2d(np.cov(values, rowvar=False, ddof=1))
    if regularization > 0:
        cov = cov + regularization * np.eye(n_cols)

    # Condition and invert the unit-free form R = D^-1/2 S D^-1/2, then S^-1 = D^-1/2 R^-1 D^-1/2
    std = np.sqrt(np.diag(cov))
    if not np.all(std > 0):
        raise SingularCovariance("Covariance matrix is singular: a column has zero variance")
    scale = np.outer(std, std)
    condition = np.linalg.cond(cov / scale)
    if not np.isfinite(condition) or condition > max_condition:
        raise SingularCovariance(
            f"Covariance matrix is singular or ill-conditioned (condition number {condition:.3g})"
        )

    try:
        inverse = np.linalg.inv(cov / scale) / scale
    except np.linalg.LinAlgError as e:
        raise SingularCovariance(f"Covariance matrix is singular: {e}") from e

    # Symmetrize away rounding so the quadratic form is exactly symmetric
    return (inverse + inverse.T) / 2


def _condensed(values: np.ndarray, metric: str, **kwargs: Any) -> np.ndarray:
    if values.shape[0] == 1:
        return np.zeros((1, 1))
    return squareform(pdist(values, metric=metric, **kwargs), checks=False)


def _square(values: np.ndarray, rownames: List[Any], metric: str) -> NamedMatrix:
    logger.debug(f"{metric} distance matrix: {values.shape[0]} x {values.shape[1]}")
    return NamedMatrix(values, rownames, rownames, read_only=True)


def euclidean_distances(data: Any) -> NamedMatrix:
    """
    Euclidean distance: sqrt of the sum of squared per-feature differences.

    Args:
        data: Continuous-only slice (NamedMatrix, DataFrame or 2-D array)

    Returns:
        N x N distance matrix
    """
    nmat = as_named_matrix(data)
    values = _numeric(nmat, 'euclidean input')
    return _square(_condensed(values, 'euclidean'),
                   nmat.rownames(), 'euclidean')


def manhattan_distances(data: Any) -> NamedMatrix:
    """
    Manhattan distance: sum of absolute per-feature differences.
    """
    nmat = as_named_matrix(data)
    values = _numeric(nmat, 'manhattan input')
    return _square(_condensed(values, 'cityblock'),
                   nmat.rownames(), 'manhattan')


def canberra_distances(data: Any) -> NamedMatrix:
    """
    Canberra distance: sum over features of |x - y| / (|x| + |y|).

    A feature where both values are 0 contributes 0.
    """
    nmat = as_named_matrix(data)
    values = _numeric(nmat, 'canberra input')
    return _square(_condensed(values, 'canberra'), nmat.rownames(), 'canberra')


def mahalanobis_distances(data: Any,
                          regularization: float = 0.0,
                          max_condition: float = 1e12) -> NamedMatrix:
    """
    Mahalanobis distance: sqrt((x - y)^T S^-1 (x - y)).

    S is the sample covariance of the columns, inverted once for all pairs.

    Args:
        data: Continuous-only slice
        regularization: Ridge term added to the diagonal of S before inversion
        max_condition: Largest condition number of S accepted

    Returns:
        N x N distance matrix

    Raises:
        SingularCovariance: if S is not invertible (collinear columns, or no
            more rows than columns) and no regularization is given
    """
    nmat = as_named_matrix(data)
    values = _numeric(nmat, 'mahalanobis input')
    inverse = inverse_covariance(values, regularization, max_condition)
    dists = _condensed(values, 'mahalanobis', VI=inverse)
    return _square(dists, nmat.rownames(), 'mahalanobis')


def jaccard_distances(data: Any) -> NamedMatrix:
    """
    Jaccard distance between binary rows.

    1 - |positions where both are 1| / |positions where at least one is 1|.
    Two all-zero rows are at distance 0.

    Args:
        data: Binary-only slice (0/1 or boolean)

    Returns:
        N x N distance matrix
    """
    nmat = as_named_matrix(data)
    values = _binary(nmat, 'jaccard input')
    return _square(mirror_upper(_jaccard(values, values)), nmat.rownames(), 'jaccard')


def sokal_michener_distances(data: Any) -> NamedMatrix:
    """
    Sokal-Michener (simple matching) distance.

    1 - matching positions / total features. Works on binary or categorical
    slices; absences that match count as matches, unlike jaccard.
    """
    nmat = as_named_matrix(data)
    values = _labels(nmat, 'sokal-michener input')
    dists = mirror_upper(_rowwise(values, values, _matching_kernel))
    return _square(dists, nmat.rownames(), 'sokal-michener')


def gower_distances(data: Any) -> NamedMatrix:
    """
    Gower distance for mixed-type records, via the gower package.

    Mean over all features of a per-feature dissimilarity in [0, 1]:
    |x - y| / range for continuous features (0 when the range is 0), and
    0/1 mismatch for binary and categorical features.

    Args:
        data: A Dataset (a frame or NamedMatrix has its schema inferred)

    Returns:
        N x N distance matrix
    """
    dataset = data if isinstance(data, Dataset) else Dataset(as_named_matrix(data).matrix)
    frame = dataset.frame
    cat_features = [c.kind != ColumnType.CONTINUOUS for c in dataset.schema.columns]

    # gower_matrix scales by the column maximum, so shift continuous columns to start at 0
    continuous = dataset.schema.names(ColumnType.CONTINUOUS)
    if continuous:
        frame[continuous] = frame[continuous] - frame[continuous].min()

    dists = np.asarray(gower.gower_matrix(frame, cat_features=cat_features), dtype=float)
    return _square(mirror_upper(dists), dataset.record_ids, 'gower')


_SQUARE_FUNCS = {
    'euclidean': euclidean_distances,
    'manhattan': manhattan_distances,
    'canberra': canberra_distances,
    'mahalanobis': mahalanobis_distances,
    'jaccard': jaccard_distances,
    'sokal-michener': sokal_michener_distances,
    'gower': gower_distances,
}


def distance_matrix(data: Any, metric: str = 'euclidean', **options: Any) -> NamedMatrix:
    """
    Compute the pairwise distance matrix of data under a metric.

    When data is a Dataset, the slice matching the metric's column group is
    used: continuous columns for euclidean/manhattan/canberra/mahalanobis,
    binary plus one-hot categorical indicators for jaccard, binary plus
    categorical labels for sokal-michener, and the whole dataset for gower.

    Args:
        data: Dataset, NamedMatrix, DataFrame, 2-D array or list of records
        metric: Metric name
        **options: Metric options (mahalanobis: regularization, max_condition)

    Returns:
        Read-only N x N NamedMatrix
    """
    name = normalize_metric(metric)
    if isinstance(data, Dataset):
        data = data.slice_for(METRIC_GROUPS[name])
    if options and name != 'mahalanobis':
        raise TypeError(f"Metric '{name}' takes no options, got {sorted(options)}")
    return _SQUARE_FUNCS[name](data, **options)


def cross_distances(a: Any, b: Any, metric: str = 'euclidean', **options: Any) -> NamedMatrix:
    """
    Distances between every row of a and every row of b.

    For mahalanobis, the covariance is estimated from the rows of a and b
    together.

    Args:
        a: First slice (N x P)
        b: Second slice (M x P)
        metric: Metric name (gower is not supported here)
        **options: Metric options

    Returns:
        N x M NamedMatrix, rows labelled by a and columns by b

    Raises:
        ShapeMismatch: if a and b do not have the same number of columns
    """
    name = normalize_metric(metric)
    if name == 'gower':
        raise ValueError("cross_distances does not support the gower metric")

    left = as_named_matrix(a)
    right = as_named_matrix(b)
    if left.shape[1] != right.shape[1]:
        raise ShapeMismatch(
            f"Cannot compare datasets with {left.shape[1]} and {right.shape[1]} columns"
        )

    if name in ('euclidean', 'manhattan', 'canberra'):
        x, y = _numeric(left, 'left input'), _numeric(right, 'right input')
        dists = cdist(x, y, metric='cityblock' if name == 'manhattan' else name)
    elif name == 'mahalanobis':
        x, y = _numeric(left, 'left input'), _numeric(right, 'right input')
        inverse = inverse_covariance(np.vstack([x, y]), **options)
        dists = cdist(x, y, metric='mahalanobis', VI=inverse)
    elif name == 'jaccard':
        dists = _jaccard(_binary(left, 'left input'), _binary(right, 'right input'))
    else:
        dists = _rowwise(_labels(left, 'left input'), _labels(right, 'right input'),
                         _matching_kernel)

    return NamedMatrix(dists, left.rownames(), right.rownames(), read_only=True)


def iter_distance_matrices(data: Any,
                           metrics: Optional[Iterable[str]] = None,
                           options: Optional[Dict[str, Dict[str, Any]]] = None
                           ) -> Iterator[Tuple[str, NamedMatrix]]:
    """
    Lazily compute distance matrices, one metric at a time.

    Only the matrix currently yielded is alive unless the caller keeps it.

    Args:
        data: Dataset or slice
        metrics: Metric names (defaults to every metric valid for data)
        options: Per-metric options, keyed by canonical metric name

    Yields:
        (metric, distance matrix) pairs in the order requested
    """
    if metrics is None:
        metrics = list(METRIC_GROUPS) if isinstance(data, Dataset) else [
            'euclidean', 'manhattan', 'canberra', 'mahalanobis'
        ]
    options = options or {}

    for metric in metrics:
        name = normalize_metric(metric)
        logger.debug(f"Computing {name} distance matrix")
        yield name, distance_matrix(data, name, **options.get(name, {}))


def is_distance_matrix(matrix: Union[NamedMatrix, np.ndarray], atol: float = 1e-12) -> bool:
    """
    Check the distance-matrix invariants: square, symmetric, non-negative,
    zero diagonal.
    """
    values = matrix.values if isinstance(matrix, NamedMatrix) else np.asarray(matrix)
    if values.ndim != 2 or values.shape[0] != values.shape[1]:
        return False
    values = values.astype(float)
    return bool(
        np.all(np.isfinite(values))
        and np.allclose(values, values.T, rtol=0.0, atol=atol)
        and np.all(values >= -atol)
        and np.allclose(np.diag(values), 0.0, rtol=0.0, atol=atol)
    )
