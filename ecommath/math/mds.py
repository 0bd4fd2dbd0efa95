"""
Multidimensional scaling for ecommath.

Embeds the records of a distance matrix in a low-dimensional space, and
compares distance matrices produced by different metrics over the same
records.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import numpy as np
from scipy import stats as scipy_stats
from sklearn.manifold import smacof

from ecommath.errors import EmptyInput, ShapeMismatch
from ecommath.math.named_matrix import NamedMatrix
from ecommath.utils.general import component_names, require_square_symmetric, upper_triangle

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MDSResult:
    """
    An embedding of the records of a distance matrix.

    Attributes:
        coordinates: Records x dimensions (Dim1, Dim2, ...)
        stress: Kruskal stress-1 of the embedding
        method: 'classical' or 'smacof'
        eigenvalues: Leading eigenvalues of the double-centered matrix
            (classical scaling only)
    """
    coordinates: NamedMatrix
    stress: float
    method: str
    eigenvalues: Optional[np.ndarray] = None

    def to_dict(self) -> Dict[str, Any]:
        result = self.coordinates.to_dict()
        result['stress'] = self.stress
        result['method'] = self.method
        if self.eigenvalues is not None:
            result['eigenvalues'] = self.eigenvalues.tolist()
        return result


def _distances(distances: NamedMatrix) -> np.ndarray:
    return require_square_symmetric(distances.values, 'distance matrix')


def kruskal_stress(distances: Any, coordinates: Any) -> float:
    """
    Kruskal stress-1: sqrt(sum (d_ij - e_ij)^2 / sum d_ij^2) over pairs i < j,
    e_ij being the euclidean distance between embedded points.

    Args:
        distances: N x N distance matrix
        coordinates: N x k embedding

    Returns:
        Stress (0 for a perfect embedding, 0 when all distances are 0)
    """
    d = distances.values if isinstance(distances, NamedMatrix) else np.asarray(distances)
    x = coordinates.values if isinstance(coordinates, NamedMatrix) else np.asarray(coordinates)
    if d.shape[0] != x.shape[0]:
        raise ShapeMismatch(f"{d.shape[0]} distances rows but {x.shape[0]} embedded points")

    diff = x[:, None, :] - x[None, :, :]
    embedded = np.sqrt((diff ** 2).sum(axis=2))
    original = upper_triangle(np.asarray(d, dtype=float))
    fitted = upper_triangle(embedded)
    denominator = np.sum(original ** 2)
    if denominator == 0:
        return 0.0
    return float(np.sqrt(np.sum((original - fitted) ** 2) / denominator))


def classical_mds(distances: NamedMatrix, n_components: int = 2) -> MDSResult:
    """
    Classical (Torgerson) scaling.

    Double-centers the squared distances, keeps the leading eigenpairs and
    scales the eigenvectors by the square roots of their eigenvalues.
    Negative eigenvalues (non-euclidean distances) are clipped to 0.

    Args:
        distances: N x N distance matrix
        n_components: Embedding dimension

    Returns:
        MDSResult
    """
    d = _distances(distances)
    n = d.shape[0]
    if n_components < 1:
        raise ValueError(f"n_components must be positive, got {n_components}")

    centering = np.eye(n) - np.ones((n, n)) / n
    b = -0.5 * centering @ (d ** 2) @ centering
    b = (b + b.T) / 2

    eigvals, eigvecs = np.linalg.eigh(b)
    order = np.argsort(eigvals)[::-1][:n_components]
    eigvals = eigvals[order]
    eigvecs = eigvecs[:, order]

    if np.any(eigvals < 0):
        logger.warning("Distance matrix is not euclidean; clipping negative eigenvalues")
    eigvals = np.clip(eigvals, 0.0, None)

    coords = eigvecs * np.sqrt(eigvals)
    # Pad when there are fewer records than requested dimensions
    if coords.shape[1] < n_components:
        coords = np.hstack([coords, np.zeros((n, n_components - coords.shape[1]))])
        eigvals = np.concatenate([eigvals, np.zeros(n_components - len(eigvals))])

    coordinates = NamedMatrix(coords, distances.rownames(), component_names(n_components, 'Dim'),
                              read_only=True)
    return MDSResult(coordinates, kruskal_stress(d, coords), 'classical', eigvals)


def smacof_mds(distances: NamedMatrix,
               n_components: int = 2,
               seed: Optional[int] = None,
               n_init: int = 4,
               max_iter: int = 300) -> MDSResult:
    """
    Metric MDS by stress majorization (SMACOF), via scikit-learn.

    Args:
        distances: N x N distance matrix
        n_components: Embedding dimension
        seed: Random seed for the initial configurations
        n_init: Number of random restarts
        max_iter: Iteration cap per restart

    Returns:
        MDSResult
    """
    d = _distances(distances)
    n = d.shape[0]
    names = component_names(n_components, 'Dim')

    if n < 2:
        coords = np.zeros((n, n_components))
    else:
        coords, _ = smacof(d, n_components=n_components, n_init=n_init,
                           max_iter=max_iter, random_state=seed)

    coordinates = NamedMatrix(coords, distances.rownames(), names, read_only=True)
    return MDSResult(coordinates, kruskal_stress(d, coords), 'smacof')


def embed(distances: NamedMatrix, method: str = 'classical', n_components: int = 2,
          **kwargs: Any) -> MDSResult:
    """
    Embed a distance matrix with the named MDS method.
    """
    logger.info(f"Running {method} MDS on {distances.shape[0]} records")
    if method == 'classical':
        return classical_mds(distances, n_components)
    if method == 'smacof':
        return smacof_mds(distances, n_components, **kwargs)
    raise ValueError(f"Unknown MDS method: {method}")


def compare_distance_matrices(a: NamedMatrix, b: NamedMatrix, method: str = 'pearson') -> float:
    """
    Correlate two distance matrices over the same records.

    The strict upper triangles are compared; when both matrices carry the
    same labels in a different order, b is aligned to a first.

    Args:
        a: N x N distance matrix
        b: N x N distance matrix
        method: 'pearson', 'spearman' or 'kendall'

    Returns:
        Correlation coefficient (NaN when either matrix has constant
        off-diagonal entries)

    Raises:
        ShapeMismatch: if the matrices differ in shape or records
        EmptyInput: if there are fewer than three records
    """
    if a.shape != b.shape:
        raise ShapeMismatch(f"Cannot compare distance matrices of shapes {a.shape} and {b.shape}")
    if a.rownames() != b.rownames():
        if set(map(str, a.rownames())) != set(map(str, b.rownames())):
            raise ShapeMismatch("Distance matrices do not cover the same records")
        b = b.reorder(a.rownames())

    left = upper_triangle(_distances(a))
    right = upper_triangle(_distances(b))
    if len(left) < 2:
        raise EmptyInput("Comparing distance matrices needs at least three records")

    if np.ptp(left) == 0 or np.ptp(right) == 0:
        logger.warning("Distance matrix has constant entries; correlation is undefined")
        return float('nan')

    if method == 'pearson':
        corr, _ = scipy_stats.pearsonr(left, right)
    elif method == 'spearman':
        corr, _ = scipy_stats.spearmanr(left, right)
    elif method == 'kendall':
        corr, _ = scipy_stats.kendalltau(left, right)
    else:
        raise ValueError(f"Unknown correlation method: {method}")

    return float(corr)
