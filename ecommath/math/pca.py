"""
PCA (Principal Component Analysis) implementation for ecommath.

Columns are standardized, their correlation matrix is decomposed, and the
eigenpairs are returned in descending order of eigenvalue as a
PrincipalComponentSet. Two solvers are available: a full symmetric
eigendecomposition (default) and power iteration with deflation for the
leading components only.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from sklearn.preprocessing import StandardScaler

from ecommath.errors import ShapeMismatch, SingularInput, ZeroVariance
from ecommath.math.named_matrix import NamedMatrix, as_named_matrix
from ecommath.utils.general import component_names, require_rows, to_float_array

logger = logging.getLogger(__name__)


def normalize_vector(v: np.ndarray) -> np.ndarray:
    """
    Normalize a vector to unit length.

    Args:
        v: Vector to normalize

    Returns:
        Normalized vector
    """
    norm = np.linalg.norm(v)
    if norm == 0:
        return v
    return v / norm


def sign_normalize(v: np.ndarray) -> np.ndarray:
    """
    Flip a vector so its largest-magnitude coefficient is positive.

    Args:
        v: Vector

    Returns:
        v or -v
    """
    peak = int(np.argmax(np.abs(v)))
    return -v if v[peak] < 0 else v


def power_iteration(matrix: np.ndarray,
                    iters: int = 1000,
                    start_vector: Optional[np.ndarray] = None,
                    tol: float = 1e-10) -> Tuple[float, np.ndarray]:
    """
    Find the dominant eigenpair of a symmetric matrix by power iteration.

    Args:
        matrix: Symmetric matrix
        iters: Maximum number of iterations
        start_vector: Initial vector (defaults to ones)
        tol: Convergence tolerance on the change of the vector

    Returns:
        (eigenvalue, unit eigenvector)
    """
    n_cols = matrix.shape[1]

    if start_vector is None:
        start_vector = np.ones(n_cols)
    vec = normalize_vector(np.asarray(start_vector, dtype=float))

    for _ in range(iters):
        product_vector = matrix @ vec
        if not np.any(product_vector):
            return 0.0, vec

        normed = normalize_vector(product_vector)

        # Check for convergence
        converged = np.linalg.norm(normed - vec) <= tol
        vec = normed
        if converged:
            break

    return float(vec @ matrix @ vec), vec


def powerit_eigenpairs(matrix: np.ndarray,
                       n_comps: int,
                       iters: int = 1000,
                       seed: Optional[int] = None) -> Tuple[np.ndarray, np.ndarray]:
    """
    Find the leading n_comps eigenpairs by power iteration with deflation.

    Args:
        matrix: Symmetric positive semi-definite matrix
        n_comps: Number of eigenpairs to find
        iters: Maximum iterations per eigenpair
        seed: Seed for the random start vectors

    Returns:
        (eigenvalues, eigenvectors as columns)
    """
    rng = np.random.default_rng(seed)
    deflated = matrix.copy()
    eigvals = []
    eigvecs = []

    for _ in range(n_comps):
        start_vector = rng.standard_normal(matrix.shape[1])
        eigval, vec = power_iteration(deflated, iters, start_vector)
        eigvals.append(eigval)
        eigvecs.append(vec)
        # Factor this component out of the matrix
        deflated = deflated - eigval * np.outer(vec, vec)

    return np.array(eigvals), np.column_stack(eigvecs)


@dataclass(frozen=True)
class PrincipalComponentSet:
    """
    Ordered principal components of a standardized continuous dataset.

    Attributes:
        eigenvalues: Correlation-matrix eigenvalue of each component
        loadings: Variables x components loading matrix (PC1, PC2, ...)
        variance_explained: Percent of total variance per component
        cumulative_variance: Running sum of variance_explained
        center: Column means used for standardization
        scale: Column standard deviations used for standardization
        correlation: Correlation matrix that was decomposed
    """
    eigenvalues: np.ndarray
    loadings: NamedMatrix
    variance_explained: np.ndarray
    cumulative_variance: np.ndarray
    center: np.ndarray
    scale: np.ndarray
    correlation: NamedMatrix

    @property
    def n_components(self) -> int:
        return len(self.eigenvalues)

    @property
    def variables(self) -> List[Any]:
        return self.loadings.rownames()

    @property
    def component_names(self) -> List[str]:
        return self.loadings.colnames()

    def loading_vector(self, k: int) -> np.ndarray:
        """Loading vector of component k (0-based)."""
        return self.loadings.values[:, k]

    def n_components_for(self, threshold: float) -> int:
        """
        Smallest number of leading components whose cumulative variance
        explained reaches threshold percent.

        Args:
            threshold: Target cumulative variance, in (0, 100]

        Returns:
            Number of components (all of them if the target is never reached)
        """
        if not 0 < threshold <= 100:
            raise ValueError(f"Variance threshold must be in (0, 100], got {threshold}")
        reached = np.nonzero(self.cumulative_variance >= threshold - 1e-9)[0]
        if len(reached) == 0:
            return self.n_components
        return int(reached[0]) + 1

    def truncate(self, k: int) -> 'PrincipalComponentSet':
        """
        Keep only the first k components.
        """
        if not 1 <= k <= self.n_components:
            raise ValueError(f"Component count must be in [1, {self.n_components}], got {k}")
        return PrincipalComponentSet(
            eigenvalues=self.eigenvalues[:k],
            loadings=self.loadings.colname_subset(self.component_names[:k]),
            variance_explained=self.variance_explained[:k],
            cumulative_variance=self.cumulative_variance[:k],
            center=self.center,
            scale=self.scale,
            correlation=self.correlation
        )

    def standardize(self, data: Any) -> np.ndarray:
        """
        Standardize new rows with this set's center and scale.
        """
        nmat = as_named_matrix(data)
        values = to_float_array(nmat.matrix, 'projection input')
        require_rows(values, 'projection input')
        if values.shape[1] != len(self.center):
            raise ShapeMismatch(
                f"Expected {len(self.center)} columns, got {values.shape[1]}"
            )
        return (values - self.center) / self.scale

    def scores(self, data: Any) -> NamedMatrix:
        """
        Project rows onto the components.

        Args:
            data: Continuous slice with the same columns as the fitted data

        Returns:
            Rows x components score matrix
        """
        nmat = as_named_matrix(data)
        z = self.standardize(nmat)
        return NamedMatrix(z @ self.loadings.values, nmat.rownames(), self.component_names)

    def reconstruct(self, scores: Any) -> NamedMatrix:
        """
        Map scores back to standardized variable space.

        Args:
            scores: Rows x components score matrix

        Returns:
            Rows x variables standardized data
        """
        nmat = as_named_matrix(scores)
        values = np.asarray(nmat.values, dtype=float)
        if values.shape[1] != self.n_components:
            raise ShapeMismatch(
                f"Expected {self.n_components} score columns, got {values.shape[1]}"
            )
        return NamedMatrix(values @ self.loadings.values.T, nmat.rownames(), self.variables)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to plain python structures for the reporting layer.
        """
        return {
            'variables': [str(v) for v in self.variables],
            'components': self.component_names,
            'eigenvalues': self.eigenvalues.tolist(),
            'loadings': self.loadings.values.tolist(),
            'variance_explained': self.variance_explained.tolist(),
            'cumulative_variance': self.cumulative_variance.tolist()
        }


def standardize(data: Any) -> Tuple[NamedMatrix, np.ndarray, np.ndarray]:
    """
    Standardize each column: subtract its mean, divide by its standard deviation.

    The population standard deviation (ddof=0) is used.

    Args:
        data: Continuous-only slice

    Returns:
        (standardized matrix, column means, column standard deviations)

    Raises:
        ZeroVariance: if any column is constant
    """
    nmat = as_named_matrix(data)
    values = to_float_array(nmat.matrix, 'PCA input')
    require_rows(values, 'PCA input')

    constant = [col for col, spread in zip(nmat.colnames(), np.ptp(values, axis=0)) if spread == 0]
    if constant:
        raise ZeroVariance(f"Column(s) {constant} have zero variance")

    scaler = StandardScaler()
    z = scaler.fit_transform(values)
    return NamedMatrix(z, nmat.rownames(), nmat.colnames()), scaler.mean_, scaler.scale_


def _order_eigenpairs(eigvals: np.ndarray, eigvecs: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sort eigenpairs by descending eigenvalue and sign-normalize the vectors.

    Exact ties are broken by the column index of each vector's
    largest-magnitude coefficient.
    """
    eigvecs = np.column_stack([sign_normalize(eigvecs[:, k]) for k in range(eigvecs.shape[1])])
    peaks = np.argmax(np.abs(eigvecs), axis=0)
    order = np.lexsort((peaks, -eigvals))
    return eigvals[order], eigvecs[:, order]


def principal_components(data: Any,
                         n_components: Optional[int] = None,
                         solver: str = 'eigh',
                         psd_tolerance: float = 1e-8,
                         power_iters: int = 1000,
                         seed: Optional[int] = None) -> PrincipalComponentSet:
    """
    Compute the principal components of a continuous dataset.

    At most min(N - 1, P) components are returned: with N rows the
    standardized data has rank at most N - 1, so the remaining eigenvalues
    are zero.

    Args:
        data: Continuous-only slice, N rows by P columns
        n_components: Number of components to keep (default: all available)
        solver: 'eigh' for a full eigendecomposition, 'power' for power iteration
        psd_tolerance: Eigenvalues below -psd_tolerance * P are rejected
        power_iters: Iteration cap for the power solver
        seed: Seed for the power solver's start vectors

    Returns:
        PrincipalComponentSet ordered by descending variance explained

    Raises:
        ZeroVariance: if any column is constant (including N == 1)
        SingularInput: if the correlation matrix is not positive semi-definite
    """
    z_nmat, center, scale = standardize(data)
    z = z_nmat.values
    n_rows, n_cols = z.shape

    corr = (z.T @ z) / n_rows
    corr = (corr + corr.T) / 2
    np.fill_diagonal(corr, 1.0)
    if not np.all(np.isfinite(corr)):
        raise SingularInput("Correlation matrix contains non-finite values")

    max_comps = min(n_rows - 1, n_cols)
    if n_components is None:
        n_components = max_comps
    elif not 1 <= n_components <= n_cols:
        raise ValueError(f"n_components must be in [1, {n_cols}], got {n_components}")
    n_components = min(n_components, max_comps)

    logger.info(f"Running PCA ({solver}) on {n_rows} rows x {n_cols} columns, "
                f"keeping {n_components} component(s)")

    if solver == 'eigh':
        eigvals, eigvecs = np.linalg.eigh(corr)
    elif solver == 'power':
        eigvals, eigvecs = powerit_eigenpairs(corr, n_components, power_iters, seed)
    else:
        raise ValueError(f"Unknown PCA solver: {solver}")

    tolerance = psd_tolerance * n_cols
    if np.min(eigvals) < -tolerance:
        raise SingularInput(
            f"Correlation matrix is not positive semi-definite (eigenvalue {np.min(eigvals):.3g})"
        )
    eigvals = np.clip(eigvals, 0.0, None)

    eigvals, eigvecs = _order_eigenpairs(eigvals, eigvecs)
    eigvals = eigvals[:n_components]
    eigvecs = eigvecs[:, :n_components]

    # The trace of a correlation matrix is P, the sum of all its eigenvalues
    variance_explained = eigvals / np.trace(corr) * 100.0
    cumulative = np.cumsum(variance_explained)

    names = component_names(n_components)
    variables = z_nmat.colnames()
    return PrincipalComponentSet(
        eigenvalues=eigvals,
        loadings=NamedMatrix(eigvecs, variables, names, read_only=True),
        variance_explained=variance_explained,
        cumulative_variance=cumulative,
        center=center,
        scale=scale,
        correlation=NamedMatrix(corr, variables, variables, read_only=True)
    )


def select_components(pcs: PrincipalComponentSet, threshold: float = 95.0) -> PrincipalComponentSet:
    """
    Keep the smallest prefix of components reaching a cumulative variance target.

    Args:
        pcs: Full component set
        threshold: Cumulative variance explained to reach, in percent

    Returns:
        Truncated PrincipalComponentSet
    """
    k = pcs.n_components_for(threshold)
    logger.debug(f"{k} component(s) reach {threshold}% cumulative variance")
    return pcs.truncate(k)


def pca_project_named_matrix(nmat: NamedMatrix,
                             n_comps: Optional[int] = None,
                             **kwargs: Any) -> Tuple[PrincipalComponentSet, NamedMatrix]:
    """
    Perform PCA on a NamedMatrix and project its rows.

    Args:
        nmat: Continuous slice
        n_comps: Number of components to keep
        **kwargs: Passed to principal_components

    Returns:
        Tuple of (component set, rows x components scores)
    """
    pcs = principal_components(nmat, n_components=n_comps, **kwargs)
    return pcs, pcs.scores(nmat)
