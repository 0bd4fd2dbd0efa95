"""
Correlation and hierarchical ordering for ecommath.

This module computes correlation matrices between continuous columns and
orders labelled matrices (distance or correlation) by hierarchical
clustering, so a heatmap renderer shows their block structure.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import numpy as np
import scipy.cluster.hierarchy as hcluster
from scipy.spatial.distance import squareform

from ecommath.errors import ZeroVariance
from ecommath.math.named_matrix import NamedMatrix, as_named_matrix
from ecommath.utils.general import require_rows, require_square_symmetric, to_float_array

logger = logging.getLogger(__name__)

CORRELATION_METHODS = ('pearson', 'spearman', 'kendall')


def correlation_matrix(data: Any, method: str = 'pearson') -> NamedMatrix:
    """
    Compute the correlation matrix between the columns of a continuous slice.

    Args:
        data: Continuous-only slice (NamedMatrix, DataFrame or 2-D array)
        method: Correlation method ('pearson', 'spearman', or 'kendall')

    Returns:
        Read-only P x P correlation matrix labelled by column names, with a
        unit diagonal and values clipped to [-1, 1]

    Raises:
        ZeroVariance: if any column is constant
    """
    if method not in CORRELATION_METHODS:
        raise ValueError(f"Unknown correlation method: {method}")

    nmat = as_named_matrix(data)
    frame = nmat.matrix
    values = to_float_array(frame, 'correlation input')
    require_rows(values, 'correlation input')

    constant = [col for col, spread in zip(nmat.colnames(), np.ptp(values, axis=0)) if spread == 0]
    if constant:
        raise ZeroVariance(f"Column(s) {constant} have zero variance")

    corr = frame.astype(float).corr(method=method).to_numpy()
    corr = np.clip((corr + corr.T) / 2, -1.0, 1.0)
    np.fill_diagonal(corr, 1.0)

    return NamedMatrix(corr, nmat.colnames(), nmat.colnames(), read_only=True)


def hierarchical_order(matrix: NamedMatrix,
                       method: str = 'average',
                       kind: str = 'distance') -> List[Any]:
    """
    Order the rows of a square matrix by hierarchical clustering.

    Args:
        matrix: Distance matrix, or correlation matrix with kind='correlation'
        method: Linkage method ('single', 'complete', 'average', 'weighted')
        kind: 'distance' to use the values as dissimilarities, 'correlation'
            to use 1 - r

    Returns:
        Row names in dendrogram leaf order
    """
    values = require_square_symmetric(matrix.values, 'ordering input')
    names = matrix.rownames()
    if len(names) < 3:
        return names

    if kind == 'correlation':
        values = 1.0 - values
    elif kind != 'distance':
        raise ValueError(f"Unknown matrix kind: {kind}")

    values = values.copy()
    np.fill_diagonal(values, 0.0)
    distances = squareform(np.clip(values, 0.0, None), checks=False)
    linkage = hcluster.linkage(distances, method=method)
    return [names[i] for i in hcluster.leaves_list(linkage)]


def blockify(matrix: NamedMatrix, order: Optional[List[Any]] = None, **kwargs: Any) -> NamedMatrix:
    """
    Reorder a square matrix so related rows and columns sit together.

    Args:
        matrix: Square labelled matrix
        order: Row order (computed with hierarchical_order when omitted)
        **kwargs: Passed to hierarchical_order

    Returns:
        Reordered matrix
    """
    if order is None:
        order = hierarchical_order(matrix, **kwargs)
    return matrix.reorder(order)


def prepare_matrix_export(matrix: NamedMatrix, order: Optional[List[Any]] = None) -> Dict[str, Any]:
    """
    Prepare a labelled matrix for export to JSON.

    Args:
        matrix: Matrix to export
        order: Optional heatmap row order to include

    Returns:
        Export-ready dictionary
    """
    result = matrix.to_dict()
    result['rows'] = [str(r) for r in result['rows']]
    result['cols'] = [str(c) for c in result['cols']]
    if order is not None:
        result['order'] = [str(r) for r in order]
    return result


def save_matrix_to_json(matrix: NamedMatrix, filepath: str, order: Optional[List[Any]] = None) -> None:
    """
    Save a labelled matrix to a JSON file.

    Args:
        matrix: Matrix to save
        filepath: Path to save the JSON file
        order: Optional heatmap row order to include
    """
    with open(filepath, 'w') as f:
        json.dump(prepare_matrix_export(matrix, order), f)
    logger.info(f"Saved {matrix.shape[0]}x{matrix.shape[1]} matrix to {filepath}")
