"""
Analysis run context for ecommath.

An AnalysisRun ties one validated Dataset to one Config and one random
seed. Every step of the analysis (distance matrices, PCA, intercorrelation
diagnostics, MDS, metric comparison) reads its settings from the run rather
than from global state, and distance matrices are computed one metric at a
time.
"""

import itertools
import logging
import time
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import numpy as np

from ecommath.components.config import Config
from ecommath.dataset import Dataset
from ecommath.math.distance import distance_matrix, iter_distance_matrices, normalize_metric
from ecommath.math.intercorrelation import IntercorrelationSummary, intercorrelation_diagnostics
from ecommath.math.mds import MDSResult, compare_distance_matrices, embed
from ecommath.math.named_matrix import NamedMatrix
from ecommath.math.pca import PrincipalComponentSet, principal_components, select_components

logger = logging.getLogger(__name__)


class AnalysisRun:
    """
    One analysis over one dataset snapshot.
    """

    def __init__(self,
                 dataset: Dataset,
                 config: Optional[Config] = None,
                 seed: Optional[int] = None):
        """
        Initialize a run.

        Args:
            dataset: Validated dataset
            config: Configuration (a fresh default Config when omitted)
            seed: Random seed (config run.seed when omitted)
        """
        self.dataset = dataset
        self.config = config or Config()
        self.seed = seed if seed is not None else self.config.get('run.seed')

        self._pca = None

    def _metric_options(self, metric: str) -> Dict[str, Any]:
        if metric == 'mahalanobis':
            return {
                'regularization': float(self.config.get('distance.mahalanobis-regularization', 0.0)),
                'max_condition': float(self.config.get('distance.max-condition', 1e12))
            }
        return {}

    def _metrics(self, metrics: Optional[Iterable[str]]) -> List[str]:
        if metrics is None:
            metrics = self.config.get('distance.default-metrics')
        return [normalize_metric(m) for m in metrics]

    def sample(self, n: int) -> 'AnalysisRun':
        """
        Return a run over a seeded random subset of n records.
        """
        return AnalysisRun(self.dataset.sample(n, self.seed), self.config, self.seed)

    def distance_matrix(self, metric: str) -> NamedMatrix:
        """
        Compute one distance matrix with this run's settings.
        """
        name = normalize_metric(metric)
        start_time = time.time()
        result = distance_matrix(self.dataset, name, **self._metric_options(name))
        logger.info(f"{name} distance matrix for {len(self.dataset)} records "
                    f"computed in {time.time() - start_time:.2f}s")
        return result

    def distance_matrices(self, metrics: Optional[Iterable[str]] = None) -> Iterator[Tuple[str, NamedMatrix]]:
        """
        Lazily yield (metric, matrix) pairs, one metric at a time.
        """
        names = self._metrics(metrics)
        options = {name: self._metric_options(name) for name in names}
        return iter_distance_matrices(self.dataset, names, options)

    def pca(self) -> PrincipalComponentSet:
        """
        Principal components of the continuous columns (cached per run).
        """
        if self._pca is None:
            start_time = time.time()
            self._pca = principal_components(
                self.dataset.continuous(),
                solver=self.config.get('pca.solver', 'eigh'),
                psd_tolerance=float(self.config.get('pca.psd-tolerance', 1e-8)),
                power_iters=int(self.config.get('pca.power-iters', 1000)),
                seed=self.seed
            )
            logger.info(f"PCA completed in {time.time() - start_time:.2f}s")
        return self._pca

    def selected_components(self, threshold: Optional[float] = None) -> PrincipalComponentSet:
        """
        Smallest prefix of components reaching the variance threshold.
        """
        if threshold is None:
            threshold = float(self.config.get('pca.variance-threshold', 95.0))
        return select_components(self.pca(), threshold)

    def diagnostics(self) -> IntercorrelationSummary:
        """
        Intercorrelation diagnostics of the continuous columns.
        """
        pcs = self.pca()
        return intercorrelation_diagnostics(
            pcs.correlation,
            tolerance=float(self.config.get('diagnostics.singular-tolerance', 1e-10))
        )

    def mds(self, metric: str = 'euclidean', method: Optional[str] = None,
            n_components: Optional[int] = None) -> MDSResult:
        """
        Embed the records under one distance metric.
        """
        method = method or self.config.get('mds.method', 'classical')
        n_components = n_components or int(self.config.get('mds.n-components', 2))
        distances = self.distance_matrix(metric)

        kwargs = {}
        if method == 'smacof':
            kwargs = {
                'seed': self.seed,
                'n_init': int(self.config.get('mds.n-init', 4)),
                'max_iter': int(self.config.get('mds.max-iter', 300))
            }
        return embed(distances, method, n_components, **kwargs)

    def compare_metrics(self, metrics: Optional[Iterable[str]] = None,
                        method: str = 'pearson') -> NamedMatrix:
        """
        Correlate the distance matrices of every pair of metrics.

        Matrices are recomputed per pair so that at most two are held at
        once.

        Returns:
            Metrics x metrics correlation matrix
        """
        names = self._metrics(metrics)
        result = np.eye(len(names))
        for (i, a), (j, b) in itertools.combinations(enumerate(names), 2):
            corr = compare_distance_matrices(self.distance_matrix(a), self.distance_matrix(b), method)
            result[i, j] = result[j, i] = corr
        return NamedMatrix(result, names, names, read_only=True)

    def summary(self, threshold: Optional[float] = None) -> Dict[str, Any]:
        """
        PCA and diagnostics as plain python structures for the reporting layer.
        """
        selected = self.selected_components(threshold)
        return {
            'records': len(self.dataset),
            'schema': self.dataset.schema.to_dict(),
            'seed': self.seed,
            'pca': self.pca().to_dict(),
            'selected_components': selected.n_components,
            'diagnostics': self.diagnostics().to_dict()
        }
