"""
Tests for the analysis run context.
"""

import inspect
import pytest
import numpy as np
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ecommath.components.config import Config, ConfigManager
from ecommath.math.distance import distance_matrix, is_distance_matrix
from ecommath.math.intercorrelation import intercorrelation_diagnostics
from ecommath.run import AnalysisRun


@pytest.fixture
def run(orders, config):
    return AnalysisRun(orders, config)


def test_default_seed(run):
    assert run.seed == 42


def test_explicit_seed(orders, config):
    assert AnalysisRun(orders, config, seed=5).seed == 5


def test_default_config_is_per_run(orders):
    first = AnalysisRun(orders)
    second = AnalysisRun(orders)

    assert first.config is not second.config
    first.config.set('run.seed', 9)
    assert second.config.get('run.seed') == 42


def test_ignores_shared_config(orders):
    ConfigManager.reset()
    try:
        ConfigManager.get_config({'run': {'seed': 3}})
        run = AnalysisRun(orders)
        assert run.seed == 42
        assert run.config is not ConfigManager.get_config()
    finally:
        ConfigManager.reset()


def test_distance_matrices_are_lazy(run):
    """Matrices are produced one metric at a time."""
    matrices = run.distance_matrices()
    assert inspect.isgenerator(matrices)

    names = []
    for name, matrix in matrices:
        names.append(name)
        assert matrix.shape == (40, 40)
        assert matrix.rownames() == run.dataset.record_ids
        assert is_distance_matrix(matrix)

    assert names == ['euclidean', 'manhattan', 'canberra', 'mahalanobis', 'jaccard', 'sokal-michener']


def test_distance_matrix_aliases(run):
    assert np.array_equal(run.distance_matrix('cityblock').values, run.distance_matrix('manhattan').values)


def test_mahalanobis_uses_config(orders):
    plain = AnalysisRun(orders, Config()).distance_matrix('mahalanobis')
    ridge = AnalysisRun(orders, Config({'distance': {'mahalanobis-regularization': 0.5}}))

    regularized = ridge.distance_matrix('mahalanobis')
    expected = distance_matrix(orders, 'mahalanobis', regularization=0.5)

    assert np.allclose(regularized.values, expected.values)
    assert not np.allclose(regularized.values, plain.values)


def test_pca_is_cached(run):
    pcs = run.pca()

    assert run.pca() is pcs
    assert pcs.variables == run.dataset.continuous().colnames()
    assert np.isclose(np.sum(pcs.variance_explained), 100.0)


def test_selected_components(run):
    pcs = run.pca()
    selected = run.selected_components()

    assert selected.n_components == pcs.n_components_for(95.0)
    assert run.selected_components(50.0).n_components <= selected.n_components


def test_diagnostics(run):
    summary = run.diagnostics()
    expected = intercorrelation_diagnostics(run.pca().correlation)

    assert summary == expected


def test_classical_mds(run):
    result = run.mds()

    assert result.method == 'classical'
    assert result.coordinates.shape == (40, 2)
    assert result.coordinates.rownames() == run.dataset.record_ids


def test_smacof_mds_is_reproducible(orders):
    config = Config({'mds': {'method': 'smacof', 'n-init': 1, 'max-iter': 50}})

    first = AnalysisRun(orders, config).mds('euclidean', n_components=3)
    second = AnalysisRun(orders, config).mds('euclidean', n_components=3)

    assert first.method == 'smacof'
    assert first.coordinates.shape == (40, 3)
    assert np.array_equal(first.coordinates.values, second.coordinates.values)


def test_compare_metrics(run):
    metrics = ['euclidean', 'manhattan', 'jaccard']
    result = run.compare_metrics(metrics)

    assert result.rownames() == metrics
    assert result.colnames() == metrics
    assert np.array_equal(np.diag(result.values), np.ones(3))
    assert np.allclose(result.values, result.values.T)
    assert np.all(np.abs(result.values) <= 1.0 + 1e-12)
    # Euclidean and manhattan agree closely on the same continuous columns
    assert result.get('euclidean', 'manhattan') > 0.5


def test_sample(run):
    sub = run.sample(15)

    assert len(sub.dataset) == 15
    assert sub.seed == run.seed
    assert sub.config is run.config
    assert sub.dataset.record_ids == run.sample(15).dataset.record_ids


def test_summary(run):
    summary = run.summary()

    assert set(summary) == {'records', 'schema', 'seed', 'pca', 'selected_components', 'diagnostics'}
    assert summary['records'] == 40
    assert summary['seed'] == 42
    assert summary['schema']['region'] == 'categorical'
    assert summary['selected_components'] == run.selected_components().n_components
