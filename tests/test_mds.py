"""
Tests for the multidimensional scaling module.
"""

import pytest
import numpy as np
import pandas as pd
import sys
import os

# Add the parent directory to the path to import the module
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from ecommath.errors import EmptyInput, ShapeMismatch
from ecommath.math.distance import euclidean_distances, manhattan_distances
from ecommath.math.mds import (
    MDSResult, classical_mds, compare_distance_matrices, embed, kruskal_stress, smacof_mds
)
from ecommath.math.named_matrix import NamedMatrix


def planar_points(rng, n=12):
    frame = pd.DataFrame(rng.normal(size=(n, 2)) * 5.0, index=[f"o{i}" for i in range(n)])
    return frame


class TestKruskalStress:
    """Tests for kruskal_stress."""

    def test_perfect_embedding(self, rng):
        points = planar_points(rng)
        distances = euclidean_distances(points)

        assert np.isclose(kruskal_stress(distances, points.to_numpy()), 0.0)

    def test_known_value(self):
        distances = np.array([
            [0.0, 2.0],
            [2.0, 0.0]
        ])
        coords = np.array([[0.0], [1.0]])

        # sqrt((2 - 1)^2 / 2^2)
        assert np.isclose(kruskal_stress(distances, coords), 0.5)

    def test_zero_distances(self):
        assert kruskal_stress(np.zeros((3, 3)), np.zeros((3, 2))) == 0.0

    def test_shape_mismatch(self):
        with pytest.raises(ShapeMismatch):
            kruskal_stress(np.zeros((3, 3)), np.zeros((2, 2)))


class TestClassicalMDS:
    """Tests for classical scaling."""

    def test_recovers_euclidean_distances(self, rng):
        points = planar_points(rng)
        distances = euclidean_distances(points)

        result = classical_mds(distances, n_components=2)

        assert isinstance(result, MDSResult)
        assert result.method == 'classical'
        assert np.isclose(result.stress, 0.0, atol=1e-8)
        assert np.allclose(euclidean_distances(result.coordinates).values, distances.values, atol=1e-8)

    def test_labels(self, rng):
        distances = euclidean_distances(planar_points(rng, n=5))
        result = classical_mds(distances, n_components=3)

        assert result.coordinates.rownames() == distances.rownames()
        assert result.coordinates.colnames() == ['Dim1', 'Dim2', 'Dim3']
        assert len(result.eigenvalues) == 3
        assert np.all(result.eigenvalues >= 0)

    def test_more_dimensions_than_records(self):
        distances = NamedMatrix(np.array([[0.0, 3.0], [3.0, 0.0]]), ['a', 'b'], ['a', 'b'])
        result = classical_mds(distances, n_components=3)

        assert result.coordinates.shape == (2, 3)
        assert np.isclose(kruskal_stress(distances, result.coordinates), 0.0)

    def test_non_euclidean_input(self, rng):
        distances = manhattan_distances(planar_points(rng))
        result = classical_mds(distances)

        assert result.stress >= 0.0
        assert np.all(np.isfinite(result.coordinates.values))

    def test_invalid_components(self, rng):
        with pytest.raises(ValueError):
            classical_mds(euclidean_distances(planar_points(rng)), n_components=0)


class TestSmacofMDS:
    """Tests for SMACOF scaling."""

    def test_shape_and_labels(self, rng):
        distances = euclidean_distances(planar_points(rng))
        result = smacof_mds(distances, n_components=2, seed=0)

        assert result.method == 'smacof'
        assert result.eigenvalues is None
        assert result.coordinates.shape == (12, 2)
        assert result.coordinates.rownames() == distances.rownames()
        assert result.stress < 0.1

    def test_deterministic_with_seed(self, rng):
        distances = euclidean_distances(planar_points(rng))

        first = smacof_mds(distances, seed=11)
        second = smacof_mds(distances, seed=11)

        assert np.array_equal(first.coordinates.values, second.coordinates.values)

    def test_single_record(self):
        distances = NamedMatrix(np.zeros((1, 1)), ['a'], ['a'])
        result = smacof_mds(distances, seed=0)

        assert result.coordinates.shape == (1, 2)
        assert result.stress == 0.0


class TestEmbed:
    """Tests for embed."""

    def test_dispatch(self, rng):
        distances = euclidean_distances(planar_points(rng))

        assert embed(distances, 'classical').method == 'classical'
        assert embed(distances, 'smacof', seed=1).method == 'smacof'

    def test_unknown_method(self, rng):
        with pytest.raises(ValueError):
            embed(euclidean_distances(planar_points(rng)), 'isomap')

    def test_to_dict(self, rng):
        result = embed(euclidean_distances(planar_points(rng, n=4)), 'classical').to_dict()

        assert result['method'] == 'classical'
        assert result['cols'] == ['Dim1', 'Dim2']
        assert len(result['values']) == 4
        assert len(result['eigenvalues']) == 2


class TestCompareDistanceMatrices:
    """Tests for compare_distance_matrices."""

    def test_identical(self, rng):
        distances = euclidean_distances(planar_points(rng))
        assert np.isclose(compare_distance_matrices(distances, distances), 1.0)

    def test_scaled(self, rng):
        distances = euclidean_distances(planar_points(rng))
        scaled = NamedMatrix(distances.values * 3.0, distances.rownames(), distances.colnames())

        assert np.isclose(compare_distance_matrices(distances, scaled), 1.0)
        assert np.isclose(compare_distance_matrices(distances, scaled, method='spearman'), 1.0)
        assert np.isclose(compare_distance_matrices(distances, scaled, method='kendall'), 1.0)

    def test_reordered_labels(self, rng):
        points = planar_points(rng)
        distances = euclidean_distances(points)
        shuffled = euclidean_distances(points.iloc[::-1])

        assert shuffled.rownames() != distances.rownames()
        assert np.isclose(compare_distance_matrices(distances, shuffled), 1.0)

    def test_different_metrics(self, rng):
        points = planar_points(rng)
        corr = compare_distance_matrices(euclidean_distances(points), manhattan_distances(points))

        assert 0.0 < corr <= 1.0

    def test_shape_mismatch(self, rng):
        points = planar_points(rng)
        with pytest.raises(ShapeMismatch):
            compare_distance_matrices(euclidean_distances(points), euclidean_distances(points.iloc[:5]))

    def test_different_records(self, rng):
        a = euclidean_distances(planar_points(rng, n=4))
        b = NamedMatrix(a.values, ['w', 'x', 'y', 'z'], ['w', 'x', 'y', 'z'])
        with pytest.raises(ShapeMismatch):
            compare_distance_matrices(a, b)

    def test_too_few_records(self, rng):
        distances = euclidean_distances(planar_points(rng, n=2))
        with pytest.raises(EmptyInput):
            compare_distance_matrices(distances, distances)

    def test_constant_entries(self):
        values = np.ones((3, 3)) - np.eye(3)
        flat = NamedMatrix(values, ['a', 'b', 'c'], ['a', 'b', 'c'])
        other = NamedMatrix(np.array([
            [0.0, 1.0, 2.0],
            [1.0, 0.0, 3.0],
            [2.0, 3.0, 0.0]
        ]), ['a', 'b', 'c'], ['a', 'b', 'c'])

        assert np.isnan(compare_distance_matrices(flat, other))

    def test_unknown_method(self, rng):
        distances = euclidean_distances(planar_points(rng))
        with pytest.raises(ValueError):
            compare_distance_matrices(distances, distances, method='cosine')
