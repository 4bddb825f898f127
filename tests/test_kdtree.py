"""
Tests for the exact KD-Tree.
"""

import math
import numpy as np
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sklearn.exceptions import NotFittedError

from nnsearch import KDTree, kdtree_fit, kdtree_predict
from nnsearch.baselines import ExactBruteForceKNN, SklearnKDTreeKNN
from nnsearch.errors import (
    DimensionMismatch,
    EmptyDataset,
    InvalidK,
    NonFiniteValue,
)


CLUSTERS = np.array(
    [
        [0.0, 0.0],
        [1.0, 0.0],
        [0.0, 1.0],
        [10.0, 10.0],
        [11.0, 10.0],
        [10.0, 11.0],
    ]
)

METRICS = ['euclidean', 'manhattan', 'chebyshev', ('minkowski', 3)]


class TestKDTreeBuild:
    """Structure of the built tree."""

    @pytest.fixture
    def sample_data(self):
        np.random.seed(42)
        return np.random.randn(500, 4)

    def test_permutation_is_bijection(self, sample_data):
        tree = KDTree(sample_data, leaf_capacity=8).fit()
        assert sorted(tree.permutation.tolist()) == list(range(len(sample_data)))

        leaves = list(tree.leaves())
        members = np.concatenate(leaves)
        assert len(members) == len(sample_data)
        assert sorted(members.tolist()) == list(range(len(sample_data)))
        assert all(1 <= len(leaf) <= 8 for leaf in leaves)

    @pytest.mark.parametrize('n,leaf_capacity', [(100, 10), (500, 8), (64, 16), (5, 16), (17, 1)])
    def test_levels(self, n, leaf_capacity):
        np.random.seed(n)
        X = np.random.randn(n, 3)
        tree = KDTree(X, num_neighbors=1, leaf_capacity=leaf_capacity).fit()
        expected = max(0, math.ceil(math.log2(n / leaf_capacity)))
        assert tree.levels == expected

    def test_balanced_split_and_boxes(self, sample_data):
        tree = KDTree(sample_data, leaf_capacity=8).fit()
        stack = [(tree.root, 0)]
        while stack:
            node, depth = stack.pop()
            points = sample_data[tree.permutation[node.start:node.end]]
            np.testing.assert_array_equal(node.lower, points.min(axis=0))
            np.testing.assert_array_equal(node.upper, points.max(axis=0))
            if node.is_leaf:
                continue
            assert node.split_dim == depth % sample_data.shape[1]
            assert node.left.size == (node.size + 1) // 2
            assert node.right.size == node.size // 2
            left_vals = sample_data[tree.permutation[node.left.start:node.left.end], node.split_dim]
            right_vals = sample_data[tree.permutation[node.right.start:node.right.end], node.split_dim]
            assert left_vals.max() <= node.split_val <= right_vals.min()
            stack.append((node.left, depth + 1))
            stack.append((node.right, depth + 1))

    def test_duplicate_points_terminate(self):
        X = np.ones((50, 3))
        tree = KDTree(X, num_neighbors=3, leaf_capacity=4).fit()
        assert tree.levels == math.ceil(math.log2(50 / 4))

        neighbors, distances, _ = tree.query(np.ones(3))
        assert list(neighbors) == [0, 1, 2]
        assert np.allclose(distances, 0.0)

    def test_build_time_recorded(self, sample_data):
        tree = KDTree(sample_data).fit()
        assert tree.build_time > 0
        assert tree.is_fitted


class TestKDTreeQuery:
    """Exactness against the brute-force oracle."""

    @pytest.fixture
    def sample_data(self):
        np.random.seed(42)
        return np.random.randn(400, 5)

    @pytest.fixture
    def queries(self, sample_data):
        np.random.seed(123)
        return np.random.randn(40, sample_data.shape[1])

    @pytest.mark.parametrize('metric', METRICS, ids=str)
    def test_matches_brute_force(self, sample_data, queries, metric):
        k = 10
        tree = KDTree(sample_data, num_neighbors=k, metric=metric, leaf_capacity=8).fit()
        exact = ExactBruteForceKNN(sample_data, num_neighbors=k, metric=metric).fit()

        tree_neighbors, tree_distances, _ = tree.query_batch(queries)
        exact_neighbors, exact_distances = exact.query_batch_vectorized(queries)

        np.testing.assert_array_equal(tree_neighbors, exact_neighbors)
        np.testing.assert_allclose(tree_distances, exact_distances, rtol=1e-10, atol=1e-12)

    def test_matches_sklearn(self, sample_data, queries):
        k = 7
        tree = KDTree(sample_data, num_neighbors=k).fit()
        reference = SklearnKDTreeKNN(sample_data, num_neighbors=k).fit()

        for q in queries:
            tree_neighbors, tree_distances, _ = tree.query(q)
            ref_neighbors, ref_distances, _ = reference.query(q)
            np.testing.assert_array_equal(tree_neighbors, ref_neighbors)
            np.testing.assert_allclose(tree_distances, ref_distances, rtol=1e-10)

    def test_distances_sorted(self, sample_data, queries):
        tree = KDTree(sample_data, num_neighbors=12).fit()
        _, distances, _ = tree.query_batch(queries)
        assert np.all(np.diff(distances, axis=1) >= 0)

    def test_self_match(self, sample_data):
        tree = KDTree(sample_data, num_neighbors=3).fit()
        neighbors, distances = tree.predict()
        np.testing.assert_array_equal(neighbors[:, 0], np.arange(len(sample_data)))
        assert np.all(distances[:, 0] == 0.0)

    def test_exclude_self(self, sample_data):
        k = 4
        tree = KDTree(sample_data, num_neighbors=k).fit()
        exact = ExactBruteForceKNN(sample_data, num_neighbors=k).fit()

        neighbors, distances = tree.predict(exclude_self=True)
        exact_neighbors, exact_distances = exact.query_batch_vectorized(exclude_self=True)

        assert not np.any(neighbors == np.arange(len(sample_data))[:, None])
        np.testing.assert_array_equal(neighbors, exact_neighbors)
        np.testing.assert_allclose(distances, exact_distances, rtol=1e-10)

    def test_pruning_skips_points(self, sample_data):
        tree = KDTree(sample_data, num_neighbors=1, leaf_capacity=4).fit()
        _, _, dist_count = tree.query(sample_data[0])
        assert dist_count < len(sample_data)

    def test_query_k_override(self, sample_data):
        tree = KDTree(sample_data, num_neighbors=3).fit()
        neighbors, distances, _ = tree.query(sample_data[5], k=8)
        assert len(neighbors) == 8
        assert len(distances) == 8

    def test_parallel_batch_matches_serial(self, sample_data, queries):
        tree = KDTree(sample_data, num_neighbors=5).fit()
        serial = tree.query_batch(queries, n_jobs=1)
        parallel = tree.query_batch(queries, n_jobs=2)
        np.testing.assert_array_equal(serial[0], parallel[0])
        np.testing.assert_allclose(serial[1], parallel[1])


class TestClusterScenario:
    """Two well-separated clusters of three points."""

    @pytest.mark.parametrize('leaf_capacity', [1, 2, 16])
    def test_two_nearest(self, leaf_capacity):
        tree = kdtree_fit(CLUSTERS, num_neighbors=2, leaf_capacity=leaf_capacity)

        neighbors, distances = kdtree_predict(tree, np.array([[0.0, 0.0], [10.0, 10.0]]))

        assert neighbors.shape == (2, 2)
        assert neighbors[0, 0] == 0
        assert neighbors[0, 1] in (1, 2)
        assert distances[0, 1] == pytest.approx(1.0)

        assert neighbors[1, 0] == 3
        assert neighbors[1, 1] in (4, 5)
        assert distances[1, 1] == pytest.approx(1.0)

    def test_tie_broken_by_smaller_index(self):
        tree = kdtree_fit(CLUSTERS, num_neighbors=2, leaf_capacity=1)
        neighbors, _ = kdtree_predict(tree, CLUSTERS[[0, 3]])
        np.testing.assert_array_equal(neighbors, [[0, 1], [3, 4]])

    def test_k_equals_n(self):
        tree = kdtree_fit(CLUSTERS, num_neighbors=6, leaf_capacity=2)
        neighbors, distances = kdtree_predict(tree, CLUSTERS)

        assert neighbors.shape == (6, 6)
        for row in neighbors:
            assert sorted(row.tolist()) == list(range(6))

        np.testing.assert_array_equal(neighbors[0], [0, 1, 2, 3, 4, 5])
        np.testing.assert_allclose(
            distances[0],
            [0.0, 1.0, 1.0, math.sqrt(200), math.sqrt(221), math.sqrt(221)],
        )
        assert distances[0, 3] == pytest.approx(14.142, abs=1e-3)


class TestKDTreeErrors:
    """Error taxonomy at fit and predict."""

    def test_empty_dataset(self):
        with pytest.raises(EmptyDataset):
            kdtree_fit(np.empty((0, 3)))
        with pytest.raises(EmptyDataset):
            kdtree_fit([])

    @pytest.mark.parametrize('k', [0, -1, 7])
    def test_invalid_k(self, k):
        with pytest.raises(InvalidK):
            kdtree_fit(CLUSTERS, num_neighbors=k)

    def test_ragged_rows(self):
        with pytest.raises(DimensionMismatch):
            kdtree_fit([[0.0, 1.0], [2.0]])

    def test_query_width(self):
        tree = kdtree_fit(CLUSTERS, num_neighbors=2)
        with pytest.raises(DimensionMismatch):
            kdtree_predict(tree, np.zeros((3, 3)))
        with pytest.raises(DimensionMismatch):
            tree.query(np.zeros(5))

    def test_non_finite(self):
        X = CLUSTERS.copy()
        X[2, 1] = np.nan
        with pytest.raises(NonFiniteValue):
            kdtree_fit(X, num_neighbors=2)

        tree = kdtree_fit(CLUSTERS, num_neighbors=2)
        with pytest.raises(NonFiniteValue):
            kdtree_predict(tree, np.array([[np.inf, 0.0]]))

    def test_exclude_self_needs_room(self):
        tree = kdtree_fit(CLUSTERS, num_neighbors=6)
        with pytest.raises(InvalidK):
            tree.predict(exclude_self=True)

    def test_exclude_self_with_queries(self):
        tree = kdtree_fit(CLUSTERS, num_neighbors=2)
        with pytest.raises(ValueError):
            tree.query_batch(CLUSTERS, exclude_self=True)

    def test_invalid_leaf_capacity(self):
        with pytest.raises(ValueError):
            KDTree(CLUSTERS, num_neighbors=2, leaf_capacity=0)

    def test_not_fitted(self):
        tree = KDTree(CLUSTERS, num_neighbors=2)
        with pytest.raises(NotFittedError):
            tree.query(CLUSTERS[0])

    def test_empty_query_batch(self):
        tree = kdtree_fit(CLUSTERS, num_neighbors=2)
        neighbors, distances = kdtree_predict(tree, np.empty((0, 2)))
        assert neighbors.shape == (0, 2)
        assert distances.shape == (0, 2)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
