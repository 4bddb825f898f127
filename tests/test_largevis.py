"""
Tests for graph refinement and the LargeVis composition.
"""

import logging
import math
import numpy as np
import pytest
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from nnsearch import CandidateGraph, LargeVis, NeighborGraphRefiner, largevis_fit
from nnsearch.baselines import ExactBruteForceKNN
from nnsearch.errors import EmptyDataset, InvalidK, NonFiniteValue
from nnsearch.utils.metrics import mean_recall


LINE = np.arange(8, dtype=np.float64).reshape(-1, 1)

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


def _chain_graph():
    """Each point on the line only knows its right-hand neighbor (7 knows 6)."""
    lists = [np.array([i + 1]) for i in range(7)] + [np.array([6])]
    return CandidateGraph([np.asarray(c, dtype=np.int64) for c in lists])


class TestNeighborGraphRefiner:
    """Refinement semantics on hand-made graphs."""

    def test_zero_iterations_ranks_initial_candidates(self):
        refiner = NeighborGraphRefiner(LINE, num_neighbors=3, iterations=0)
        indices, distances = refiner.refine(_chain_graph())

        np.testing.assert_array_equal(indices[0], [0, 1, -1])
        np.testing.assert_array_equal(distances[0], [0.0, 1.0, np.inf])
        np.testing.assert_array_equal(indices[7], [7, 6, -1])
        assert refiner.n_iterations_ == 0

    def test_one_pass_reads_previous_snapshot(self):
        refiner = NeighborGraphRefiner(LINE, num_neighbors=3, iterations=1)
        indices, distances = refiner.refine(_chain_graph())

        for i in range(6):
            np.testing.assert_array_equal(indices[i], [i, i + 1, i + 2])
            np.testing.assert_allclose(distances[i], [0.0, 1.0, 2.0])
        np.testing.assert_array_equal(indices[6], [6, 7, -1])
        np.testing.assert_array_equal(indices[7], [7, 6, -1])
        assert refiner.changes_ == [6]

    def test_until_converged_stops_early(self):
        refiner = NeighborGraphRefiner(LINE, num_neighbors=3, iterations=10, until_converged=True)
        refiner.refine(_chain_graph())
        assert refiner.n_iterations_ == 2
        assert refiner.changes_ == [6, 0]

    def test_fixed_iterations_run_all(self):
        refiner = NeighborGraphRefiner(LINE, num_neighbors=3, iterations=4)
        refiner.refine(_chain_graph())
        assert refiner.n_iterations_ == 4

    def test_first_pass_expands_full_initial_pools(self):
        # 0 knows 5 and 7; their own candidates reach 3 and 1
        lists = [np.array([5, 7]), [], [], [], [], np.array([3]), [], np.array([1])]
        graph = CandidateGraph([np.asarray(c, dtype=np.int64) for c in lists])

        before, _ = NeighborGraphRefiner(LINE, num_neighbors=2, iterations=0).refine(graph)
        np.testing.assert_array_equal(before[0], [0, 5])

        refiner = NeighborGraphRefiner(LINE, num_neighbors=2, iterations=1)
        indices, distances = refiner.refine(graph)
        np.testing.assert_array_equal(indices[0], [0, 1])
        np.testing.assert_allclose(distances[0], [0.0, 1.0])
        np.testing.assert_array_equal(indices[1], [1, -1])

    def test_profile_counts_distance_evaluations(self, monkeypatch, caplog):
        monkeypatch.setenv('NNSEARCH_PROFILE', '1')
        caplog.set_level(logging.DEBUG, logger='nnsearch.refine')
        NeighborGraphRefiner(LINE, num_neighbors=3, iterations=1).refine(_chain_graph())
        messages = [record.getMessage() for record in caplog.records]
        assert any('distance_evals' in m for m in messages)

    def test_without_self(self):
        refiner = NeighborGraphRefiner(LINE, num_neighbors=2, iterations=1, include_self=False)
        indices, distances = refiner.refine(_chain_graph())
        np.testing.assert_array_equal(indices[0], [1, 2])
        np.testing.assert_allclose(distances[0], [1.0, 2.0])

    def test_complete_graph_is_exact(self):
        np.random.seed(3)
        X = np.random.randn(40, 3)
        full = CandidateGraph([np.delete(np.arange(40), i) for i in range(40)])
        indices, distances = NeighborGraphRefiner(X, num_neighbors=4, iterations=0).refine(full)

        exact = ExactBruteForceKNN(X, num_neighbors=4).fit()
        exact_indices, exact_distances = exact.query_batch_vectorized()
        np.testing.assert_array_equal(indices, exact_indices)
        np.testing.assert_allclose(distances, exact_distances, rtol=1e-10)

    def test_single_neighbor_is_self(self):
        indices, distances = NeighborGraphRefiner(LINE, num_neighbors=1).refine(_chain_graph())
        np.testing.assert_array_equal(indices[:, 0], np.arange(8))
        assert np.all(distances == 0.0)

    def test_graph_size_mismatch(self):
        refiner = NeighborGraphRefiner(LINE[:5], num_neighbors=2)
        with pytest.raises(ValueError):
            refiner.refine(_chain_graph())

    def test_negative_iterations(self):
        with pytest.raises(ValueError):
            NeighborGraphRefiner(LINE, iterations=-1)

    def test_parallel_pass_matches_serial(self):
        np.random.seed(8)
        X = np.random.randn(60, 3)
        graph = CandidateGraph([np.array([(i + 1) % 60, (i + 7) % 60]) for i in range(60)])
        serial = NeighborGraphRefiner(X, num_neighbors=4, iterations=2).refine(graph)
        parallel = NeighborGraphRefiner(X, num_neighbors=4, iterations=2, n_jobs=2).refine(graph)
        np.testing.assert_array_equal(serial[0], parallel[0])
        np.testing.assert_allclose(serial[1], parallel[1])


class TestLargeVis:
    """Forest plus refinement against brute-force ground truth."""

    @pytest.fixture
    def sample_data(self):
        np.random.seed(42)
        return np.random.randn(200, 5)

    @pytest.fixture
    def ground_truth(self, sample_data):
        exact = ExactBruteForceKNN(sample_data, num_neighbors=5).fit()
        indices, _ = exact.query_batch_vectorized()
        return indices

    def test_recall_bound(self, sample_data, ground_truth):
        indices, distances = largevis_fit(
            sample_data, num_neighbors=5, num_trees=8, iterations=2, seed=0
        )
        assert indices.shape == (200, 5)
        assert distances.shape == (200, 5)
        assert mean_recall(indices, ground_truth) >= 0.6

    def test_recall_non_decreasing_with_iterations(self, sample_data, ground_truth):
        recalls = []
        for iterations in range(5):
            indices, _ = largevis_fit(
                sample_data, num_neighbors=5, num_trees=2, leaf_capacity=8,
                iterations=iterations, seed=7,
            )
            recalls.append(mean_recall(indices, ground_truth))
        assert all(b >= a for a, b in zip(recalls, recalls[1:]))
        assert recalls[-1] > recalls[0]

    def test_self_in_first_column(self, sample_data):
        indices, distances = largevis_fit(sample_data, num_neighbors=4, seed=1)
        np.testing.assert_array_equal(indices[:, 0], np.arange(200))
        assert np.all(distances[:, 0] == 0.0)
        assert np.all(np.diff(distances, axis=1) >= 0)

    def test_exclude_self(self, sample_data):
        indices, _ = largevis_fit(sample_data, num_neighbors=4, seed=1, include_self=False)
        assert not np.any(indices == np.arange(200)[:, None])

    def test_reproducible(self, sample_data):
        a = largevis_fit(sample_data, num_neighbors=5, seed=3)
        b = largevis_fit(sample_data, num_neighbors=5, seed=3)
        np.testing.assert_array_equal(a[0], b[0])
        np.testing.assert_array_equal(a[1], b[1])

    def test_model_attributes(self, sample_data):
        model = LargeVis(
            sample_data, num_neighbors=5, iterations=6, until_converged=True,
            max_candidates=20, seed=0,
        ).fit()
        assert 1 <= model.n_iterations_ <= 6
        assert model.forest_.num_trees == 8
        assert model.build_time > 0

    def test_manhattan(self, sample_data):
        exact = ExactBruteForceKNN(sample_data, num_neighbors=5, metric='manhattan').fit()
        truth, _ = exact.query_batch_vectorized()
        indices, _ = largevis_fit(sample_data, num_neighbors=5, metric='manhattan', seed=2)
        assert mean_recall(indices, truth) >= 0.6


class TestLargeVisClusters:
    """The six point scenario through the approximate engine."""

    def test_two_nearest(self):
        indices, distances = largevis_fit(CLUSTERS, num_neighbors=2, num_trees=2, seed=0)
        np.testing.assert_array_equal(indices[:, 0], np.arange(6))
        for i in range(6):
            same_cluster = {0, 1, 2} if i < 3 else {3, 4, 5}
            assert indices[i, 1] in same_cluster - {i}
        assert distances[0, 1] == pytest.approx(1.0)
        assert distances[3, 1] == pytest.approx(1.0)

    def test_k_equals_n(self):
        indices, distances = largevis_fit(CLUSTERS, num_neighbors=6, num_trees=1, seed=0)
        for row in indices:
            assert sorted(row.tolist()) == list(range(6))
        np.testing.assert_allclose(
            distances[0],
            [0.0, 1.0, 1.0, math.sqrt(200), math.sqrt(221), math.sqrt(221)],
        )


class TestLargeVisErrors:
    """Error taxonomy."""

    def test_empty(self):
        with pytest.raises(EmptyDataset):
            largevis_fit(np.empty((0, 4)))

    def test_k_too_large(self):
        with pytest.raises(InvalidK):
            largevis_fit(CLUSTERS, num_neighbors=7)
        with pytest.raises(InvalidK):
            largevis_fit(CLUSTERS, num_neighbors=6, include_self=False)

    def test_k_zero(self):
        with pytest.raises(InvalidK):
            largevis_fit(CLUSTERS, num_neighbors=0)

    def test_non_finite(self):
        X = CLUSTERS.copy()
        X[0, 0] = np.inf
        with pytest.raises(NonFiniteValue):
            largevis_fit(X, num_neighbors=2)

    def test_invalid_trees(self):
        with pytest.raises(ValueError):
            largevis_fit(CLUSTERS, num_neighbors=2, num_trees=0)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
