"""
Random Projection Forest

An ensemble of independently seeded random projection trees. Points that
share a leaf in any tree are treated as neighbor candidates of each other.

Trade-offs:
- More trees = higher recall, more memory and build time
- Smaller leaves = cheaper candidate sets but more missed neighbors
"""

import logging
import time
from typing import Iterator, List, Optional, Tuple

import numpy as np
from joblib import Parallel, delayed

from .base import BaseKNNSearcher
from .distance import MetricSpec
from .rp_tree import RandomProjectionTree
from .utils.heap import BoundedNeighborSet
from .utils.profiling import Profiler
from .utils.validation import check_n_jobs, check_point, check_positive_int

_LOGGER = logging.getLogger("nnsearch.forest")


class CandidateGraph:
    """
    Per-point candidate neighbor lists.

    ``neighbors[i]`` is an int64 array of distinct indices, never containing
    ``i`` itself.
    """

    __slots__ = ('neighbors',)

    def __init__(self, neighbors: List[np.ndarray]):
        self.neighbors = neighbors

    def __len__(self) -> int:
        return len(self.neighbors)

    def __getitem__(self, i: int) -> np.ndarray:
        return self.neighbors[i]

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(self.neighbors)

    def sizes(self) -> np.ndarray:
        return np.array([len(c) for c in self.neighbors], dtype=np.int64)

    def __repr__(self) -> str:
        sizes = self.sizes()
        return (
            f"CandidateGraph(n={len(self)}, "
            f"min_size={sizes.min() if len(sizes) else 0}, "
            f"max_size={sizes.max() if len(sizes) else 0})"
        )


def _build_tree(X: np.ndarray, leaf_capacity: int, seed: int) -> RandomProjectionTree:
    return RandomProjectionTree(leaf_capacity=leaf_capacity, random_state=seed).fit(X)


class RandomProjectionForest(BaseKNNSearcher):
    """
    Forest of random projection trees for approximate k-NN.

    Parameters
    ----------
    X : np.ndarray
        Dataset of shape (n_samples, n_features).
    num_neighbors : int, default=5
        Default number of neighbors returned by queries.
    num_trees : int, default=8
        Number of trees in the forest. More trees = higher recall.
    leaf_capacity : int, default=16
        Maximum number of points in a leaf.
    metric : MetricSpec, default='euclidean'
        Distance used to rank candidates.
    seed : int or None, default=None
        Seed of the generator that draws one seed per tree.
    n_jobs : int or None, default=None
        Number of parallel jobs for building trees.
    """

    def __init__(
        self,
        X: np.ndarray,
        num_neighbors: int = 5,
        num_trees: int = 8,
        leaf_capacity: int = 16,
        metric: MetricSpec = 'euclidean',
        seed: Optional[int] = None,
        n_jobs: Optional[int] = None
    ):
        super().__init__(X, num_neighbors=num_neighbors, metric=metric)
        self.num_trees = check_positive_int(num_trees, 'num_trees')
        self.leaf_capacity = check_positive_int(leaf_capacity, 'leaf_capacity')
        self.seed = seed
        self.n_jobs = check_n_jobs(n_jobs)
        self.rng = np.random.default_rng(seed)
        self.trees: List[RandomProjectionTree] = []

        if self.leaf_capacity < self.num_neighbors and self.leaf_capacity < self.n:
            _LOGGER.warning(
                "leaf_capacity=%d is smaller than num_neighbors=%d; candidate "
                "sets may hold fewer than k points",
                self.leaf_capacity, self.num_neighbors,
            )

    def fit(self) -> 'RandomProjectionForest':
        """Build the forest of trees."""
        profiler = Profiler.from_env()
        t0 = time.perf_counter()

        seeds = self.rng.integers(np.iinfo(np.int32).max, size=self.num_trees)
        with profiler.time("forest_build"):
            if self.n_jobs == 1:
                self.trees = [_build_tree(self.X, self.leaf_capacity, s) for s in seeds]
            else:
                self.trees = Parallel(n_jobs=self.n_jobs)(
                    delayed(_build_tree)(self.X, self.leaf_capacity, s) for s in seeds
                )

        self._build_time = time.perf_counter() - t0
        self.is_fitted = True
        _LOGGER.debug(
            "built forest n=%d d=%d trees=%d leaf_capacity=%d in %.4fs",
            self.n, self.d, self.num_trees, self.leaf_capacity, self._build_time,
        )
        profiler.log_summary(_LOGGER, "forest")
        return self

    def candidate_graph(self, max_candidates: Optional[int] = None) -> CandidateGraph:
        """
        Collect co-leaf companions of every point across all trees.

        Candidates are kept in the order first met (tree order, then leaf
        order), deduplicated, and cut at ``max_candidates`` if given.
        """
        self._check_fitted()
        if max_candidates is not None:
            max_candidates = check_positive_int(max_candidates, 'max_candidates')

        lists: List[List[int]] = [[] for _ in range(self.n)]
        seen = [set() for _ in range(self.n)]

        for tree in self.trees:
            for leaf in tree.leaves():
                members = leaf.tolist()
                for i in members:
                    pool, pool_seen = lists[i], seen[i]
                    for j in members:
                        if max_candidates is not None and len(pool) >= max_candidates:
                            break
                        if j != i and j not in pool_seen:
                            pool.append(j)
                            pool_seen.add(j)

        graph = CandidateGraph([np.array(c, dtype=np.int64) for c in lists])
        _LOGGER.debug("candidate graph %r", graph)
        return graph

    def candidates_for(self, q: np.ndarray) -> np.ndarray:
        """Union of the leaves q falls into, in first-seen order."""
        self._check_fitted()
        seen = set()
        out: List[int] = []
        for tree in self.trees:
            for j in tree.leaf_for(q).tolist():
                if j not in seen:
                    seen.add(j)
                    out.append(j)
        return np.array(out, dtype=np.int64)

    def query(
        self,
        q: np.ndarray,
        k: Optional[int] = None,
        exclude_index: Optional[int] = None
    ) -> Tuple[np.ndarray, np.ndarray, int]:
        """
        Find approximate k nearest neighbors.

        May return fewer than k neighbors when the reached leaves hold
        fewer candidates.
        """
        self._check_fitted()
        q = check_point(q, self.d)
        k = self._resolve_k(k, exclude_index is not None)

        candidates = self.candidates_for(q)
        if exclude_index is not None:
            candidates = candidates[candidates != exclude_index]

        heap = BoundedNeighborSet(k)
        if len(candidates):
            heap.push_many(self.metric.pairwise(q, self.X[candidates]), candidates)

        neighbors, distances = heap.get_sorted()
        return neighbors, distances, len(candidates)

    def predict(
        self,
        queries: Optional[np.ndarray] = None,
        exclude_self: bool = False,
        n_jobs: Optional[int] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Return (indices, distances), each of shape (n_queries, num_neighbors)."""
        neighbors, distances, _ = self.query_batch(
            queries, exclude_self=exclude_self, n_jobs=n_jobs
        )
        return neighbors, distances
