"""
LargeVis-style approximate k-NN graph construction.

A random projection forest proposes candidates from leaf co-membership,
then a few neighbor-of-neighbor refinement passes pull the graph toward
the exact k-NN graph without an O(N^2) scan.
"""

import logging
import time
from typing import Optional

import numpy as np

from .distance import MetricSpec, get_metric
from .forest import RandomProjectionForest
from .refine import NeighborGraphRefiner
from .utils.validation import check_data, check_k

_LOGGER = logging.getLogger("nnsearch.largevis")


class LargeVis:
    """
    Approximate k-NN graph of a dataset.

    Parameters
    ----------
    X : np.ndarray
        Dataset of shape (n_samples, n_features).
    num_neighbors : int, default=5
        Columns of the resulting graph (including the point itself when
        ``include_self``).
    num_trees : int, default=8
        Trees in the forest.
    iterations : int, default=2
        Refinement passes.
    leaf_capacity : int, default=16
        Maximum number of points in a forest leaf.
    metric : MetricSpec, default='euclidean'
    seed : int or None, default=None
    max_candidates : int or None, default=None
        Cap on each point's initial candidate pool.
    until_converged : bool, default=False
        Stop refining once a pass changes nothing.
    include_self : bool, default=True
    n_jobs : int or None, default=None

    Attributes
    ----------
    indices_ : np.ndarray of shape (n_samples, num_neighbors)
    distances_ : np.ndarray of shape (n_samples, num_neighbors)
    forest_ : RandomProjectionForest
    n_iterations_ : int
        Refinement passes actually run.
    """

    def __init__(
        self,
        X: np.ndarray,
        num_neighbors: int = 5,
        num_trees: int = 8,
        iterations: int = 2,
        leaf_capacity: int = 16,
        metric: MetricSpec = 'euclidean',
        seed: Optional[int] = None,
        max_candidates: Optional[int] = None,
        until_converged: bool = False,
        include_self: bool = True,
        n_jobs: Optional[int] = None
    ):
        self.X = check_data(X)
        self.n = len(self.X)
        self.num_neighbors = check_k(num_neighbors, self.n if include_self else self.n - 1)
        self.num_trees = num_trees
        self.iterations = iterations
        self.leaf_capacity = leaf_capacity
        self.metric = get_metric(metric)
        self.seed = seed
        self.max_candidates = max_candidates
        self.until_converged = until_converged
        self.include_self = include_self
        self.n_jobs = n_jobs

        self.forest_: Optional[RandomProjectionForest] = None
        self.indices_: Optional[np.ndarray] = None
        self.distances_: Optional[np.ndarray] = None
        self.n_iterations_ = 0
        self._build_time = 0.0

    def fit(self) -> 'LargeVis':
        t0 = time.perf_counter()

        refiner = NeighborGraphRefiner(
            self.X,
            num_neighbors=self.num_neighbors,
            metric=self.metric,
            iterations=self.iterations,
            until_converged=self.until_converged,
            include_self=self.include_self,
            n_jobs=self.n_jobs,
        )
        self.forest_ = RandomProjectionForest(
            self.X,
            num_neighbors=max(1, refiner.k_others),
            num_trees=self.num_trees,
            leaf_capacity=self.leaf_capacity,
            metric=self.metric,
            seed=self.seed,
            n_jobs=self.n_jobs,
        ).fit()

        graph = self.forest_.candidate_graph(self.max_candidates)
        self.indices_, self.distances_ = refiner.refine(graph)
        self.n_iterations_ = refiner.n_iterations_

        self._build_time = time.perf_counter() - t0
        _LOGGER.debug(
            "largevis n=%d k=%d trees=%d iterations=%d in %.4fs",
            self.n, self.num_neighbors, self.num_trees, self.n_iterations_,
            self._build_time,
        )
        return self

    @property
    def build_time(self) -> float:
        return self._build_time
