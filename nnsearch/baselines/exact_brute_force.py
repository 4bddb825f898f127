"""
Brute Force Exact k-NN Search

The simplest baseline - computes distance to all points.
Always returns exact k-NN but O(nd) per query. Serves as the ground-truth
oracle for the tree and forest engines.
"""

import numpy as np
import time
from typing import Optional, Tuple

from scipy.spatial.distance import cdist

from ..base import BaseKNNSearcher
from ..distance import MetricSpec
from ..utils.validation import check_point, check_queries


class ExactBruteForceKNN(BaseKNNSearcher):
    """
    Exact k-NN using brute force distance computation.

    Ties on distance are broken by the smaller index.

    Parameters
    ----------
    X : np.ndarray
        Dataset of shape (n_samples, n_features).
    num_neighbors : int, default=5
    metric : MetricSpec, default='euclidean'
        Any Minkowski-family metric.
    """

    def __init__(
        self,
        X: np.ndarray,
        num_neighbors: int = 5,
        metric: MetricSpec = 'euclidean'
    ):
        super().__init__(X, num_neighbors=num_neighbors, metric=metric)

    def fit(self) -> 'ExactBruteForceKNN':
        """No index to build for brute force."""
        t0 = time.perf_counter()
        # Just mark as fitted
        self.is_fitted = True
        self._build_time = time.perf_counter() - t0
        return self

    def _cdist(self, queries: np.ndarray) -> np.ndarray:
        return cdist(
            queries, self.X, metric=self.metric.scipy_name, **self.metric.scipy_kwargs
        )

    def query(
        self,
        q: np.ndarray,
        k: Optional[int] = None,
        exclude_index: Optional[int] = None
    ) -> Tuple[np.ndarray, np.ndarray, int]:
        """Find k nearest neighbors by computing all distances."""
        self._check_fitted()
        q = check_point(q, self.d)
        k = self._resolve_k(k, exclude_index is not None)

        distances = self._cdist(q.reshape(1, -1))[0]
        if exclude_index is not None:
            distances[exclude_index] = np.inf

        # Stable sort keeps the smaller index first among equal distances
        indices = np.argsort(distances, kind='stable')[:k]
        return indices, distances[indices], self.n

    def query_batch_vectorized(
        self,
        queries: Optional[np.ndarray] = None,
        k: Optional[int] = None,
        exclude_self: bool = False
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Vectorized batch query (more efficient for many queries).

        Note: Does not return dist_count per query.
        """
        self._check_fitted()
        if queries is None:
            queries = self.X
        elif exclude_self:
            raise ValueError("exclude_self requires queries=None (the indexed rows)")
        else:
            queries = check_queries(queries, self.d)
        k = self._resolve_k(k, exclude_self)

        distances = self._cdist(queries)
        if exclude_self:
            np.fill_diagonal(distances, np.inf)

        all_neighbors = np.argsort(distances, axis=1, kind='stable')[:, :k]
        all_distances = np.take_along_axis(distances, all_neighbors, axis=1)
        return all_neighbors.astype(np.int64), all_distances
