"""
Reference KD-Tree from scikit-learn, used to cross-check and benchmark the
pure Python tree.
"""

import numpy as np
import time
from typing import Optional, Tuple

from ..base import BaseKNNSearcher
from ..distance import MetricSpec
from ..utils.validation import check_point, check_positive_int


class SklearnKDTreeKNN(BaseKNNSearcher):
    """
    Wrapper around sklearn's KDTree for comparison.

    sklearn does not report distance evaluations, so ``dist_count`` is a
    heuristic estimate.
    """

    def __init__(
        self,
        X: np.ndarray,
        num_neighbors: int = 5,
        metric: MetricSpec = 'euclidean',
        leaf_capacity: int = 16
    ):
        super().__init__(X, num_neighbors=num_neighbors, metric=metric)
        self.leaf_capacity = check_positive_int(leaf_capacity, 'leaf_capacity')
        self._tree = None

    def fit(self) -> 'SklearnKDTreeKNN':
        """Build the tree using sklearn."""
        from sklearn.neighbors import KDTree

        kwargs = self.metric.scipy_kwargs
        t0 = time.perf_counter()
        self._tree = KDTree(
            self.X, leaf_size=self.leaf_capacity, metric=self.metric.kind, **kwargs
        )
        self._build_time = time.perf_counter() - t0
        self.is_fitted = True
        return self

    def query(
        self,
        q: np.ndarray,
        k: Optional[int] = None,
        exclude_index: Optional[int] = None
    ) -> Tuple[np.ndarray, np.ndarray, int]:
        """Query using sklearn's implementation."""
        self._check_fitted()
        q = check_point(q, self.d).reshape(1, -1)
        k = self._resolve_k(k, exclude_index is not None)

        fetch = k + 1 if exclude_index is not None else k
        distances, indices = self._tree.query(q, k=fetch)
        indices, distances = indices[0], distances[0]
        if exclude_index is not None:
            keep = indices != exclude_index
            indices, distances = indices[keep][:k], distances[keep][:k]

        # Estimate distance computations (sklearn doesn't expose this)
        est_dist_count = int(self.n ** 0.5) * k

        return indices.astype(np.int64), distances, est_dist_count
