"""
Common interface for every k-NN searcher in the package.
"""

import numpy as np
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from joblib import Parallel, delayed
from sklearn.exceptions import NotFittedError

from .distance import MetricSpec, get_metric
from .utils.validation import (
    check_data,
    check_k,
    check_n_jobs,
    check_queries,
)


class BaseKNNSearcher(ABC):
    """Abstract base class for all k-NN search methods."""

    def __init__(
        self,
        X: np.ndarray,
        num_neighbors: int = 5,
        metric: MetricSpec = 'euclidean',
        **kwargs
    ):
        """
        Initialize the searcher with dataset.

        Parameters
        ----------
        X : array-like of shape (n_samples, n_features)
            The dataset to search. Held by reference when it already is a
            float64 ndarray.
        num_neighbors : int, default=5
            Default k for queries, 1 <= k <= n_samples.
        metric : MetricSpec, default='euclidean'
            Distance used for queries.
        **kwargs : dict
            Method-specific parameters.
        """
        self.X = check_data(X)
        self.n, self.d = self.X.shape
        self.num_neighbors = check_k(num_neighbors, self.n)
        self.metric = get_metric(metric)
        self.is_fitted = False
        self._build_time = 0.0

    @abstractmethod
    def fit(self) -> 'BaseKNNSearcher':
        """Build any required index structures."""
        pass

    @abstractmethod
    def query(
        self,
        q: np.ndarray,
        k: Optional[int] = None,
        exclude_index: Optional[int] = None
    ) -> Tuple[np.ndarray, np.ndarray, int]:
        """
        Find k nearest neighbors.

        Parameters
        ----------
        q : np.ndarray of shape (n_features,)
            Query point.
        k : int or None
            Number of neighbors, defaults to ``num_neighbors``.
        exclude_index : int or None
            Dataset row to leave out of the result (the query's own row).

        Returns
        -------
        neighbors : np.ndarray of shape (k,)
            Indices of k nearest neighbors.
        distances : np.ndarray of shape (k,)
            Distances to neighbors, ascending.
        dist_count : int
            Number of distance computations.
        """
        pass

    def query_batch(
        self,
        queries: Optional[np.ndarray] = None,
        k: Optional[int] = None,
        exclude_self: bool = False,
        n_jobs: Optional[int] = None
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Query multiple points.

        Queries are independent read-only traversals, so with ``n_jobs`` they
        are dispatched through joblib.

        Parameters
        ----------
        queries : np.ndarray of shape (n_queries, n_features) or None
            Query points. None queries the indexed rows themselves.
        k : int or None
            Number of neighbors, defaults to ``num_neighbors``.
        exclude_self : bool, default=False
            Leave each indexed row out of its own result. Only valid with
            ``queries=None``.
        n_jobs : int or None
            Number of parallel jobs.

        Returns
        -------
        all_neighbors : np.ndarray of shape (n_queries, k)
            Missing slots (approximate searchers only) hold -1.
        all_distances : np.ndarray of shape (n_queries, k)
            Missing slots hold inf.
        all_dist_counts : np.ndarray of shape (n_queries,)
        """
        self._check_fitted()
        n_jobs = check_n_jobs(n_jobs)

        if queries is None:
            queries = self.X
        elif exclude_self:
            raise ValueError("exclude_self requires queries=None (the indexed rows)")
        else:
            queries = check_queries(queries, self.d)

        k = self._resolve_k(k, exclude_self)
        n_queries = len(queries)
        all_neighbors = np.full((n_queries, k), -1, dtype=np.int64)
        all_distances = np.full((n_queries, k), np.inf, dtype=np.float64)
        all_dist_counts = np.zeros(n_queries, dtype=np.int64)

        def _job(i, q):
            return i, self.query(q, k, exclude_index=i if exclude_self else None)

        if n_jobs == 1:
            results = (_job(i, q) for i, q in enumerate(queries))
        else:
            results = Parallel(n_jobs=n_jobs)(
                delayed(_job)(i, q) for i, q in enumerate(queries)
            )

        for i, (n_idxs, dists, count) in results:
            all_neighbors[i, :len(n_idxs)] = n_idxs
            all_distances[i, :len(dists)] = dists
            all_dist_counts[i] = count

        return all_neighbors, all_distances, all_dist_counts

    def _resolve_k(self, k: Optional[int], exclude_self: bool = False) -> int:
        if k is None:
            k = self.num_neighbors
        limit = self.n - 1 if exclude_self else self.n
        return check_k(k, limit, name='k')

    def _check_fitted(self):
        if not self.is_fitted:
            raise NotFittedError(
                f"This {type(self).__name__} instance is not fitted yet; call fit() first"
            )

    @property
    def build_time(self) -> float:
        """Return index build time in seconds."""
        return self._build_time
