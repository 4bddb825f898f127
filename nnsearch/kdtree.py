"""
KD-Tree for exact k-NN Search

A space-partitioning data structure that recursively divides space
along coordinate axes. Efficient for low dimensions (d < 20).

Implementation notes:
- The split axis cycles with depth; the split is at the exact median
  (introselect), so sibling sizes differ by at most one
- Points live in one permutation array; every node owns a contiguous slice
- Every node stores the bounding box of its slice, and the search prunes a
  subtree when the box is farther than the current k-th neighbor
- Performance degrades in high dimensions ("curse of dimensionality")
"""

import logging
import time
from typing import Iterator, Optional, Tuple

import numpy as np

from .base import BaseKNNSearcher
from .distance import MetricSpec
from .utils.heap import BoundedNeighborSet
from .utils.partition import median_split
from .utils.profiling import Profiler
from .utils.validation import check_point, check_positive_int

_LOGGER = logging.getLogger("nnsearch.kdtree")


class KDTreeNode:
    """Node in the KD-Tree. Leaves have no children and no split."""

    __slots__ = ['start', 'end', 'lower', 'upper', 'split_dim', 'split_val', 'left', 'right']

    def __init__(self, start: int, end: int):
        self.start = start
        self.end = end
        self.lower: Optional[np.ndarray] = None
        self.upper: Optional[np.ndarray] = None
        self.split_dim = -1
        self.split_val = 0.0
        self.left: Optional[KDTreeNode] = None
        self.right: Optional[KDTreeNode] = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None

    @property
    def size(self) -> int:
        return self.end - self.start


class KDTree(BaseKNNSearcher):
    """
    KD-Tree based exact k-NN search.

    Parameters
    ----------
    X : np.ndarray
        Dataset of shape (n_samples, n_features).
    num_neighbors : int, default=5
        Default number of neighbors returned by queries.
    metric : MetricSpec, default='euclidean'
        Any Minkowski-family metric; bounding boxes are axis-aligned so the
        box lower bound holds for all of them.
    leaf_capacity : int, default=16
        Slices of at most this many points become leaves.
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

        self.root: Optional[KDTreeNode] = None
        self.permutation: Optional[np.ndarray] = None
        self.levels = 0
        self.n_nodes = 0

    def fit(self) -> 'KDTree':
        """Build the KD-Tree."""
        profiler = Profiler.from_env()
        t0 = time.perf_counter()

        with profiler.time("kdtree_build"):
            self.permutation = np.arange(self.n, dtype=np.int64)
            self.levels = 0
            self.n_nodes = 0
            self.root = self._build_tree(0, self.n, depth=0)

        self._build_time = time.perf_counter() - t0
        self.is_fitted = True
        _LOGGER.debug(
            "built kd-tree n=%d d=%d leaf_capacity=%d levels=%d nodes=%d in %.4fs",
            self.n, self.d, self.leaf_capacity, self.levels, self.n_nodes,
            self._build_time,
        )
        profiler.count("kdtree_nodes", self.n_nodes)
        profiler.log_summary(_LOGGER, "kdtree")
        return self

    def _build_tree(self, start: int, end: int, depth: int) -> KDTreeNode:
        """Recursively build the tree over permutation[start:end]."""
        node = KDTreeNode(start, end)
        self.n_nodes += 1

        if end - start <= self.leaf_capacity:
            points = self.X[self.permutation[start:end]]
            node.lower = points.min(axis=0)
            node.upper = points.max(axis=0)
            self.levels = max(self.levels, depth)
            return node

        # Choose split dimension (cycle through dimensions)
        split_dim = depth % self.d
        values = self.X[self.permutation[start:end], split_dim]
        mid, split_val = median_split(self.permutation, start, end, values)

        node.split_dim = split_dim
        node.split_val = split_val
        node.left = self._build_tree(start, mid, depth + 1)
        node.right = self._build_tree(mid, end, depth + 1)

        # Bounding box bottom-up from the children
        node.lower = np.minimum(node.left.lower, node.right.lower)
        node.upper = np.maximum(node.left.upper, node.right.upper)
        return node

    def query(
        self,
        q: np.ndarray,
        k: Optional[int] = None,
        exclude_index: Optional[int] = None
    ) -> Tuple[np.ndarray, np.ndarray, int]:
        """Find the exact k nearest neighbors using branch-and-bound."""
        self._check_fitted()
        q = check_point(q, self.d)
        k = self._resolve_k(k, exclude_index is not None)

        heap = BoundedNeighborSet(k)
        dist_count = self._search(self.root, q, heap, exclude_index)

        neighbors, distances = heap.get_sorted()
        return neighbors, distances, dist_count

    def _search(
        self,
        node: KDTreeNode,
        q: np.ndarray,
        heap: BoundedNeighborSet,
        exclude_index: Optional[int]
    ) -> int:
        """Recursive k-NN search; returns the number of point distances computed."""
        if node.is_leaf:
            indices = self.permutation[node.start:node.end]
            dists = self.metric.pairwise(q, self.X[indices])
            for dist, idx in zip(dists, indices):
                if idx != exclude_index:
                    heap.push(dist, idx)
            return len(indices)

        # Visit the child whose box is nearer first
        box_left = self.metric.box_distance(q, node.left.lower, node.left.upper)
        box_right = self.metric.box_distance(q, node.right.lower, node.right.upper)
        if box_right < box_left:
            ordered = ((box_right, node.right), (box_left, node.left))
        else:
            ordered = ((box_left, node.left), (box_right, node.right))

        dist_count = 0
        for box_dist, child in ordered:
            # Strict comparison keeps equal-distance points with smaller
            # indices reachable.
            if heap.is_full and box_dist > heap.worst()[0]:
                break
            dist_count += self._search(child, q, heap, exclude_index)
        return dist_count

    def leaves(self) -> Iterator[np.ndarray]:
        """Yield the index slice of every leaf, left to right."""
        self._check_fitted()
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                yield self.permutation[node.start:node.end]
            else:
                stack.append(node.right)
                stack.append(node.left)

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
