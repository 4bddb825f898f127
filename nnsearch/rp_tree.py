"""
Random projection tree.

Each internal node draws a random unit direction, projects its points onto
it and splits at the exact median of the projections. The tree is only
used to group nearby points into leaves, so no bounding boxes are kept.
"""

import numpy as np
from typing import Iterator, List, Optional

from .utils.partition import median_split
from .utils.validation import check_data, check_positive_int


def _project(points: np.ndarray, direction: np.ndarray) -> np.ndarray:
    # Row-wise reduction, so a point projects to the same value alone or
    # inside a block of rows.
    return np.sum(points * direction, axis=-1)


class RPTreeNode:
    """Node in a random projection tree."""

    __slots__ = ['start', 'end', 'direction', 'split_val', 'ties_right', 'left', 'right']

    def __init__(self, start: int, end: int):
        self.start = start
        self.end = end
        self.direction: Optional[np.ndarray] = None
        self.split_val = 0.0
        # Some points projecting exactly onto split_val went to the right child
        self.ties_right = False
        self.left: Optional[RPTreeNode] = None
        self.right: Optional[RPTreeNode] = None

    @property
    def is_leaf(self) -> bool:
        return self.left is None


class RandomProjectionTree:
    """
    Single random projection tree.

    Parameters
    ----------
    leaf_capacity : int, default=16
        Slices of at most this many points become leaves.
    random_state : int or None, default=None
        Seed for the direction vectors.
    """

    def __init__(self, leaf_capacity: int = 16, random_state=None):
        self.leaf_capacity = check_positive_int(leaf_capacity, 'leaf_capacity')
        self.random_state = random_state
        self.rng = np.random.default_rng(random_state)
        self.root: Optional[RPTreeNode] = None
        self.permutation: Optional[np.ndarray] = None
        self.levels = 0

    def fit(self, X: np.ndarray) -> 'RandomProjectionTree':
        """Build the tree over the rows of X."""
        X = check_data(X)
        self.permutation = np.arange(len(X), dtype=np.int64)
        self.levels = 0
        self.root = self._build_node(X, 0, len(X), depth=0)
        return self

    def _random_direction(self, d: int) -> np.ndarray:
        while True:
            direction = self.rng.standard_normal(d)
            norm = np.linalg.norm(direction)
            if norm > 1e-10:
                return direction / norm

    def _build_node(self, X: np.ndarray, start: int, end: int, depth: int) -> RPTreeNode:
        """Recursively build tree nodes."""
        node = RPTreeNode(start, end)

        if end - start <= self.leaf_capacity:
            self.levels = max(self.levels, depth)
            return node

        node.direction = self._random_direction(X.shape[1])
        projections = _project(X[self.permutation[start:end]], node.direction)
        mid, node.split_val = median_split(self.permutation, start, end, projections)

        n_ties = int(np.count_nonzero(projections == node.split_val))
        n_below = int(np.count_nonzero(projections < node.split_val))
        node.ties_right = n_below + n_ties > mid - start

        node.left = self._build_node(X, start, mid, depth + 1)
        node.right = self._build_node(X, mid, end, depth + 1)
        return node

    def leaves(self) -> Iterator[np.ndarray]:
        """Yield the index slice of every leaf, left to right."""
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                yield self.permutation[node.start:node.end]
            else:
                stack.append(node.right)
                stack.append(node.left)

    def leaf_for(self, q: np.ndarray) -> np.ndarray:
        """
        Route q down the tree and return the members of the leaf it reaches.

        Projections below the split go left and above it go right. A
        projection equal to the split follows every child that holds such
        points, so the result is the union of those leaves and a training
        point always finds its own leaf.
        """
        q = np.asarray(q, dtype=np.float64)
        members = []
        stack = [self.root]
        while stack:
            node = stack.pop()
            if node.is_leaf:
                members.append(self.permutation[node.start:node.end])
                continue
            proj = _project(q, node.direction)
            if proj > node.split_val:
                stack.append(node.right)
            elif proj < node.split_val or not node.ties_right:
                stack.append(node.left)
            else:
                stack.append(node.right)
                stack.append(node.left)
        if len(members) == 1:
            return members[0]
        return np.concatenate(members)

    def leaf_sizes(self) -> List[int]:
        return [len(leaf) for leaf in self.leaves()]
