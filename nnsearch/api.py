"""
Function-style entry points.

Collaborators hand in a dense N x M matrix and get back an N x k (or
Q x k) matrix of neighbor indices and one of distances.
"""

from typing import Optional, Tuple

import numpy as np

from .config import (
    DEFAULT_ITERATIONS,
    DEFAULT_LEAF_CAPACITY,
    DEFAULT_METRIC,
    DEFAULT_NUM_NEIGHBORS,
    DEFAULT_NUM_TREES,
)
from .distance import MetricSpec
from .forest import CandidateGraph, RandomProjectionForest
from .kdtree import KDTree
from .largevis import LargeVis


def kdtree_fit(
    data: np.ndarray,
    num_neighbors: int = DEFAULT_NUM_NEIGHBORS,
    metric: MetricSpec = DEFAULT_METRIC,
    leaf_capacity: int = DEFAULT_LEAF_CAPACITY
) -> KDTree:
    """Build an exact KD-Tree index."""
    return KDTree(
        data,
        num_neighbors=num_neighbors,
        metric=metric,
        leaf_capacity=leaf_capacity,
    ).fit()


def kdtree_predict(
    tree: KDTree,
    queries: np.ndarray,
    n_jobs: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """Exact k-NN of every query row; distances ascend along each row."""
    return tree.predict(queries, n_jobs=n_jobs)


def forest_fit(
    data: np.ndarray,
    num_neighbors: int = DEFAULT_NUM_NEIGHBORS,
    num_trees: int = DEFAULT_NUM_TREES,
    leaf_capacity: int = DEFAULT_LEAF_CAPACITY,
    seed: Optional[int] = None,
    metric: MetricSpec = DEFAULT_METRIC,
    max_candidates: Optional[int] = None,
    n_jobs: Optional[int] = None
) -> Tuple[RandomProjectionForest, CandidateGraph]:
    """Build a random projection forest and its candidate graph."""
    forest = RandomProjectionForest(
        data,
        num_neighbors=num_neighbors,
        num_trees=num_trees,
        leaf_capacity=leaf_capacity,
        metric=metric,
        seed=seed,
        n_jobs=n_jobs,
    ).fit()
    return forest, forest.candidate_graph(max_candidates)


def forest_predict(
    forest: RandomProjectionForest,
    queries: np.ndarray,
    n_jobs: Optional[int] = None
) -> Tuple[np.ndarray, np.ndarray]:
    """Approximate k-NN of every query row from the forest alone."""
    return forest.predict(queries, n_jobs=n_jobs)


def largevis_fit(
    data: np.ndarray,
    num_neighbors: int = DEFAULT_NUM_NEIGHBORS,
    num_trees: int = DEFAULT_NUM_TREES,
    iterations: int = DEFAULT_ITERATIONS,
    leaf_capacity: int = DEFAULT_LEAF_CAPACITY,
    metric: MetricSpec = DEFAULT_METRIC,
    seed: Optional[int] = None,
    **kwargs
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Approximate k-NN graph of ``data``: forest candidates, then refinement.

    Extra keyword arguments (``max_candidates``, ``until_converged``,
    ``include_self``, ``n_jobs``) go to LargeVis.
    """
    model = LargeVis(
        data,
        num_neighbors=num_neighbors,
        num_trees=num_trees,
        iterations=iterations,
        leaf_capacity=leaf_capacity,
        metric=metric,
        seed=seed,
        **kwargs
    ).fit()
    return model.indices_, model.distances_
