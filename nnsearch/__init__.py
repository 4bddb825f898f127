"""
nnsearch: exact and approximate k-Nearest Neighbors Search

Two engines over a fixed N x M dataset:
- KDTree: exact k-NN with bounding-box branch-and-bound
- LargeVis: random projection forest candidates refined by
  neighbor-of-neighbor passes
"""

from .errors import (
    NeighborsError,
    EmptyDataset,
    InvalidK,
    DimensionMismatch,
    InvalidMetric,
    NonFiniteValue
)
from .distance import Metric, get_metric
from .kdtree import KDTree
from .rp_tree import RandomProjectionTree
from .forest import CandidateGraph, RandomProjectionForest
from .refine import NeighborGraphRefiner
from .largevis import LargeVis
from .config import SearchConfig, load_config, configure_logging
from .api import (
    kdtree_fit,
    kdtree_predict,
    forest_fit,
    forest_predict,
    largevis_fit
)

__version__ = '0.1.0'

__all__ = [
    'NeighborsError',
    'EmptyDataset',
    'InvalidK',
    'DimensionMismatch',
    'InvalidMetric',
    'NonFiniteValue',
    'Metric',
    'get_metric',
    'KDTree',
    'RandomProjectionTree',
    'CandidateGraph',
    'RandomProjectionForest',
    'NeighborGraphRefiner',
    'LargeVis',
    'SearchConfig',
    'load_config',
    'configure_logging',
    'kdtree_fit',
    'kdtree_predict',
    'forest_fit',
    'forest_predict',
    'largevis_fit'
]
