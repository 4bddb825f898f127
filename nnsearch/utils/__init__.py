"""
Utility modules for nnsearch.
"""

from .heap import BoundedNeighborSet
from .metrics import (
    recall_at_k,
    row_recalls,
    mean_recall,
    aggregate_recall
)
from .profiling import Profiler

__all__ = [
    'BoundedNeighborSet',
    'Profiler',
    'recall_at_k',
    'row_recalls',
    'mean_recall',
    'aggregate_recall'
]
