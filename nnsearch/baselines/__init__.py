"""
Baseline k-NN methods for comparison.
"""

from .exact_brute_force import ExactBruteForceKNN
from .sklearn_kdtree import SklearnKDTreeKNN

__all__ = [
    'ExactBruteForceKNN',
    'SklearnKDTreeKNN',
]
