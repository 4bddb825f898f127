"""
Exceptions raised by nnsearch.

All of them derive from ``ValueError`` so callers that already guard
parameter errors with ``except ValueError`` keep working.
"""


class NeighborsError(ValueError):
    """Base class for invalid input to a neighbor index."""


class EmptyDataset(NeighborsError):
    """The dataset has no rows."""


class InvalidK(NeighborsError):
    """Requested number of neighbors is outside [1, N]."""


class DimensionMismatch(NeighborsError):
    """Feature width differs from the one the index was built with."""


class InvalidMetric(NeighborsError):
    """Unknown metric kind or malformed metric parameter."""


class NonFiniteValue(NeighborsError):
    """Input contains NaN or infinite values."""
