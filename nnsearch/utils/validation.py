"""
Input checks shared by every index.
"""

import numpy as np
from typing import Optional

from ..errors import (
    DimensionMismatch,
    EmptyDataset,
    InvalidK,
    NonFiniteValue,
)


def _as_matrix(X, name: str) -> np.ndarray:
    """Convert X to a 2D float64 array, rejecting ragged rows."""
    if isinstance(X, np.ndarray):
        arr = X
    else:
        rows = list(X)
        if any(np.ndim(row) != 1 for row in rows):
            raise DimensionMismatch(f"{name} must be a sequence of rows")
        widths = {len(row) for row in rows}
        if len(widths) > 1:
            raise DimensionMismatch(
                f"{name} rows have unequal lengths: {sorted(widths)}"
            )
        arr = np.array(rows, dtype=np.float64)

    if arr.dtype == object:
        raise DimensionMismatch(f"{name} rows have unequal lengths")

    arr = np.asarray(arr, dtype=np.float64)
    if arr.ndim == 1 and arr.size == 0:
        arr = arr.reshape(0, 0)
    if arr.ndim != 2:
        raise DimensionMismatch(
            f"{name} must be a 2D matrix, got array with {arr.ndim} dimension(s)"
        )
    return arr


def check_data(X, name: str = 'data') -> np.ndarray:
    """
    Validate a dataset and return it as a float64 matrix.

    Raises
    ------
    EmptyDataset
        If X has no rows.
    DimensionMismatch
        If rows have unequal length or X is not 2D.
    NonFiniteValue
        If X holds NaN or +/-inf.
    """
    arr = _as_matrix(X, name)
    if arr.shape[0] == 0:
        raise EmptyDataset(f"{name} has no rows (N=0)")
    if arr.shape[1] == 0:
        raise DimensionMismatch(f"{name} has rows of width 0")
    _check_finite(arr, name)
    return arr


def check_queries(queries, n_features: int, name: str = 'queries') -> np.ndarray:
    """Validate query points against the index width."""
    if isinstance(queries, np.ndarray) and queries.ndim == 1:
        queries = queries.reshape(1, -1)
    arr = _as_matrix(queries, name)

    if arr.shape[0] > 0 and arr.shape[1] != n_features:
        raise DimensionMismatch(
            f"{name} have {arr.shape[1]} features, index was built with {n_features}"
        )
    _check_finite(arr, name)
    return arr


def check_point(q, n_features: int) -> np.ndarray:
    """Validate a single query point."""
    q = np.asarray(q, dtype=np.float64)
    if q.ndim != 1 or q.shape[0] != n_features:
        raise DimensionMismatch(
            f"query point has shape {q.shape}, index was built with {n_features} features"
        )
    _check_finite(q, 'query point')
    return q


def check_k(k, n_samples: int, name: str = 'num_neighbors') -> int:
    """Check 1 <= k <= n_samples."""
    if isinstance(k, bool) or not isinstance(k, (int, np.integer)):
        raise InvalidK(f"{name} must be an integer, got {k!r}")
    k = int(k)
    if k < 1:
        raise InvalidK(f"{name} must be at least 1, got {k}")
    if k > n_samples:
        raise InvalidK(
            f"{name}={k} exceeds the number of indexed points N={n_samples}"
        )
    return k


def check_positive_int(value, name: str, minimum: int = 1) -> int:
    """Check an integer option such as leaf_capacity or num_trees."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    value = int(value)
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def check_n_jobs(n_jobs: Optional[int]) -> int:
    if n_jobs is None:
        return 1
    if isinstance(n_jobs, bool) or not isinstance(n_jobs, (int, np.integer)) or n_jobs == 0:
        raise ValueError(f"n_jobs must be a non-zero integer or None, got {n_jobs!r}")
    return int(n_jobs)


def _check_finite(arr: np.ndarray, name: str):
    if arr.size and not np.all(np.isfinite(arr)):
        bad = np.argwhere(~np.isfinite(arr))[0]
        raise NonFiniteValue(
            f"{name} contains a non-finite value at position {tuple(int(i) for i in bad)}"
        )
