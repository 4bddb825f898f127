"""
Median split shared by the KD-Tree and the random projection trees.
"""

import numpy as np
from typing import Tuple


def median_split(
    perm: np.ndarray,
    start: int,
    end: int,
    values: np.ndarray
) -> Tuple[int, float]:
    """
    Partition ``perm[start:end]`` in place around the median of ``values``.

    ``values[j]`` is the split coordinate (or projection) of point
    ``perm[start + j]``. After the call the first ``ceil(n/2)`` positions hold
    points whose value is <= the returned split value and the rest hold
    points whose value is >= it. Points equal to the split value fill the
    left side first, so duplicates never stall the recursion: both halves
    are always non-empty for n >= 2.

    Uses introselect (``np.argpartition``), average O(n).

    Returns
    -------
    mid : int
        Absolute position where the right half starts.
    split_val : float
        Largest value on the left side.
    """
    n = end - start
    n_left = (n + 1) // 2
    kth = np.argpartition(values, n_left - 1, kind='introselect')[n_left - 1]
    split_val = float(values[kth])

    # Everything below the median goes left, then as many ties as still
    # fit, earliest position first. Relative order is kept on both sides.
    left_mask = values < split_val
    ties = np.flatnonzero(values == split_val)
    left_mask[ties[:n_left - int(left_mask.sum())]] = True

    left = np.flatnonzero(left_mask)
    right = np.flatnonzero(~left_mask)
    segment = perm[start:end]
    perm[start:end] = np.concatenate((segment[left], segment[right]))
    return start + n_left, split_val
