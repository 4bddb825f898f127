"""
Evaluation metrics for approximate k-NN results.
"""

import numpy as np
from typing import Any, Dict
from scipy import stats


def recall_at_k(
    retrieved: np.ndarray,
    ground_truth: np.ndarray
) -> float:
    """
    Compute Recall@k for a single query.

    Parameters
    ----------
    retrieved : np.ndarray of shape (k,)
        Indices of retrieved neighbors. Padding (-1) is ignored.
    ground_truth : np.ndarray of shape (k,)
        Indices of true k nearest neighbors.

    Returns
    -------
    recall : float
        Proportion of true neighbors that were retrieved.
    """
    retrieved_set = {int(i) for i in retrieved if i >= 0}
    truth_set = {int(i) for i in ground_truth}

    if len(truth_set) == 0:
        return 1.0

    return len(retrieved_set & truth_set) / len(truth_set)


def row_recalls(
    retrieved: np.ndarray,
    ground_truth: np.ndarray
) -> np.ndarray:
    """Recall@k of every row of two (n_queries, k) index matrices."""
    retrieved = np.asarray(retrieved)
    ground_truth = np.asarray(ground_truth)
    if retrieved.shape[0] != ground_truth.shape[0]:
        raise ValueError(
            f"row count mismatch: {retrieved.shape[0]} vs {ground_truth.shape[0]}"
        )
    return np.array(
        [recall_at_k(r, t) for r, t in zip(retrieved, ground_truth)],
        dtype=np.float64,
    )


def mean_recall(
    retrieved: np.ndarray,
    ground_truth: np.ndarray
) -> float:
    """Average overlap between approximate and exact neighbor lists."""
    recalls = row_recalls(retrieved, ground_truth)
    if recalls.size == 0:
        return 1.0
    return float(np.mean(recalls))


def aggregate_recall(
    retrieved: np.ndarray,
    ground_truth: np.ndarray,
    confidence: float = 0.95
) -> Dict[str, Any]:
    """
    Summarise per-row recall.

    Returns mean, std, min, median, the 10th/25th percentiles and, with
    more than one row, a Student-t confidence interval on the mean.
    """
    recalls = row_recalls(retrieved, ground_truth)
    if recalls.size == 0:
        raise ValueError("cannot aggregate recall over zero rows")

    summary: Dict[str, Any] = {
        'mean': float(np.mean(recalls)),
        'std': float(np.std(recalls)),
        'min': float(np.min(recalls)),
        'median': float(np.median(recalls)),
    }
    for p in [10, 25]:
        summary[f'p{p}'] = float(np.percentile(recalls, p))

    n = len(recalls)
    if n > 1:
        t_value = stats.t.ppf((1 + confidence) / 2, n - 1)
        se = np.std(recalls, ddof=1) / np.sqrt(n)
        summary['ci_lower'] = float(summary['mean'] - t_value * se)
        summary['ci_upper'] = float(summary['mean'] + t_value * se)

    # Rows that missed at least one true neighbor
    summary['imperfect_rate'] = float(np.mean(recalls < 1.0))
    return summary
