"""
Minkowski-family distance functions.

Every metric here is a function of the per-axis absolute differences that
never decreases when one of those differences grows. That is what lets the
KD-Tree lower-bound the distance to a whole bounding box by clamping the
query onto the box.
"""

import logging
import math
import numbers
from typing import Mapping, Optional, Tuple, Union

import numpy as np

from .errors import InvalidMetric

_LOGGER = logging.getLogger("nnsearch.distance")

_P_BY_KIND = {
    'euclidean': 2.0,
    'manhattan': 1.0,
    'chebyshev': math.inf,
}

MetricSpec = Union['Metric', str, Tuple[str, float], Mapping[str, object]]


class Metric:
    """
    Distance between two M-vectors.

    Parameters
    ----------
    kind : str, default='euclidean'
        One of 'euclidean', 'manhattan', 'minkowski', 'chebyshev'.
    p : float or None, default=None
        Exponent, required for (and only meaningful with) 'minkowski'.
    """

    __slots__ = ('kind', 'p')

    def __init__(self, kind: str = 'euclidean', p: Optional[float] = None):
        if not isinstance(kind, str):
            raise InvalidMetric(f"metric kind must be a string, got {kind!r}")
        kind = kind.lower()

        if kind == 'minkowski':
            if p is None:
                raise InvalidMetric("minkowski metric requires an exponent p")
            if isinstance(p, bool) or not isinstance(p, numbers.Real):
                raise InvalidMetric(f"minkowski exponent must be a number, got {p!r}")
            p = float(p)
            if math.isnan(p) or p <= 0:
                raise InvalidMetric(f"minkowski exponent must be > 0, got {p}")
            if p < 1:
                _LOGGER.warning(
                    "minkowski exponent p=%s < 1 does not satisfy the triangle "
                    "inequality; results are still exact for tree queries", p
                )
        elif kind in _P_BY_KIND:
            if p is not None:
                if isinstance(p, bool) or not isinstance(p, numbers.Real):
                    raise InvalidMetric(f"metric exponent must be a number, got {p!r}")
                if float(p) != _P_BY_KIND[kind]:
                    raise InvalidMetric(f"metric {kind!r} does not take p={p}")
            p = _P_BY_KIND[kind]
        else:
            raise InvalidMetric(
                f"Unknown metric: {kind!r}. Available: "
                f"{sorted(list(_P_BY_KIND) + ['minkowski'])}"
            )

        self.kind = kind
        self.p = p

    def reduce(self, diff: np.ndarray) -> np.ndarray:
        """Collapse non-negative per-axis differences along the last axis."""
        p = self.p
        if p == 2.0:
            return np.sqrt(np.einsum('...i,...i->...', diff, diff))
        if p == 1.0:
            return np.sum(diff, axis=-1)
        if p == math.inf:
            return np.max(diff, axis=-1)
        return np.power(np.sum(np.power(diff, p), axis=-1), 1.0 / p)

    def distance(self, a: np.ndarray, b: np.ndarray) -> float:
        """Distance between two points."""
        a = np.asarray(a, dtype=np.float64)
        b = np.asarray(b, dtype=np.float64)
        return float(self.reduce(np.abs(a - b)))

    def pairwise(self, q: np.ndarray, Y: np.ndarray) -> np.ndarray:
        """Distances from q to every row of Y."""
        return self.reduce(np.abs(Y - q))

    def box_distance(
        self,
        q: np.ndarray,
        lower: np.ndarray,
        upper: np.ndarray
    ) -> float:
        """Distance from q to the closest point of the box [lower, upper]."""
        diff = np.maximum(lower - q, 0.0) + np.maximum(q - upper, 0.0)
        return float(self.reduce(diff))

    @property
    def scipy_name(self) -> str:
        """Equivalent ``scipy.spatial.distance.cdist`` metric name."""
        if self.kind == 'manhattan':
            return 'cityblock'
        return self.kind

    @property
    def scipy_kwargs(self) -> dict:
        if self.kind == 'minkowski':
            return {'p': self.p}
        return {}

    def __eq__(self, other) -> bool:
        if not isinstance(other, Metric):
            return NotImplemented
        return self.kind == other.kind and self.p == other.p

    def __hash__(self) -> int:
        return hash((self.kind, self.p))

    def __repr__(self) -> str:
        if self.kind == 'minkowski':
            return f"Metric('minkowski', p={self.p})"
        return f"Metric({self.kind!r})"


def get_metric(metric: MetricSpec = 'euclidean') -> Metric:
    """
    Build a Metric from any accepted description.

    Accepts an existing Metric, a kind name, a ``('minkowski', p)`` pair or a
    mapping with ``kind`` and optional ``p`` keys.
    """
    if isinstance(metric, Metric):
        return metric
    if metric is None:
        return Metric()
    if isinstance(metric, str):
        return Metric(metric)
    if isinstance(metric, Mapping):
        unknown = set(metric) - {'kind', 'p'}
        if unknown:
            raise InvalidMetric(f"unknown metric options: {sorted(unknown)}")
        return Metric(metric.get('kind', 'euclidean'), metric.get('p'))
    if isinstance(metric, (tuple, list)) and len(metric) == 2:
        return Metric(metric[0], metric[1])
    raise InvalidMetric(f"cannot interpret metric {metric!r}")
