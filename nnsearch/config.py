from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .distance import get_metric
from .utils.validation import check_n_jobs, check_positive_int

_LOGGER = logging.getLogger("nnsearch")

DEFAULT_NUM_NEIGHBORS = 5
DEFAULT_METRIC = "euclidean"
DEFAULT_LEAF_CAPACITY = 16
DEFAULT_NUM_TREES = 8
DEFAULT_ITERATIONS = 2

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class SearchConfig:
    """Recognised options shared by the KD-Tree and LargeVis engines."""

    num_neighbors: int = DEFAULT_NUM_NEIGHBORS
    metric: Any = DEFAULT_METRIC
    leaf_capacity: int = DEFAULT_LEAF_CAPACITY
    num_trees: int = DEFAULT_NUM_TREES
    iterations: int = DEFAULT_ITERATIONS
    seed: Optional[int] = None
    max_candidates: Optional[int] = None
    until_converged: bool = False
    include_self: bool = True
    n_jobs: Optional[int] = None

    def __post_init__(self) -> None:
        check_positive_int(self.num_neighbors, "num_neighbors")
        check_positive_int(self.leaf_capacity, "leaf_capacity")
        check_positive_int(self.num_trees, "num_trees")
        check_positive_int(self.iterations, "iterations", minimum=0)
        if self.max_candidates is not None:
            check_positive_int(self.max_candidates, "max_candidates")
        check_n_jobs(self.n_jobs)
        get_metric(self.metric)

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "SearchConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(options) - known)
        if unknown:
            raise ValueError(f"Unknown options: {unknown}. Available: {sorted(known)}")
        return cls(**dict(options))

    def kdtree_kwargs(self) -> Dict[str, Any]:
        return {
            "num_neighbors": self.num_neighbors,
            "metric": self.metric,
            "leaf_capacity": self.leaf_capacity,
        }

    def largevis_kwargs(self) -> Dict[str, Any]:
        return {
            "num_neighbors": self.num_neighbors,
            "metric": self.metric,
            "leaf_capacity": self.leaf_capacity,
            "num_trees": self.num_trees,
            "iterations": self.iterations,
            "seed": self.seed,
            "max_candidates": self.max_candidates,
            "until_converged": self.until_converged,
            "include_self": self.include_self,
            "n_jobs": self.n_jobs,
        }

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: Union[str, Path]) -> SearchConfig:
    """Read a SearchConfig from a YAML mapping (an empty file gives defaults)."""
    with open(path, "r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"{path}: expected a mapping of options, got {type(raw).__name__}")
    return SearchConfig.from_mapping(raw)


def configure_logging(level: Optional[Union[str, int]] = None) -> logging.Logger:
    """
    Attach a stream handler to the ``nnsearch`` logger.

    Library code only logs; scripts call this once. Without ``level`` the
    NNSEARCH_LOG_LEVEL environment variable is used, defaulting to WARNING.
    """
    if level is None:
        level = os.getenv("NNSEARCH_LOG_LEVEL", "WARNING").strip().upper()
    logger = logging.getLogger("nnsearch")
    logger.setLevel(level)
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
        logger.addHandler(handler)
    return logger
