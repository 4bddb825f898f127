#!/usr/bin/env python3
"""
Benchmark harness for nnsearch.

Measures recall@k of the KD-Tree and LargeVis engines against an exact
brute-force oracle, along with build/query wall time and distance
computation counts.
"""

import argparse
import json
import logging
import time
from pathlib import Path
import sys

import numpy as np
from sklearn.datasets import make_blobs
from tqdm import tqdm
from typing import List

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from nnsearch import KDTree, LargeVis, SearchConfig, configure_logging, load_config
from nnsearch.baselines import ExactBruteForceKNN, SklearnKDTreeKNN
from nnsearch.utils.metrics import aggregate_recall

_LOGGER = logging.getLogger("nnsearch.bench")


def summarize(values: List[float]) -> dict:
    """Return summary statistics for a list of numeric values."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return {"mean": 0.0, "p50": 0.0, "p95": 0.0, "min": 0.0, "max": 0.0}
    return {
        "mean": float(np.mean(arr)),
        "p50": float(np.percentile(arr, 50)),
        "p95": float(np.percentile(arr, 95)),
        "min": float(np.min(arr)),
        "max": float(np.max(arr)),
    }


def bench_kdtree(X, queries, exact_neighbors, config: SearchConfig, progress: bool) -> dict:
    tree = KDTree(X, **config.kdtree_kwargs()).fit()
    reference = SklearnKDTreeKNN(X, **config.kdtree_kwargs()).fit()

    times, counts, rows = [], [], []
    for q in tqdm(queries, desc="kdtree", disable=not progress):
        t0 = time.perf_counter()
        neighbors, _, dist_count = tree.query(q)
        times.append(time.perf_counter() - t0)
        counts.append(dist_count)
        rows.append(neighbors)

    t0 = time.perf_counter()
    reference.query_batch(queries)
    sklearn_time = time.perf_counter() - t0

    return {
        "build_seconds": tree.build_time,
        "sklearn_build_seconds": reference.build_time,
        "levels": tree.levels,
        "recall": aggregate_recall(np.array(rows), exact_neighbors),
        "time_per_query_s": summarize(times),
        "sklearn_time_per_query_s": sklearn_time / max(1, len(queries)),
        "dist_count": summarize(counts),
    }


def bench_largevis(X, exact_graph, config: SearchConfig) -> dict:
    model = LargeVis(X, **config.largevis_kwargs()).fit()
    return {
        "build_seconds": model.build_time,
        "iterations_run": model.n_iterations_,
        "recall": aggregate_recall(model.indices_, exact_graph),
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark nnsearch engines vs exact k-NN")
    parser.add_argument("--n", type=int, default=5000, help="Number of points")
    parser.add_argument("--d", type=int, default=8, help="Dimensionality")
    parser.add_argument("--centers", type=int, default=10, help="Number of blobs")
    parser.add_argument("--n-queries", type=int, default=200, help="Number of queries")
    parser.add_argument("--config", type=str, default=None, help="YAML file of engine options")
    parser.add_argument("--k", type=int, default=None, help="Override num_neighbors")
    parser.add_argument("--seed", type=int, default=42, help="Random seed")
    parser.add_argument("--out", type=str, default=None, help="Optional JSON output path")
    parser.add_argument("--no-progress", action="store_true", help="Hide progress bars")
    parser.add_argument("--log-level", type=str, default=None, help="Logging level")

    args = parser.parse_args()
    configure_logging(args.log_level)

    if args.n < 1 or args.d < 1 or args.n_queries < 1:
        raise ValueError("--n, --d, and --n-queries must be positive")

    options = load_config(args.config).as_dict() if args.config else {}
    options.setdefault("seed", args.seed)
    if args.k is not None:
        options["num_neighbors"] = args.k
    config = SearchConfig.from_mapping(options)

    X, _ = make_blobs(
        n_samples=args.n + args.n_queries,
        n_features=args.d,
        centers=args.centers,
        random_state=args.seed,
    )
    X, queries = X[:args.n], X[args.n:]
    _LOGGER.info("dataset n=%d d=%d queries=%d", args.n, args.d, args.n_queries)

    exact = ExactBruteForceKNN(X, num_neighbors=config.num_neighbors, metric=config.metric).fit()
    exact_neighbors, _ = exact.query_batch_vectorized(queries)
    exact_graph, _ = exact.query_batch_vectorized(None, exclude_self=not config.include_self)

    result = {
        "config": {
            "n": args.n,
            "d": args.d,
            "centers": args.centers,
            "n_queries": args.n_queries,
            **config.as_dict(),
        },
        "kdtree": bench_kdtree(X, queries, exact_neighbors, config, not args.no_progress),
        "largevis": bench_largevis(X, exact_graph, config),
    }
    result["config"]["metric"] = repr(config.metric)

    print("nnsearch benchmark")
    print(f"n={args.n} d={args.d} k={config.num_neighbors} queries={args.n_queries}")
    kd = result["kdtree"]
    qt = kd["time_per_query_s"]
    print(
        f"kdtree: build={kd['build_seconds']:.4f}s levels={kd['levels']} "
        f"recall={kd['recall']['mean']:.4f} "
        f"time_per_query_s: mean={qt['mean']:.6f} p95={qt['p95']:.6f}"
    )
    lv = result["largevis"]
    print(
        f"largevis: build={lv['build_seconds']:.4f}s iterations={lv['iterations_run']} "
        f"recall={lv['recall']['mean']:.4f} min={lv['recall']['min']:.4f}"
    )

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8") as f:
            json.dump(result, f, indent=2)
        print(f"Wrote results to {out_path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
