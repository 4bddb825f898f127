"""
Lightweight phase timers for index builds and graph refinement.
"""

import logging
import os
import time
from typing import Dict, Optional


def env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "t", "on"}


class _NullTimer:
    __slots__ = ()

    def __enter__(self) -> "_NullTimer":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        return False


_NULL_TIMER = _NullTimer()


class _PhaseTimer:
    __slots__ = ("_profiler", "_phase", "_start")

    def __init__(self, profiler: "Profiler", phase: str) -> None:
        self._profiler = profiler
        self._phase = phase
        self._start = 0.0

    def __enter__(self) -> "_PhaseTimer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._profiler._record(self._phase, time.perf_counter() - self._start)
        return False


class Profiler:
    """
    Accumulates wall time and counters per named phase
    ("tree_build", "candidate_graph", "refine_iter", ...).

    Disabled profilers hand out a shared no-op timer so the hot paths pay
    nothing. Enable globally via NNSEARCH_PROFILE=1.
    """

    def __init__(self, enabled: bool) -> None:
        self.enabled = enabled
        self._seconds: Dict[str, float] = {}
        self._calls: Dict[str, int] = {}
        self._counters: Dict[str, int] = {}

    @classmethod
    def from_env(cls, enabled: Optional[bool] = None) -> "Profiler":
        if enabled is None:
            enabled = env_flag("NNSEARCH_PROFILE")
        return cls(enabled)

    def time(self, phase: str):
        if not self.enabled:
            return _NULL_TIMER
        return _PhaseTimer(self, phase)

    def count(self, key: str, value: int = 1) -> None:
        if self.enabled:
            self._counters[key] = self._counters.get(key, 0) + int(value)

    def _record(self, phase: str, elapsed: float) -> None:
        self._seconds[phase] = self._seconds.get(phase, 0.0) + elapsed
        self._calls[phase] = self._calls.get(phase, 0) + 1

    def summary(self) -> Dict[str, Dict[str, float]]:
        out: Dict[str, Dict[str, float]] = {
            phase: {"calls": self._calls[phase], "total_s": self._seconds[phase]}
            for phase in sorted(self._seconds)
        }
        for key in sorted(self._counters):
            out.setdefault(key, {})["count"] = self._counters[key]
        return out

    def log_summary(self, logger: logging.Logger, title: str) -> None:
        """Emit one DEBUG line per phase; no-op when disabled."""
        if not self.enabled:
            return
        for phase, stats in self.summary().items():
            parts = " ".join(
                f"{key}={value:.6f}" if isinstance(value, float) else f"{key}={value}"
                for key, value in stats.items()
            )
            logger.debug("%s profile phase=%s %s", title, phase, parts)
