"""
Grid and random searches used to seed the simplex minimizer.

These searches share the objective contract and the abort token of
:func:`simplexmin.simplex_min`. They keep the best *valid* point seen and
stop early once a value strictly below ``target`` is found. Their results
use :class:`~simplexmin.core.MinimizeResult` with ``Status.NOT_FOUND`` when
no valid point was evaluated.
"""

from __future__ import annotations

import itertools
from typing import Iterator, Optional, Sequence

import numpy as np

from .abort import AbortToken, resolve_token
from .bounds import enforce_variable_limits
from .core import VERY_LARGE, Array, Evaluator, MinimizeResult, Objective, Status
from .logging import get_logger

logger = get_logger(__name__)


class _BestTracker:
    """Running best valid point of a search."""

    def __init__(self, evaluate: Evaluator, target: float, x: Optional[Array] = None):
        self.evaluate = evaluate
        self.target = target
        self.x = x
        self.fun = VERY_LARGE
        self.found = False

    def offer(self, point: Array) -> bool:
        """Evaluate ``point``; return True when the target has been beaten."""
        value, invalid = self.evaluate(point)
        if invalid or value >= self.fun:
            return False
        self.fun = value
        self.x = np.array(point, dtype=float)
        self.found = True
        return value < self.target

    def result(self, aborted: bool, reached: bool, name: str) -> MinimizeResult:
        if reached:
            status, message = Status.TARGET_REACHED, "Target value reached."
        elif aborted:
            status, message = Status.ABORTED, "Aborted."
        elif self.found:
            status, message = Status.COMPLETED, f"{name} completed."
        else:
            status, message = Status.NOT_FOUND, "No valid point was found."
        logger.debug("%s finished after %d evaluations: %s", name, self.evaluate.nfev, message)
        return MinimizeResult(
            x=self.x,
            fun=float(self.fun),
            nfev=self.evaluate.nfev,
            status=status,
            message=message,
        )


def grid_axes(lower: Sequence[float], upper: Sequence[float], step: Sequence[float]) -> list[Array]:
    """
    Return the sample positions of each grid dimension.

    The number of points is ``int((upper - lower) / step + 1.5)`` (at least
    2) and the step is re-spaced so that both limits are sampled. A dimension
    with ``lower >= upper`` is pinned at ``lower``.
    """
    lo = np.asarray(lower, dtype=float).reshape(-1)
    hi = np.asarray(upper, dtype=float).reshape(-1)
    st = np.asarray(step, dtype=float).reshape(-1)
    if not (lo.size == hi.size == st.size):
        raise ValueError("lower, upper and step must have the same length")
    axes = []
    for low, high, delta in zip(lo, hi, st):
        if low >= high:
            axes.append(np.array([low]))
            continue
        if delta <= 0:
            raise ValueError("grid steps must be positive for non-empty ranges")
        count = max(int((high - low) / delta + 1.5), 2)
        axes.append(np.linspace(low, high, count))
    return axes


def _grid_points(axes: list[Array]) -> Iterator[Array]:
    # First dimension varies fastest.
    for combo in itertools.product(*reversed(axes)):
        yield np.array(combo[::-1], dtype=float)


def grid_search_min(
    fun: Objective,
    lower: Sequence[float],
    upper: Sequence[float],
    step: Sequence[float],
    target: float = -np.inf,
    abort: Optional[AbortToken] = None,
) -> MinimizeResult:
    """Evaluate every point of a regular grid and keep the best one."""
    token = resolve_token(abort)
    token.reset()
    tracker = _BestTracker(Evaluator(fun), target)
    reached = False
    for point in _grid_points(grid_axes(lower, upper, step)):
        if tracker.offer(point):
            reached = True
            break
        if token.requested:
            break
    return tracker.result(token.requested, reached, "Grid search")


def grid_sample_min(
    fun: Objective,
    lower: Sequence[float],
    upper: Sequence[float],
    step: Sequence[float],
    sample_fraction: float,
    target: float = -np.inf,
    seed: Optional[int] = None,
    abort: Optional[AbortToken] = None,
) -> MinimizeResult:
    """
    Evaluate a random subset of a regular grid.

    Each grid point is evaluated with probability ``sample_fraction``; a value
    of 1 or more is read as the expected number of points instead.
    """
    if sample_fraction <= 0:
        raise ValueError("sample_fraction must be positive")
    token = resolve_token(abort)
    token.reset()
    rng = np.random.default_rng(seed)
    axes = grid_axes(lower, upper, step)
    if sample_fraction >= 1:
        sample_fraction /= float(np.prod([axis.size for axis in axes]))
    tracker = _BestTracker(Evaluator(fun), target)
    reached = False
    for point in _grid_points(axes):
        if sample_fraction < rng.random():
            continue
        if tracker.offer(point):
            reached = True
            break
        if token.requested:
            break
    return tracker.result(token.requested, reached, "Grid sample")


def random_sample_min(
    fun: Objective,
    lower: Sequence[float],
    upper: Sequence[float],
    n_samples: int,
    x0: Optional[Sequence[float]] = None,
    target: float = -np.inf,
    seed: Optional[int] = None,
    abort: Optional[AbortToken] = None,
) -> MinimizeResult:
    """Draw uniform samples inside the box ``[lower, upper]``."""
    if n_samples <= 0:
        raise ValueError("n_samples must be positive")
    token = resolve_token(abort)
    token.reset()
    rng = np.random.default_rng(seed)
    lo = np.asarray(lower, dtype=float).reshape(-1)
    hi = np.asarray(upper, dtype=float).reshape(-1)
    if lo.size != hi.size:
        raise ValueError("lower and upper must have the same length")
    start = None if x0 is None else np.asarray(x0, dtype=float).copy()
    tracker = _BestTracker(Evaluator(fun), target, start)
    reached = False
    for _ in range(n_samples):
        point = lo + (hi - lo) * rng.random(lo.size)
        if tracker.offer(point):
            reached = True
            break
        if token.requested:
            break
    return tracker.result(token.requested, reached, "Random sample")


def random_walk_min(
    fun: Objective,
    x0: Sequence[float],
    step: Sequence[float],
    n_samples: int,
    lower: Optional[Sequence[float]] = None,
    upper: Optional[Sequence[float]] = None,
    target: float = -np.inf,
    seed: Optional[int] = None,
    abort: Optional[AbortToken] = None,
) -> MinimizeResult:
    """
    Random walk around the best point found so far.

    Each trial is ``best + 2 * step * (0.5 - u)`` with ``u`` uniform in
    ``[0, 1)``, clipped to the limits. The starting point itself is not
    evaluated.
    """
    if n_samples <= 0:
        raise ValueError("n_samples must be positive")
    token = resolve_token(abort)
    token.reset()
    rng = np.random.default_rng(seed)
    start = np.asarray(x0, dtype=float).reshape(-1).copy()
    delta = np.asarray(step, dtype=float).reshape(-1)
    if delta.size != start.size:
        raise ValueError("step must have the same length as x0")
    lo = None if lower is None else np.asarray(lower, dtype=float)
    hi = None if upper is None else np.asarray(upper, dtype=float)
    tracker = _BestTracker(Evaluator(fun), target, start)
    reached = False
    for _ in range(n_samples):
        point = tracker.x + 2 * delta * (0.5 - rng.random(start.size))
        point = enforce_variable_limits(point, lo, hi)
        if tracker.offer(point):
            reached = True
            break
        if token.requested:
            break
    return tracker.result(token.requested, reached, "Random walk")


__all__ = [
    "grid_axes",
    "grid_sample_min",
    "grid_search_min",
    "random_sample_min",
    "random_walk_min",
]
