"""Nelder–Mead simplex iteration with bounds, disabled dimensions and abort.

The simplex is an array of shape ``(points, dimensions)`` with
``points = active_dimensions + 1``; ``values`` holds the objective value of
each vertex. Both are modified in place. The center vector is stored as
``vertices.sum(axis=0) / active_dimensions`` so that
``center - vertices[w] / active_dimensions`` is the centroid of every vertex
except ``w``; it is updated incrementally whenever one vertex is replaced.

References:
    - Nelder & Mead, "A simplex method for function minimization",
      The Computer Journal 7 (1965)
    - Press et al., *Numerical Recipes*, section 10.4 (amoeba)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from .abort import AbortToken, resolve_token
from .bounds import check_variable_limits
from .core import (
    DEFAULT_MAX_EVALUATIONS,
    VERY_LARGE,
    Array,
    Evaluator,
    Objective,
    SimplexFlags,
    Status,
    as_evaluator,
)
from .logging import get_logger

logger = get_logger(__name__)

REFLECTION = -1.0
EXPANSION = 2.0
CONTRACTION = 0.5


@dataclass
class TrialOutcome:
    """Result of one trial move of the worst vertex."""

    value: float
    replaced: bool
    used_prior: bool
    point: Array
    evaluated: bool


@dataclass
class LoopResult:
    """Exit state and move statistics of :func:`simplex_minimization`."""

    status: Status
    nfev: int
    reflections: int = 0
    expansions: int = 0
    contractions: int = 0
    shrinks: int = 0


def compute_simplex_center(vertices: Array) -> Array:
    """
    Return the scaled center ``vertices.sum(axis=0) / active_dimensions``.

    Subtracting ``vertices[w] / active_dimensions`` from the result gives the
    centroid of every vertex except ``w``.
    """
    vertices = np.asarray(vertices, dtype=float)
    active_dimensions = vertices.shape[0] - 1
    if active_dimensions < 1:
        raise ValueError("A simplex needs at least two vertices.")
    return vertices.sum(axis=0) / active_dimensions


def find_best_worst(values: Array) -> tuple[int, int, int]:
    """
    Return the indices ``(best, worst, next_worst)`` of a value array.

    Ties keep the first occurrence. ``best`` and ``worst`` are always distinct,
    even when every value is equal.
    """
    values = np.asarray(values, dtype=float)
    if values.size < 2:
        raise ValueError("find_best_worst needs at least two values.")
    if values[0] > values[1]:
        best = next_worst = 1
        worst = 0
    else:
        best = next_worst = 0
        worst = 1
    f_best = f_next_worst = values[best]
    f_worst = values[worst]
    for point in range(1, values.size):
        if f_best > values[point]:
            best = point
            f_best = values[point]
        if f_worst < values[point]:
            worst = point
            f_worst = values[point]
    for point in range(values.size):
        if f_next_worst < values[point] and point != worst:
            f_next_worst = values[point]
            next_worst = point
    return best, worst, next_worst


def trial_vertex(
    vertices: Array,
    values: Array,
    center: Array,
    worst: int,
    factor: float,
    objective: Union[Objective, Evaluator],
    lower: Optional[Array] = None,
    upper: Optional[Array] = None,
    disable: Optional[Array] = None,
    last_point: Optional[Array] = None,
) -> TrialOutcome:
    """
    Move the worst vertex by ``factor`` relative to the centroid of the others.

    The trial point is rejected with ``VERY_LARGE`` when it violates the
    limits (no evaluation) or when the objective flags it invalid. When its
    value is strictly below ``values[worst]`` it replaces the worst vertex and
    ``center`` is updated in place.
    """
    active_dimensions = vertices.shape[0] - 1
    worst_vertex = vertices[worst]
    centroid = center - worst_vertex / active_dimensions
    trial = centroid + factor * (worst_vertex - centroid)
    if disable is not None:
        trial = np.where(disable, worst_vertex, trial)

    if not check_variable_limits(trial, lower, upper):
        logger.debug("trial point outside limits")
        return TrialOutcome(VERY_LARGE, False, False, trial, False)

    used_prior = last_point is not None and np.array_equal(trial, last_point)
    value, invalid = objective(trial)
    if invalid:
        logger.debug("trial point is invalid")
        return TrialOutcome(VERY_LARGE, False, used_prior, trial, True)

    replaced = False
    if value < values[worst]:
        center += (trial - worst_vertex) / active_dimensions
        vertices[worst] = trial
        values[worst] = value
        replaced = True
    return TrialOutcome(value, replaced, used_prior, trial, True)


def _swap_best_first(vertices: Array, values: Array, best: int) -> None:
    if best != 0:
        vertices[[0, best]] = vertices[[best, 0]]
        values[[0, best]] = values[[best, 0]]


def _shrink_toward_best(
    vertices: Array, values: Array, best: int, evaluate: Evaluator
) -> tuple[int, int]:
    """Move every vertex halfway to the best one; return (invalids, degenerates)."""
    invalids = degenerates = 0
    for point in range(vertices.shape[0]):
        if point == best:
            continue
        moved = 0.5 * (vertices[point] + vertices[best])
        if np.array_equal(moved, vertices[point]):
            degenerates += 1
            continue
        value, invalid = evaluate(moved)
        if invalid:
            invalids += 1
            continue
        if value == values[point]:
            degenerates += 1
        vertices[point] = moved
        values[point] = value
    return invalids, degenerates


def simplex_minimization(
    vertices: Array,
    values: Array,
    objective: Union[Objective, Evaluator],
    lower: Optional[Array] = None,
    upper: Optional[Array] = None,
    disable: Optional[Array] = None,
    target: float = -np.inf,
    tolerance: float = 1e-8,
    absolute: bool = True,
    max_evaluations: int = DEFAULT_MAX_EVALUATIONS,
    flags: SimplexFlags = SimplexFlags.NONE,
    abort: Optional[AbortToken] = None,
) -> LoopResult:
    """
    Iterate reflect / expand / contract / shrink on a prepared simplex.

    Parameters
    ----------
    vertices, values:
        Simplex of shape ``(points, dimensions)`` and the matching values,
        modified in place. On return the best vertex is in slot 0.
    objective:
        Objective callable or :class:`~simplexmin.core.Evaluator`.
    lower, upper:
        Optional limits; see :mod:`simplexmin.bounds`.
    disable:
        Optional boolean mask of dimensions that are never moved.
    target:
        Stop as soon as the best value is at or below this.
    tolerance, absolute:
        Stop when the gap between worst and best value (absolute, or relative
        to their mean magnitude) drops below ``tolerance``.
    max_evaluations:
        Evaluation budget for this call; non-positive means the default.
    flags:
        ``SimplexFlags.VERBOSE_LEVEL2`` logs each move at INFO.
    abort:
        Token polled at the top of each iteration.
    """
    evaluate = as_evaluator(objective)
    token = resolve_token(abort)
    verbose = SimplexFlags.VERBOSE_LEVEL2 in flags
    if max_evaluations <= 0:
        max_evaluations = DEFAULT_MAX_EVALUATIONS
    if disable is not None:
        disable = np.asarray(disable, dtype=bool)

    def note(message: str, *args) -> None:
        if verbose:
            logger.info(message, *args)

    start = evaluate.nfev
    center = compute_simplex_center(vertices)
    points = vertices.shape[0]
    used_last_count = 0
    last_point: Optional[Array] = None
    result = LoopResult(status=Status.MAX_EVALUATIONS, nfev=0)

    while evaluate.nfev - start < max_evaluations:
        if token.requested:
            result.status = Status.ABORTED
            break
        best, worst, next_worst = find_best_worst(values)
        f_best = values[best]
        f_worst = values[worst]

        if absolute:
            merit = abs(f_worst - f_best)
        else:
            denominator = (abs(f_worst) + abs(f_best)) / 2
            if not denominator:
                logger.error("divide-by-zero in fractional tolerance evaluation")
                result.status = Status.DIVIDE_BY_ZERO
                break
            merit = abs(f_worst - f_best) / denominator
        if merit < tolerance or f_best <= target:
            note("tolerance reached or value small enough")
            result.status = (
                Status.TARGET_REACHED if f_best <= target else Status.CONVERGED
            )
            break

        progress = 0
        outcome = trial_vertex(
            vertices, values, center, worst, REFLECTION, evaluate,
            lower, upper, disable, last_point,
        )
        note("reflection returns (replaced=%s)", outcome.replaced)
        if outcome.evaluated:
            last_point = outcome.point
        result.reflections += outcome.replaced
        progress += outcome.replaced
        used_last_count = used_last_count + 1 if outcome.used_prior else 0
        if used_last_count > 2:
            note("simplex is looping, ending iterations")
            result.status = Status.STALLED
            break

        f_trial = outcome.value
        if f_trial < values[best]:
            outcome = trial_vertex(
                vertices, values, center, worst, EXPANSION, evaluate,
                lower, upper, disable, last_point,
            )
            note("expansion returns (replaced=%s)", outcome.replaced)
            if outcome.evaluated:
                last_point = outcome.point
            result.expansions += outcome.replaced
            progress += outcome.replaced
        elif f_trial > values[next_worst]:
            f_problem = f_trial
            outcome = trial_vertex(
                vertices, values, center, worst, CONTRACTION, evaluate,
                lower, upper, disable, last_point,
            )
            note("contraction returns (replaced=%s)", outcome.replaced)
            if outcome.evaluated:
                last_point = outcome.point
            result.contractions += outcome.replaced
            progress += outcome.replaced
            if outcome.value > f_problem:
                note("contracting on best point")
                invalids, degenerates = _shrink_toward_best(
                    vertices, values, best, evaluate
                )
                result.shrinks += 1
                if invalids + degenerates >= points - 1:
                    note("shrinking produced no usable vertices")
                    result.status = Status.STALLED
                    break
                progress += 1
                center = compute_simplex_center(vertices)

        if not progress:
            note("no progress, breaking out of loop")
            result.status = Status.STALLED
            break

    best, _, _ = find_best_worst(values)
    _swap_best_first(vertices, values, best)
    result.nfev = evaluate.nfev - start
    note(
        "exit report: reflection: %d  expansion: %d  contraction: %d  shrinking: %d",
        result.reflections, result.expansions, result.contractions, result.shrinks,
    )
    return result


__all__ = [
    "CONTRACTION",
    "EXPANSION",
    "REFLECTION",
    "LoopResult",
    "TrialOutcome",
    "compute_simplex_center",
    "find_best_worst",
    "simplex_minimization",
    "trial_vertex",
]
