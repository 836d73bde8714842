"""Multi-pass driver for the simplex minimizer.

Each pass seeds a fresh simplex around the best point found so far. The
extra vertices come from a one-dimensional scan along each active dimension
that looks for a direction of decrease, so the starting simplex already
points downhill. The simplex loop then runs with its own evaluation budget,
and the next pass restarts with step sizes taken from the spread of the
final simplex.
"""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from .abort import AbortToken, resolve_token
from .bounds import check_variable_limits, resolve_bounds
from .config import SimplexConfig
from .core import (
    VERY_LARGE,
    Array,
    Evaluator,
    MinimizeResult,
    Objective,
    ReportCallback,
    SimplexFlags,
    Status,
    as_vector,
)
from .logging import get_logger
from .simplex import simplex_minimization

logger = get_logger(__name__)

# Extra growing steps taken once a scan finds a decrease.
_EXTRA_SCAN_STEPS = 3
# Step reduction used while hunting for any valid vertex.
_FALLBACK_DIVISOR = 10.0


class _TargetReached(Exception):
    """Raised inside the scan when a vertex meets the target value."""

    def __init__(self, point: int):
        super().__init__(point)
        self.point = point


def initial_steps(
    x0: Array,
    dx: Optional[Array],
    lower: Optional[Array],
    upper: Optional[Array],
    disable: Optional[Array],
    flags: SimplexFlags = SimplexFlags.NONE,
    rng: Optional[np.random.Generator] = None,
) -> Array:
    """
    Derive per-dimension starting steps.

    Zero or missing steps become a quarter of the bound range when that
    range is finite, otherwise ``x0 / 4`` (1 when that is zero). Steps of
    dimensions with a finite range never exceed a quarter of it and point
    into the box when the start sits on a limit. Disabled dimensions get 0.
    """
    steps = np.zeros_like(x0) if dx is None else np.array(dx, dtype=float, copy=True)
    if lower is not None:
        constrained = lower != upper
        with np.errstate(invalid="ignore"):
            quarter_range = np.abs(upper - lower) / 4
        finite = constrained & np.isfinite(quarter_range)
    else:
        constrained = np.zeros(x0.size, dtype=bool)
        finite = constrained
        quarter_range = np.zeros_like(x0)

    zero = steps == 0
    steps[zero & finite] = quarter_range[zero & finite]
    free_zero = zero & ~finite
    steps[free_zero] = x0[free_zero] / 4
    steps[free_zero & (steps == 0)] = 1.0

    if SimplexFlags.RANDOM_SIGNS in flags:
        if rng is None:
            rng = np.random.default_rng()
        flip = rng.random(x0.size) > 0.5
        steps[flip] *= -1

    too_large = finite & (quarter_range < np.abs(steps))
    steps[too_large] = quarter_range[too_large]
    if lower is not None:
        at_lower = constrained & (lower >= x0)
        steps[at_lower] = np.abs(steps[at_lower])
        at_upper = constrained & (upper <= x0)
        steps[at_upper] = -np.abs(steps[at_upper])
    if disable is not None:
        steps[disable] = 0.0
    return steps


class _SimplexBuilder:
    """Builds the starting simplex of one pass, vertex by vertex."""

    def __init__(
        self,
        evaluate: Evaluator,
        vertices: Array,
        values: Array,
        active: Array,
        steps: Array,
        lower: Optional[Array],
        upper: Optional[Array],
        config: SimplexConfig,
        token: AbortToken,
    ):
        self.evaluate = evaluate
        self.vertices = vertices
        self.values = values
        self.active = active
        self.steps = steps
        self.lower = lower
        self.upper = upper
        self.config = config
        self.token = token
        self.verbose = SimplexFlags.VERBOSE_LEVEL1 in config.flags

    def note(self, message: str, *args) -> None:
        if self.verbose:
            logger.info(message, *args)

    def _in_bounds(self, point: int) -> bool:
        return check_variable_limits(self.vertices[point], self.lower, self.upper)

    def _value_at(self, point: int) -> tuple[float, bool]:
        value, invalid = self.evaluate(self.vertices[point])
        if invalid:
            logger.debug("scan point for vertex %d is invalid", point)
            return VERY_LARGE, True
        return value, False

    def build(self) -> bool:
        """Fill vertices 1..n; return False if no valid simplex could be formed."""
        flags = self.config.flags
        for point in range(1, self.vertices.shape[0]):
            if self.token.requested:
                break
            dimension = self.active[point - 1]
            self.note("setting initial simplex for direction %d", point - 1)
            found = False
            if SimplexFlags.NO_1D_SCANS not in flags:
                found, divisor = self._scan(point, dimension)
                if found:
                    self.note("decrease found, trying more steps")
                    self._extend(point, dimension, divisor)
            if not found and not self.token.requested:
                if not self._perturb(point, dimension):
                    return False
        return True

    def _scan(self, point: int, dimension: int) -> tuple[bool, float]:
        """Step along ``dimension`` until the value drops below the previous vertex."""
        cfg = self.config
        base = 0 if SimplexFlags.START_FROM_VERTEX1 in cfg.flags else point - 1
        self.vertices[point] = self.vertices[base]
        origin = self.vertices[point - 1, dimension]
        y_last = self.values[point - 1]
        divisor = 1.0
        divisions = 0
        while divisions < cfg.max_divisions and not self.token.requested:
            self.note(
                "working on division %d (divisor=%e) for direction %d",
                divisions, divisor, point - 1,
            )
            self.vertices[point, dimension] = origin + self.steps[dimension] / divisor
            if not self._in_bounds(point):
                logger.debug("scan point for vertex %d outside limits", point)
                self.values[point] = VERY_LARGE
            else:
                self.values[point], _ = self._value_at(point)
                if self.values[point] <= cfg.target:
                    raise _TargetReached(point)
            self.note("new value: %e   last value: %e", self.values[point], y_last)
            if self.values[point] < y_last:
                return True, divisor
            divisions += 1
            if divisions % 2:
                divisor *= -1
            else:
                divisor *= cfg.divisor_factor
        return False, divisor

    def _extend(self, point: int, dimension: int, divisor: float) -> None:
        """Keep stepping with growing steps while the value keeps falling."""
        cfg = self.config
        for _ in range(_EXTRA_SCAN_STEPS):
            if self.token.requested:
                break
            divisor /= cfg.divisor_factor
            step = self.steps[dimension] / divisor
            self.vertices[point, dimension] += step
            if not self._in_bounds(point):
                self.vertices[point, dimension] -= step
                break
            y_last = self.values[point]
            value, invalid = self._value_at(point)
            if invalid or value > y_last:
                self.vertices[point, dimension] -= step
                self.values[point] = y_last
                break
            self.values[point] = value
            if value <= cfg.target:
                self.note("value below target during 1D scan")
                raise _TargetReached(point)

    def _perturb(self, point: int, dimension: int) -> bool:
        """Step away from vertex 0 until any valid point is found."""
        cfg = self.config
        self.vertices[point] = self.vertices[0]
        divisor = 1.0
        divisions = 0
        while divisions < cfg.max_divisions and not self.token.requested:
            self.vertices[point, dimension] = (
                self.vertices[0, dimension] + self.steps[dimension] / divisor
            )
            if not self._in_bounds(point):
                divisions += 1
            else:
                self.values[point], invalid = self._value_at(point)
                if not invalid:
                    return True
                divisions += 1
            if divisions % 2:
                divisor *= -1
            else:
                divisor *= _FALLBACK_DIVISOR
        if divisions >= cfg.max_divisions:
            logger.error("can't find valid initial simplex")
            return False
        return True


def _merit(current: float, previous: float, tolerance: float) -> Optional[float]:
    if tolerance <= 0:
        denominator = (abs(current) + abs(previous)) / 2
        if not denominator:
            return None
        return abs(current - previous) / denominator
    return abs(current - previous)


def simplex_min(
    fun: Objective,
    x0: Sequence[float],
    dx: Optional[Sequence[float]] = None,
    lower: Optional[Sequence[float]] = None,
    upper: Optional[Sequence[float]] = None,
    disable: Optional[Sequence[bool]] = None,
    *,
    config: Optional[SimplexConfig] = None,
    report: Optional[ReportCallback] = None,
    abort: Optional[AbortToken] = None,
    history: bool = False,
    **overrides,
) -> MinimizeResult:
    """
    Minimize ``fun`` with repeated, bounded Nelder–Mead simplex passes.

    Parameters
    ----------
    fun:
        Objective returning a float or a ``(value, invalid)`` pair.
    x0:
        Starting guess. Must be a valid point.
    dx:
        Initial step sizes; zero or missing entries are derived from the
        limits or from ``x0``.
    lower, upper:
        Optional limits, given together. Dimensions with equal limits are
        unconstrained.
    disable:
        Optional mask of dimensions held fixed at their ``x0`` value.
    config:
        Run parameters; keyword ``overrides`` replace individual fields.
    report:
        Called after each pass as
        ``report(best_value, best_vector, pass_number, evaluations, dimensions)``.
    abort:
        Cancellation token; the process-wide default token when omitted. It
        is reset when the call starts.
    history:
        Record every evaluated point in ``result.history``.

    Returns
    -------
    MinimizeResult
        ``code`` is the evaluation count, or a negative
        :class:`~simplexmin.core.ReturnCode` for fatal outcomes. ``x`` and
        ``fun`` always hold the best point seen.

    Example
    -------
    >>> res = simplex_min(lambda x: (x[0] - 3) ** 2 + (x[1] + 2) ** 2, [0.0, 0.0],
    ...                   tolerance=1e-10, max_evaluations=500)
    >>> np.allclose(res.x, [3.0, -2.0], atol=1e-3)
    True
    """
    cfg = config or SimplexConfig()
    if overrides:
        cfg = cfg.replace(**overrides)
    token = resolve_token(abort)
    token.reset()

    guess = np.asarray(x0, dtype=float).reshape(-1).copy()
    dimensions = guess.size
    dx_vec = as_vector(dx, dimensions, "dx")
    lo, hi = resolve_bounds(lower, upper, dimensions)
    mask = None
    if disable is not None:
        mask = as_vector(disable, dimensions, "disable").astype(bool)

    hist: list[Array] = []
    evaluate = Evaluator(fun, hist if history else None)

    def finish(x, value, status, message, npass) -> MinimizeResult:
        return MinimizeResult(
            x=None if x is None else np.array(x, dtype=float),
            fun=float(value),
            nfev=evaluate.nfev,
            status=status,
            message=message,
            npass=npass,
            history=hist,
        )

    active = np.flatnonzero(~mask) if mask is not None else np.arange(dimensions)
    if dimensions == 0 or active.size == 0:
        logger.error("no active dimensions to optimize")
        return finish(guess, VERY_LARGE, Status.INVALID_START, "No active dimensions.", 0)

    flags = cfg.flags
    verbose = SimplexFlags.VERBOSE_LEVEL1 in flags

    def note(message: str, *args) -> None:
        if verbose:
            logger.info(message, *args)

    note("active dimensions: %d", active.size)
    rng = np.random.default_rng(cfg.seed)
    steps = initial_steps(guess, dx_vec, lo, hi, mask, flags, rng)
    for direction in range(dimensions):
        note(
            "direction %d: guess=%e delta=%e disable=%s",
            direction, guess[direction], steps[direction],
            bool(mask[direction]) if mask is not None else False,
        )

    points = active.size + 1
    vertices = np.zeros((points, dimensions))
    values = np.full(points, VERY_LARGE)
    npass = 0

    while npass < cfg.max_passes and not token.requested:
        vertices[:] = guess
        values[1:] = VERY_LARGE
        values[0], invalid = evaluate(vertices[0])
        y_start = values[0]
        npass += 1
        if invalid:
            logger.error("initial guess is invalid")
            return finish(guess, VERY_LARGE, Status.INVALID_START,
                          "Initial guess is invalid.", npass)
        if values[0] <= cfg.target:
            note("target value achieved in initial simplex setup")
            if report is not None:
                report(values[0], vertices[0].copy(), npass, evaluate.nfev, dimensions)
            return finish(guess, values[0], Status.TARGET_REACHED,
                          "Target value reached.", npass)

        builder = _SimplexBuilder(
            evaluate, vertices, values, active, steps, lo, hi, cfg, token
        )
        try:
            built = builder.build()
        except _TargetReached as reached:
            guess = vertices[reached.point].copy()
            if report is not None:
                report(values[reached.point], guess.copy(), npass, evaluate.nfev, dimensions)
            return finish(guess, values[reached.point], Status.TARGET_REACHED,
                          "Target value reached during initial scan.", npass)
        if not built:
            return finish(guess, y_start, Status.NO_VALID_SIMPLEX,
                          "Can't find a valid initial simplex.", npass)

        for point in range(points):
            note("V%2d  %.5g: %s", point, values[point], vertices[point])

        if token.requested:
            best = int(np.argmin(values))
            note("abort received before simplex began")
            return finish(vertices[best], values[best], Status.ABORTED,
                          "Aborted while building the initial simplex.", npass)

        loop = simplex_minimization(
            vertices, values, evaluate, lo, hi, mask,
            target=cfg.target,
            tolerance=abs(cfg.tolerance),
            absolute=not cfg.fractional,
            max_evaluations=cfg.max_evaluations,
            flags=flags,
            abort=token,
        )
        note("returned from simplex_minimization after %d evaluations", loop.nfev)
        if np.any(values[1:] < values[0]):
            raise RuntimeError("simplex_minimization returned an unordered simplex")

        guess = vertices[0].copy()
        if report is not None:
            report(values[0], vertices[0].copy(), npass, evaluate.nfev, dimensions)

        if loop.status is Status.DIVIDE_BY_ZERO:
            return finish(guess, values[0], Status.DIVIDE_BY_ZERO,
                          "Divide-by-zero in fractional tolerance evaluation.", npass)
        if values[0] <= cfg.target:
            note("target value achieved, returning")
            return finish(guess, values[0], Status.TARGET_REACHED,
                          "Target value reached.", npass)
        if token.requested:
            return finish(guess, values[0], Status.ABORTED, "Aborted.", npass)

        merit = _merit(values[0], y_start, cfg.tolerance)
        if merit is None:
            logger.error("divide-by-zero in fractional tolerance evaluation")
            return finish(guess, values[0], Status.DIVIDE_BY_ZERO,
                          "Divide-by-zero in fractional tolerance evaluation.", npass)
        if merit <= abs(cfg.tolerance):
            return finish(guess, values[0], Status.CONVERGED,
                          "Tolerance satisfied between passes.", npass)

        spread = vertices.max(axis=0) - vertices.min(axis=0)
        grown = spread > 0
        steps[grown] = cfg.pass_range_factor * spread[grown]

    if token.requested:
        return finish(guess, values[0], Status.ABORTED, "Aborted.", npass)
    note("passes exhausted, returning")
    logger.warning("pass budget exhausted after %d passes", npass)
    return finish(guess, values[0], Status.MAX_PASSES,
                  "Maximum number of passes reached.", npass)


__all__ = ["initial_steps", "simplex_min"]
