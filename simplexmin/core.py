"""Core interfaces shared across the simplex engine and the seeding searches.

Objectives follow a single contract: they receive a coordinate vector and
return either a bare float (always valid) or a ``(value, invalid)`` pair. A
non-finite value is treated as invalid. Results of every search are reported
through :class:`MinimizeResult`; algorithmic failures never raise, they set
``status`` and a negative ``code`` instead.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from enum import Enum, Flag, IntEnum, auto
from typing import Callable, List, Optional, Sequence, Tuple, Union

import numpy as np

Array = np.ndarray
ObjectiveReturn = Union[float, Tuple[float, bool]]
Objective = Callable[[Array], ObjectiveReturn]
ReportCallback = Callable[[float, Array, int, int, int], None]

# Stand-in value for out-of-bounds and invalid points.
VERY_LARGE = sys.float_info.max

DEFAULT_MAX_EVALUATIONS = 100
DEFAULT_MAX_PASSES = 5
DEFAULT_DIVISOR_FACTOR = 3.0


class SimplexFlags(Flag):
    """Behaviour switches for :func:`simplexmin.simplex_min`."""

    NONE = 0
    NO_1D_SCANS = auto()
    RANDOM_SIGNS = auto()
    VERBOSE_LEVEL1 = auto()
    VERBOSE_LEVEL2 = auto()
    START_FROM_VERTEX1 = auto()


class ReturnCode(IntEnum):
    """Negative codes reported for fatal outcomes."""

    DIVIDE_BY_ZERO = -1
    PASSES_EXHAUSTED = -2
    INVALID_START = -3
    NO_VALID_SIMPLEX = -4


class Status(Enum):
    """Exit status shared by the simplex loop, the driver and the searches."""

    CONVERGED = "converged"
    TARGET_REACHED = "target_reached"
    STALLED = "stalled"
    MAX_EVALUATIONS = "max_evaluations"
    ABORTED = "aborted"
    COMPLETED = "completed"
    NOT_FOUND = "not_found"
    MAX_PASSES = "max_passes"
    INVALID_START = "invalid_start"
    NO_VALID_SIMPLEX = "no_valid_simplex"
    DIVIDE_BY_ZERO = "divide_by_zero"


_FATAL_CODES = {
    Status.DIVIDE_BY_ZERO: ReturnCode.DIVIDE_BY_ZERO,
    Status.MAX_PASSES: ReturnCode.PASSES_EXHAUSTED,
    Status.INVALID_START: ReturnCode.INVALID_START,
    Status.NO_VALID_SIMPLEX: ReturnCode.NO_VALID_SIMPLEX,
}

_UNSUCCESSFUL = set(_FATAL_CODES) | {Status.NOT_FOUND}


@dataclass
class MinimizeResult:
    """
    Result container returned by the simplex driver and the seeding searches.

    Attributes:
        x: Best coordinate vector found (the starting guess when nothing
            better was seen, ``None`` if a search never saw a valid point).
        fun: Objective value at ``x``.
        nfev: Total number of objective evaluations.
        status: Enumeration describing the exit.
        message: Human-readable explanation of ``status``.
        npass: Number of outer passes started (0 for the searches).
        history: Evaluated points, recorded only when requested.
    """

    x: Optional[Array]
    fun: float
    nfev: int
    status: Status
    message: str
    npass: int = 0
    history: List[Array] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status not in _UNSUCCESSFUL

    @property
    def code(self) -> int:
        """Evaluation count, or a negative :class:`ReturnCode` on fatal exits."""
        if self.status in _FATAL_CODES:
            return int(_FATAL_CODES[self.status])
        return self.nfev


def split_objective_value(raw: ObjectiveReturn) -> tuple[float, bool]:
    """Normalise an objective return value to ``(value, invalid)``."""
    if isinstance(raw, (tuple, list)):
        if len(raw) != 2:
            raise ValueError(
                "Objective must return a float or a (value, invalid) pair."
            )
        value, invalid = float(raw[0]), bool(raw[1])
    else:
        value, invalid = float(raw), False
    if not np.isfinite(value):
        invalid = True
    return value, invalid


class Evaluator:
    """
    Counting wrapper around a user objective.

    Each call hands the objective a private copy of the point, normalises the
    return value and increments ``nfev``. When a history list is supplied
    every evaluated point is appended to it.
    """

    def __init__(self, fun: Objective, history: Optional[List[Array]] = None):
        self.fun = fun
        self.nfev = 0
        self.history = history

    def __call__(self, x: Array) -> tuple[float, bool]:
        point = np.array(x, dtype=float)
        raw = self.fun(point.copy())
        self.nfev += 1
        if self.history is not None:
            self.history.append(point)
        return split_objective_value(raw)


def as_evaluator(fun: Union[Objective, Evaluator]) -> Evaluator:
    """Return ``fun`` unchanged if it already counts evaluations, else wrap it."""
    if isinstance(fun, Evaluator):
        return fun
    return Evaluator(fun)


def as_vector(values: Optional[Sequence[float]], size: int, name: str) -> Optional[Array]:
    """Convert an optional per-dimension sequence to a float vector of ``size``."""
    if values is None:
        return None
    vec = np.asarray(values, dtype=float).reshape(-1)
    if vec.size != size:
        raise ValueError(f"{name} must have {size} entries, got {vec.size}")
    return vec


__all__ = [
    "Array",
    "Objective",
    "ObjectiveReturn",
    "ReportCallback",
    "VERY_LARGE",
    "DEFAULT_MAX_EVALUATIONS",
    "DEFAULT_MAX_PASSES",
    "DEFAULT_DIVISOR_FACTOR",
    "SimplexFlags",
    "ReturnCode",
    "Status",
    "MinimizeResult",
    "Evaluator",
    "as_evaluator",
    "as_vector",
    "split_objective_value",
]
