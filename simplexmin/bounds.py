"""
Variable-limit helpers.

Limits are given as a pair of element-wise vectors ``lower`` and ``upper``.
A dimension whose two limits are equal is unconstrained, so a caller can
bound a subset of variables by repeating any value (typically ``0``) in both
vectors for the free ones. ``np.inf`` or ``-np.inf`` give one-sided bounds.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from .core import Array


def resolve_bounds(
    lower: Optional[Array], upper: Optional[Array], size: int
) -> tuple[Optional[Array], Optional[Array]]:
    """Validate a bound pair, returning float vectors or ``(None, None)``."""
    if lower is None and upper is None:
        return None, None
    if lower is None or upper is None:
        raise ValueError("lower and upper limits must be given together")
    lo = np.asarray(lower, dtype=float).reshape(-1)
    hi = np.asarray(upper, dtype=float).reshape(-1)
    if lo.size != size or hi.size != size:
        raise ValueError(
            f"limits must have {size} entries, got {lo.size} and {hi.size}"
        )
    return lo, hi


def check_variable_limits(
    x: Array, lower: Optional[Array], upper: Optional[Array]
) -> bool:
    """
    Return True when ``x`` lies inside the limits.

    Only dimensions with ``lower[i] != upper[i]`` are tested; absent limits
    always pass.
    """
    if lower is None or upper is None:
        return True
    lower = np.asarray(lower, dtype=float)
    upper = np.asarray(upper, dtype=float)
    mask = lower != upper
    x = np.asarray(x, dtype=float)
    if np.any(x[mask] < lower[mask]):
        return False
    if np.any(x[mask] > upper[mask]):
        return False
    return True


def enforce_variable_limits(
    x: Array, lower: Optional[Array], upper: Optional[Array]
) -> Array:
    """
    Return a copy of ``x`` clipped into the constrained dimensions of the box.

    Either limit may be ``None``, in which case only the other side is
    applied. When both are present, dimensions with equal limits are left
    untouched.
    """
    clipped = np.array(x, dtype=float, copy=True)
    if lower is not None:
        lower = np.asarray(lower, dtype=float)
    if upper is not None:
        upper = np.asarray(upper, dtype=float)
    if lower is not None and upper is not None:
        mask = lower != upper
        clipped[mask] = np.clip(clipped[mask], lower[mask], upper[mask])
        return clipped
    if lower is not None:
        clipped = np.maximum(clipped, lower)
    if upper is not None:
        clipped = np.minimum(clipped, upper)
    return clipped


__all__ = [
    "check_variable_limits",
    "enforce_variable_limits",
    "resolve_bounds",
]
