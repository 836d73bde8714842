"""Run-parameter configuration for :func:`simplexmin.simplex_min`."""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

import numpy as np

from .core import (
    DEFAULT_DIVISOR_FACTOR,
    DEFAULT_MAX_EVALUATIONS,
    DEFAULT_MAX_PASSES,
    SimplexFlags,
)


@dataclass(frozen=True)
class SimplexConfig:
    """
    Stopping criteria, budgets and behaviour flags for a simplex run.

    Args:
        target: Return as soon as a value at or below this is found.
        tolerance: Convergence tolerance. Positive values are absolute,
            negative values are fractional (relative to the mean magnitude of
            the compared values).
        max_evaluations: Evaluation budget of each simplex pass. Non-positive
            values select the default of 100.
        max_passes: Number of restarts around the best point. Non-positive
            values select the default of 5.
        max_divisions: Attempts per dimension when building the initial
            simplex.
        divisor_factor: Step reduction between scan attempts. Values at or
            below 1 select the default of 3.
        pass_range_factor: Fraction of the final vertex spread used as the
            step size of the next pass.
        flags: Behaviour switches, see :class:`~simplexmin.core.SimplexFlags`.
        seed: Seed for the generator used by ``SimplexFlags.RANDOM_SIGNS``.
    """

    target: float = -np.inf
    tolerance: float = 1e-8
    max_evaluations: int = DEFAULT_MAX_EVALUATIONS
    max_passes: int = DEFAULT_MAX_PASSES
    max_divisions: int = 5
    divisor_factor: float = DEFAULT_DIVISOR_FACTOR
    pass_range_factor: float = 1.0
    flags: SimplexFlags = SimplexFlags.NONE
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.max_evaluations <= 0:
            object.__setattr__(self, "max_evaluations", DEFAULT_MAX_EVALUATIONS)
        if self.max_passes <= 0:
            object.__setattr__(self, "max_passes", DEFAULT_MAX_PASSES)
        if self.divisor_factor <= 1.0:
            object.__setattr__(self, "divisor_factor", DEFAULT_DIVISOR_FACTOR)
        object.__setattr__(self, "flags", parse_flags(self.flags))

    @property
    def fractional(self) -> bool:
        return self.tolerance < 0

    def replace(self, **changes: Any) -> "SimplexConfig":
        """Return a copy with the given fields changed."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "SimplexConfig":
        """
        Build a configuration from a plain mapping such as a parsed config file.

        ``flags`` may be a :class:`SimplexFlags`, an integer, a flag name or a
        list of flag names.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(mapping) - known)
        if unknown:
            raise ValueError(f"Unknown simplex configuration keys: {unknown}")
        return cls(**dict(mapping))

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["flags"] = [flag.name for flag in SimplexFlags if flag and flag in self.flags]
        return data


def parse_flags(value: Union[SimplexFlags, int, str, Iterable[str], None]) -> SimplexFlags:
    """Convert flag names or integers to :class:`SimplexFlags`."""
    if value is None:
        return SimplexFlags.NONE
    if isinstance(value, SimplexFlags):
        return value
    if isinstance(value, int):
        return SimplexFlags(value)
    if isinstance(value, str):
        value = [value]
    flags = SimplexFlags.NONE
    for name in value:
        try:
            flags |= SimplexFlags[name.upper()]
        except KeyError:
            raise ValueError(f"Unknown simplex flag: {name!r}") from None
    return flags


__all__ = ["SimplexConfig", "parse_flags"]
