"""simplexmin - derivative-free, bounded Nelder–Mead minimization.

Example
-------
>>> from simplexmin import simplex_min
>>> def fun(x):
...     return (x[0] - 3) ** 2 + (x[1] + 2) ** 2
>>> res = simplex_min(fun, [0.0, 0.0], tolerance=1e-10, max_evaluations=500)
>>> res.success
True
"""

__version__ = "0.1.0"

from .abort import (
    AbortFlags,
    AbortToken,
    abort_on_signal,
    abort_requested,
    default_abort_token,
    request_abort,
)
from .bounds import check_variable_limits, enforce_variable_limits
from .config import SimplexConfig, parse_flags
from .core import (
    VERY_LARGE,
    Evaluator,
    MinimizeResult,
    ReturnCode,
    SimplexFlags,
    Status,
)
from .driver import initial_steps, simplex_min
from .logging import configure_logging, get_logger, set_log_level
from .sampling import (
    grid_sample_min,
    grid_search_min,
    random_sample_min,
    random_walk_min,
)
from .simplex import (
    LoopResult,
    TrialOutcome,
    compute_simplex_center,
    find_best_worst,
    simplex_minimization,
    trial_vertex,
)

__all__ = [
    "__version__",
    # Cancellation
    "AbortFlags",
    "AbortToken",
    "abort_on_signal",
    "abort_requested",
    "default_abort_token",
    "request_abort",
    # Limits
    "check_variable_limits",
    "enforce_variable_limits",
    # Configuration and results
    "SimplexConfig",
    "parse_flags",
    "VERY_LARGE",
    "Evaluator",
    "MinimizeResult",
    "ReturnCode",
    "SimplexFlags",
    "Status",
    # Simplex engine
    "LoopResult",
    "TrialOutcome",
    "compute_simplex_center",
    "find_best_worst",
    "initial_steps",
    "simplex_min",
    "simplex_minimization",
    "trial_vertex",
    # Seeding searches
    "grid_sample_min",
    "grid_search_min",
    "random_sample_min",
    "random_walk_min",
    # Logging
    "configure_logging",
    "get_logger",
    "set_log_level",
]
