"""
Example: Derivative-free minimization with simplexmin

Shows the multi-pass simplex driver on an unconstrained quadratic, a
box-constrained problem with one frozen variable, a grid search used to seed
the simplex, and cooperative cancellation from inside the objective.
"""

import numpy as np

from simplexmin import (
    AbortToken,
    SimplexConfig,
    Status,
    grid_search_min,
    simplex_min,
)


def rosenbrock(x: np.ndarray) -> float:
    return float(100.0 * (x[1] - x[0] ** 2) ** 2 + (1.0 - x[0]) ** 2)


def example_quadratic():
    """Example: Unconstrained shifted quadratic."""
    print("=" * 60)
    print("Example 1: Shifted Quadratic")
    print("=" * 60)

    result = simplex_min(
        lambda x: (x[0] - 3) ** 2 + (x[1] + 2) ** 2,
        [0.0, 0.0],
        tolerance=1e-8,
        max_evaluations=500,
    )
    print(f"Status: {result.status.value}")
    print(f"Minimum found at: {np.round(result.x, 2)}")
    print(f"Evaluations: {result.nfev} in {result.npass} passes")
    print()


def example_bounded():
    """Example: Box limits and a disabled dimension."""
    print("=" * 60)
    print("Example 2: Bounded Problem With a Frozen Variable")
    print("=" * 60)

    def fun(x):
        return float(np.sum((x - np.array([2.0, 0.5, -1.0])) ** 2))

    config = SimplexConfig(tolerance=1e-10, max_evaluations=400)
    result = simplex_min(
        fun,
        [0.5, 0.5, 0.5],
        lower=[0.0, 0.0, 0.0],
        upper=[1.0, 1.0, 1.0],
        disable=[False, False, True],
        config=config,
    )
    print(f"Status: {result.status.value}")
    print(f"Solution: {np.round(result.x, 4)}")
    print(f"Objective: {result.fun:.6f}")
    print()


def example_seeded_search():
    """Example: Grid search to seed the simplex on Rosenbrock's function."""
    print("=" * 60)
    print("Example 3: Grid-Seeded Rosenbrock")
    print("=" * 60)

    seed = grid_search_min(rosenbrock, [-2.0, -1.0], [2.0, 3.0], [0.5, 0.5])
    print(f"Grid best: {seed.x} (value {seed.fun:.4f}, {seed.nfev} evaluations)")

    result = simplex_min(
        rosenbrock, seed.x, tolerance=1e-12, max_evaluations=1000, max_passes=10
    )
    print(f"Simplex best: {np.round(result.x, 4)} (value {result.fun:.2e})")
    print()


def example_abort():
    """Example: Stop a run from inside the objective."""
    print("=" * 60)
    print("Example 4: Cooperative Abort")
    print("=" * 60)

    token = AbortToken()
    budget = 50

    def fun(x):
        nonlocal budget
        budget -= 1
        if budget == 0:
            token.request()
        return rosenbrock(x)

    result = simplex_min(fun, [-1.2, 1.0], abort=token, tolerance=1e-12)
    if result.status is Status.ABORTED:
        print(f"Aborted after {result.nfev} evaluations at {np.round(result.x, 4)}")
    print()


if __name__ == "__main__":
    print("\n" + "=" * 60)
    print("simplexmin - Simplex Minimization Examples")
    print("=" * 60 + "\n")

    example_quadratic()
    example_bounded()
    example_seeded_search()
    example_abort()

    print("=" * 60)
    print("All examples completed successfully!")
    print("=" * 60)
