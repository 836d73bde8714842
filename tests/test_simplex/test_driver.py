import numpy as np
import pytest

from simplexmin import (
    AbortToken,
    ReturnCode,
    SimplexConfig,
    SimplexFlags,
    Status,
    initial_steps,
    request_abort,
    simplex_min,
)


def shifted_quadratic(x: np.ndarray) -> float:
    return float((x[0] - 3) ** 2 + (x[1] + 2) ** 2)


def rosenbrock(x: np.ndarray) -> float:
    return float(100.0 * (x[1] - x[0] ** 2) ** 2 + (1.0 - x[0]) ** 2)


def test_simplex_min_finds_quadratic_minimum():
    res = simplex_min(
        shifted_quadratic, [0.0, 0.0], tolerance=1e-6, max_evaluations=500, target=0.0
    )

    assert res.success
    assert np.allclose(res.x, [3.0, -2.0], atol=1e-3)
    assert res.fun < 1e-6
    assert res.code == res.nfev
    assert res.npass >= 1


def test_simplex_min_target_at_start_evaluates_once():
    res = simplex_min(lambda x: 5.0, [1.0, 2.0], target=10.0)

    assert res.status is Status.TARGET_REACHED
    assert res.nfev == 1
    assert res.code == 1
    assert np.array_equal(res.x, [1.0, 2.0])
    assert res.fun == 5.0


def test_simplex_min_target_reached_during_scan():
    res = simplex_min(lambda x: float(np.sum(x**2)), [2.0, 2.0], target=1.0)

    assert res.status is Status.TARGET_REACHED
    assert res.fun <= 1.0
    assert np.allclose(res.x, [0.0, 0.0], atol=1e-12)
    assert res.nfev == 8


def test_simplex_min_abort_from_objective():
    token = AbortToken()

    def fun(x):
        token.request()
        return shifted_quadratic(x)

    res = simplex_min(fun, [0.0, 0.0], abort=token)

    assert res.status is Status.ABORTED
    assert res.nfev == 1
    assert res.success
    assert np.array_equal(res.x, [0.0, 0.0])
    assert res.fun == 13.0


def test_simplex_min_abort_through_default_token():
    def fun(x):
        request_abort()
        return shifted_quadratic(x)

    res = simplex_min(fun, [0.0, 0.0])

    assert res.status is Status.ABORTED
    assert res.nfev == 1


def test_simplex_min_abort_mid_run_keeps_best_point():
    token = AbortToken()
    calls = []

    def fun(x):
        calls.append(1)
        if len(calls) == 20:
            token.request()
        return rosenbrock(x)

    res = simplex_min(fun, [-1.2, 1.0], abort=token, tolerance=1e-12)

    assert res.status is Status.ABORTED
    assert 20 <= res.nfev < 26
    assert res.fun <= rosenbrock(np.array([-1.2, 1.0]))


def test_simplex_min_clears_stale_abort_request():
    token = AbortToken()
    token.request()

    res = simplex_min(shifted_quadratic, [0.0, 0.0], abort=token, tolerance=1e-6)

    assert res.success
    assert res.status is not Status.ABORTED


def test_simplex_min_invalid_start():
    res = simplex_min(lambda x: (0.0, True), [0.0, 0.0])

    assert res.status is Status.INVALID_START
    assert res.code == ReturnCode.INVALID_START == -3
    assert res.nfev == 1
    assert not res.success


def test_simplex_min_no_valid_simplex():
    x0 = np.array([1.0, 1.0])

    def fun(x):
        return 0.0, not np.array_equal(x, x0)

    res = simplex_min(fun, x0)

    assert res.status is Status.NO_VALID_SIMPLEX
    assert res.code == -4
    assert np.array_equal(res.x, x0)
    # Start, five scan attempts and five fallback attempts for the first direction.
    assert res.nfev == 11


def test_simplex_min_all_dimensions_disabled():
    res = simplex_min(shifted_quadratic, [0.0, 0.0], disable=[True, True])

    assert res.code == -3
    assert res.nfev == 0


def test_simplex_min_respects_bounds():
    res = simplex_min(
        shifted_quadratic,
        [0.5, 0.5],
        lower=[0.0, 0.0],
        upper=[1.0, 1.0],
        tolerance=1e-10,
        max_evaluations=300,
        history=True,
    )

    points = np.array(res.history)
    assert len(points) == res.nfev
    assert np.all(points >= 0.0) and np.all(points <= 1.0)
    assert np.all(res.x >= 0.0) and np.all(res.x <= 1.0)
    assert res.fun < shifted_quadratic(np.array([0.5, 0.5]))


def test_simplex_min_equal_limits_leave_dimension_free():
    res = simplex_min(
        shifted_quadratic,
        [0.5, 0.5],
        lower=[0.0, 0.0],
        upper=[1.0, 0.0],
        tolerance=1e-10,
        max_evaluations=300,
    )

    assert 0.0 <= res.x[0] <= 1.0
    assert res.x[1] < 0.0


def test_simplex_min_disabled_dimension_is_unchanged():
    def fun(x):
        return float((x[0] - 1) ** 2 + (x[1] - 2) ** 2 + (x[2] + 1) ** 2)

    res = simplex_min(
        fun,
        [0.0, 5.0, 0.0],
        disable=[False, True, False],
        tolerance=1e-10,
        max_evaluations=500,
        history=True,
    )

    assert res.x[1] == 5.0
    assert all(point[1] == 5.0 for point in res.history)
    assert np.allclose(res.x[[0, 2]], [1.0, -1.0], atol=1e-3)


@pytest.mark.parametrize(
    "flags",
    [
        SimplexFlags.NO_1D_SCANS,
        SimplexFlags.START_FROM_VERTEX1,
        SimplexFlags.NO_1D_SCANS | SimplexFlags.START_FROM_VERTEX1,
    ],
)
def test_simplex_min_converges_with_flags(flags):
    res = simplex_min(
        shifted_quadratic, [0.0, 0.0], flags=flags, tolerance=1e-8, max_evaluations=500
    )

    assert res.success
    assert np.allclose(res.x, [3.0, -2.0], atol=1e-3)


def test_simplex_min_random_signs_are_reproducible_with_seed():
    config = SimplexConfig(flags=SimplexFlags.RANDOM_SIGNS, seed=7, tolerance=1e-8)
    first = simplex_min(shifted_quadratic, [0.0, 0.0], config=config)
    second = simplex_min(shifted_quadratic, [0.0, 0.0], config=config)

    assert np.array_equal(first.x, second.x)
    assert first.nfev == second.nfev


def test_simplex_min_fractional_tolerance():
    def fun(x):
        return 1.0 + float(np.sum((x - 1.0) ** 2))

    res = simplex_min(fun, [0.0, 0.0], tolerance=-1e-10, max_evaluations=500)

    assert res.success
    assert np.allclose(res.x, [1.0, 1.0], atol=1e-3)


def test_simplex_min_fractional_tolerance_with_zero_values():
    res = simplex_min(lambda x: 0.0, [0.0, 0.0], tolerance=-1e-8)

    assert res.status is Status.DIVIDE_BY_ZERO
    assert res.code == ReturnCode.DIVIDE_BY_ZERO


def test_simplex_min_passes_exhausted():
    x0 = [-1.2, 1.0]
    res = simplex_min(rosenbrock, x0, max_passes=1, max_evaluations=20, tolerance=1e-12)

    assert res.status is Status.MAX_PASSES
    assert res.code == ReturnCode.PASSES_EXHAUSTED
    assert res.npass == 1
    assert res.fun < rosenbrock(np.array(x0))
    assert res.fun == rosenbrock(res.x)


def test_simplex_min_report_called_after_each_pass():
    reports = []

    def report(value, x, npass, nfev, dimensions):
        reports.append((value, x.copy(), npass, nfev, dimensions))

    res = simplex_min(
        shifted_quadratic, [0.0, 0.0], report=report, tolerance=1e-8, max_evaluations=500
    )

    assert [r[2] for r in reports] == list(range(1, len(reports) + 1))
    assert all(r[4] == 2 for r in reports)
    nfevs = [r[3] for r in reports]
    assert nfevs == sorted(nfevs)
    assert reports[-1][0] == res.fun
    assert np.array_equal(reports[-1][1], res.x)


def test_simplex_min_objective_receives_copies():
    def fun(x):
        value = shifted_quadratic(x)
        x[:] = 1e6
        return value

    res = simplex_min(fun, [0.0, 0.0], tolerance=1e-8, max_evaluations=500)

    assert np.allclose(res.x, [3.0, -2.0], atol=1e-3)


def test_simplex_min_history_is_empty_by_default():
    res = simplex_min(shifted_quadratic, [0.0, 0.0], tolerance=1e-6)
    assert res.history == []


def test_simplex_min_rejects_mismatched_inputs():
    with pytest.raises(ValueError):
        simplex_min(shifted_quadratic, [0.0, 0.0], lower=[0.0, 0.0])
    with pytest.raises(ValueError):
        simplex_min(shifted_quadratic, [0.0, 0.0], dx=[1.0])
    with pytest.raises(TypeError):
        simplex_min(shifted_quadratic, [0.0, 0.0], max_iterations=10)


def test_initial_steps_from_limits_and_guess():
    x0 = np.array([0.0, 8.0, 0.0, 2.0])
    lower = np.array([0.0, 0.0, 0.0, 0.0])
    upper = np.array([4.0, 0.0, 0.0, 2.0])

    steps = initial_steps(x0, None, lower, upper, None)

    # Range quarter, x0 / 4, unit step, and range quarter pointing inward.
    assert np.allclose(steps, [1.0, 2.0, 1.0, -0.5])


def test_initial_steps_with_infinite_limits_use_guess():
    steps = initial_steps(
        np.array([1.0, 0.0]), None, np.array([0.0, -np.inf]), np.array([np.inf, np.inf]), None
    )

    assert np.all(np.isfinite(steps))
    assert np.allclose(steps, [0.25, 1.0])


def test_initial_steps_keep_sign_of_guess():
    steps = initial_steps(np.array([-8.0]), None, None, None, None)
    assert np.allclose(steps, [-2.0])


def test_simplex_min_one_sided_limits():
    res = simplex_min(
        shifted_quadratic,
        [1.0, 0.0],
        lower=[0.0, -np.inf],
        upper=[np.inf, np.inf],
        tolerance=1e-8,
        max_evaluations=500,
    )

    assert res.success
    assert np.allclose(res.x, [3.0, -2.0], atol=1e-3)


def test_simplex_min_one_sided_limit_is_enforced():
    res = simplex_min(
        shifted_quadratic,
        [5.0, 0.0],
        lower=[4.0, -np.inf],
        upper=[np.inf, np.inf],
        tolerance=1e-10,
        max_evaluations=500,
        history=True,
    )

    assert all(point[0] >= 4.0 for point in res.history)
    assert res.fun < shifted_quadratic(np.array([5.0, 0.0]))


def test_simplex_min_fractional_tolerance_with_negative_values():
    def fun(x):
        return shifted_quadratic(x) - 10.0

    res = simplex_min(fun, [0.0, 0.0], tolerance=-1e-10, max_evaluations=30)

    # The first pass improves by far more than the tolerance, so it is not the last.
    assert res.npass >= 2
    assert res.fun < -9.99


def test_initial_steps_are_capped_and_disabled():
    x0 = np.array([1.0, 1.0])
    steps = initial_steps(
        x0,
        np.array([10.0, 3.0]),
        np.array([0.0, 0.0]),
        np.array([2.0, 2.0]),
        np.array([False, True]),
    )

    assert np.allclose(steps, [0.5, 0.0])
