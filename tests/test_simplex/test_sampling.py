import numpy as np
import pytest

from simplexmin import (
    AbortToken,
    Status,
    grid_sample_min,
    grid_search_min,
    random_sample_min,
    random_walk_min,
)
from simplexmin.sampling import grid_axes


def bowl(x: np.ndarray) -> float:
    return float((x[0] - 0.5) ** 2 + (x[1] - 0.25) ** 2)


def test_grid_axes_spacing():
    (axis,) = grid_axes([0.0], [1.0], [0.25])
    assert np.allclose(axis, [0.0, 0.25, 0.5, 0.75, 1.0])

    (axis,) = grid_axes([0.0], [1.0], [0.3])
    assert np.allclose(axis, [0.0, 1 / 3, 2 / 3, 1.0])


def test_grid_axes_pins_empty_range():
    axes = grid_axes([2.0, 0.0], [2.0, 1.0], [0.0, 2.0])
    assert np.allclose(axes[0], [2.0])
    # At least both ends are sampled.
    assert np.allclose(axes[1], [0.0, 1.0])


def test_grid_axes_rejects_bad_step():
    with pytest.raises(ValueError):
        grid_axes([0.0], [1.0], [0.0])


def test_grid_search_finds_grid_minimum():
    seen = []

    def fun(x):
        seen.append(x.copy())
        return bowl(x)

    res = grid_search_min(fun, [0.0, 0.0], [1.0, 1.0], [0.25, 0.25])

    assert res.status is Status.COMPLETED
    assert res.nfev == 25
    assert np.allclose(res.x, [0.5, 0.25])
    assert res.fun == 0.0
    # First dimension varies fastest.
    assert np.allclose(seen[1], [0.25, 0.0])


def test_grid_search_stops_below_target():
    res = grid_search_min(bowl, [0.0, 0.0], [1.0, 1.0], [0.25, 0.25], target=0.5)

    assert res.status is Status.TARGET_REACHED
    assert res.nfev == 1
    assert np.allclose(res.x, [0.0, 0.0])


def test_grid_search_without_valid_points():
    res = grid_search_min(lambda x: (1.0, True), [0.0], [1.0], [0.5])

    assert res.status is Status.NOT_FOUND
    assert res.x is None
    assert not res.success


def test_grid_search_abort():
    token = AbortToken()

    def fun(x):
        token.request()
        return bowl(x)

    res = grid_search_min(fun, [0.0, 0.0], [1.0, 1.0], [0.25, 0.25], abort=token)

    assert res.status is Status.ABORTED
    assert res.nfev == 1


def test_grid_sample_full_fraction_visits_every_point():
    res = grid_sample_min(bowl, [0.0, 0.0], [1.0, 1.0], [0.25, 0.25], sample_fraction=25)

    assert res.nfev == 25
    assert np.allclose(res.x, [0.5, 0.25])


def test_grid_sample_is_reproducible_with_seed():
    args = (bowl, [0.0, 0.0], [1.0, 1.0], [0.1, 0.1])
    first = grid_sample_min(*args, sample_fraction=0.3, seed=3)
    second = grid_sample_min(*args, sample_fraction=0.3, seed=3)

    assert 0 < first.nfev < 121
    assert first.nfev == second.nfev
    assert np.array_equal(first.x, second.x)


def test_random_sample_stays_in_box():
    seen = []

    def fun(x):
        seen.append(x.copy())
        return float(np.sum((x - 0.3) ** 2))

    res = random_sample_min(fun, [0.0, 0.0], [1.0, 1.0], 2000, seed=0)

    points = np.array(seen)
    assert res.nfev == 2000
    assert np.all(points >= 0.0) and np.all(points <= 1.0)
    assert np.allclose(res.x, [0.3, 0.3], atol=0.1)


def test_random_walk_improves_and_respects_limits():
    def fun(x):
        return float(np.sum(x**2))

    res = random_walk_min(
        fun,
        [2.0, 2.0],
        [0.5, 0.5],
        500,
        lower=[1.0, -5.0],
        upper=[3.0, 5.0],
        seed=0,
    )

    assert res.status is Status.COMPLETED
    assert res.x[0] >= 1.0
    assert res.fun < 8.0


def test_sampling_rejects_bad_counts():
    with pytest.raises(ValueError):
        random_sample_min(bowl, [0.0], [1.0], 0)
    with pytest.raises(ValueError):
        random_walk_min(bowl, [0.0], [1.0], -1)
    with pytest.raises(ValueError):
        grid_sample_min(bowl, [0.0], [1.0], [0.5], sample_fraction=0.0)
