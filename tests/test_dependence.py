from __future__ import annotations

import numpy as np
import pytest
from scipy import stats

from spread_engine.analytics.dependence import (
    DependenceConfig,
    DependenceModel,
    clayton_theta_heuristic,
    kendall_tau,
    pseudo_observations,
)
from spread_engine.data.pairing import pair_series
from spread_engine.errors import Outcome

from conftest import date_map


def _paired(a, b):
    return pair_series(date_map(a), date_map(b))


@pytest.fixture()
def model() -> DependenceModel:
    return DependenceModel()


@pytest.fixture()
def fitted(model) -> DependenceModel:
    rng = np.random.default_rng(0)
    x = rng.normal(size=80)
    y = 0.7 * x + 0.3 * rng.normal(size=80)
    model.fit(_paired(x, y))
    return model


def test_increasing_series_marginals():
    n = 9
    u = pseudo_observations(np.linspace(-1.0, 3.0, n))

    np.testing.assert_allclose(u, np.arange(1, n + 1) / (n + 1))


def test_ties_broken_by_position():
    u = pseudo_observations([3.0, 1.0, 3.0])

    np.testing.assert_allclose(u, [0.5, 0.25, 0.75])


def test_marginals_strictly_inside_unit_interval(fitted):
    fit = fitted.fit_result

    for u in (fit.marginals_a, fit.marginals_b):
        assert len(u) == fit.n_obs
        assert np.all((u > 0) & (u < 1))


def test_tau_is_symmetric():
    rng = np.random.default_rng(4)
    a = rng.normal(size=60)
    b = a + rng.normal(size=60)

    assert kendall_tau(a, b) == kendall_tau(b, a)


def test_tau_matches_scipy_without_ties():
    rng = np.random.default_rng(9)
    a = rng.normal(size=50)
    b = np.sin(a) + rng.normal(scale=0.5, size=50)

    expected, _ = stats.kendalltau(a, b)

    assert kendall_tau(a, b) == pytest.approx(expected)


def test_tied_pairs_count_as_neither():
    # pairs: (0,1) tie in x, (0,2) concordant, (1,2) concordant
    assert kendall_tau([1.0, 1.0, 2.0], [1.0, 2.0, 3.0]) == pytest.approx(2 / 3)


def test_anti_correlated_series(model):
    x = np.arange(10, dtype=float)

    fit = model.fit(_paired(x, -x))

    assert fit.status == Outcome.OK
    assert fit.tau == pytest.approx(-1.0)
    assert fit.theta == pytest.approx(0.01 * 20)
    assert 0.0 <= model.density(0.3, 0.7) <= model.config.max_density


def test_comonotone_series(model):
    x = np.arange(10, dtype=float)

    fit = model.fit(_paired(x, 2 * x + 1))

    assert fit.tau == pytest.approx(1.0)
    assert fit.theta == pytest.approx(20.0)


def test_theta_heuristic_floor_and_scale():
    assert clayton_theta_heuristic(-0.4) == pytest.approx(0.2)
    assert clayton_theta_heuristic(0.0) == pytest.approx(0.2)
    assert clayton_theta_heuristic(0.5) == pytest.approx(10.0)


def test_insufficient_data(model):
    fit = model.fit_arrays([1.0], [2.0])

    assert fit.status == Outcome.INSUFFICIENT_DATA
    assert not fit.is_sufficient
    assert len(fit.marginals_a) == 0
    with pytest.raises(ValueError):
        _ = model.theta


def test_insufficient_marginals_are_read_only(model):
    fit = model.fit_arrays([], [])

    with pytest.raises(ValueError):
        fit.marginals_a[...] = 1.0
    assert not fit.marginals_b.flags.writeable
    assert not pseudo_observations([]).flags.writeable


def test_unpaired_lengths_rejected(model):
    with pytest.raises(ValueError):
        model.fit_arrays([1.0, 2.0, 3.0], [1.0, 2.0])


def test_density_is_symmetric_and_capped(fitted):
    for u, v in [(0.2, 0.6), (0.5, 0.5), (0.9, 0.1)]:
        d = fitted.density(u, v)
        assert d == pytest.approx(fitted.density(v, u))
        assert 0.0 <= d <= fitted.config.max_density


def test_density_boundary_inputs_are_clamped(fitted):
    for u, v in [(0.0, 0.5), (1.0, 1.0), (0.0, 0.0)]:
        d = fitted.density(u, v)
        assert np.isfinite(d)
        assert d >= 0.0


def test_unstable_density_returns_zero(model):
    assert model.density(0.5, 0.5, theta=1e6) == 0.0


def test_density_integrates_to_one():
    model = DependenceModel(DependenceConfig(max_density=1e12))
    n = 400
    grid = (np.arange(n) + 0.5) / n

    total = model.density_grid(grid, grid, theta=1.0).sum() / n ** 2

    assert total == pytest.approx(1.0, rel=0.05)


def test_density_grid_shape_and_cap(fitted):
    u = np.linspace(0.0, 1.0, 11)
    v = np.linspace(0.0, 1.0, 7)

    grid = fitted.density_grid(u, v)

    assert grid.shape == (7, 11)
    assert np.all(np.isfinite(grid))
    assert grid.max() <= fitted.config.max_density


def test_contour_points_lie_on_level_set(model):
    theta = 2.0
    level = 0.3
    u_grid = np.linspace(0.01, 1.0, 100)

    points = model.contour(level, u_grid, theta=theta)

    assert points
    for u, v in points:
        assert 0.0 <= v <= 1.0
        assert u >= level - 1e-9
        assert model.cdf(u, v, theta=theta) == pytest.approx(level, rel=1e-6)


def test_contour_at_u_one_is_level(model):
    points = model.contour(0.4, [1.0], theta=3.0)

    assert points == [(1.0, pytest.approx(0.4))]


def test_contour_rejects_out_of_range_level(model):
    assert model.contour(0.0, [0.5], theta=1.0) == []
    assert model.contour(1.5, [0.5], theta=1.0) == []


def test_contours_for_several_levels(fitted):
    out = fitted.contours([0.1, 0.5, 0.9], np.linspace(0.05, 1.0, 20))

    assert set(out) == {0.1, 0.5, 0.9}
    assert all(isinstance(pts, list) for pts in out.values())


def test_evaluators_use_the_given_fit_not_the_latest(model):
    rng = np.random.default_rng(3)
    x = rng.normal(size=60)
    pair_a = _paired(x, 0.8 * x + 0.2 * rng.normal(size=60))
    pair_b = _paired(x, -x)

    fit_a = model.fit(pair_a)
    model.fit(pair_b)
    alone = DependenceModel()
    alone.fit(pair_a)

    assert model.theta != fit_a.theta
    assert model.density(0.3, 0.4, fit_a) == pytest.approx(alone.density(0.3, 0.4))
    assert model.cdf(0.3, 0.4, fit_a) == pytest.approx(alone.cdf(0.3, 0.4))
    np.testing.assert_allclose(
        model.density_grid([0.2, 0.5], [0.3, 0.7], fit_a),
        alone.density_grid([0.2, 0.5], [0.3, 0.7]),
    )
    assert model.contour(0.3, [0.4, 0.8], fit_a) == alone.contour(0.3, [0.4, 0.8])


def test_insufficient_fit_cannot_be_evaluated(model):
    short = model.fit_arrays([1.0], [2.0])

    with pytest.raises(ValueError):
        model.density(0.5, 0.5, short)
