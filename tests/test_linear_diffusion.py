import numpy as np
import pytest

from nptmol import (
    Coordinate,
    DiscretizationConfig,
    Domain,
    Equation,
    Field,
    PDESystem,
    Parameter,
    cos,
    d_t,
    d_x,
    d_xx,
    discretize,
    exp,
    initial,
    sin,
)

t = Coordinate("t")
x = Coordinate("x")

_TOL = dict(rtol=1e-6, atol=1e-8)


def _noisy_grid(lo, hi, n, seed=0, noise=1e-3):
    rng = np.random.default_rng(seed)
    pts = np.linspace(lo, hi, n)
    pts[1:-1] += rng.uniform(-noise, noise, size=n - 2)
    return pts


def _mirrored_noisy_grid(lo, hi, n, seed=0, noise=1e-3):
    # 扰动关于区间中点镜像，网格保持对称
    rng = np.random.default_rng(seed)
    pts = np.linspace(lo, hi, n)
    half = (n - 2) // 2
    shift = rng.choice([noise, -noise], size=half)
    pts[1:half + 1] += shift
    pts[n - 2:n - 2 - half:-1] -= shift
    return pts


def _max_error(sol, field, exact, include_boundaries=False):
    xs = sol.coordinates(field, include_boundaries)
    return max(
        np.max(np.abs(sol.field_at(field, ti, include_boundaries) - exact(ti, xs)))
        for ti in sol.t
    )


def _cos_exact(ti, xs):
    return np.exp(-ti) * np.cos(xs)


# ======================= Dirichlet =======================

@pytest.mark.parametrize("order", [2, 4])
@pytest.mark.parametrize("uniform", [True, False])
def test_dirichlet(order, uniform):
    u = Field("u", x)
    pdesys = PDESystem(
        Equation(d_t(u), d_xx(u)),
        [
            Equation(u.at(0.0), exp(-t)),
            Equation(u.at(np.pi), -exp(-t)),
            Equation(initial(u), cos(x)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, 0.0, np.pi)],
        [u],
    )
    grid = 30 if uniform else _noisy_grid(0.0, np.pi, 30)
    prob = discretize(pdesys, DiscretizationConfig({x: grid}, time=t, approx_order=order))
    assert prob.u0.shape == (28,)

    sol = prob.solve(saveat=0.1, **_TOL)
    assert sol.t.size == 11
    assert _max_error(sol, u, _cos_exact) < 0.02
    assert _max_error(sol, u, _cos_exact, include_boundaries=True) < 0.02


def test_dirichlet_with_parameter():
    u = Field("u", x)
    D = Parameter("D")
    pdesys = PDESystem(
        Equation(d_t(u), D * d_xx(u)),
        [
            Equation(u.at(0.0), exp(-D * t)),
            Equation(u.at(np.pi), -exp(-D * t)),
            Equation(initial(u), cos(x)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, 0.0, np.pi)],
        [u],
        {D: 0.5},
    )
    sol = discretize(pdesys, DiscretizationConfig({x: 30}, time=t)).solve(saveat=0.25, **_TOL)
    err = _max_error(sol, u, lambda ti, xs: np.exp(-0.5 * ti) * np.cos(xs))
    assert err < 0.02


def test_variable_coefficient():
    # u_t = d/dx((1 + x) u_x)，长时间后趋于定常解 log(1 + x)
    u = Field("u", x)
    pdesys = PDESystem(
        Equation(d_t(u), (1 + x) * d_xx(u) + d_x(u)),
        [
            Equation(u.at(0.0), 0.0),
            Equation(u.at(1.0), np.log(2.0)),
            Equation(initial(u), x * np.log(2.0)),
        ],
        [Domain(t, 0.0, 5.0), Domain(x, 0.0, 1.0)],
        [u],
    )
    sol = discretize(pdesys, DiscretizationConfig({x: 21}, time=t)).solve(saveat=[5.0], **_TOL)
    xs = sol.coordinates(u)
    assert np.allclose(sol.field_at(u, 5.0), np.log1p(xs), atol=2e-3)


# ======================= Neumann / Robin =======================

def test_neumann_preserves_zero_integral():
    u = Field("u", x)
    pdesys = PDESystem(
        Equation(d_t(u), d_xx(u)),
        [
            Equation(d_x(u).at(0.0), 0.0),
            Equation(d_x(u).at(np.pi), 0.0),
            Equation(initial(u), cos(x)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, 0.0, np.pi)],
        [u],
    )
    prob = discretize(pdesys, DiscretizationConfig({x: 30}, time=t))
    sol = prob.solve(saveat=0.1, **_TOL)

    xs = sol.coordinates(u, include_boundaries=True)
    h = np.diff(xs)
    for ti in sol.t:
        values = sol.field_at(u, ti, include_boundaries=True)
        integral = np.sum(0.5 * h * (values[1:] + values[:-1]))
        assert abs(integral) < 0.01
    assert _max_error(sol, u, _cos_exact, include_boundaries=True) < 0.02


def test_neumann_and_dirichlet():
    u = Field("u", x)
    half = np.pi / 2
    pdesys = PDESystem(
        Equation(d_t(u), d_xx(u)),
        [
            Equation(u.at(0.0), 0.0),
            Equation(d_x(u).at(half), 0.0),
            Equation(initial(u), sin(x)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, 0.0, half)],
        [u],
    )
    sol = discretize(pdesys, DiscretizationConfig({x: 30}, time=t)).solve(saveat=0.1, **_TOL)
    exact = lambda ti, xs: np.exp(-ti) * np.sin(xs)
    assert _max_error(sol, u, exact, include_boundaries=True) < 0.02


def test_constant_robin():
    u = Field("u", x)
    exact = lambda ti, xs: np.exp(-ti) * np.sin(xs)
    pdesys = PDESystem(
        Equation(d_t(u), d_xx(u)),
        [
            Equation(u.at(-1.0) + 3 * d_x(u).at(-1.0), exp(-t) * (np.sin(-1.0) + 3 * np.cos(-1.0))),
            Equation(4 * u.at(1.0) + d_x(u).at(1.0), exp(-t) * (4 * np.sin(1.0) + np.cos(1.0))),
            Equation(initial(u), sin(x)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, -1.0, 1.0)],
        [u],
    )
    prob = discretize(pdesys, DiscretizationConfig({x: 41}, time=t))
    sol = prob.solve(saveat=0.1, **_TOL)
    assert _max_error(sol, u, exact, include_boundaries=True) < 0.02


def test_time_dependent_robin():
    u = Field("u", x)
    pdesys = PDESystem(
        Equation(d_t(u), d_xx(u)),
        [
            Equation((1 + t) * u.at(0.0) - d_x(u).at(0.0), (1 + t) * exp(-t)),
            Equation(u.at(1.0) + (1 + t) * d_x(u).at(1.0), exp(-t) * (np.cos(1.0) - (1 + t) * np.sin(1.0))),
            Equation(initial(u), cos(x)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, 0.0, 1.0)],
        [u],
    )
    prob = discretize(pdesys, DiscretizationConfig({x: 41}, time=t))
    sol = prob.solve(saveat=0.1, **_TOL)
    assert _max_error(sol, u, _cos_exact, include_boundaries=True) < 0.06

    # 重建出的边界值满足该时刻的边界条件
    beq = next(b for b in prob.boundary_equations if b.location == 0.0)
    ti = sol.t[-1]
    a, b, f = prob.rhs.boundary_coefficients(beq, ti)
    assert np.isclose(a, 1 + ti) and np.isclose(b, -1.0)
    values = sol.field_at(u, ti, include_boundaries=True)
    assert np.isclose(beq.residual(a, b, f, values), 0.0, atol=1e-9)


def test_order8_neumann_on_noisy_grid():
    u = Field("u", x)
    pdesys = PDESystem(
        Equation(d_t(u), d_xx(u)),
        [
            Equation(d_x(u).at(0.0), 0.0),
            Equation(d_x(u).at(np.pi), 0.0),
            Equation(initial(u), cos(x)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, 0.0, np.pi)],
        [u],
    )
    grid = _mirrored_noisy_grid(0.0, np.pi, 300)
    prob = discretize(pdesys, DiscretizationConfig({x: grid}, time=t, approx_order=8))
    sol = prob.solve(saveat=0.1, **_TOL)

    assert len(sol) == 11
    assert _max_error(sol, u, _cos_exact) < 0.02
    for ti in sol.t:
        assert abs(np.sum(sol.field_at(u, ti))) < 0.02


def test_order4_constant_robin_on_noisy_grid():
    u = Field("u", x)
    exact = lambda ti, xs: np.exp(-ti) * np.sin(xs)
    pdesys = PDESystem(
        Equation(d_t(u), d_xx(u)),
        [
            Equation(u.at(-1.0) + 3 * d_x(u).at(-1.0), exp(-t) * (np.sin(-1.0) + 3 * np.cos(-1.0))),
            Equation(4 * u.at(1.0) + d_x(u).at(1.0), exp(-t) * (4 * np.sin(1.0) + np.cos(1.0))),
            Equation(initial(u), sin(x)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, -1.0, 1.0)],
        [u],
    )
    grid = _noisy_grid(-1.0, 1.0, 201, seed=5)
    prob = discretize(pdesys, DiscretizationConfig({x: grid}, time=t, approx_order=4))
    sol = prob.solve(saveat=0.1, **_TOL)
    assert _max_error(sol, u, exact) < 0.02


def test_order6_robin_with_vanishing_coefficients():
    u = Field("u", x)
    exact = lambda ti, xs: np.exp(-ti) * np.sin(xs)
    # t = 0 时左端只剩导数项，右端只剩取值项
    pdesys = PDESystem(
        Equation(d_t(u), d_xx(u)),
        [
            Equation(
                t**2 * u.at(-1.0) + 3 * d_x(u).at(-1.0),
                exp(-t) * (t**2 * np.sin(-1.0) + 3 * np.cos(-1.0)),
            ),
            Equation(
                4 * u.at(1.0) + t * d_x(u).at(1.0),
                exp(-t) * (4 * np.sin(1.0) + t * np.cos(1.0)),
            ),
            Equation(initial(u), sin(x)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, -1.0, 1.0)],
        [u],
    )
    grid = _noisy_grid(-1.0, 1.0, 201, seed=6)
    prob = discretize(pdesys, DiscretizationConfig({x: grid}, time=t, approx_order=6))

    lower, upper = sorted(prob.boundary_equations, key=lambda b: b.location)
    a, b, _ = prob.rhs.boundary_coefficients(lower, 0.0)
    assert a == 0.0 and np.isclose(b, 3.0)
    a, b, _ = prob.rhs.boundary_coefficients(upper, 0.0)
    assert np.isclose(a, 4.0) and b == 0.0

    sol = prob.solve(saveat=0.1, **_TOL)
    assert _max_error(sol, u, exact) < 0.06
    assert np.isclose(sol.value_at(u, 1.0, 0.0), np.sin(1.0))
    assert np.isclose(sol.value_at(u, 1.0, 1.0), np.exp(-1.0) * np.sin(1.0), atol=0.06)


# ======================= 球坐标原点 =======================

@pytest.mark.parametrize("uniform", [True, False])
def test_spherical_laplacian(uniform):
    r = Coordinate("r")
    u = Field("u", r)
    pdesys = PDESystem(
        Equation(d_t(u), r ** -2 * (2 * r * d_x(u) + r ** 2 * d_xx(u))),
        [
            Equation(d_x(u).at(0.0), 0.0),
            Equation(u.at(1.0), exp(-t) * np.sin(1.0)),
            Equation(initial(u), sin(r) / r),
        ],
        [Domain(t, 0.0, 1.0), Domain(r, 0.0, 1.0)],
        [u],
    )
    grid = 21 if uniform else _noisy_grid(0.0, 1.0, 21, seed=3)
    prob = discretize(pdesys, DiscretizationConfig({r: grid}, time=t))

    # 原点保留为状态量，初值取极限 1
    assert len(prob.mapper) == 20
    assert prob.mapper.index(u, 0.0) == 0
    assert np.isclose(prob.u0[0], 1.0, atol=1e-2)
    assert np.all(np.isfinite(prob.rhs(0.0, prob.u0)))

    sol = prob.solve(saveat=0.1, **_TOL)
    assert np.all(np.isfinite(sol.states))

    def exact(ti, rs):
        with np.errstate(divide="ignore", invalid="ignore"):
            values = np.sin(rs) / rs
        return np.exp(-ti) * np.where(rs == 0.0, 1.0, values)

    assert _max_error(sol, u, exact) < 0.02
    assert np.isclose(sol.value_at(u, 0.0, 1.0), np.exp(-1.0), atol=0.02)


# ======================= 多变量 =======================

def test_two_variables_on_one_grid():
    u, v = Field("u", x), Field("v", x)
    pdesys = PDESystem(
        [Equation(d_t(u), d_xx(u)), Equation(d_t(v), 2 * d_xx(v))],
        [
            Equation(u.at(0.0), exp(-t)),
            Equation(u.at(np.pi), -exp(-t)),
            Equation(v.at(0.0), exp(-2 * t)),
            Equation(v.at(np.pi), -exp(-2 * t)),
            Equation(initial(u), cos(x)),
            Equation(initial(v), cos(x)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, 0.0, np.pi)],
        [u, v],
    )
    prob = discretize(pdesys, DiscretizationConfig({x: 30}, time=t))
    assert len(prob.mapper) == 2 * 28
    sol = prob.solve(saveat=0.1, **_TOL)
    assert _max_error(sol, u, _cos_exact) < 0.02
    assert _max_error(sol, v, lambda ti, xs: np.exp(-2 * ti) * np.cos(xs)) < 0.02


def test_two_variables_on_two_grids():
    y = Coordinate("y")
    u, w = Field("u", x), Field("w", y)
    pdesys = PDESystem(
        [Equation(d_t(u), d_xx(u)), Equation(d_t(w), d_xx(w))],
        [
            Equation(u.at(0.0), exp(-t)),
            Equation(u.at(1.0), exp(-t) * np.cos(1.0)),
            Equation(w.at(0.0), exp(-t)),
            Equation(w.at(2.0), exp(-t) * np.cos(2.0)),
            Equation(initial(u), cos(x)),
            Equation(initial(w), cos(y)),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, 0.0, 1.0), Domain(y, 0.0, 2.0)],
        [u, w],
    )
    config = DiscretizationConfig({x: 11, y: 21}, time=t, approx_order=4, boundary_order=2)
    prob = discretize(pdesys, config)
    assert len(prob.mapper) == 9 + 19

    sol = prob.solve(saveat=0.1, **_TOL)
    assert sol[u].shape == (sol.t.size, 9)
    assert sol[w].shape == (sol.t.size, 19)
    assert _max_error(sol, u, _cos_exact) < 0.02
    assert _max_error(sol, w, _cos_exact) < 0.02


def test_pde_coupled_with_ode():
    u, v = Field("u", x), Field("v")
    pdesys = PDESystem(
        [Equation(d_t(u), d_xx(u)), Equation(d_t(v), -v)],
        [
            Equation(u.at(0.0), exp(-t)),
            Equation(u.at(np.pi), -exp(-t)),
            Equation(initial(u), cos(x)),
            Equation(initial(v), 1.0),
        ],
        [Domain(t, 0.0, 1.0), Domain(x, 0.0, np.pi)],
        [u, v],
    )
    prob = discretize(pdesys, DiscretizationConfig({x: 30}, time=t))
    assert len(prob.mapper) == 28 + 1
    assert prob.mapper.lookup(28) == (v, ())

    sol = prob.solve(saveat=0.1, **_TOL)
    assert sol[v].shape == sol.t.shape
    assert np.allclose(sol[v], np.exp(-sol.t), atol=1e-4)
    assert _max_error(sol, u, _cos_exact) < 0.02
