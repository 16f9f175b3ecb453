import numpy as np
import pytest

from nptmol import (
    Coordinate,
    DiscretizationConfig,
    DiscretizationError,
    Domain,
    Equation,
    Field,
    OverdeterminedBoundaryError,
    PDESystem,
    Parameter,
    UnboundParameterError,
    UnderdeterminedBoundaryError,
    UnsolvableBoundaryError,
    UnsupportedOrderError,
    at,
    cos,
    d_t,
    d_x,
    d_xx,
    discretize,
    exp,
    initial,
)

x = Coordinate("x")
t = Coordinate("t")


def _diffusion(u, coefficient=1.0):
    return Equation(d_t(u), coefficient * d_xx(u))


def _dirichlet(u, lo=0.0, hi=np.pi):
    return [
        Equation(u.at(lo), exp(-t) * cos(lo)),
        Equation(u.at(hi), exp(-t) * cos(hi)),
        Equation(initial(u), cos(x)),
    ]


def _domains(hi=np.pi):
    return [Domain(t, 0.0, 1.0), Domain(x, 0.0, hi)]


def _config(n=12, **kwargs):
    return DiscretizationConfig({x: n}, time=t, **kwargs)


def test_parameter_vector_follows_declaration_order():
    u, v = Field("u", x), Field("v", x)
    Dn, Dp = Parameter("Dn"), Parameter("Dp")
    pdesys = PDESystem(
        [_diffusion(u, Dn), _diffusion(v, Dp)],
        _dirichlet(u) + _dirichlet(v),
        _domains(),
        [u, v],
        [(Dn, 0.5), (Dp, 2)],
    )
    prob = discretize(pdesys, _config())
    assert list(prob.p) == [0.5, 2.0]
    assert prob.parameters == ["Dn", "Dp"]


def test_parameter_override_changes_rhs():
    u = Field("u", x)
    D = Parameter("D")
    pdesys = PDESystem(_diffusion(u, D), _dirichlet(u), _domains(), [u], {D: 1.0})
    prob = discretize(pdesys, _config())
    base = prob.rhs(0.0, prob.u0)
    doubled = prob.rhs(0.0, prob.u0, [2.0])
    assert np.allclose(doubled, 2.0 * base)
    assert np.allclose(prob.with_parameters([2.0]).p, [2.0])
    with pytest.raises(ValueError):
        prob.rhs(0.0, prob.u0, [1.0, 2.0])


def test_unbound_parameter_is_rejected():
    u = Field("u", x)
    D = Parameter("D")
    with pytest.raises(UnboundParameterError):
        discretize(PDESystem(_diffusion(u, D), _dirichlet(u), _domains(), [u]), _config())
    with pytest.raises(UnboundParameterError):
        discretize(PDESystem(_diffusion(u, D), _dirichlet(u), _domains(), [u], {D: None}), _config())


def test_missing_boundary_is_underdetermined():
    u = Field("u", x)
    conditions = _dirichlet(u)[1:]
    with pytest.raises(UnderdeterminedBoundaryError):
        discretize(PDESystem(_diffusion(u), conditions, _domains(), [u]), _config())


def test_duplicate_boundary_is_overdetermined():
    u = Field("u", x)
    conditions = _dirichlet(u) + [Equation(d_x(u).at(0.0), 0.0)]
    with pytest.raises(OverdeterminedBoundaryError):
        discretize(PDESystem(_diffusion(u), conditions, _domains(), [u]), _config())


def test_boundary_on_ode_variable_is_overdetermined():
    u, v = Field("u", x), Field("v")
    conditions = _dirichlet(u) + [Equation(initial(v), 1.0), Equation(at(v, 0.0), 1.0)]
    pdesys = PDESystem([_diffusion(u), Equation(d_t(v), -v)], conditions, _domains(), [u, v])
    with pytest.raises(OverdeterminedBoundaryError):
        discretize(pdesys, _config())


def test_each_variable_needs_one_equation_and_initial_condition():
    u, v = Field("u", x), Field("v", x)
    with pytest.raises(DiscretizationError):
        discretize(PDESystem(_diffusion(u), _dirichlet(u) + _dirichlet(v), _domains(), [u, v]), _config())
    with pytest.raises(DiscretizationError):
        discretize(PDESystem(_diffusion(u), _dirichlet(u)[:2], _domains(), [u]), _config())
    with pytest.raises(DiscretizationError):
        discretize(PDESystem([_diffusion(u), _diffusion(u)], _dirichlet(u), _domains(), [u]), _config())


def test_singular_time_dependent_robin_is_rejected():
    u = Field("u", x)
    # t = 1 时 (1 - t) * u + 0 * du/dx 退化
    conditions = [
        Equation((1 - t) * u.at(0.0), 1.0),
        Equation(u.at(np.pi), 0.0),
        Equation(initial(u), cos(x)),
    ]
    with pytest.raises(UnsolvableBoundaryError):
        discretize(PDESystem(_diffusion(u), conditions, _domains(), [u]), _config())


def test_odd_approx_order_is_rejected():
    with pytest.raises(UnsupportedOrderError):
        _config(approx_order=3)
    assert _config(approx_order=1).approx_order == 2
    assert _config(approx_order=4).boundary_order == 4
    assert _config(approx_order=4, boundary_order=3).boundary_order == 3


def test_missing_grid_is_rejected():
    u = Field("u", x)
    pdesys = PDESystem(_diffusion(u), _dirichlet(u), _domains(), [u])
    with pytest.raises(DiscretizationError):
        discretize(pdesys, DiscretizationConfig({"y": 10}, time=t))


def test_non_finite_rhs_is_rejected_at_assembly():
    u = Field("u", x)
    # x = 0 是内点，1/x 在那里不是可去奇点
    pdesys = PDESystem(
        Equation(d_t(u), d_xx(u) + u / x),
        [Equation(u.at(-1.0), 0.0), Equation(u.at(1.0), 0.0), Equation(initial(u), 1.0)],
        [Domain(t, 0.0, 1.0), Domain(x, -1.0, 1.0)],
        [u],
    )
    with pytest.raises(DiscretizationError, match="not finite"):
        discretize(pdesys, DiscretizationConfig({x: [-1.0, -0.5, 0.0, 0.5, 1.0]}, time=t))


def test_equation_must_drive_declared_variable():
    u, w = Field("u", x), Field("w", x)
    with pytest.raises(DiscretizationError):
        discretize(PDESystem(_diffusion(w), _dirichlet(u), _domains(), [u]), _config())
