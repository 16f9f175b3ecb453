import numpy as np
import pytest

from nptmol import Coordinate, DiscretizationError, Domain, Field, VariableMap, build_grid

x = Coordinate("x")
y = Coordinate("y")


def _grids():
    return {
        "x": build_grid(Domain(x, 0.0, 1.0), 6),
        "y": build_grid(Domain(y, 0.0, 2.0), 9),
    }


def test_blocks_follow_declaration_order():
    u, w, v = Field("u", x), Field("w", y), Field("v")
    m = VariableMap([u, w, v], _grids())
    assert len(m) == 4 + 7 + 1
    assert m.slice(u) == slice(0, 4)
    assert m.slice(w) == slice(4, 11)
    assert m.slice(v) == slice(11, 12)
    assert np.allclose(m.coordinates(u), [0.2, 0.4, 0.6, 0.8])
    assert m.coordinates(v).size == 0
    assert m.grid(v) is None


def test_forward_and_inverse_lookup_agree():
    u, w, v = Field("u", x), Field("w", y), Field("v")
    m = VariableMap([u, w, v], _grids())
    for slot in range(len(m)):
        field, coords = m.lookup(slot)
        assert m.index(field, coords if coords else None) == slot

    assert m.index(w, 0.25) == 4
    assert m.index("w", (1.75,)) == 10
    assert m.lookup(11) == (v, ())
    with pytest.raises(IndexError):
        m.lookup(12)


def test_eliminated_points_have_no_slot():
    u = Field("u", x)
    m = VariableMap([u], _grids())
    with pytest.raises(KeyError):
        m.index(u, 0.0)
    with pytest.raises(KeyError):
        m.index(u, 0.33)


def test_kept_boundary_point_is_a_slot():
    u = Field("u", x)
    g = _grids()
    m = VariableMap([u], g, {"u": np.arange(0, 5)})
    assert len(m) == 5
    assert m.index(u, 0.0) == 0
    assert m.lookup(0) == (u, (0.0,))


def test_split_returns_per_variable_views():
    u, v = Field("u", x), Field("v")
    m = VariableMap([u, v], _grids())
    state = np.arange(5.0)
    parts = m.split(state)
    assert np.array_equal(parts["u"], [0.0, 1.0, 2.0, 3.0])
    assert np.array_equal(parts["v"], [4.0])

    history = np.vstack([state, state + 10.0])
    assert m.split(history)["v"].shape == (2, 1)


def test_duplicate_names_are_rejected():
    with pytest.raises(DiscretizationError):
        VariableMap([Field("u", x), Field("u", y)], _grids())


def test_missing_grid_is_rejected():
    with pytest.raises(DiscretizationError):
        VariableMap([Field("u", Coordinate("z"))], _grids())
