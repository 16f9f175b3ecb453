'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 14:38:26
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 19:05:48
FilePath: /nptmol/src/nptmol/boundary.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/boundary.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .equation import Equation
from .errors import (
    DiscretizationError,
    OverdeterminedBoundaryError,
    UnderdeterminedBoundaryError,
    UnsolvableBoundaryError,
)
from .grid import Grid1D, Side
from .logging import get_logger
from .pde_ir import PDEDescription, Term, describe_boundary, has_singular_power
from .stencil import StencilCache, one_sided_stencil
from .stencil_ir import PointStencil

logger = get_logger(__name__)

# a + b * w_b 相对系数量级小于这个值视为奇异
_SINGULAR_RTOL = 1e-12


# ======================= 边界条件变体 =======================

@dataclass
class Dirichlet:
    """a * u = f"""
    a: List[Term]
    f: List[Term]


@dataclass
class Neumann:
    """b * du/dx = f"""
    b: List[Term]
    f: List[Term]


@dataclass
class Robin:
    """a * u + b * du/dx = f"""
    a: List[Term]
    b: List[Term]
    f: List[Term]


@dataclass
class SymmetricOrigin:
    """
    坐标原点上的 du/dx = 0，且方程在原点有 1/x 型可去奇点。
    原点不被消元，保留为状态量，方程在原点取极限形式。
    """


BoundaryCondition = Union[Dirichlet, Neumann, Robin, SymmetricOrigin]


def _sum_constant(terms: List[Term]) -> float:
    return float(sum(t.coefficient for t in terms))


# ======================= 离散后的边界方程 =======================

@dataclass
class BoundaryEquation:
    """
    离散后的边界方程：
        a(t) * u[index] + b(t) * sum_j w_j * u[j] = f(t)
    解出 u[index]，只依赖同一变量的其它网格值、t 和参数。
    """
    field: object
    side: Side
    index: int
    location: float
    condition: BoundaryCondition
    derivative: Optional[PointStencil] = None
    _others: np.ndarray = field(init=False, repr=False)
    _w_others: np.ndarray = field(init=False, repr=False)
    _w_self: float = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.derivative is None:
            self._others = np.zeros(0, dtype=int)
            self._w_others = np.zeros(0)
            self._w_self = 0.0
            return
        mask = self.derivative.points != self.index
        self._others = self.derivative.points[mask]
        self._w_others = self.derivative.weights[mask]
        self._w_self = float(self.derivative.weights[~mask].sum())

    @property
    def eliminated(self) -> bool:
        """被消元（不占状态槽）的边界点。"""
        return not isinstance(self.condition, SymmetricOrigin)

    @property
    def kind(self) -> str:
        return type(self.condition).__name__

    def coefficient_terms(self) -> Tuple[List[Term], List[Term], List[Term]]:
        """(a, b, f) 三组系数项；缺省为空（即 0）。"""
        c = self.condition
        if isinstance(c, Dirichlet):
            return c.a, [], c.f
        if isinstance(c, Neumann):
            return [], c.b, c.f
        if isinstance(c, Robin):
            return c.a, c.b, c.f
        return [], [], []

    def denominator(self, a: float, b: float) -> float:
        return a + b * self._w_self

    def check_solvable(self, a: float, b: float, when: str = "") -> None:
        denom = self.denominator(a, b)
        scale = abs(a) + abs(b * self._w_self)
        if not np.isfinite(denom) or abs(denom) <= _SINGULAR_RTOL * max(scale, 1.0):
            suffix = f" {when}" if when else ""
            raise UnsolvableBoundaryError(
                f"{self.kind} condition of {self.field.name!r} at "
                f"{self.location:g} cannot be solved for the boundary value{suffix}: "
                f"a + b * w = {denom:g}"
            )

    def solve(self, a: float, b: float, f: float, values: np.ndarray) -> float:
        """给定其它点的值，解出边界值。"""
        if b == 0.0:
            return f / a
        s = float(self._w_others @ values[self._others])
        return (f - b * s) / self.denominator(a, b)

    def residual(self, a: float, b: float, f: float, values: np.ndarray) -> float:
        """a*u_b + b*du/dx - f，用于检查重建出的边界值。"""
        du = 0.0
        if self.derivative is not None:
            du = self.derivative.apply(values)
        return a * float(values[self.index]) + b * du - f


# ======================= 离散入口 =======================

def _is_origin(location: float, grid: Grid1D) -> bool:
    return abs(location) <= 1e-12 * max(1.0, abs(grid.lo), abs(grid.hi))


def discretize_bc(
    bc: Equation,
    grid: Grid1D,
    variable,
    approx_order: int = 2,
    *,
    equation: Optional[PDEDescription] = None,
    cache: Optional[StencilCache] = None,
) -> BoundaryEquation:
    """
    把一条边界条件变成 BoundaryEquation：
      - a*u = f               -> Dirichlet，直接给边界值
      - b*du/dx = f           -> Neumann，单侧差分后解出边界值
      - a*u + b*du/dx = f     -> Robin
      - 原点上 du/dx = 0 且方程有 1/x 奇点 -> SymmetricOrigin
    approx_order 是单侧导数的精度阶，降阶只记日志不报错。
    """
    desc = describe_boundary(bc)
    if desc.field is not variable:
        raise DiscretizationError(
            f"Boundary condition refers to {desc.field.name!r}, expected {variable.name!r}"
        )
    if not variable.is_spatial:
        raise OverdeterminedBoundaryError(
            f"ODE variable {variable.name!r} does not take boundary conditions"
        )

    side = grid.side_of(desc.location)
    index = grid.boundary_index(side)
    a, b, f = desc.value_terms, desc.derivative_terms, desc.rhs_terms

    if not a and not b:
        raise UnsolvableBoundaryError(
            f"Boundary condition of {variable.name!r} at {desc.location:g} "
            "does not constrain the boundary value"
        )

    def one_sided() -> PointStencil:
        if cache is not None:
            return cache.one_sided(grid, side, approx_order)
        return one_sided_stencil(grid, side, approx_order)

    if not b:
        condition: BoundaryCondition = Dirichlet(a=a, f=f)
        derivative = None
    elif (
        not a
        and not f
        and equation is not None
        and _is_origin(desc.location, grid)
        and has_singular_power(equation.terms, grid.coordinate)
    ):
        condition = SymmetricOrigin()
        derivative = one_sided()
        logger.debug(
            "%s: symmetric origin at %s = 0 is kept as an unknown",
            variable.name, grid.coordinate,
        )
    elif not a:
        condition = Neumann(b=b, f=f)
        derivative = one_sided()
    else:
        condition = Robin(a=a, b=b, f=f)
        derivative = one_sided()

    beq = BoundaryEquation(
        field=variable,
        side=side,
        index=index,
        location=grid.x[index].item(),
        condition=condition,
        derivative=derivative,
    )

    ca, cb, _ = beq.coefficient_terms()
    if beq.eliminated and all(t.is_constant for t in ca + cb):
        beq.check_solvable(_sum_constant(ca), _sum_constant(cb))

    logger.debug(
        "%s: %s condition on %s side of %s (index %d)",
        variable.name, beq.kind, side.value, grid.coordinate, index,
    )
    return beq


def check_boundary_coverage(fields: Sequence, boundary_equations: Sequence[BoundaryEquation]) -> None:
    """
    每个空间变量的每一侧恰好一条边界条件；ODE 变量不能有边界条件。
    """
    seen: Dict[Tuple[str, Side], BoundaryEquation] = {}
    names = {f.name: f for f in fields}

    for beq in boundary_equations:
        name = beq.field.name
        if name not in names:
            raise DiscretizationError(f"Boundary condition for undeclared variable {name!r}")
        if not names[name].is_spatial:
            raise OverdeterminedBoundaryError(
                f"ODE variable {name!r} does not take boundary conditions"
            )
        key = (name, beq.side)
        if key in seen:
            raise OverdeterminedBoundaryError(
                f"{name!r} has more than one boundary condition on the {beq.side.value} side"
            )
        seen[key] = beq

    for f in fields:
        if not f.is_spatial:
            continue
        for side in Side:
            if (f.name, side) not in seen:
                raise UnderdeterminedBoundaryError(
                    f"{f.name!r} has no boundary condition on the {side.value} side "
                    f"of {f.coordinate.name!r}"
                )
