'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 16:49:30
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 21:20:44
FilePath: /nptmol/src/nptmol/discretization.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/discretization.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

import numpy as np

from .assembly import assemble
from .backend.base import BackendKind
from .boundary import BoundaryEquation, discretize_bc
from .equation import Coordinate, PDESystem
from .errors import DiscretizationError, OverdeterminedBoundaryError, UnsupportedOrderError
from .grid import Grid1D, PointsOrSpacing, build_grid
from .logging import get_logger
from .mapper import VariableMap
from .pde_ir import (
    PDEDescription,
    classify_condition,
    describe_boundary,
    describe_equation,
    describe_initial,
)
from .stencil import StencilCache, check_centered_order
from .timestepping import ODEProblem

logger = get_logger(__name__)


def _name(coordinate: Union[Coordinate, str]) -> str:
    return coordinate if isinstance(coordinate, str) else coordinate.name


@dataclass
class DiscretizationConfig:
    """
    离散配置：
      grids          : 空间坐标 -> 点数 / 步长 / 显式坐标
      time           : 时间坐标
      approx_order   : 内点中心差分精度（偶数，1 视为 2）
      boundary_order : 边界单侧导数精度，默认跟 approx_order 一致
      cache          : 这份配置拥有的 stencil 缓存
    """
    grids: Dict[Union[Coordinate, str], PointsOrSpacing]
    time: Union[Coordinate, str] = "t"
    approx_order: int = 2
    boundary_order: Optional[int] = None
    backend: BackendKind = BackendKind.PYTHON
    cache: StencilCache = field(default_factory=StencilCache, repr=False)

    def __post_init__(self) -> None:
        self.grids = {_name(c): spec for c, spec in self.grids.items()}
        self.time = _name(self.time)
        if self.time in self.grids:
            raise DiscretizationError(f"Time coordinate {self.time!r} cannot have a spatial grid")
        self.approx_order = check_centered_order(self.approx_order)
        if self.boundary_order is None:
            self.boundary_order = self.approx_order
        elif int(self.boundary_order) < 1:
            raise UnsupportedOrderError(
                f"Boundary approximation order must be positive, got {self.boundary_order}"
            )
        self.boundary_order = int(self.boundary_order)
        if self.backend is not BackendKind.PYTHON:
            raise ValueError(f"Unsupported backend: {self.backend}")


def build_grids(pdesys: PDESystem, config: DiscretizationConfig) -> Dict[str, Grid1D]:
    grids: Dict[str, Grid1D] = {}
    for f in pdesys.fields:
        if not f.is_spatial:
            continue
        cname = f.coordinate.name
        if cname in grids:
            continue
        if cname not in config.grids:
            raise DiscretizationError(f"No grid given for coordinate {cname!r}")
        grids[cname] = build_grid(pdesys.domain(cname), config.grids[cname])
        logger.debug("grid %r", grids[cname])
    return grids


def discretize(pdesys: PDESystem, config: DiscretizationConfig) -> ODEProblem:
    """
    PDESystem -> ODEProblem：
      1. 解析方程、边界条件、初值
      2. 建网格、离散边界条件（决定哪些边界点被消元）
      3. 建变量映射，组装 rhs / u0 / p
    """
    time_domain = pdesys.domain(config.time)
    tspan = (time_domain.lo, time_domain.hi)
    grids = build_grids(pdesys, config)
    declared = {f.name: f for f in pdesys.fields}

    descriptions: Dict[str, PDEDescription] = {}
    equations: List[PDEDescription] = []
    for eq in pdesys.equations:
        desc = describe_equation(eq)
        if desc.field.name not in declared or declared[desc.field.name] is not desc.field:
            raise DiscretizationError(f"Equation drives undeclared variable {desc.field.name!r}")
        descriptions[desc.field.name] = desc
        equations.append(desc)

    boundary_equations: List[BoundaryEquation] = []
    initial_conditions = []
    for cond in pdesys.conditions:
        if classify_condition(cond) == "initial":
            initial_conditions.append(describe_initial(cond))
            continue
        variable = describe_boundary(cond).field
        if variable.name not in declared:
            raise DiscretizationError(f"Boundary condition for undeclared variable {variable.name!r}")
        if not variable.is_spatial:
            raise OverdeterminedBoundaryError(
                f"ODE variable {variable.name!r} does not take boundary conditions"
            )
        boundary_equations.append(
            discretize_bc(
                cond,
                grids[variable.coordinate.name],
                variable,
                config.boundary_order,
                equation=descriptions.get(variable.name),
                cache=config.cache,
            )
        )

    unknowns: Dict[str, np.ndarray] = {}
    for beq in boundary_equations:
        if not beq.eliminated:
            grid = grids[beq.field.coordinate.name]
            unknowns[beq.field.name] = np.union1d(
                unknowns.get(beq.field.name, grid.interior), [beq.index]
            )

    mapper = VariableMap(pdesys.fields, grids, unknowns)
    system = assemble(
        equations,
        boundary_equations,
        mapper,
        pdesys.parameters,
        initial_conditions=initial_conditions,
        time=config.time,
        tspan=tspan,
        approx_order=config.approx_order,
        cache=config.cache,
    )
    return ODEProblem(
        rhs=system.rhs,
        u0=system.u0,
        p=system.p,
        tspan=tspan,
        mapper=mapper,
        boundary_equations=boundary_equations,
        parameters=[name for name, _ in pdesys.parameters],
        name=pdesys.name,
    )
