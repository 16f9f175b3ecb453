'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 16:21:45
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 20:58:12
FilePath: /nptmol/src/nptmol/assembly.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/assembly.py
from typing import Dict, List, NamedTuple, Optional, Sequence, Set, Tuple

import numpy as np

from .backend.base import EvalEnv, Layout
from .backend.python_backend import PythonRhsKernel, compile_terms
from .boundary import BoundaryEquation, check_boundary_coverage
from .errors import DiscretizationError, UnboundParameterError
from .logging import get_logger
from .mapper import VariableMap
from .pde_ir import (
    InitialDescription,
    PDEDescription,
    derivative_requests,
    referenced_parameters,
    regularize_at_origin,
)
from .stencil import StencilCache
from .stencil_ir import DerivativeOp, EquationOp, MOLProgram, RowSet

logger = get_logger(__name__)


class AssembledSystem(NamedTuple):
    rhs: PythonRhsKernel
    u0: np.ndarray
    p: np.ndarray


def parameter_vector(
    parameters: Sequence[Tuple[str, Optional[float]]],
    referenced: Set[str],
) -> Tuple[List[str], np.ndarray]:
    """按声明顺序给出 (参数名, 参数向量)。"""
    names = [name for name, _ in parameters]
    for name in sorted(referenced):
        if name not in names:
            raise UnboundParameterError(f"Parameter {name!r} is referenced but not bound")
    for name, value in parameters:
        if value is None:
            raise UnboundParameterError(f"Parameter {name!r} has no numeric value")
    return names, np.array([value for _, value in parameters], dtype=float)


def _exactly_once(kind: str, fields: Sequence, items: Sequence) -> Dict[str, object]:
    declared = {f.name for f in fields}
    out: Dict[str, object] = {}
    for item in items:
        name = item.field.name
        if name not in declared:
            raise DiscretizationError(f"{kind} for undeclared variable {name!r}")
        if name in out:
            raise DiscretizationError(f"Variable {name!r} has more than one {kind}")
        out[name] = item
    for f in fields:
        if f.name not in out:
            raise DiscretizationError(f"Variable {f.name!r} has no {kind}")
    return out


# ======================= 方程行 / 导数 =======================

def _equation_ops(
    equations: Sequence[PDEDescription],
    mapper: VariableMap,
    symmetric: Dict[str, BoundaryEquation],
) -> Tuple[List[EquationOp], Set[Tuple[str, int]], Set[Tuple[str, int]]]:
    ops: List[EquationOp] = []
    requests: Set[Tuple[str, int]] = set()
    origin_requests: Set[Tuple[str, int]] = set()

    for desc in equations:
        block = mapper.block(desc.field)
        slots = np.arange(block.start, block.stop)

        if block.grid is None:
            rowsets = [RowSet(rows=None, slots=slots, terms=desc.terms)]
        elif desc.field.name not in symmetric:
            rowsets = [RowSet(rows=block.indices, slots=slots, terms=desc.terms)]
        else:
            origin = symmetric[desc.field.name]
            at_origin = block.indices == origin.index
            regular = regularize_at_origin(desc.terms, block.grid.coordinate, set(symmetric))
            logger.debug(
                "%s: regularized %d term(s) at %s = 0",
                desc.field.name, len(desc.terms), block.grid.coordinate,
            )
            rowsets = [
                RowSet(rows=block.indices[~at_origin], slots=slots[~at_origin], terms=desc.terms),
                RowSet(rows=block.indices[at_origin], slots=slots[at_origin], terms=regular),
            ]
            origin_requests |= derivative_requests(regular)

        for rs in rowsets:
            requests |= derivative_requests(rs.terms)
        ops.append(EquationOp(field=desc.field, rowsets=rowsets))

    return ops, requests, origin_requests


def _derivative_ops(
    requests: Set[Tuple[str, int]],
    origin_requests: Set[Tuple[str, int]],
    mapper: VariableMap,
    symmetric: Dict[str, BoundaryEquation],
    approx_order: int,
    cache: StencilCache,
) -> List[DerivativeOp]:
    ops = []
    for name, order in sorted(requests):
        field = mapper.field(name)
        grid = mapper.grid(name)
        if grid is None:
            raise DiscretizationError(f"ODE variable {name!r} has no spatial derivative")
        st = cache.get(grid, order, approx_order)
        if name in symmetric:
            beq = symmetric[name]
            st = st.with_rows({beq.index: cache.mirrored(grid, beq.side, order, approx_order)})
        elif (name, order) in origin_requests:
            raise DiscretizationError(
                f"Derivative of {name!r} is needed at a symmetric origin where {name!r} is not symmetric"
            )
        ops.append(DerivativeOp(field=field, stencil=st))
    return ops


# ======================= 初值 =======================

def initial_state(
    initial_conditions: Sequence[InitialDescription],
    mapper: VariableMap,
    symmetric: Dict[str, BoundaryEquation],
    parameters: Dict[str, int],
    p: np.ndarray,
    time: str,
    t0: float,
) -> np.ndarray:
    """
    在每个未知量的坐标上求初值。
    对称原点上初值不是有限数（如 sin(r)/r）时，改用 du/dr(0) = 0 由邻点推出的值。
    """
    u0 = np.zeros(len(mapper))
    env = EvalEnv(t=t0, p=p)

    for ic in initial_conditions:
        block = mapper.block(ic.field)
        name = ic.field.name
        if block.grid is None:
            fn = compile_terms(ic.terms, Layout(time=time, params=parameters))
            u0[block.start] = np.float64(fn(env))
            if not np.isfinite(u0[block.start]):
                raise DiscretizationError(f"Initial value of {name!r} is not finite")
            continue

        grid = block.grid
        layout = Layout(time=time, params=parameters, coordinate=grid.coordinate, points=grid.x)
        fn = compile_terms(ic.terms, layout)
        with np.errstate(divide="ignore", invalid="ignore"):
            values = np.array(np.broadcast_to(fn(env), (grid.nx,)), dtype=float)

        origin = symmetric.get(name)
        if origin is not None and not np.isfinite(values[origin.index]):
            values[origin.index] = origin.solve(0.0, 1.0, 0.0, values)
            logger.debug(
                "%s: initial value at %s = %g is not finite, using %g from the zero-gradient condition",
                name, grid.coordinate, origin.location, values[origin.index],
            )

        u0[block.slice] = values[block.indices]
        bad = ~np.isfinite(u0[block.slice])
        if np.any(bad):
            raise DiscretizationError(
                f"Initial value of {name!r} is not finite at "
                f"{grid.coordinate} = {grid.x[block.indices][bad].tolist()}"
            )
    return u0


# ======================= 组装 =======================

def assemble(
    equations: Sequence[PDEDescription],
    boundary_equations: Sequence[BoundaryEquation],
    mapper: VariableMap,
    parameters: Sequence[Tuple[str, Optional[float]]],
    *,
    initial_conditions: Sequence[InitialDescription],
    time: str = "t",
    tspan: Tuple[float, float] = (0.0, 1.0),
    approx_order: int = 2,
    cache: Optional[StencilCache] = None,
) -> AssembledSystem:
    """
    方程 + 边界方程 + 映射 + 参数 -> (rhs, u0, p)。
    所有错误在这里抛出，积分前不会留下半成品。
    """
    cache = cache if cache is not None else StencilCache()
    fields = mapper.fields

    check_boundary_coverage(fields, boundary_equations)
    _exactly_once("equation", fields, equations)
    _exactly_once("initial condition", fields, initial_conditions)

    referenced: Set[str] = set()
    for desc in equations:
        referenced |= referenced_parameters(desc.terms)
    for beq in boundary_equations:
        for terms in beq.coefficient_terms():
            referenced |= referenced_parameters(terms)
    for ic in initial_conditions:
        referenced |= referenced_parameters(ic.terms)
    names, p = parameter_vector(parameters, referenced)

    symmetric = {beq.field.name: beq for beq in boundary_equations if not beq.eliminated}
    ops, requests, origin_requests = _equation_ops(equations, mapper, symmetric)
    derivatives = _derivative_ops(requests, origin_requests, mapper, symmetric, approx_order, cache)

    program = MOLProgram(
        mapper=mapper,
        equations=ops,
        derivatives=derivatives,
        boundaries=list(boundary_equations),
        parameters=names,
        parameter_values=p,
        time=time,
        approx_order=approx_order,
    )
    kernel = PythonRhsKernel.from_program(program)

    t0, tf = float(tspan[0]), float(tspan[1])
    for beq in boundary_equations:
        if not beq.eliminated:
            continue
        for t in (t0, tf):
            a, b, _ = kernel.boundary_coefficients(beq, t)
            beq.check_solvable(a, b, when=f"at t = {t:g}")

    u0 = initial_state(
        initial_conditions, mapper, symmetric, {n: k for k, n in enumerate(names)}, p, time, t0,
    )

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        probe = kernel(t0, u0)
    bad = np.flatnonzero(~np.isfinite(probe))
    if bad.size:
        field, coords = mapper.lookup(int(bad[0]))
        raise DiscretizationError(
            f"Right-hand side is not finite at t = {t0:g} for {field.name!r} at {coords} "
            f"({bad.size} slot(s) affected)"
        )

    logger.info(
        "assembled %d unknowns: %s, %d parameter(s), %d boundary equation(s)",
        len(mapper), mapper, len(names), len(boundary_equations),
    )
    return AssembledSystem(rhs=kernel, u0=u0, p=p)
