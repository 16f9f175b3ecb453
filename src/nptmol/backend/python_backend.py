'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 15:52:17
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 20:16:31
FilePath: /nptmol/src/nptmol/backend/python_backend.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/backend/python_backend.py
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple, TypeAlias

import numpy as np

from ..boundary import BoundaryEquation
from ..equation import Expr
from ..errors import DiscretizationError, UnboundParameterError
from ..pde_ir import Term
from ..stencil_ir import MOLProgram
from .base import CompiledExpr, EvalEnv, Layout, Value

RhsFn: TypeAlias = Callable[[float, np.ndarray], np.ndarray]

# 全部用 numpy ufunc：除零得到 inf/nan 而不是抛 ZeroDivisionError
_BINARY = {
    "add": np.add,
    "sub": np.subtract,
    "mul": np.multiply,
    "div": np.divide,
    "pow": np.power,
}

_FUNCTIONS = {
    "sin": np.sin,
    "cos": np.cos,
    "tan": np.tan,
    "exp": np.exp,
    "log": np.log,
    "sqrt": np.sqrt,
    "sinh": np.sinh,
    "cosh": np.cosh,
    "tanh": np.tanh,
    "abs": np.abs,
}


# ======================= 表达式编译 =======================

def _check_spatial(field, layout: Layout) -> np.ndarray:
    if layout.rows is None:
        raise DiscretizationError(
            f"Spatial variable {field.name!r} cannot appear here (no grid rows to evaluate on)"
        )
    if field.coordinate.name != layout.coordinate:
        raise DiscretizationError(
            f"Variable {field.name!r} lives on {field.coordinate.name!r}, "
            f"but is used on the {layout.coordinate!r} grid"
        )
    return layout.rows


def compile_expr(expr: Expr, layout: Layout) -> CompiledExpr:
    op = expr.op

    if op == "const":
        (c,) = expr.args
        return lambda env: c

    if op == "coord":
        (name,) = expr.args
        if name == layout.time:
            return lambda env: env.t
        if name == layout.coordinate and layout.points is not None:
            points = layout.points
            return lambda env: points
        raise DiscretizationError(f"Coordinate {name!r} is not available in this expression")

    if op == "param":
        (name,) = expr.args
        if name not in layout.params:
            raise UnboundParameterError(f"Parameter {name!r} has no numeric value")
        k = layout.params[name]
        return lambda env: env.p[k]

    if op == "var":
        (field,) = expr.args
        name = field.name
        if not field.is_spatial:
            return lambda env: env.fields[name]
        rows = _check_spatial(field, layout)
        return lambda env: env.fields[name][rows]

    if op in ("dx", "dxx"):
        field = expr.args[0].args[0]
        rows = _check_spatial(field, layout)
        key = (field.name, 1 if op == "dx" else 2)
        return lambda env: env.derivatives[key][rows]

    if op in _BINARY:
        ufunc = _BINARY[op]
        a = compile_expr(expr.args[0], layout)
        b = compile_expr(expr.args[1], layout)
        return lambda env: ufunc(a(env), b(env))

    if op == "call":
        name, arg = expr.args
        if name not in _FUNCTIONS:
            raise DiscretizationError(f"Unknown function {name!r}")
        fn = _FUNCTIONS[name]
        inner = compile_expr(arg, layout)
        return lambda env: fn(inner(env))

    raise DiscretizationError(f"Cannot evaluate {op!r} in a right-hand side")


def _compile_term(term: Term, layout: Layout) -> CompiledExpr:
    scale: Value = term.coefficient
    time_powers: List[float] = []
    for name, k in term.powers:
        if name == layout.time:
            time_powers.append(k)
        elif name == layout.coordinate and layout.points is not None:
            # 坐标单项式只和网格有关，编译时算好
            with np.errstate(divide="ignore", invalid="ignore"):
                scale = np.multiply(scale, np.power(np.asarray(layout.points, dtype=float), k))
        else:
            raise DiscretizationError(f"Coordinate {name!r} is not available in this expression")
    factors = [compile_expr(f, layout) for f in term.factors]

    def fn(env: EvalEnv) -> Value:
        v = scale
        for k in time_powers:
            v = np.multiply(v, np.power(env.t, k))
        for f in factors:
            v = np.multiply(v, f(env))
        return v

    return fn


def compile_terms(terms: List[Term], layout: Layout) -> CompiledExpr:
    """sum(terms) -> env 上的闭包；空和为 0。"""
    fns = [_compile_term(t, layout) for t in terms]
    if not fns:
        return lambda env: 0.0

    def fn(env: EvalEnv) -> Value:
        acc = fns[0](env)
        for f in fns[1:]:
            acc = np.add(acc, f(env))
        return acc

    return fn


# ======================= RHS kernel =======================

@dataclass
class PythonRhsKernel:
    """
    MOLProgram -> 可直接交给积分器的 rhs(t, y, p)。

    每次调用：
      1. 状态量填回各变量的全网格数组，消元的边界点按边界方程重建
      2. 稀疏矩阵求出需要的空间导数
      3. 逐组行求方程右端，写进 dy
    除了编译时缓存的矩阵和闭包，没有其它状态。
    """
    program: MOLProgram

    @classmethod
    def from_program(cls, program: MOLProgram) -> "PythonRhsKernel":
        return cls(program=program)

    def __post_init__(self) -> None:
        prog = self.program
        self._params: Dict[str, int] = {name: k for k, name in enumerate(prog.parameters)}

        self._boundaries: Dict[str, List[Tuple[BoundaryEquation, CompiledExpr, CompiledExpr, CompiledExpr]]] = {}
        for beq in prog.boundaries:
            layout = Layout(
                time=prog.time,
                params=self._params,
                coordinate=beq.field.coordinate.name,
                points=beq.location,
            )
            a, b, f = beq.coefficient_terms()
            self._boundaries.setdefault(beq.field.name, []).append(
                (beq, compile_terms(a, layout), compile_terms(b, layout), compile_terms(f, layout))
            )

        self._derivatives = [(op.key, op.field.name, op.stencil.matrix()) for op in prog.derivatives]

        self._rowsets: List[Tuple[np.ndarray, CompiledExpr]] = []
        for eq in prog.equations:
            grid = prog.mapper.grid(eq.field)
            for rs in eq.rowsets:
                if rs.rows is None:
                    layout = Layout(time=prog.time, params=self._params)
                else:
                    layout = Layout(
                        time=prog.time,
                        params=self._params,
                        coordinate=grid.coordinate,
                        points=grid.x[rs.rows],
                        rows=rs.rows,
                    )
                self._rowsets.append((rs.slots, compile_terms(rs.terms, layout)))

    def _parameters(self, p: Optional[np.ndarray]) -> np.ndarray:
        if p is None:
            return self.program.parameter_values
        p = np.asarray(p, dtype=float)
        if p.shape != self.program.parameter_values.shape:
            raise ValueError(
                f"Parameter vector must have shape {self.program.parameter_values.shape}, got {p.shape}"
            )
        return p

    def boundary_coefficients(self, beq: BoundaryEquation, t: float, p: Optional[np.ndarray] = None) -> Tuple[float, float, float]:
        """边界方程 a(t), b(t), f(t) 在 t 时刻的值。"""
        env = EvalEnv(t=t, p=self._parameters(p))
        for cand, fa, fb, ff in self._boundaries.get(beq.field.name, []):
            if cand is beq:
                return np.float64(fa(env)), np.float64(fb(env)), np.float64(ff(env))
        raise KeyError(f"Boundary equation of {beq.field.name!r} is not part of this kernel")

    def _fill_fields(self, t: float, y: np.ndarray, p: np.ndarray) -> Dict[str, Value]:
        fields: Dict[str, Value] = {}
        coeff_env = EvalEnv(t=t, p=p)
        for block in self.program.mapper.blocks():
            name = block.field.name
            if block.grid is None:
                fields[name] = y[block.start]
                continue
            full = np.zeros(block.grid.nx)
            full[block.indices] = y[block.slice]
            for beq, fa, fb, ff in self._boundaries.get(name, []):
                if beq.eliminated:
                    a = np.float64(fa(coeff_env))
                    b = np.float64(fb(coeff_env))
                    f = np.float64(ff(coeff_env))
                    full[beq.index] = beq.solve(a, b, f, full)
            fields[name] = full
        return fields

    def full_field(self, field, t: float, y: np.ndarray, p: Optional[np.ndarray] = None) -> np.ndarray:
        """某变量在全网格（含边界点）上的值。"""
        y = np.asarray(y, dtype=float)
        name = field if isinstance(field, str) else field.name
        value = self._fill_fields(t, y, self._parameters(p))[name]
        return np.atleast_1d(np.asarray(value, dtype=float))

    def __call__(self, t: float, y: np.ndarray, p: Optional[np.ndarray] = None) -> np.ndarray:
        p = self._parameters(p)
        y = np.asarray(y, dtype=float)
        env = EvalEnv(t=t, p=p, fields=self._fill_fields(t, y, p))
        for key, name, D in self._derivatives:
            env.derivatives[key] = D @ env.fields[name]

        dy = np.zeros_like(y)
        for slots, fn in self._rowsets:
            dy[slots] = fn(env)
        return dy

    def make_rhs_fn(self) -> RhsFn:
        """不带参数覆盖的 rhs(t, y)，给只接受两个参数的积分器用。"""
        def rhs(t: float, y: np.ndarray) -> np.ndarray:
            return self(t, y)

        return rhs
