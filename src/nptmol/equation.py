'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 12:33:50
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 16:10:27
FilePath: /nptmol/src/nptmol/equation.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/equation.py

from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import DiscretizationError
from .grid import Domain


# ======================= 运算符 mixin =======================

class Operand:
    """
    可以参与符号运算的对象（Expr / Field / Coordinate / Parameter）。
    所有运算先经过 as_expr() 统一成 Expr。
    """

    # numpy 标量在左边时交给我们的反向运算符
    __array_ufunc__ = None

    def __add__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("add", (as_expr(self), as_expr(other)))

    def __radd__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("add", (as_expr(other), as_expr(self)))

    def __sub__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("sub", (as_expr(self), as_expr(other)))

    def __rsub__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("sub", (as_expr(other), as_expr(self)))

    def __mul__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("mul", (as_expr(self), as_expr(other)))

    def __rmul__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("mul", (as_expr(other), as_expr(self)))

    def __truediv__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("div", (as_expr(self), as_expr(other)))

    def __rtruediv__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("div", (as_expr(other), as_expr(self)))

    def __pow__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("pow", (as_expr(self), as_expr(other)))

    def __rpow__(self, other: "ExprOrScalar") -> "Expr":
        return Expr("pow", (as_expr(other), as_expr(self)))

    def __neg__(self) -> "Expr":
        return Expr("mul", (const(-1.0), as_expr(self)))

    def __pos__(self) -> "Expr":
        return as_expr(self)


# ======================= Expr 基础节点 =======================

@dataclass(frozen=True)
class Expr(Operand):
    """
    前端给出的、已经求导化简过的项树。

    op:
      - "const" : 常数
      - "coord" : 自变量（时间变量在求值时就是 t）
      - "param" : 命名参数
      - "var"   : 因变量（Field）
      - "dt"    : d_t(u)
      - "dx"    : 一阶空间导数 d_x(u)，args = (var(u), 坐标名)
      - "dxx"   : 二阶空间导数 d_xx(u)
      - "add" / "sub" / "mul" / "div" / "pow"
      - "call"  : 逐点函数 sin/cos/exp/...，args = (函数名, 参数)
      - "at"    : 边界取值标记，args = (var/dx 节点, 位置)
      - "ic"    : 初值标记 initial(u)
    """
    op: str
    args: Tuple[Any, ...]

    def at(self, location: float) -> "Expr":
        return at(self, location)

    def __repr__(self) -> str:
        return f"Expr(op={self.op!r}, args={self.args!r})"


ExprOrScalar = Union[Operand, float, int]


def as_expr(x: ExprOrScalar) -> Expr:
    """
    把 Field / Coordinate / Parameter / 标量 / Expr 统一转成 Expr。
    符号对象通过 __expr__() 自己决定包装方式。
    """
    if isinstance(x, Expr):
        return x
    to_expr = getattr(x, "__expr__", None)
    if to_expr is not None:
        return to_expr()
    if isinstance(x, Real):
        return const(float(x))
    raise TypeError(f"Cannot convert type {type(x)} to Expr")


# ======================= 符号 =======================

@dataclass(frozen=True)
class Coordinate(Operand):
    """自变量（空间坐标或时间）。"""
    name: str

    def __expr__(self) -> Expr:
        return Expr("coord", (self.name,))


@dataclass(frozen=True)
class Parameter(Operand):
    """命名参数，组装时绑定数值。"""
    name: str

    def __expr__(self) -> Expr:
        return Expr("param", (self.name,))


# ======================= 基本构造函数 =======================

def const(value: float) -> Expr:
    return Expr("const", (float(value),))


def var(field) -> Expr:
    """变量节点：u -> Expr('var', (field,))."""
    return Expr("var", (field,))


def _spatial_coordinate(field, coordinate: Optional[Coordinate]) -> str:
    if coordinate is not None:
        name = coordinate if isinstance(coordinate, str) else coordinate.name
    elif field.coordinate is not None:
        name = field.coordinate.name
    else:
        raise DiscretizationError(f"Field {field.name!r} has no spatial coordinate")
    if field.coordinate is None or field.coordinate.name != name:
        raise DiscretizationError(f"Field {field.name!r} does not depend on {name!r}")
    return name


def d_t(field) -> Expr:
    """一阶时间导数：d_t(u)。"""
    return Expr("dt", (var(field),))


def d_x(field, coordinate: Optional[Coordinate] = None) -> Expr:
    """一阶空间导数：d_x(u)，默认对 u 自己的坐标求导。"""
    return Expr("dx", (var(field), _spatial_coordinate(field, coordinate)))


def d_xx(field, coordinate: Optional[Coordinate] = None) -> Expr:
    """二阶空间导数：d_xx(u)。"""
    return Expr("dxx", (var(field), _spatial_coordinate(field, coordinate)))


def initial(field) -> Expr:
    """初值标记：Equation(initial(u), cos(x)) 表示 u(t0, x) = cos(x)。"""
    return Expr("ic", (var(field),))


def at(expr: ExprOrScalar, location: float) -> Expr:
    """
    把表达式里所有 var / dx 节点钉在边界位置上：
        at(4*u + d_x(u), 1.0) -> 4*at(u, 1) + at(d_x(u), 1)
    系数里的坐标不动，求值时再绑定到 location。
    """
    expr = as_expr(expr)
    location = float(location)
    if expr.op in ("var", "dx", "dxx"):
        return Expr("at", (expr, location))
    if expr.op in ("const", "coord", "param"):
        return expr
    if expr.op == "call":
        name, arg = expr.args
        return Expr("call", (name, at(arg, location)))
    if expr.op in ("add", "sub", "mul", "div", "pow"):
        a, b = expr.args
        return Expr(expr.op, (at(a, location), at(b, location)))
    raise DiscretizationError(f"Cannot place {expr.op!r} at a boundary")


def _call(name: str):
    def fn(x: ExprOrScalar) -> Expr:
        return Expr("call", (name, as_expr(x)))

    fn.__name__ = name
    fn.__doc__ = f"逐点 {name}(x)。"
    return fn


sin = _call("sin")
cos = _call("cos")
tan = _call("tan")
exp = _call("exp")
log = _call("log")
sqrt = _call("sqrt")
sinh = _call("sinh")
cosh = _call("cosh")
tanh = _call("tanh")
abs_ = _call("abs")


# ======================= 方程封装 =======================

@dataclass(frozen=True)
class Equation:
    """
    lhs = rhs。

    例子：
        u = Field("u", x)
        eq  = Equation(d_t(u), D * d_xx(u))
        bc  = Equation(u.at(0.0), exp(-t))
        ic  = Equation(initial(u), cos(x))
    """
    lhs: Expr
    rhs: Expr

    def __post_init__(self) -> None:
        object.__setattr__(self, "lhs", as_expr(self.lhs))
        object.__setattr__(self, "rhs", as_expr(self.rhs))


ParameterBindings = Union[
    Mapping[Union[Parameter, str], Optional[float]],
    Sequence[Tuple[Union[Parameter, str], Optional[float]]],
]


def _binding_list(bindings: ParameterBindings) -> List[Tuple[str, Optional[float]]]:
    items = bindings.items() if isinstance(bindings, Mapping) else bindings
    out: List[Tuple[str, Optional[float]]] = []
    seen: Dict[str, int] = {}
    for key, value in items:
        name = key if isinstance(key, str) else key.name
        if name in seen:
            raise DiscretizationError(f"Parameter {name!r} is bound more than once")
        seen[name] = len(out)
        out.append((name, None if value is None else float(value)))
    return out


@dataclass
class PDESystem:
    """
    完整的 PDE 系统描述：
      - equations : 每个方程驱动一个因变量（d_t(u) 所在的那个）
      - conditions: 边界条件 + 初值条件混在一起
      - domains   : 时间和空间坐标的区间
      - fields    : 因变量声明顺序，也就是状态向量里的块顺序
      - parameters: 参数绑定，声明顺序就是参数向量顺序
    """
    equations: Sequence[Equation]
    conditions: Sequence[Equation]
    domains: Sequence[Domain]
    fields: Sequence[Any]
    parameters: ParameterBindings = field(default_factory=list)
    name: str = "pdesys"

    def __post_init__(self) -> None:
        if isinstance(self.equations, Equation):
            self.equations = [self.equations]
        self.equations = list(self.equations)
        self.conditions = list(self.conditions)
        self.domains = list(self.domains)
        self.fields = list(self.fields)
        self.parameters = _binding_list(self.parameters)

    def domain(self, coordinate) -> Domain:
        name = coordinate if isinstance(coordinate, str) else coordinate.name
        for d in self.domains:
            if d.coordinate == name:
                return d
        raise KeyError(f"No domain declared for {name!r}")
