'''
Author: leviathan 670916484@qq.com
Date: 2026-10-18 13:02:19
LastEditors: leviathan 670916484@qq.com
LastEditTime: 2026-10-18 17:40:55
FilePath: /nptmol/src/nptmol/pde_ir.py
Description:

Copyright (c) 2026 by leviathan, All Rights Reserved.
'''
# nptmol/pde_ir.py
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .equation import Equation, Expr, ExprOrScalar, as_expr, const
from .errors import DiscretizationError, UnsolvableBoundaryError

# 小整数幂直接展开成乘积，(a + b)**2 -> a*a + 2ab + b*b
_MAX_EXPANDED_POWER = 4


# ======================= 和式 / 积式标准形 =======================

@dataclass(frozen=True)
class Term:
    """
    标准形里的一项：
        coefficient * prod(coord ** power) * prod(factors)
    powers 按坐标名排序，factors 是剩下的不透明因子（场、导数、参数、函数调用……）。
    """
    coefficient: float
    powers: Tuple[Tuple[str, float], ...] = ()
    factors: Tuple[Expr, ...] = ()

    def times(self, other: "Term") -> "Term":
        return Term(
            self.coefficient * other.coefficient,
            _merge_powers(self.powers, other.powers),
            self.factors + other.factors,
        )

    def scaled(self, c: float) -> "Term":
        return Term(self.coefficient * c, self.powers, self.factors)

    def power_of(self, coordinate: str) -> float:
        for name, k in self.powers:
            if name == coordinate:
                return k
        return 0.0

    @property
    def is_constant(self) -> bool:
        return not self.powers and not self.factors


def _merge_powers(a, b) -> Tuple[Tuple[str, float], ...]:
    merged: Dict[str, float] = dict(a)
    for name, k in b:
        merged[name] = merged.get(name, 0.0) + k
    return tuple(sorted((n, k) for n, k in merged.items() if k != 0.0))


def _product(xs: List[Term], ys: List[Term]) -> List[Term]:
    out = []
    for a in xs:
        for b in ys:
            term = a.times(b)
            if term.coefficient != 0.0:
                out.append(term)
    return out


def _opaque(expr: Expr) -> List[Term]:
    return [Term(1.0, (), (expr,))]


def _reciprocal(expr: Expr) -> List[Term]:
    terms = expand(expr)
    if not terms:
        raise DiscretizationError("Division by an expression that is identically zero")
    if len(terms) > 1:
        return _opaque(Expr("pow", (expr, const(-1.0))))
    (term,) = terms
    return [
        Term(
            1.0 / term.coefficient,
            tuple((n, -k) for n, k in term.powers),
            tuple(Expr("pow", (f, const(-1.0))) for f in term.factors),
        )
    ]


def _power(base: Expr, exponent: Expr) -> List[Term]:
    if exponent.op != "const":
        return _opaque(Expr("pow", (base, exponent)))
    (n,) = exponent.args
    terms = expand(base)

    if not terms:
        if n > 0:
            return []
        raise DiscretizationError("Zero raised to a non-positive power")
    if n == 0:
        return [Term(1.0)]

    if len(terms) == 1:
        (term,) = terms
        if term.coefficient < 0 and not float(n).is_integer():
            return _opaque(Expr("pow", (base, exponent)))
        factors = term.factors if n == 1 else tuple(
            Expr("pow", (f, const(n))) for f in term.factors
        )
        return [Term(term.coefficient ** n, tuple((c, k * n) for c, k in term.powers), factors)]

    if float(n).is_integer() and 0 < n <= _MAX_EXPANDED_POWER:
        out = terms
        for _ in range(int(n) - 1):
            out = _product(out, terms)
        return out
    return _opaque(Expr("pow", (base, exponent)))


def expand(expr: ExprOrScalar) -> List[Term]:
    """
    把项树展开成和式标准形（空列表表示恒为 0）：
        r**-2 * (2*r*d_x(u) + r**2 * d_xx(u))
          -> [Term(2, (("r", -1),), (dx(u),)), Term(1, (), (dxx(u),))]
    乘法对加法分配；除以单项式时逐因子取倒数，除以和式时整体当作不透明因子。
    """
    expr = as_expr(expr)
    op = expr.op

    if op == "const":
        (c,) = expr.args
        return [Term(float(c))] if c != 0.0 else []
    if op == "coord":
        (name,) = expr.args
        return [Term(1.0, ((name, 1.0),))]
    if op == "add":
        a, b = expr.args
        return expand(a) + expand(b)
    if op == "sub":
        a, b = expr.args
        return expand(a) + [t.scaled(-1.0) for t in expand(b)]
    if op == "mul":
        a, b = expr.args
        return _product(expand(a), expand(b))
    if op == "div":
        a, b = expr.args
        numerator = expand(a)
        if not numerator:
            return []
        return _product(numerator, _reciprocal(b))
    if op == "pow":
        a, b = expr.args
        return _power(a, b)
    return _opaque(expr)


# ======================= 遍历工具 =======================

def iter_nodes(expr: Expr) -> Iterator[Expr]:
    yield expr
    for arg in expr.args:
        if isinstance(arg, Expr):
            yield from iter_nodes(arg)


def iter_term_nodes(terms: Iterable[Term]) -> Iterator[Expr]:
    for term in terms:
        for factor in term.factors:
            yield from iter_nodes(factor)


def _field_of(node: Expr):
    """var / dt / dx / dxx 节点 -> 对应的 Field。"""
    inner = node.args[0] if node.op != "var" else node
    return inner.args[0]


def referenced_fields(terms: Iterable[Term]) -> Set[str]:
    return {
        _field_of(node).name
        for node in iter_term_nodes(terms)
        if node.op in ("var", "dx", "dxx", "dt")
    }


def referenced_parameters(terms: Iterable[Term]) -> Set[str]:
    return {node.args[0] for node in iter_term_nodes(terms) if node.op == "param"}


def derivative_requests(terms: Iterable[Term]) -> Set[Tuple[str, int]]:
    """RHS 需要哪些 (场名, 导数阶) 的 stencil。"""
    out = set()
    for node in iter_term_nodes(terms):
        if node.op == "dx":
            out.add((_field_of(node).name, 1))
        elif node.op == "dxx":
            out.add((_field_of(node).name, 2))
    return out


def has_singular_power(terms: Iterable[Term], coordinate: str) -> bool:
    return any(t.power_of(coordinate) < 0 for t in terms)


# ======================= PDE 描述 =======================

@dataclass
class TimeDescriptor:
    field: object
    coefficient: float = 1.0  # 原方程里 c * d_t(u) 的 c


@dataclass
class PDEDescription:
    """d_t(u) = sum(terms)。"""
    time: TimeDescriptor
    terms: List[Term]

    @property
    def field(self):
        return self.time.field


def describe_equation(eq: Equation) -> PDEDescription:
    """
    把 Equation(lhs, rhs) 解析成 d_t(u) = sum(terms)：
      - lhs - rhs 展开成标准形
      - 恰好有一项是 c * d_t(u)（c 为常数）
      - 其余项整体除以 -c 挪到右边
    """
    terms = expand(eq.lhs) + [t.scaled(-1.0) for t in expand(eq.rhs)]

    time_terms = [t for t in terms if any(f.op == "dt" for f in t.factors)]
    if not time_terms:
        raise DiscretizationError("Equation has no time derivative d_t(u)")
    if len(time_terms) > 1:
        raise DiscretizationError("Equation must contain exactly one time-derivative term")
    (time_term,) = time_terms
    if len(time_term.factors) != 1 or time_term.powers:
        raise DiscretizationError("d_t(u) must appear with a constant coefficient")

    rest = [t for t in terms if t is not time_term]
    for node in iter_term_nodes(rest):
        if node.op in ("dt", "at", "ic"):
            raise DiscretizationError(f"Unexpected {node.op!r} on the right-hand side")

    field = _field_of(time_term.factors[0])
    scale = -1.0 / time_term.coefficient
    return PDEDescription(
        time=TimeDescriptor(field=field, coefficient=time_term.coefficient),
        terms=[t.scaled(scale) for t in rest],
    )


# ======================= 边界条件描述 =======================

@dataclass
class BoundaryDescription:
    """
    线性边界条件：a * u(loc) + b * du/dx(loc) = f。
    a / b / f 都是不含场的标准形，可以依赖 t、参数和边界坐标。
    """
    field: object
    location: float
    value_terms: List[Term]
    derivative_terms: List[Term]
    rhs_terms: List[Term]


def _contains_field(term: Term) -> bool:
    return any(node.op in ("var", "dx", "dxx", "dt", "at", "ic") for node in iter_term_nodes([term]))


def describe_boundary(eq: Equation) -> BoundaryDescription:
    terms = expand(eq.lhs) + [t.scaled(-1.0) for t in expand(eq.rhs)]

    field = None
    location: Optional[float] = None
    value: List[Term] = []
    derivative: List[Term] = []
    rhs: List[Term] = []

    for term in terms:
        markers = [k for k, f in enumerate(term.factors) if f.op == "at"]
        if not markers:
            rhs.append(term.scaled(-1.0))
            continue
        if len(markers) > 1:
            raise DiscretizationError("Nonlinear boundary conditions are not supported")

        k = markers[0]
        inner, loc = term.factors[k].args
        coefficient = Term(term.coefficient, term.powers, term.factors[:k] + term.factors[k + 1:])

        if inner.op == "var":
            target, this_field = value, inner.args[0]
        elif inner.op == "dx":
            target, this_field = derivative, _field_of(inner)
        else:
            raise DiscretizationError(
                f"Boundary conditions may only involve u and du/dx, got {inner.op!r}"
            )

        if field is None:
            field, location = this_field, loc
        elif this_field is not field or loc != location:
            raise DiscretizationError(
                "A boundary condition must involve one field at one location"
            )
        target.append(coefficient)

    if field is None:
        raise DiscretizationError("Boundary condition does not reference any field at a location")

    for term in value + derivative + rhs:
        if _contains_field(term):
            raise DiscretizationError(
                f"Boundary condition of {field.name!r} has field-dependent coefficients"
            )

    return BoundaryDescription(
        field=field,
        location=float(location),
        value_terms=value,
        derivative_terms=derivative,
        rhs_terms=rhs,
    )


# ======================= 初值描述 =======================

@dataclass
class InitialDescription:
    field: object
    terms: List[Term]


def describe_initial(eq: Equation) -> InitialDescription:
    if eq.lhs.op != "ic":
        raise DiscretizationError("Initial condition must have initial(u) on the left-hand side")
    terms = expand(eq.rhs)
    for node in iter_term_nodes(terms):
        if node.op in ("var", "dx", "dxx", "dt", "at", "ic"):
            raise DiscretizationError("Initial condition may not reference fields")
    return InitialDescription(field=_field_of(eq.lhs.args[0]), terms=terms)


def classify_condition(eq: Equation) -> str:
    """'initial' 或 'boundary'。"""
    nodes = list(iter_nodes(eq.lhs)) + list(iter_nodes(eq.rhs))
    if any(n.op == "ic" for n in nodes):
        return "initial"
    if any(n.op == "at" for n in nodes):
        return "boundary"
    raise DiscretizationError(f"Cannot classify condition {eq!r}")


# ======================= 可去奇点 =======================

def regularize_at_origin(terms: List[Term], coordinate: str, symmetric: Set[str]) -> List[Term]:
    """
    对称原点 r = 0 上（且 du/dr(0) = 0）把奇异项换成极限形式：
        r**-1 * du/dr  ->  d2u/dr2      (L'Hopital)
    其它负幂次不是可去奇点，直接报错。
    """
    out: List[Term] = []
    for term in terms:
        k = term.power_of(coordinate)
        if k >= 0:
            out.append(term)
            continue

        hits = [
            i for i, f in enumerate(term.factors)
            if f.op == "dx" and f.args[1] == coordinate and _field_of(f).name in symmetric
        ]
        if k != -1.0 or len(hits) != 1:
            raise UnsolvableBoundaryError(
                f"Term with {coordinate}**{k:g} is not a removable singularity at {coordinate} = 0"
            )
        (i,) = hits
        dx_node = term.factors[i]
        factors = term.factors[:i] + (Expr("dxx", dx_node.args),) + term.factors[i + 1:]
        powers = tuple((n, p) for n, p in term.powers if n != coordinate)
        out.append(Term(term.coefficient, powers, factors))
    return out
